"""Database models."""
from edify.models.base import ModerationStatus, ToolType
from edify.models.ai_tools_metric import AIToolsMetric
from edify.models.user import User, OrgMember
from edify.models.tool_results import (
    ToolResultBase,
    QuizResult,
    RubricResult,
    SchemeOfWorkResult,
    ReportResult,
    PromptRefinementResult,
    PeelResult,
    PerspectiveChallengeResult,
    LongQAResult,
    LessonPlanEvaluation,
    RESULT_MODELS,
    get_result_model,
)

__all__ = [
    "ModerationStatus",
    "ToolType",
    "AIToolsMetric",
    "User",
    "OrgMember",
    "ToolResultBase",
    "QuizResult",
    "RubricResult",
    "SchemeOfWorkResult",
    "ReportResult",
    "PromptRefinementResult",
    "PeelResult",
    "PerspectiveChallengeResult",
    "LongQAResult",
    "LessonPlanEvaluation",
    "RESULT_MODELS",
    "get_result_model",
]
