"""Registry of the AI content tools exposed under ``/api/tools``."""
from dataclasses import dataclass
from typing import Callable, Optional

from edify.models.base import ToolType
from edify.models.tool_results import RESULT_MODELS, ToolResultBase
from edify.schemas import tools as schemas
from edify.services.ai import prompt_builder


@dataclass(frozen=True)
class ToolDefinition:
    slug: str
    tool_type: ToolType
    request_model: type[schemas.ToolRequest]
    build_prompts: Callable[..., tuple[str, str]]

    @property
    def result_model(self) -> type[ToolResultBase]:
        return RESULT_MODELS[self.tool_type]


TOOLS: dict[str, ToolDefinition] = {
    definition.slug: definition
    for definition in (
        ToolDefinition("quiz-generator", ToolType.QUIZ, schemas.QuizRequest, prompt_builder.build_quiz_prompt),
        ToolDefinition("rubric-generator", ToolType.RUBRIC, schemas.RubricRequest,
                       prompt_builder.build_rubric_prompt),
        ToolDefinition("sow-generator", ToolType.SOW, schemas.SchemeOfWorkRequest, prompt_builder.build_sow_prompt),
        ToolDefinition("report-generator", ToolType.REPORT, schemas.ReportRequest,
                       prompt_builder.build_report_prompt),
        ToolDefinition("prompt-generator", ToolType.PROMPT, schemas.PromptRefinementRequest,
                       prompt_builder.build_prompt_refinement_prompt),
        ToolDefinition("peel-generator", ToolType.PEEL, schemas.PeelRequest, prompt_builder.build_peel_prompt),
        ToolDefinition("perspective-challenge", ToolType.PERSPECTIVE, schemas.PerspectiveChallengeRequest,
                       prompt_builder.build_perspective_prompt),
        ToolDefinition("long-qa-generator", ToolType.LONG_QA, schemas.LongQARequest,
                       prompt_builder.build_long_qa_prompt),
        ToolDefinition("lesson-plan-evaluator", ToolType.LESSON_PLAN_EVALUATION,
                       schemas.LessonPlanEvaluationRequest, prompt_builder.build_lesson_plan_evaluation_prompt),
    )
}


def get_tool(slug: str) -> Optional[ToolDefinition]:
    return TOOLS.get(slug)
