"""Generated content models, one table per AI tool."""
from sqlalchemy import Column, String, Integer, Text, DateTime
from datetime import datetime, UTC
import uuid
from typing import Optional

from edify.database import Base
from edify.models.base import get_uuid_column, JSONType, ToolType


class ToolResultBase(Base):
    """Columns shared by every tool's result table.

    ``ai_response`` stays empty for requests that were blocked by the content
    checks; the row still exists so the metrics row has something to link to.
    """

    __abstract__ = True

    # Name of the attribute moderators see as the request summary
    input_summary_field = "topic"

    id = get_uuid_column(primary_key=True, default=uuid.uuid4)
    user_id = Column(String(100), nullable=False, index=True)
    ai_response = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False, index=True)
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    @property
    def input_summary(self) -> str:
        value = getattr(self, self.input_summary_field, None)
        return value or "N/A"

    def __repr__(self):
        return f"<{self.__class__.__name__}(id={self.id}, user_id={self.user_id})>"


class QuizResult(ToolResultBase):
    __tablename__ = "quiz_generator_results"

    topic = Column(String(500), nullable=False)
    key_stage = Column(String(20), nullable=True)
    year_group = Column(String(20), nullable=True)
    question_count = Column(Integer, nullable=False, default=10)
    question_types = Column(JSONType, nullable=True)
    difficulty = Column(String(20), nullable=True)


class RubricResult(ToolResultBase):
    __tablename__ = "rubrics_generator_results"

    topic = Column(String(500), nullable=False)
    key_stage = Column(String(20), nullable=False)
    year_group = Column(String(20), nullable=True)
    assignment_type = Column(String(100), nullable=False)
    custom_assignment_type = Column(String(100), nullable=True)
    assessment_type = Column(String(100), nullable=True)
    criteria = Column(JSONType, nullable=False)
    additional_instructions = Column(Text, nullable=True)


class SchemeOfWorkResult(ToolResultBase):
    __tablename__ = "sow_generator_results"

    subject = Column(String(100), nullable=False)
    topic = Column(String(500), nullable=False)
    key_stage = Column(String(20), nullable=True)
    year_group = Column(String(20), nullable=True)
    duration_weeks = Column(Integer, nullable=False, default=6)
    lessons_per_week = Column(Integer, nullable=False, default=1)
    additional_notes = Column(Text, nullable=True)


class ReportResult(ToolResultBase):
    __tablename__ = "report_generator_results"
    input_summary_field = "strengths"

    student_name = Column(String(100), nullable=False)
    subject = Column(String(100), nullable=False)
    year_group = Column(String(20), nullable=True)
    strengths = Column(Text, nullable=False)
    areas_for_improvement = Column(Text, nullable=True)
    tone = Column(String(50), nullable=True)


class PromptRefinementResult(ToolResultBase):
    __tablename__ = "prompt_generator_results"
    input_summary_field = "input_original_prompt"

    input_original_prompt = Column(Text, nullable=False)
    core_purpose = Column(String(200), nullable=True)
    focus_areas = Column(JSONType, nullable=True)
    grade_level = Column(String(50), nullable=True)


class PeelResult(ToolResultBase):
    __tablename__ = "peel_generator_results"

    topic = Column(String(500), nullable=False)
    subject = Column(String(100), nullable=True)
    complexity = Column(String(50), nullable=True)
    tone = Column(String(50), nullable=True)
    word_count_range = Column(String(50), nullable=True)


class PerspectiveChallengeResult(ToolResultBase):
    __tablename__ = "perspective_challenge_results"
    input_summary_field = "input_text"

    input_text = Column(Text, nullable=False)
    focus_point = Column(String(500), nullable=True)


class LongQAResult(ToolResultBase):
    __tablename__ = "long_qa_generator_results"
    input_summary_field = "input_topic"

    input_topic = Column(String(500), nullable=False)
    input_subject = Column(String(100), nullable=True)
    input_year_group = Column(String(20), nullable=True)
    question_count = Column(Integer, nullable=False, default=3)


class LessonPlanEvaluation(ToolResultBase):
    __tablename__ = "lesson_plan_evaluations"
    input_summary_field = "name"

    name = Column(String(200), nullable=False)
    subject = Column(String(100), nullable=True)
    year_group = Column(String(20), nullable=True)
    lesson_plan_text = Column(Text, nullable=False)


RESULT_MODELS: dict[ToolType, type[ToolResultBase]] = {
    ToolType.QUIZ: QuizResult,
    ToolType.RUBRIC: RubricResult,
    ToolType.SOW: SchemeOfWorkResult,
    ToolType.REPORT: ReportResult,
    ToolType.PROMPT: PromptRefinementResult,
    ToolType.PEEL: PeelResult,
    ToolType.PERSPECTIVE: PerspectiveChallengeResult,
    ToolType.LONG_QA: LongQAResult,
    ToolType.LESSON_PLAN_EVALUATION: LessonPlanEvaluation,
}


def get_result_model(prompt_type: str) -> Optional[type[ToolResultBase]]:
    """Result table for a stored ``prompt_type``; None for unknown tools."""
    try:
        return RESULT_MODELS[ToolType(prompt_type)]
    except ValueError:
        return None
