"""Request bodies for the AI content tools.

Bodies are camelCase on the wire. Every request knows which text the safety
checks should screen and which columns it fills in its tool's result table.
"""
from abc import ABC, abstractmethod
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

QuestionType = Literal["multiple_choice", "true_false", "short_answer", "fill_in_blanks"]


class ToolRequest(BaseModel, ABC):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)

    @abstractmethod
    def screened_text(self) -> str:
        """Text the content checks screen."""

    @abstractmethod
    def content_columns(self) -> dict[str, Any]:
        """Input columns stored in the tool's result table."""


class QuizRequest(ToolRequest):
    topic: str = Field(min_length=1, max_length=500)
    question_count: int = Field(default=10, ge=1, le=50)
    difficulty: Literal["easy", "medium", "hard"] = "medium"
    question_types: list[QuestionType] = Field(default_factory=lambda: ["multiple_choice"], min_length=1)
    key_stage: Optional[str] = None
    year_group: Optional[str] = None
    blooms_levels: list[str] = Field(default_factory=lambda: ["understand"])

    def screened_text(self) -> str:
        return self.topic

    def content_columns(self) -> dict[str, Any]:
        return {
            "topic": self.topic,
            "key_stage": self.key_stage,
            "year_group": self.year_group,
            "question_count": self.question_count,
            "question_types": list(self.question_types),
            "difficulty": self.difficulty,
        }


class RubricCriterion(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None


class RubricRequest(ToolRequest):
    topic: str = Field(min_length=1, max_length=500)
    key_stage: str = Field(min_length=1, max_length=20)
    year_group: Optional[str] = None
    assignment_type: str = Field(min_length=1, max_length=100)
    custom_assignment_type: Optional[str] = None
    assessment_type: Optional[str] = None
    criteria: list[RubricCriterion] = Field(min_length=1)
    additional_instructions: Optional[str] = None

    def screened_text(self) -> str:
        parts = [self.topic, self.custom_assignment_type or self.assignment_type]
        parts.extend(c.name for c in self.criteria)
        if self.additional_instructions:
            parts.append(self.additional_instructions)
        return "\n".join(parts)

    def content_columns(self) -> dict[str, Any]:
        return {
            "topic": self.topic,
            "key_stage": self.key_stage,
            "year_group": self.year_group,
            "assignment_type": self.assignment_type,
            "custom_assignment_type": self.custom_assignment_type,
            "assessment_type": self.assessment_type,
            "criteria": [c.model_dump() for c in self.criteria],
            "additional_instructions": self.additional_instructions,
        }


class SchemeOfWorkRequest(ToolRequest):
    subject: str = Field(min_length=1, max_length=100)
    topic: str = Field(min_length=1, max_length=500)
    key_stage: Optional[str] = None
    year_group: Optional[str] = None
    duration_weeks: int = Field(default=6, ge=1, le=52)
    lessons_per_week: int = Field(default=1, ge=1, le=10)
    additional_notes: Optional[str] = None

    def screened_text(self) -> str:
        parts = [f"Subject: {self.subject}", f"Topic: {self.topic}"]
        if self.additional_notes:
            parts.append(f"Notes: {self.additional_notes}")
        return "\n".join(parts)

    def content_columns(self) -> dict[str, Any]:
        return self.model_dump(include={
            "subject", "topic", "key_stage", "year_group",
            "duration_weeks", "lessons_per_week", "additional_notes",
        })


class ReportRequest(ToolRequest):
    student_name: str = Field(min_length=1, max_length=100)
    subject: str = Field(min_length=1, max_length=100)
    year_group: Optional[str] = None
    strengths: str = Field(min_length=1)
    areas_for_improvement: Optional[str] = None
    tone: Optional[Literal["formal", "encouraging", "neutral"]] = "encouraging"

    def screened_text(self) -> str:
        return " ".join(filter(None, [self.student_name, self.strengths, self.areas_for_improvement]))

    def content_columns(self) -> dict[str, Any]:
        return self.model_dump(include={
            "student_name", "subject", "year_group", "strengths", "areas_for_improvement", "tone",
        })


class PromptRefinementRequest(ToolRequest):
    original_prompt: str = Field(min_length=1, max_length=5000)
    core_purpose: Optional[str] = None
    focus_areas: list[str] = Field(default_factory=list)
    grade_level: Optional[str] = None

    def screened_text(self) -> str:
        return self.original_prompt

    def content_columns(self) -> dict[str, Any]:
        return {
            "input_original_prompt": self.original_prompt,
            "core_purpose": self.core_purpose,
            "focus_areas": list(self.focus_areas),
            "grade_level": self.grade_level,
        }


class WordCountRange(BaseModel):
    min: int = Field(ge=50)
    max: int = Field(le=2000)

    @model_validator(mode="after")
    def check_order(self):
        if self.min > self.max:
            raise ValueError("min must not exceed max")
        return self


class PeelRequest(ToolRequest):
    topic: str = Field(min_length=1, max_length=500)
    subject: Optional[str] = None
    complexity: Optional[Literal["basic", "intermediate", "advanced"]] = "intermediate"
    tone: Optional[str] = "academic"
    word_count_range: Optional[WordCountRange] = None

    def screened_text(self) -> str:
        return self.topic

    def content_columns(self) -> dict[str, Any]:
        word_range = None
        if self.word_count_range:
            word_range = f"{self.word_count_range.min}-{self.word_count_range.max}"
        return {
            "topic": self.topic,
            "subject": self.subject,
            "complexity": self.complexity,
            "tone": self.tone,
            "word_count_range": word_range,
        }


class PerspectiveChallengeRequest(ToolRequest):
    input: str = Field(min_length=1, max_length=5000)
    focus_point: Optional[str] = Field(default=None, max_length=500)

    def screened_text(self) -> str:
        return self.input

    def content_columns(self) -> dict[str, Any]:
        return {"input_text": self.input, "focus_point": self.focus_point}


class LongQARequest(ToolRequest):
    topic: str = Field(min_length=1, max_length=500)
    subject: Optional[str] = None
    year_group: Optional[str] = None
    question_count: int = Field(default=3, ge=1, le=10)

    def screened_text(self) -> str:
        return self.topic

    def content_columns(self) -> dict[str, Any]:
        return {
            "input_topic": self.topic,
            "input_subject": self.subject,
            "input_year_group": self.year_group,
            "question_count": self.question_count,
        }


class LessonPlanEvaluationRequest(ToolRequest):
    name: str = Field(min_length=1, max_length=200)
    subject: Optional[str] = None
    year_group: Optional[str] = None
    lesson_plan: str = Field(min_length=1, max_length=50000)

    def screened_text(self) -> str:
        return f"{self.name}\n{self.lesson_plan}"

    def content_columns(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "subject": self.subject,
            "year_group": self.year_group,
            "lesson_plan_text": self.lesson_plan,
        }


class ContentEditRequest(BaseModel):
    """Body of ``PUT /api/tools/{tool}/{id}``: the owner's edited version of the generated content."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    ai_response: Union[dict[str, Any], list[Any], str]

    @field_validator("ai_response")
    @classmethod
    def not_empty(cls, value):
        if not value or (isinstance(value, str) and not value.strip()):
            raise ValueError("ai_response cannot be empty")
        return value
