"""Base utilities for SQLAlchemy models."""
from enum import Enum
import uuid
from sqlalchemy import Column, JSON, String
from sqlalchemy.dialects.postgresql import JSONB, UUID as PGUUID
from sqlalchemy.sql import sqltypes


class ModerationStatus(str, Enum):
    """Moderator approval state of a flagged AI tool invocation."""
    NOT_REQUESTED = "not_requested"
    PENDING = "pending"
    APPROVED = "approved"
    DECLINED = "declined"


class ToolType(str, Enum):
    """Discriminator stored in ``ai_tools_metrics.prompt_type``."""
    QUIZ = "quiz_generator"
    RUBRIC = "rubric_generator"
    SOW = "sow_generator"
    REPORT = "report_generator"
    PROMPT = "prompt_generator"
    PEEL = "peel_generator"
    PERSPECTIVE = "perspective_challenge"
    LONG_QA = "long_qa"
    LESSON_PLAN_EVALUATION = "lesson_plan_evaluator"


# JSONB on Postgres, plain JSON everywhere else
JSONType = JSON().with_variant(JSONB(), "postgresql")


class AdaptiveUUID(sqltypes.TypeDecorator):
    """UUID stored natively on Postgres and as 36-char text elsewhere."""

    impl = sqltypes.String
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(PGUUID(as_uuid=True))
        return dialect.type_descriptor(String(36))

    @staticmethod
    def _coerce_uuid(value):
        if value is None or isinstance(value, uuid.UUID):
            return value
        return uuid.UUID(str(value))

    def process_bind_param(self, value, dialect):
        value = self._coerce_uuid(value)
        if value is None:
            return None
        if dialect.name == "postgresql":
            return value
        return str(value)

    def process_result_value(self, value, dialect):
        return self._coerce_uuid(value)


def get_uuid_column(*args, **kwargs):
    """Get a UUID column that adapts to the database dialect.

    Args:
        *args: Positional arguments to pass to Column (e.g., ForeignKey)
        **kwargs: Keyword arguments to pass to Column (e.g., primary_key=True)

    Example:
        id = get_uuid_column(primary_key=True, default=uuid.uuid4)
    """
    return Column(AdaptiveUUID(), *args, **kwargs)
