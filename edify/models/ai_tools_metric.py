"""AI tools metrics model for tracking usage, cost, safety flags and moderation."""
from sqlalchemy import (
    Column,
    String,
    Integer,
    Numeric,
    DateTime,
    Boolean,
    Text,
    Index,
)
import uuid
from datetime import datetime, UTC

from edify.database import Base
from edify.models.base import get_uuid_column, JSONType, ModerationStatus


class AIToolsMetric(Base):
    """
    One row per AI tool invocation, including blocked ones.

    Token and cost columns are written once at insert time. Only the
    moderation columns change afterwards.
    """

    __tablename__ = "ai_tools_metrics"

    id = get_uuid_column(primary_key=True, default=uuid.uuid4)
    user_id = Column(String(100), nullable=False, index=True)

    # Usage
    model = Column(String(100), nullable=False)
    input_length = Column(Integer, nullable=False, default=0)
    response_length = Column(Integer, nullable=False, default=0)
    duration_ms = Column(Integer, nullable=False, default=0)
    input_tokens = Column(Integer, nullable=False, default=0)
    output_tokens = Column(Integer, nullable=False, default=0)
    total_tokens = Column(Integer, nullable=False, default=0)
    price_gbp = Column(Numeric(12, 6), nullable=False, default=0)

    # Safety
    content_flags = Column(JSONType, nullable=False, default=dict)
    flagged = Column(Boolean, nullable=False, default=False, index=True)
    error_type = Column(String(100), nullable=True)
    status_code = Column(Integer, nullable=True)

    # Link to the generated content row (table chosen by prompt_type)
    prompt_id = get_uuid_column(nullable=True, index=True)
    prompt_type = Column(String(50), nullable=False, index=True)

    # Moderation
    moderator_approval = Column(
        String(20), nullable=False, default=ModerationStatus.NOT_REQUESTED.value, index=True
    )
    moderator_notes = Column(Text, nullable=True)
    moderator_id = Column(String(100), nullable=True)
    user_requested_moderation = Column(Boolean, nullable=False, default=False)
    moderation_requested_at = Column(DateTime(timezone=True), nullable=True)
    moderation_updated_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False, index=True)

    __table_args__ = (
        Index("ix_ai_tools_metrics_user_created", "user_id", "created_at"),
        Index("ix_ai_tools_metrics_flagged_created", "flagged", "created_at"),
    )

    def __repr__(self):
        return (
            f"<AIToolsMetric(id={self.id}, prompt_type={self.prompt_type}, "
            f"flagged={self.flagged}, moderator_approval={self.moderator_approval})>"
        )
