"""Moderation-related Pydantic schemas."""
from decimal import Decimal
from typing import Any, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from edify.schemas.base import BaseSchema, UtcDatetime


class ModerationUpdateRequest(BaseModel):
    """Body of ``PATCH /api/moderator/violations/{id}``.

    Educators send ``user_requested_moderation`` (or ``moderator_approval:
    "pending"``) to ask for review; moderators send the decision.
    """
    moderator_approval: Optional[Literal["pending", "approved", "declined"]] = None
    moderator_notes: Optional[str] = Field(default=None, max_length=2000)
    user_requested_moderation: Optional[bool] = None


class MetricRecord(BaseSchema):
    """Full metrics row as returned after a moderation change."""
    id: UUID
    user_id: str
    model: str
    input_length: int
    response_length: int
    duration_ms: int
    input_tokens: int
    output_tokens: int
    total_tokens: int
    price_gbp: Decimal
    content_flags: dict[str, Any]
    flagged: bool
    error_type: Optional[str] = None
    status_code: Optional[int] = None
    prompt_id: Optional[UUID] = None
    prompt_type: str
    moderator_approval: str
    moderator_notes: Optional[str] = None
    moderator_id: Optional[str] = None
    user_requested_moderation: bool
    moderation_requested_at: Optional[UtcDatetime] = None
    moderation_updated_at: Optional[UtcDatetime] = None
    created_at: UtcDatetime
    status: str


class ModerationUpdateResponse(BaseModel):
    success: bool = True
    data: MetricRecord


class ViolationItem(BaseSchema):
    """One flagged invocation in the moderator listing."""
    id: UUID
    tool: str
    input: str
    violations: list[str]
    content_flags: dict[str, Any]
    username: str
    email: str
    timestamp: UtcDatetime
    moderator_approval: str
    moderator_notes: Optional[str] = None
    user_requested_moderation: bool
    status: str


class ViolationListResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    violations: list[ViolationItem]
    total_count: int = Field(serialization_alias="totalCount")
    current_page: int = Field(serialization_alias="currentPage")
    page_size: int = Field(serialization_alias="pageSize")


class UserViolationItem(BaseSchema):
    """One flagged invocation in the dashboard listing."""
    id: UUID
    tool: str
    input: str
    violations: list[str]
    username: str
    timestamp: UtcDatetime
