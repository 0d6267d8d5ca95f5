"""Dashboard listing of the caller's flagged tool invocations."""
import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from edify.database import get_db
from edify.dependencies import get_request_context
from edify.schemas.content_flags import flag_labels
from edify.schemas.moderation import UserViolationItem
from edify.services.moderation.moderation_service import ModerationService
from edify.services.moderation.workflow import RequestContext

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["violations"])


@router.get("/violations", response_model=list[UserViolationItem])
async def list_user_violations(
        date_from: Optional[date] = Query(default=None, alias="from"),
        date_to: Optional[date] = Query(default=None, alias="to"),
        ctx: RequestContext = Depends(get_request_context),
        db: AsyncSession = Depends(get_db),
):
    """Own flagged rows, or the whole organisation's for admins. Dates are inclusive."""
    rows = await ModerationService(db).list_user_violations(ctx, date_from=date_from, date_to=date_to)
    return [
        UserViolationItem(
            id=row.metric.id,
            tool=row.metric.prompt_type,
            input=row.input_summary,
            violations=flag_labels(row.metric.content_flags),
            username=row.username,
            timestamp=row.metric.created_at,
        )
        for row in rows
    ]
