"""AI tool usage analytics."""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from edify.database import get_db
from edify.dependencies import get_request_context
from edify.models.user import OrgMember
from edify.schemas.metrics import UsageStatsResponse
from edify.services.ai.metrics_service import AIToolsMetricsService
from edify.services.moderation.workflow import RequestContext

router = APIRouter(prefix="/api/ai-tools", tags=["usage"])


@router.get("/usage", response_model=UsageStatsResponse)
async def get_usage(
        since: Optional[datetime] = Query(default=None),
        until: Optional[datetime] = Query(default=None),
        ctx: RequestContext = Depends(get_request_context),
        db: AsyncSession = Depends(get_db),
):
    """Usage totals for the caller; admins see their whole organisation."""
    user_ids = [ctx.user_id]
    if ctx.is_admin and ctx.org_id:
        result = await db.execute(select(OrgMember.user_id).where(OrgMember.org_id == ctx.org_id))
        user_ids = list(result.scalars().all()) or [ctx.user_id]

    service = AIToolsMetricsService(db)
    stats = await service.get_usage_stats(user_ids=user_ids, since=since, until=until)
    return UsageStatsResponse(
        total_calls=stats.total_calls,
        total_tokens=stats.total_tokens,
        total_cost_gbp=stats.total_cost_gbp,
        flagged_calls=stats.flagged_calls,
        blocked_calls=stats.blocked_calls,
        avg_duration_ms=stats.avg_duration_ms,
        calls_by_tool=stats.calls_by_tool,
        since=stats.since,
        until=until,
    )
