"""
AI tools metrics service.

Records one row per tool invocation (usage, cost, safety flags) and provides
the aggregated usage statistics shown on the dashboard.
"""

import logging
import math
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, UTC, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Dict, Iterable, Any, Union

from sqlalchemy import select, func, and_, case
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from edify.models.ai_tools_metric import AIToolsMetric
from edify.schemas.content_flags import ContentFlags

logger = logging.getLogger(__name__)

PRICE_QUANTUM = Decimal("0.000001")


@dataclass
class AIToolsMetricsParams:
    """Everything known about one tool invocation when it is recorded.

    ``start_time`` is a ``time.monotonic()`` reading taken when the request
    started. ``flagged`` is accepted for compatibility but always recomputed
    from ``content_flags``.
    """
    user_id: str
    model: str
    prompt_type: str
    start_time: float
    input_length: float = 0
    response_length: float = 0
    input_tokens: float = 0
    output_tokens: float = 0
    total_tokens: float = 0
    price_gbp: Union[Decimal, float, None] = None
    content_flags: ContentFlags = field(default_factory=ContentFlags)
    error_type: Optional[str] = None
    status_code: Optional[int] = None
    prompt_id: Optional[Union[str, uuid.UUID]] = None
    flagged: Optional[bool] = None


@dataclass
class AIToolsUsageStats:
    """Aggregated usage for a set of users over a time window."""
    total_calls: int
    total_tokens: int
    total_cost_gbp: Decimal
    flagged_calls: int
    blocked_calls: int
    avg_duration_ms: float
    calls_by_tool: Dict[str, int]
    since: Optional[datetime] = None


def round_price(price: Union[Decimal, float, None]) -> Decimal:
    """Round a price to six decimal places, treating a missing price as zero."""
    if not price:
        return Decimal("0.000000")
    return Decimal(str(price)).quantize(PRICE_QUANTUM, rounding=ROUND_HALF_UP)


def _round_count(value: float) -> int:
    """Round half up, the way the dashboard totals expect."""
    return int(math.floor(value + 0.5))


class AIToolsMetricsService:
    """Service for recording and analysing AI tool invocations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record_tool_metrics(self, params: AIToolsMetricsParams) -> AIToolsMetric:
        """
        Add a metrics row for one invocation and flush it.

        The row's ``flagged`` value is derived from the flags, and automation
        misuse is widened to include fraudulent intent. A missing
        ``prompt_id`` gets a fresh UUID so every row links somewhere.

        Note: Caller should commit. Database errors are logged and re-raised.
        """
        flags = ContentFlags.merge(params.content_flags)
        stored_flags = flags.with_fraud_as_automation()
        flagged = flags.any_flagged()
        price = round_price(params.price_gbp)

        metric = AIToolsMetric(
            id=uuid.uuid4(),
            user_id=params.user_id,
            model=params.model,
            input_length=_round_count(params.input_length),
            response_length=_round_count(params.response_length),
            duration_ms=_round_count((time.monotonic() - params.start_time) * 1000),
            input_tokens=_round_count(params.input_tokens),
            output_tokens=_round_count(params.output_tokens),
            total_tokens=_round_count(params.total_tokens),
            price_gbp=price,
            content_flags=stored_flags.model_dump(),
            flagged=flagged,
            error_type=params.error_type,
            status_code=params.status_code,
            prompt_id=params.prompt_id or uuid.uuid4(),
            prompt_type=params.prompt_type,
        )

        logger.info(
            f"Recording tool metrics: type={params.prompt_type} user={params.user_id} "
            f"tokens={metric.total_tokens} price_gbp={price} flagged={flagged}"
        )
        if flagged:
            logger.info(f"Flags for prompt {metric.prompt_id}: {flags.flagged_names()}")

        try:
            self.db.add(metric)
            await self.db.flush()
        except SQLAlchemyError as e:
            logger.error(
                f"Failed to record tool metrics for prompt {metric.prompt_id} "
                f"(type={params.prompt_type}, flags={stored_flags.model_dump()}): {e}"
            )
            raise

        return metric

    async def get_usage_stats(
            self,
            user_ids: Optional[Iterable[str]] = None,
            since: Optional[datetime] = None,
            until: Optional[datetime] = None,
    ) -> AIToolsUsageStats:
        """
        Get usage statistics for AI tool invocations.

        Args:
            user_ids: Restrict to these users (default: everyone)
            since: Only include calls after this time (default: last 30 days)
            until: Only include calls before this time

        Returns:
            AIToolsUsageStats with totals and per-tool counts
        """
        if since is None:
            since = datetime.now(UTC) - timedelta(days=30)

        filters: list[Any] = [AIToolsMetric.created_at >= since]
        if until is not None:
            filters.append(AIToolsMetric.created_at <= until)
        if user_ids is not None:
            filters.append(AIToolsMetric.user_id.in_(list(user_ids)))

        totals_result = await self.db.execute(
            select(
                func.count(AIToolsMetric.id),
                func.coalesce(func.sum(AIToolsMetric.total_tokens), 0),
                func.coalesce(func.sum(AIToolsMetric.price_gbp), 0),
                func.coalesce(func.sum(case((AIToolsMetric.flagged.is_(True), 1), else_=0)), 0),
                func.coalesce(
                    func.sum(case((AIToolsMetric.error_type == "content_violation", 1), else_=0)), 0
                ),
                func.avg(AIToolsMetric.duration_ms),
            ).where(and_(*filters))
        )
        total_calls, total_tokens, total_cost, flagged_calls, blocked_calls, avg_duration = totals_result.one()

        type_result = await self.db.execute(
            select(AIToolsMetric.prompt_type, func.count(AIToolsMetric.id))
            .where(and_(*filters))
            .group_by(AIToolsMetric.prompt_type)
        )
        calls_by_tool = {row[0]: row[1] for row in type_result.all()}

        return AIToolsUsageStats(
            total_calls=total_calls or 0,
            total_tokens=int(total_tokens or 0),
            total_cost_gbp=round_price(total_cost),
            flagged_calls=int(flagged_calls or 0),
            blocked_calls=int(blocked_calls or 0),
            avg_duration_ms=float(avg_duration or 0.0),
            calls_by_tool=calls_by_tool,
            since=since,
        )
