"""Usage statistics schemas."""
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel


class UsageStatsResponse(BaseModel):
    """AI tool usage totals for the caller (or their organisation)."""
    total_calls: int
    total_tokens: int
    total_cost_gbp: Decimal
    flagged_calls: int
    blocked_calls: int
    avg_duration_ms: float
    calls_by_tool: dict[str, int]
    since: datetime
    until: Optional[datetime] = None
