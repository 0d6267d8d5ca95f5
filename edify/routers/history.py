"""Per-tool history of generated content."""
import math
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from edify.config import get_settings
from edify.database import get_db
from edify.dependencies import get_request_context
from edify.services.moderation.workflow import RequestContext
from edify.services.tools.history_service import HistoryService
from edify.services.tools.registry import get_tool
from edify.services.tools.tool_service import serialize_content

router = APIRouter(prefix="/api/history", tags=["history"])


@router.get("/{tool_name}")
async def get_history(
        tool_name: str,
        limit: int = Query(default=10, ge=1),
        offset: int = Query(default=0, ge=0),
        search: Optional[str] = Query(default=None, max_length=100),
        ctx: RequestContext = Depends(get_request_context),
        db: AsyncSession = Depends(get_db),
):
    """Paginated generated content for one tool; admins see their organisation's."""
    tool = get_tool(tool_name)
    if tool is None:
        return JSONResponse(status_code=404, content={"error": "Tool not found"})

    limit = min(limit, get_settings().history_max_page_size)
    entries, total = await HistoryService(db).list_history(ctx, tool, limit=limit, offset=offset, search=search)
    return {
        "data": [{**serialize_content(entry.content), "username": entry.username} for entry in entries],
        "limit": limit,
        "offset": offset,
        "totalPages": math.ceil(total / limit),
        "totalRecords": total,
    }
