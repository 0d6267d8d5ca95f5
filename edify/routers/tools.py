"""AI content tool endpoints."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from edify.database import get_db
from edify.dependencies import get_request_context
from edify.schemas.tools import ContentEditRequest
from edify.services.moderation.moderation_service import ContentNotApprovedError, ModerationError
from edify.services.moderation.workflow import RequestContext
from edify.services.tools.registry import get_tool, ToolDefinition
from edify.services.tools.tool_service import (
    ContentBlockedError,
    ToolService,
    ToolServiceError,
    serialize_content,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tools", tags=["tools"])


def _error(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


def _not_approved(exc: ContentNotApprovedError) -> JSONResponse:
    return _error(403, str(exc), details={"status": exc.status, "contentFlags": exc.content_flags})


def _resolve_tool(tool_name: str) -> Optional[ToolDefinition]:
    tool = get_tool(tool_name)
    if tool is None:
        logger.info(f"Request for unknown tool {tool_name!r}")
    return tool


@router.post("/{tool_name}")
async def run_tool(
        tool_name: str,
        request: Request,
        approved_id: Optional[str] = Query(default=None, alias="approvedId"),
        ctx: RequestContext = Depends(get_request_context),
        db: AsyncSession = Depends(get_db),
):
    """Screen the input, generate content and store it with its metrics."""
    tool = _resolve_tool(tool_name)
    if tool is None:
        return _error(404, "Tool not found")

    try:
        body = await request.json()
    except ValueError:
        return _error(400, "Invalid request body")

    try:
        payload = tool.request_model.model_validate(body)
    except ValidationError as exc:
        raise RequestValidationError(
            [{**err, "loc": ("body", *err["loc"])} for err in exc.errors(include_url=False, include_context=False)]
        )

    try:
        result = await ToolService(db).run(ctx, tool, payload, approved_id=approved_id)
    except ContentBlockedError as exc:
        return _error(400, str(exc))
    except ContentNotApprovedError as exc:
        return _not_approved(exc)
    except ModerationError as exc:
        return _error(exc.status_code, str(exc))
    except ToolServiceError as exc:
        return _error(exc.status_code, str(exc))

    return {**serialize_content(result.content), "metric_id": str(result.metric.id), "data": result.data}


@router.get("/{tool_name}")
async def get_approved_content(
        tool_name: str,
        approved: Optional[str] = Query(default=None),
        ctx: RequestContext = Depends(get_request_context),
        db: AsyncSession = Depends(get_db),
):
    """Return content that a moderator approved after it was blocked."""
    tool = _resolve_tool(tool_name)
    if tool is None:
        return _error(404, "Tool not found")
    if not approved:
        return _error(400, "Missing approved id")

    try:
        return await ToolService(db).get_approved(ctx, tool, approved)
    except ContentNotApprovedError as exc:
        return _not_approved(exc)
    except ModerationError as exc:
        return _error(exc.status_code, str(exc))


@router.get("/{tool_name}/{item_id}")
async def get_item(
        tool_name: str,
        item_id: str,
        ctx: RequestContext = Depends(get_request_context),
        db: AsyncSession = Depends(get_db),
):
    """One stored result, by content id or by the id of its metrics row."""
    tool = _resolve_tool(tool_name)
    if tool is None:
        return _error(404, "Tool not found")

    try:
        content = await ToolService(db).get_item(ctx, tool, item_id)
    except ContentNotApprovedError as exc:
        return _not_approved(exc)
    except ModerationError as exc:
        return _error(exc.status_code, str(exc))
    return serialize_content(content)


@router.put("/{tool_name}/{item_id}")
async def update_item(
        tool_name: str,
        item_id: str,
        request: Request,
        ctx: RequestContext = Depends(get_request_context),
        db: AsyncSession = Depends(get_db),
):
    """Save the owner's edits to a generated result."""
    tool = _resolve_tool(tool_name)
    if tool is None:
        return _error(404, "Tool not found")

    try:
        edit = ContentEditRequest.model_validate(await request.json())
    except (ValueError, ValidationError):
        return _error(400, "Invalid request body")

    try:
        content = await ToolService(db).update_item(ctx, tool, item_id, edit.ai_response)
    except ContentNotApprovedError as exc:
        return _not_approved(exc)
    except ModerationError as exc:
        return _error(exc.status_code, str(exc))
    except ToolServiceError as exc:
        return _error(exc.status_code, str(exc))
    return serialize_content(content)
