"""Moderator API routes."""
import html
import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse, JSONResponse
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from edify.config import get_settings
from edify.database import get_db
from edify.dependencies import get_request_context
from edify.models.ai_tools_metric import AIToolsMetric
from edify.models.base import ModerationStatus
from edify.schemas.content_flags import flag_labels
from edify.schemas.moderation import (
    MetricRecord,
    ModerationUpdateRequest,
    ModerationUpdateResponse,
    ViolationItem,
    ViolationListResponse,
)
from edify.services.moderation.moderation_service import (
    ModerationError,
    ModerationService,
    ViolationRow,
)
from edify.services.moderation.tokens import verify_action_token
from edify.services.moderation.workflow import (
    Actor,
    ModerationTransitionError,
    RequestContext,
    coerce_status,
)
from edify.services.tools.tool_service import serialize_content

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/moderator", tags=["moderator"])

EMAIL_ACTION_ROLE = "org:moderator"


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def metric_record(metric: AIToolsMetric) -> MetricRecord:
    values: dict[str, Any] = {column.key: getattr(metric, column.key) for column in metric.__table__.columns}
    values["moderator_approval"] = coerce_status(metric.moderator_approval).value
    values["user_requested_moderation"] = bool(metric.user_requested_moderation)
    values["status"] = values["moderator_approval"]
    return MetricRecord.model_validate(values)


def violation_item(row: ViolationRow) -> ViolationItem:
    metric = row.metric
    status = coerce_status(metric.moderator_approval).value
    return ViolationItem(
        id=metric.id,
        tool=metric.prompt_type,
        input=row.input_summary,
        violations=flag_labels(metric.content_flags),
        content_flags=metric.content_flags or {},
        username=row.username,
        email=row.email,
        timestamp=metric.created_at,
        moderator_approval=status,
        moderator_notes=metric.moderator_notes,
        user_requested_moderation=bool(metric.user_requested_moderation),
        status=status,
    )


@router.patch("/violations/{metric_id}")
async def update_violation(
        metric_id: str,
        request: Request,
        ctx: RequestContext = Depends(get_request_context),
        db: AsyncSession = Depends(get_db),
):
    """Request a review (educators) or approve/decline one (moderators and admins)."""
    if not (ctx.is_educator or ctx.can_resolve):
        return _error(401, "Unauthorized role")

    try:
        update = ModerationUpdateRequest.model_validate(await request.json())
    except (ValueError, ValidationError):
        return _error(400, "Invalid request body")

    try:
        metric = await ModerationService(db).apply_update(ctx, metric_id, update)
    except ModerationTransitionError as e:
        logger.info(f"Rejected moderation change on {metric_id} by {ctx.user_id}: {e}")
        return _error(409, str(e))
    except ModerationError as e:
        return _error(e.status_code, str(e))

    response = ModerationUpdateResponse(data=metric_record(metric))
    return response.model_dump()


@router.get("/violations")
async def list_violations(
        page: int = Query(default=1, ge=1),
        page_size: Optional[int] = Query(default=None, alias="pageSize", ge=1),
        ctx: RequestContext = Depends(get_request_context),
        db: AsyncSession = Depends(get_db),
):
    """Paginated flagged invocations visible to the caller."""
    if not (ctx.is_educator or ctx.can_resolve):
        return _error(401, "Unauthorized role")

    settings = get_settings()
    page_size = min(page_size or settings.violations_default_page_size, settings.violations_max_page_size)

    rows, total = await ModerationService(db).list_violations(ctx, page=page, page_size=page_size)
    response = ViolationListResponse(
        violations=[violation_item(row) for row in rows],
        total_count=total,
        current_page=page,
        page_size=page_size,
    )
    return response.model_dump(by_alias=True)


@router.get("/violations/{metric_id}")
async def get_violation(
        metric_id: str,
        ctx: RequestContext = Depends(get_request_context),
        db: AsyncSession = Depends(get_db),
):
    """One flagged invocation with the content generated for it, if any."""
    if not (ctx.is_educator or ctx.can_resolve):
        return _error(401, "Unauthorized role")

    try:
        row, content = await ModerationService(db).get_violation(ctx, metric_id)
    except ModerationError as e:
        return _error(e.status_code, str(e))

    item = violation_item(row).model_dump(mode="json", by_alias=True)
    item["content"] = serialize_content(content) if content is not None else None
    return item


def action_page(success: bool, message: str, action: Optional[str] = None) -> HTMLResponse:
    """Result page shown in the moderator's browser after clicking an emailed link."""
    dashboard_url = f"{get_settings().app_url.rstrip('/')}/dashboard/moderator"
    color = "#34A853" if success else "#EA4335"
    icon = "&#10003;" if success else "&#10005;"
    if success:
        title = f"Content {'Approved' if action == ModerationStatus.APPROVED.value else 'Declined'} Successfully"
    else:
        title = "Error Processing Request"

    body = f"""<!DOCTYPE html>
<html>
<head>
    <title>{title}</title>
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <style>
        body {{ font-family: Arial, sans-serif; display: flex; justify-content: center; align-items: center;
                min-height: 100vh; margin: 0; background-color: #f8f9fa; }}
        .container {{ text-align: center; padding: 2rem; background: white; border-radius: 8px;
                      box-shadow: 0 2px 4px rgba(0,0,0,0.1); max-width: 400px; width: 90%; }}
        .icon {{ font-size: 48px; color: {color}; margin-bottom: 1rem; }}
        .title {{ color: #202124; font-size: 24px; margin-bottom: 1rem; }}
        .message {{ color: #5f6368; margin-bottom: 2rem; }}
        .button {{ background-color: #1a73e8; color: white; padding: 12px 24px; border-radius: 4px;
                   text-decoration: none; font-weight: bold; display: inline-block; }}
    </style>
</head>
<body>
    <div class="container">
        <div class="icon">{icon}</div>
        <h1 class="title">{title}</h1>
        <p class="message">{html.escape(message)}</p>
        <a href="{html.escape(dashboard_url, quote=True)}" class="button">Return to Dashboard</a>
    </div>
</body>
</html>"""
    return HTMLResponse(content=body)


@router.get("/email-action", response_class=HTMLResponse)
async def email_action(
        content_id: Optional[str] = Query(default=None, alias="id"),
        action: Optional[str] = Query(default=None),
        moderator_id: Optional[str] = Query(default=None, alias="moderatorId"),
        token: Optional[str] = Query(default=None),
        db: AsyncSession = Depends(get_db),
):
    """
    Approve or decline from a signed email link.

    There is no session here: the HMAC token over the id, action and
    moderator id is the proof of authority. Every failure renders an error
    page and leaves the row untouched.
    """
    if not (content_id and action and moderator_id and token):
        return action_page(False, "Missing required parameters")

    if not verify_action_token(token, content_id, action, moderator_id):
        logger.warning(f"Rejected email action for {content_id}: token mismatch")
        return action_page(False, "Invalid or expired token")

    if action not in (ModerationStatus.APPROVED.value, ModerationStatus.DECLINED.value):
        return action_page(False, "Invalid action")

    service = ModerationService(db)
    try:
        await service.resolve(
            content_id,
            ModerationStatus(action),
            Actor(user_id=moderator_id, role=EMAIL_ACTION_ROLE),
        )
    except ModerationTransitionError as e:
        logger.info(f"Email action {action} on {content_id} rejected: {e}")
        return action_page(False, f"This content can no longer be {action}: {e.reason}")
    except ModerationError as e:
        return action_page(False, str(e))
    except Exception as e:
        logger.error(f"Email action {action} on {content_id} failed: {e}", exc_info=True)
        return action_page(False, "An unexpected error occurred")

    return action_page(True, f"The content has been {action}. The user will be notified by email.", action)
