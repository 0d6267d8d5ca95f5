"""
Tool service.

Runs one AI tool request end to end: screen the input, generate the content,
and store the content row together with its metrics row.
"""

import json
import logging
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, UTC
from decimal import Decimal
from typing import Any, Optional, Union

from sqlalchemy import or_, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from edify.config import get_settings
from edify.models.ai_tools_metric import AIToolsMetric
from edify.models.base import ModerationStatus
from edify.models.tool_results import ToolResultBase
from edify.schemas.base import serialize_datetime_utc
from edify.schemas.content_flags import ContentFlags
from edify.schemas.tools import ToolRequest
from edify.services.ai.content_checks import format_violation_message, perform_content_checks
from edify.services.ai.metrics_service import AIToolsMetricsParams, AIToolsMetricsService
from edify.services.ai.openai_api import OpenAIAPIError, generate_completion
from edify.services.ai.pricing import calculate_gbp_price
from edify.services.moderation.moderation_service import (
    ContentNotApprovedError,
    ModerationError,
    ModerationForbiddenError,
    ModerationNotFoundError,
    ModerationService,
    parse_metric_id,
)
from edify.services.moderation.workflow import RequestContext, coerce_status
from edify.services.tools.registry import ToolDefinition

logger = logging.getLogger(__name__)


class ToolServiceError(RuntimeError):
    """Raised when content could not be generated or stored."""
    status_code = 500


class ContentNotGeneratedError(ToolServiceError):
    """Raised when editing a row whose request was blocked."""
    status_code = 409

    def __init__(self):
        super().__init__("Content has not been generated")


class ContentBlockedError(RuntimeError):
    """Raised when the safety checks block a request. The attempt is still recorded."""

    def __init__(self, message: str, flags: ContentFlags, metric_id: uuid.UUID):
        self.flags = flags
        self.metric_id = metric_id
        super().__init__(message)


class ApprovalUsedError(ModerationError):
    """Raised when an approval that already released its content is presented again."""
    status_code = 409

    def __init__(self):
        super().__init__("Approval has already been used")


@dataclass
class ToolResult:
    content: ToolResultBase
    metric: AIToolsMetric
    data: Any


def parse_ai_response(raw: Optional[str]) -> Any:
    """Stored responses are JSON; anything else is returned as plain text."""
    if not raw:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


class ToolService:
    """Service that orchestrates AI tool requests."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.settings = get_settings()
        self.metrics = AIToolsMetricsService(db)

    async def _approved_content(
            self,
            ctx: RequestContext,
            tool: ToolDefinition,
            request: ToolRequest,
            approved_id: Union[str, uuid.UUID],
    ) -> Optional[ToolResultBase]:
        """
        The reviewed content row an approval releases for this request.

        Returns None when the request differs from the input the moderator
        reviewed; such a request goes through the content checks as usual.

        Raises:
            ModerationNotFoundError / ModerationForbiddenError / ContentNotApprovedError:
                ``approved_id`` is not an approval of the caller for this tool
            ApprovalUsedError: the approval already released its content
        """
        metric = await ModerationService(self.db).get_metric(approved_id)
        if metric.prompt_type != tool.tool_type.value:
            raise ModerationNotFoundError()
        if metric.user_id != ctx.user_id:
            raise ModerationForbiddenError("Approval belongs to another user")
        status = coerce_status(metric.moderator_approval)
        if status is not ModerationStatus.APPROVED:
            raise ContentNotApprovedError(status.value, ContentFlags.from_partial(metric.content_flags).model_dump())

        content = None
        if metric.prompt_id is not None:
            content = await self.db.get(tool.result_model, metric.prompt_id)
        if content is None:
            logger.warning(f"Approval {metric.id} has no stored {tool.slug} input; screening the request")
            return None
        if content.ai_response:
            raise ApprovalUsedError()

        columns = request.content_columns()
        if any(getattr(content, key) != value for key, value in columns.items()):
            logger.info(f"Request differs from the input reviewed under {metric.id}; screening it")
            return None
        return content

    async def run(
            self,
            ctx: RequestContext,
            tool: ToolDefinition,
            request: ToolRequest,
            approved_id: Optional[Union[str, uuid.UUID]] = None,
    ) -> ToolResult:
        """
        Execute a tool request.

        An approval (``approved_id``) skips the safety checks once, for exactly
        the input the moderator reviewed: the generated content fills the row
        that was blocked. A request with different input is screened as usual.
        A blocked request stores an empty content row and a flagged metrics
        row, then raises ContentBlockedError.

        Raises:
            ContentBlockedError: the input failed the safety checks
            ContentNotApprovedError / ModerationForbiddenError / ModerationNotFoundError:
                ``approved_id`` does not name a usable approval
            ApprovalUsedError: the approval was already used
            ToolServiceError: generation or storage failed
        """
        start_time = time.monotonic()
        screened_text = request.screened_text()
        system_message, user_message = tool.build_prompts(request)
        model = self.settings.ai_generation_model

        approved_content = None
        if approved_id:
            approved_content = await self._approved_content(ctx, tool, request, approved_id)

        if approved_content is not None:
            flags = ContentFlags()
            logger.info(f"Skipping content checks for {tool.slug}: input approved under {approved_id}")
        else:
            check = await perform_content_checks(screened_text)
            flags = check.violations
            if not check.should_proceed:
                raise await self._record_blocked(ctx, tool, request, flags, start_time, len(screened_text))

        try:
            completion = await generate_completion(system_message, user_message, model=model, json_mode=True)
        except OpenAIAPIError as e:
            logger.error(f"Generation failed for {tool.slug} (user {ctx.user_id}): {e}")
            raise ToolServiceError("Failed to generate content") from e

        price = await self._price(completion.input_tokens, completion.output_tokens, model)

        try:
            if approved_content is not None:
                content = await self._fill_approved_content(approved_content, completion.content)
            else:
                content = tool.result_model(id=uuid.uuid4(), user_id=ctx.user_id, ai_response=completion.content,
                                            **request.content_columns())
                self.db.add(content)
                await self.db.flush()

            metric = await self.metrics.record_tool_metrics(AIToolsMetricsParams(
                user_id=ctx.user_id,
                model=completion.model,
                prompt_type=tool.tool_type.value,
                start_time=start_time,
                input_length=len(screened_text),
                response_length=len(completion.content),
                input_tokens=completion.input_tokens,
                output_tokens=completion.output_tokens,
                total_tokens=completion.total_tokens,
                price_gbp=price,
                content_flags=flags,
                status_code=200,
                prompt_id=content.id,
            ))
            await self.db.commit()
        except ApprovalUsedError:
            await self.db.rollback()
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to store {tool.slug} result for user {ctx.user_id}: {e}")
            raise ToolServiceError("Failed to save generated content") from e

        return ToolResult(content=content, metric=metric, data=parse_ai_response(completion.content))

    async def _fill_approved_content(self, content: ToolResultBase, ai_response: str) -> ToolResultBase:
        """Fill the blocked row, unless a concurrent request with the same approval already did."""
        model = type(content)
        result = await self.db.execute(
            update(model)
            .where(model.id == content.id, or_(model.ai_response.is_(None), model.ai_response == ""))
            .values(ai_response=ai_response, updated_at=datetime.now(UTC))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ApprovalUsedError()
        await self.db.refresh(content)
        return content

    async def _record_blocked(
            self,
            ctx: RequestContext,
            tool: ToolDefinition,
            request: ToolRequest,
            flags: ContentFlags,
            start_time: float,
            input_length: int,
    ) -> ContentBlockedError:
        """Store the blocked attempt and return the error to raise."""
        message = format_violation_message(flags)
        try:
            content = tool.result_model(id=uuid.uuid4(), user_id=ctx.user_id, ai_response="",
                                        **request.content_columns())
            self.db.add(content)
            await self.db.flush()

            metric = await self.metrics.record_tool_metrics(AIToolsMetricsParams(
                user_id=ctx.user_id,
                model=self.settings.ai_generation_model,
                prompt_type=tool.tool_type.value,
                start_time=start_time,
                input_length=input_length,
                content_flags=flags,
                error_type="content_violation",
                status_code=400,
                prompt_id=content.id,
            ))
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to record blocked {tool.slug} request for user {ctx.user_id}: {e}")
            raise ToolServiceError("Failed to record blocked request") from e

        logger.info(f"Blocked {tool.slug} request {metric.id} for user {ctx.user_id}: {flags.flagged_names()}")
        return ContentBlockedError(message, flags, metric.id)

    async def _price(self, input_tokens: int, output_tokens: int, model: str) -> Decimal:
        try:
            return await calculate_gbp_price(input_tokens, output_tokens, model)
        except ValueError as e:
            logger.error(f"Could not price call: {e}")
            return Decimal("0")

    async def get_item(
            self,
            ctx: RequestContext,
            tool: ToolDefinition,
            item_id: Union[str, uuid.UUID],
    ) -> ToolResultBase:
        """
        A stored content row, looked up by its own id or by its metrics row id.

        Through a flagged metrics row the content is only released once a
        moderator approved it.

        Raises:
            ModerationNotFoundError: no such row for this tool
            ModerationForbiddenError: caller is neither the owner nor one of their moderators
            ContentNotApprovedError: the metrics row is flagged and not approved
        """
        key = parse_metric_id(item_id)
        content = await self.db.get(tool.result_model, key)
        metric = None
        if content is None:
            metric = await self.db.get(AIToolsMetric, key)
            if metric is None or metric.prompt_type != tool.tool_type.value or metric.prompt_id is None:
                raise ModerationNotFoundError()
            content = await self.db.get(tool.result_model, metric.prompt_id)
            if content is None:
                raise ModerationNotFoundError()

        if not await ModerationService(self.db).can_view(ctx, content.user_id):
            raise ModerationForbiddenError("Content belongs to another user")

        if metric is not None and metric.flagged:
            status = coerce_status(metric.moderator_approval)
            if status is not ModerationStatus.APPROVED:
                raise ContentNotApprovedError(status.value, ContentFlags.from_partial(metric.content_flags).model_dump())
        return content

    async def update_item(
            self,
            ctx: RequestContext,
            tool: ToolDefinition,
            item_id: Union[str, uuid.UUID],
            ai_response: Any,
    ) -> ToolResultBase:
        """Replace the generated content of a row with the owner's edited version."""
        content = await self.get_item(ctx, tool, item_id)
        if content.user_id != ctx.user_id:
            raise ModerationForbiddenError("Only the owner can edit content")
        if not content.ai_response:
            raise ContentNotGeneratedError()

        content.ai_response = ai_response if isinstance(ai_response, str) else json.dumps(ai_response)
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to save edited {tool.slug} content {content.id}: {e}")
            raise ToolServiceError("Failed to update content") from e

        await self.db.refresh(content)
        logger.info(f"User {ctx.user_id} edited {tool.slug} content {content.id}")
        return content

    async def get_approved(
            self,
            ctx: RequestContext,
            tool: ToolDefinition,
            metric_id: Union[str, uuid.UUID],
    ) -> dict[str, Any]:
        """Approved content for ``GET /api/tools/{tool}?approved=``."""
        metric, content = await ModerationService(self.db).get_approved_content(
            ctx, tool.tool_type.value, metric_id
        )
        flags = ContentFlags.from_partial(metric.content_flags).model_dump()
        data: dict[str, Any] = {
            "contentFlags": {**flags, "moderator_approval": metric.moderator_approval},
            "moderatorNotes": metric.moderator_notes,
            "content": serialize_content(content) if content is not None else None,
        }
        return {"id": str(metric.id), "data": data}


def serialize_content(content: ToolResultBase) -> dict[str, Any]:
    """Stored content row as JSON, with ``ai_response`` decoded."""
    data: dict[str, Any] = {}
    for column in content.__table__.columns:
        value = getattr(content, column.key)
        if isinstance(value, uuid.UUID):
            value = str(value)
        elif isinstance(value, datetime):
            value = serialize_datetime_utc(value)
        data[column.key] = value
    data["ai_response"] = parse_ai_response(content.ai_response)
    return data
