"""
Moderation service.

Handles:
- Educators asking a moderator to review a blocked request
- Moderators approving or declining (in-app or from the emailed link)
- Listing flagged invocations for moderators and for the dashboard
- Releasing approved content to its owner and their organisation's moderators
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, UTC, date, time, timedelta
from typing import Any, Optional, Union

from sqlalchemy import select, func, desc, update
from sqlalchemy.ext.asyncio import AsyncSession

from edify.models.ai_tools_metric import AIToolsMetric
from edify.models.base import ModerationStatus
from edify.models.tool_results import ToolResultBase, get_result_model
from edify.models.user import User, OrgMember
from edify.schemas.content_flags import ContentFlags
from edify.schemas.moderation import ModerationUpdateRequest
from edify.services.email.moderation_emails import (
    ModerationRequestEmail,
    StatusUpdateEmail,
    send_moderation_request_email,
    send_status_update_email,
)
from edify.services.moderation.workflow import (
    Actor,
    MODERATOR_ROLES,
    ModerationTransitionError,
    RequestContext,
    coerce_status,
    transition,
)

logger = logging.getLogger(__name__)


class ModerationError(RuntimeError):
    """Base class for moderation failures; ``status_code`` is the HTTP mapping."""
    status_code = 400


class ModerationNotFoundError(ModerationError):
    status_code = 404

    def __init__(self, message: str = "Content not found"):
        super().__init__(message)


class ModerationForbiddenError(ModerationError):
    status_code = 403


class NoModeratorAvailableError(ModerationError):
    status_code = 404

    def __init__(self):
        super().__init__("No moderator available")


class ContentNotApprovedError(ModerationError):
    """Raised when content is requested before a moderator approved it."""
    status_code = 403

    def __init__(self, status: str, content_flags: dict[str, Any]):
        self.status = status
        self.content_flags = content_flags
        super().__init__("Content not approved")


@dataclass
class ViolationRow:
    metric: AIToolsMetric
    input_summary: str
    username: str
    email: str


def display_username(username: Optional[str]) -> str:
    """Strip the provider's disambiguation suffix (``alice_k3j9`` -> ``alice``)."""
    if not username:
        return "Unknown"
    head, sep, _ = username.rpartition("_")
    return head if sep else username


def parse_metric_id(metric_id: Union[str, uuid.UUID]) -> uuid.UUID:
    if isinstance(metric_id, uuid.UUID):
        return metric_id
    try:
        return uuid.UUID(str(metric_id))
    except ValueError:
        raise ModerationNotFoundError()


class ModerationService:
    """Service for the moderation lifecycle of flagged tool invocations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_metric(self, metric_id: Union[str, uuid.UUID]) -> AIToolsMetric:
        metric = await self.db.get(AIToolsMetric, parse_metric_id(metric_id))
        if metric is None:
            raise ModerationNotFoundError()
        return metric

    async def _get_content(self, metric: AIToolsMetric) -> Optional[ToolResultBase]:
        model = get_result_model(metric.prompt_type)
        if model is None or metric.prompt_id is None:
            return None
        return await self.db.get(model, metric.prompt_id)

    async def _input_summary(self, metric: AIToolsMetric) -> str:
        content = await self._get_content(metric)
        return content.input_summary if content is not None else "N/A"

    async def _find_moderator(self, org_id: Optional[str]) -> Optional[OrgMember]:
        if not org_id:
            return None
        result = await self.db.execute(
            select(OrgMember)
            .where(OrgMember.org_id == org_id, OrgMember.role.in_(MODERATOR_ROLES))
            .order_by(OrgMember.created_at, OrgMember.user_id)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def _org_user_ids(self, org_id: str) -> list[str]:
        result = await self.db.execute(select(OrgMember.user_id).where(OrgMember.org_id == org_id))
        return list(result.scalars().all())

    async def _is_org_member(self, org_id: str, user_id: str) -> bool:
        result = await self.db.execute(
            select(OrgMember.membership_id).where(OrgMember.org_id == org_id, OrgMember.user_id == user_id)
        )
        return result.first() is not None

    async def can_view(self, ctx: RequestContext, owner_id: str) -> bool:
        """Owners see their own rows; moderators and admins see their organisation's."""
        if owner_id == ctx.user_id:
            return True
        return bool(ctx.can_resolve and ctx.org_id and await self._is_org_member(ctx.org_id, owner_id))

    async def _write_status(
            self,
            metric: AIToolsMetric,
            target: ModerationStatus,
            actor: Actor,
            values: dict[str, Any],
    ) -> None:
        """
        Store a validated status change, provided nobody changed the row since it was read.

        The UPDATE is conditional on the status the transition was checked
        against. When another request got there first the row is re-read and
        the transition checked again, so the caller sees the real reason.
        """
        current = coerce_status(metric.moderator_approval)
        result = await self.db.execute(
            update(AIToolsMetric)
            .where(AIToolsMetric.id == metric.id, AIToolsMetric.moderator_approval == current.value)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await self.db.rollback()
            await self.db.refresh(metric)
            logger.warning(f"Moderation status of {metric.id} changed concurrently; now {metric.moderator_approval}")
            transition(metric.moderator_approval, target, actor, flagged=metric.flagged)
            raise ModerationTransitionError(current, target, "status changed while saving")

        await self.db.commit()
        await self.db.refresh(metric)

    async def apply_update(
            self,
            ctx: RequestContext,
            metric_id: Union[str, uuid.UUID],
            change: ModerationUpdateRequest,
    ) -> AIToolsMetric:
        """Route an in-app PATCH to a review request or a resolution."""
        if ctx.is_educator:
            if not (change.user_requested_moderation or change.moderator_approval == "pending"):
                raise ModerationError("Invalid operation")
            return await self.request_review(ctx, metric_id)

        if ctx.can_resolve:
            if change.moderator_approval not in ("approved", "declined"):
                raise ModerationError("Invalid operation")
            metric = await self.get_metric(metric_id)
            if ctx.org_id and not await self._is_org_member(ctx.org_id, metric.user_id):
                raise ModerationForbiddenError("Content belongs to another organisation")
            return await self.resolve(
                metric,
                ModerationStatus(change.moderator_approval),
                Actor(user_id=ctx.user_id, role=ctx.org_role),
                notes=change.moderator_notes,
            )

        raise ModerationForbiddenError("Unauthorized role")

    async def request_review(self, ctx: RequestContext, metric_id: Union[str, uuid.UUID]) -> AIToolsMetric:
        """
        Ask a moderator of the caller's organisation to review a flagged row.

        Only the owner may ask. The row moves to pending and the first
        moderator of the organisation is emailed approve/decline links.

        Raises:
            ModerationNotFoundError: unknown row
            ModerationForbiddenError: caller does not own the row
            ModerationTransitionError: row not flagged, or review already requested
            NoModeratorAvailableError: the organisation has no moderator
        """
        metric = await self.get_metric(metric_id)
        if metric.user_id != ctx.user_id:
            raise ModerationForbiddenError("Only the content owner can request review")

        actor = Actor(user_id=ctx.user_id, role=ctx.org_role, is_owner=True)
        new_status = transition(metric.moderator_approval, ModerationStatus.PENDING, actor, flagged=metric.flagged)

        moderator = await self._find_moderator(ctx.org_id)
        if moderator is None:
            logger.error(f"No moderators found for organisation {ctx.org_id}")
            raise NoModeratorAvailableError()

        await self._write_status(metric, new_status, actor, {
            "moderator_approval": new_status.value,
            "user_requested_moderation": True,
            "moderation_requested_at": datetime.now(UTC),
        })
        logger.info(f"Moderation requested for {metric.id} by {ctx.user_id}; assigned to {moderator.user_id}")

        await self._notify_moderator(metric, ctx.user_id, moderator.user_id)
        return metric

    async def resolve(
            self,
            metric: Union[AIToolsMetric, str, uuid.UUID],
            decision: ModerationStatus,
            actor: Actor,
            notes: Optional[str] = None,
    ) -> AIToolsMetric:
        """
        Approve or decline a pending review. Shared by the in-app route and
        the emailed link.

        The decision is committed before the owner is notified; a failed
        notification is logged and does not undo the decision. Of two
        concurrent decisions on the same row only the first is stored; the
        second raises ModerationTransitionError.
        """
        if not isinstance(metric, AIToolsMetric):
            metric = await self.get_metric(metric)

        new_status = transition(metric.moderator_approval, decision, actor, flagged=metric.flagged)

        values: dict[str, Any] = {
            "moderator_approval": new_status.value,
            "moderator_id": actor.user_id,
            "moderation_updated_at": datetime.now(UTC),
        }
        if notes is not None:
            values["moderator_notes"] = notes
        await self._write_status(metric, new_status, actor, values)
        logger.info(f"Moderation for {metric.id} resolved as {new_status.value} by {actor.user_id}")

        await self._notify_owner(metric)
        return metric

    async def _notify_moderator(self, metric: AIToolsMetric, requester_id: str, moderator_id: str) -> None:
        try:
            moderator = await self.db.get(User, moderator_id)
            if moderator is None or not moderator.email:
                logger.error(f"Moderator {moderator_id} has no email on record; review request not emailed")
                return
            requester = await self.db.get(User, requester_id)
            email = ModerationRequestEmail(
                content_id=str(metric.id),
                moderator_id=moderator_id,
                username=display_username(requester.username) if requester else "User",
                user_id=requester_id,
                tool_type=metric.prompt_type,
                input_summary=await self._input_summary(metric),
                violations=ContentFlags.from_partial(metric.content_flags).describe(),
            )
            sent = await send_moderation_request_email(moderator.email, email)
        except Exception as e:
            logger.error(f"Error sending moderator email for {metric.id}: {e}", exc_info=True)
            return
        if not sent:
            logger.warning(f"Review request email for {metric.id} was not delivered")

    async def _notify_owner(self, metric: AIToolsMetric) -> None:
        try:
            owner = await self.db.get(User, metric.user_id)
            if owner is None or not owner.email:
                logger.warning(f"Owner {metric.user_id} has no email on record; status update not emailed")
                return
            email = StatusUpdateEmail(
                content_id=str(metric.id),
                username=display_username(owner.username),
                status=metric.moderator_approval,
                tool_type=metric.prompt_type,
                input_summary=await self._input_summary(metric),
                notes=metric.moderator_notes,
                violations=ContentFlags.from_partial(metric.content_flags).describe(),
            )
            sent = await send_status_update_email(owner.email, email)
        except Exception as e:
            logger.error(f"Error sending status update email for {metric.id}: {e}", exc_info=True)
            return
        if not sent:
            logger.warning(f"Status update email for {metric.id} was not delivered")

    async def _scope_user_ids(self, ctx: RequestContext) -> list[str]:
        """User ids whose rows the caller may list."""
        if ctx.can_resolve and ctx.org_id:
            return await self._org_user_ids(ctx.org_id)
        return [ctx.user_id]

    async def _build_rows(self, metrics: list[AIToolsMetric]) -> list[ViolationRow]:
        user_ids = {m.user_id for m in metrics}
        users: dict[str, User] = {}
        if user_ids:
            result = await self.db.execute(select(User).where(User.id.in_(user_ids)))
            users = {user.id: user for user in result.scalars().all()}

        rows = []
        for metric in metrics:
            if get_result_model(metric.prompt_type) is None:
                logger.warning(f"Skipping metric {metric.id} with unknown prompt_type {metric.prompt_type}")
                continue
            user = users.get(metric.user_id)
            rows.append(ViolationRow(
                metric=metric,
                input_summary=await self._input_summary(metric),
                username=display_username(user.username if user else None),
                email=user.email if user else "Unknown",
            ))
        return rows

    async def list_violations(
            self,
            ctx: RequestContext,
            page: int = 1,
            page_size: int = 10,
    ) -> tuple[list[ViolationRow], int]:
        """
        Flagged invocations visible to the caller, newest first.

        Educators see their own rows; moderators and admins see every member
        of their organisation.

        Returns:
            (rows for the page, total matching rows)
        """
        page = max(1, page)
        filters = [AIToolsMetric.flagged.is_(True), AIToolsMetric.prompt_id.isnot(None)]
        filters.append(AIToolsMetric.user_id.in_(await self._scope_user_ids(ctx)))

        count_result = await self.db.execute(select(func.count(AIToolsMetric.id)).where(*filters))
        total = count_result.scalar() or 0

        result = await self.db.execute(
            select(AIToolsMetric)
            .where(*filters)
            .order_by(desc(AIToolsMetric.created_at))
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        metrics = list(result.scalars().all())
        return await self._build_rows(metrics), total

    async def list_user_violations(
            self,
            ctx: RequestContext,
            date_from: Optional[date] = None,
            date_to: Optional[date] = None,
    ) -> list[ViolationRow]:
        """Dashboard listing: own flagged rows, or the whole organisation for admins."""
        user_ids = [ctx.user_id]
        if ctx.is_admin and ctx.org_id:
            user_ids = await self._org_user_ids(ctx.org_id)

        filters = [
            AIToolsMetric.user_id.in_(user_ids),
            AIToolsMetric.flagged.is_(True),
            AIToolsMetric.prompt_id.isnot(None),
        ]
        if date_from is not None:
            filters.append(AIToolsMetric.created_at >= datetime.combine(date_from, time.min, tzinfo=UTC))
        if date_to is not None:
            filters.append(
                AIToolsMetric.created_at < datetime.combine(date_to + timedelta(days=1), time.min, tzinfo=UTC)
            )

        result = await self.db.execute(
            select(AIToolsMetric).where(*filters).order_by(desc(AIToolsMetric.created_at))
        )
        return await self._build_rows(list(result.scalars().all()))

    async def get_approved_content(
            self,
            ctx: RequestContext,
            prompt_type: str,
            metric_id: Union[str, uuid.UUID],
    ) -> tuple[AIToolsMetric, Optional[ToolResultBase]]:
        """
        Release the content linked to an approved row.

        The owner may read it, and so may moderators and admins of an
        organisation the owner belongs to.

        Raises:
            ModerationNotFoundError: unknown row, or a row of another tool
            ModerationForbiddenError: caller is neither the owner nor one of their moderators
            ContentNotApprovedError: row is not approved
        """
        metric = await self.get_metric(metric_id)
        if metric.prompt_type != prompt_type:
            raise ModerationNotFoundError()
        if not await self.can_view(ctx, metric.user_id):
            raise ModerationForbiddenError("Content belongs to another user")

        status = coerce_status(metric.moderator_approval)
        if status is not ModerationStatus.APPROVED:
            raise ContentNotApprovedError(status.value, ContentFlags.from_partial(metric.content_flags).model_dump())

        return metric, await self._get_content(metric)

    async def get_violation(
            self,
            ctx: RequestContext,
            metric_id: Union[str, uuid.UUID],
    ) -> tuple[ViolationRow, Optional[ToolResultBase]]:
        """One invocation as moderators see it, with its stored content row."""
        metric = await self.get_metric(metric_id)
        if not await self.can_view(ctx, metric.user_id):
            raise ModerationForbiddenError("Content belongs to another organisation")

        rows = await self._build_rows([metric])
        if not rows:
            raise ModerationNotFoundError()
        return rows[0], await self._get_content(metric)
