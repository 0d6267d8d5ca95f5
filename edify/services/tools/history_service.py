"""History of generated content, one listing per tool."""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select, func, desc
from sqlalchemy.ext.asyncio import AsyncSession

from edify.models.tool_results import ToolResultBase
from edify.models.user import User, OrgMember
from edify.services.moderation.workflow import RequestContext
from edify.services.tools.registry import ToolDefinition

logger = logging.getLogger(__name__)


@dataclass
class HistoryEntry:
    content: ToolResultBase
    username: str


class HistoryService:
    """Lists a tool's generated content for the caller, or for an admin's organisation."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _scope_user_ids(self, ctx: RequestContext, search: Optional[str]) -> list[str]:
        user_ids = [ctx.user_id]
        if ctx.is_admin and ctx.org_id:
            result = await self.db.execute(select(OrgMember.user_id).where(OrgMember.org_id == ctx.org_id))
            user_ids = list(result.scalars().all()) or [ctx.user_id]

        if search:
            result = await self.db.execute(
                select(User.id).where(User.id.in_(user_ids), User.username.icontains(search, autoescape=True))
            )
            user_ids = list(result.scalars().all())
        return user_ids

    async def list_history(
            self,
            ctx: RequestContext,
            tool: ToolDefinition,
            limit: int = 10,
            offset: int = 0,
            search: Optional[str] = None,
    ) -> tuple[list[HistoryEntry], int]:
        """
        Generated content of one tool, newest first.

        Blocked requests have no generated content and are left out; they are
        listed with the violations instead.

        Args:
            search: Only include users whose username contains this text

        Returns:
            (entries for the page, total matching rows)
        """
        model = tool.result_model
        user_ids = await self._scope_user_ids(ctx, search)
        if not user_ids:
            return [], 0

        filters = [model.user_id.in_(user_ids), model.ai_response.isnot(None), model.ai_response != ""]
        total = (await self.db.execute(select(func.count(model.id)).where(*filters))).scalar() or 0

        result = await self.db.execute(
            select(model).where(*filters).order_by(desc(model.created_at)).offset(offset).limit(limit)
        )
        contents = list(result.scalars().all())

        usernames: dict[str, str] = {}
        owner_ids = {content.user_id for content in contents}
        if owner_ids:
            users = await self.db.execute(select(User.id, User.username).where(User.id.in_(owner_ids)))
            usernames = {user_id: username for user_id, username in users.all()}

        logger.debug(f"History for {tool.slug}: {len(contents)} of {total} rows for {ctx.user_id}")
        return [HistoryEntry(content, usernames.get(content.user_id, "Unknown")) for content in contents], total
