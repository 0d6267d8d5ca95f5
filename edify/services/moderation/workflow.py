"""Moderation state machine and role helpers."""
from dataclasses import dataclass
from typing import Optional, Union

from edify.models.base import ModerationStatus

MODERATOR_ROLES = frozenset({"moderator", "org:moderator"})
ADMIN_ROLES = frozenset({"org:admin"})
EDUCATOR_ROLES = frozenset({"org:educator", "basic"})

RESOLUTIONS = frozenset({ModerationStatus.APPROVED, ModerationStatus.DECLINED})


class ModerationTransitionError(RuntimeError):
    """Raised when a moderation status change is not allowed."""

    def __init__(self, current: ModerationStatus, target: ModerationStatus, reason: str):
        self.current = current
        self.target = target
        self.reason = reason
        super().__init__(f"Cannot move from {current.value} to {target.value}: {reason}")


@dataclass(frozen=True)
class RequestContext:
    """Authenticated caller, as asserted by the auth provider's token."""
    user_id: str
    org_id: Optional[str] = None
    org_role: Optional[str] = None

    @property
    def is_moderator(self) -> bool:
        return self.org_role in MODERATOR_ROLES

    @property
    def is_admin(self) -> bool:
        return self.org_role in ADMIN_ROLES

    @property
    def is_educator(self) -> bool:
        return self.org_role in EDUCATOR_ROLES

    @property
    def can_resolve(self) -> bool:
        return self.is_moderator or self.is_admin


@dataclass(frozen=True)
class Actor:
    """Who is attempting a transition, relative to the content row."""
    user_id: str
    role: Optional[str] = None
    is_owner: bool = False

    @property
    def can_resolve(self) -> bool:
        return self.role in MODERATOR_ROLES or self.role in ADMIN_ROLES


def coerce_status(value: Union[str, ModerationStatus, None]) -> ModerationStatus:
    """Read a stored status; missing values count as not requested."""
    if value is None or value == "":
        return ModerationStatus.NOT_REQUESTED
    return ModerationStatus(value)


def transition(
        current: Union[str, ModerationStatus, None],
        target: Union[str, ModerationStatus],
        actor: Actor,
        *,
        flagged: bool,
) -> ModerationStatus:
    """
    Validate a moderation status change and return the new status.

    Allowed moves:
        not_requested -> pending              (content owner, flagged rows only)
        pending -> approved | declined        (moderator or admin)

    Approved and declined are final. Everything else raises
    ModerationTransitionError.
    """
    current = coerce_status(current)
    target = ModerationStatus(target)

    if current is ModerationStatus.NOT_REQUESTED and target is ModerationStatus.PENDING:
        if not actor.is_owner:
            raise ModerationTransitionError(current, target, "only the content owner can request review")
        if not flagged:
            raise ModerationTransitionError(current, target, "content was not flagged")
        return target

    if current is ModerationStatus.PENDING and target in RESOLUTIONS:
        if not actor.can_resolve:
            raise ModerationTransitionError(current, target, "only moderators can resolve a review")
        return target

    if current in RESOLUTIONS:
        raise ModerationTransitionError(current, target, "review is already resolved")
    if current is ModerationStatus.PENDING and target is ModerationStatus.PENDING:
        raise ModerationTransitionError(current, target, "review is already pending")
    raise ModerationTransitionError(current, target, "transition not allowed")
