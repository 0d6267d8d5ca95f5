"""Local mirror of users and organisation memberships from the auth provider."""
from sqlalchemy import Column, String, DateTime, UniqueConstraint
from datetime import datetime, UTC
import uuid

from edify.database import Base
from edify.models.base import get_uuid_column


class User(Base):
    """User known to the auth provider. ``id`` is the provider's user id."""

    __tablename__ = "users"

    id = Column(String(100), primary_key=True)
    email = Column(String(255), nullable=False, index=True)
    username = Column(String(100), nullable=False)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username={self.username})>"


class OrgMember(Base):
    """Membership of a user in an organisation with its provider role."""

    __tablename__ = "org_members"

    membership_id = get_uuid_column(primary_key=True, default=uuid.uuid4)
    org_id = Column(String(100), nullable=False, index=True)
    user_id = Column(String(100), nullable=False, index=True)
    role = Column(String(50), nullable=False)  # e.g. "org:admin", "org:moderator", "org:educator"
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False)

    __table_args__ = (
        UniqueConstraint("org_id", "user_id", name="uq_org_members_org_user"),
    )

    def __repr__(self) -> str:
        return f"<OrgMember(org_id={self.org_id}, user_id={self.user_id}, role={self.role})>"
