"""Dialect-aware column types for Alembic migrations."""
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID
from alembic import op


def _dialect_name() -> str:
    return op.get_bind().dialect.name


def get_uuid_type():
    """Native UUID on PostgreSQL, 36-character text elsewhere.

    Matches ``edify.models.base.AdaptiveUUID`` so migrated tables and ORM
    models agree on storage.
    """
    if _dialect_name() == 'postgresql':
        return UUID(as_uuid=True)
    return sa.String(length=36)


def get_json_type():
    """JSONB on PostgreSQL (flags are queried), plain JSON elsewhere."""
    if _dialect_name() == 'postgresql':
        return JSONB()
    return sa.JSON()


def get_timestamp_default():
    if _dialect_name() == 'postgresql':
        return sa.text('NOW()')
    return sa.text('CURRENT_TIMESTAMP')
