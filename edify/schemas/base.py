"""Shared pieces of the API response schemas."""
from datetime import datetime, UTC
from typing import Annotated

from pydantic import BaseModel, ConfigDict, PlainSerializer


def serialize_datetime_utc(dt: datetime) -> str:
    """ISO 8601 with a ``Z`` suffix; naive values (as SQLite returns them) are read as UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC).isoformat().replace('+00:00', 'Z')


UtcDatetime = Annotated[datetime, PlainSerializer(serialize_datetime_utc, return_type=str)]


class BaseSchema(BaseModel):
    """Response schema filled from ORM rows."""
    model_config = ConfigDict(from_attributes=True)
