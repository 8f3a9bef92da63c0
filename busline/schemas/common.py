from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class RequestModel(BaseModel):
    """Request body accepting both ``bus_seat_id`` and ``busSeatId`` keys."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        extra = "ignore"


class ORMModel(BaseModel):
    class Config:
        from_attributes = True


def naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Timestamps are stored as naive UTC; convert offset-aware input."""
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value
