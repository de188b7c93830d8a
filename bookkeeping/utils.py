"""Utility functions for the bookkeeping clients."""

from datetime import datetime, timedelta, timezone
from typing import Union

from ulid import ULID


Timestamp = Union[datetime, int]

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def generate_ulid() -> str:
    """Generate a new ULID string."""
    return str(ULID())


def to_milliseconds(value: Timestamp) -> int:
    """Convert a timestamp to epoch milliseconds.

    Integers are taken as epoch milliseconds already; naive datetimes are UTC.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return (value - _EPOCH) // timedelta(milliseconds=1)
    return int(value)


def from_milliseconds(value: int) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime."""
    return _EPOCH + timedelta(milliseconds=value)
