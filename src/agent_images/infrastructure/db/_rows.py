"""Row conversion helpers shared by SQLAlchemy repositories."""

from __future__ import annotations

from datetime import UTC, datetime
from uuid import UUID


def as_uuid(value: object) -> UUID:
    """Normalize driver UUID values (native or string) into UUID."""

    return value if isinstance(value, UUID) else UUID(str(value))


def as_utc(value: object) -> datetime:
    """Normalize driver datetimes, treating naive values as UTC."""

    if not isinstance(value, datetime):
        raise TypeError(f"expected datetime, got {type(value).__name__}")
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def as_optional_utc(value: object) -> datetime | None:
    """Normalize nullable driver datetimes."""

    if value is None:
        return None
    return as_utc(value)
