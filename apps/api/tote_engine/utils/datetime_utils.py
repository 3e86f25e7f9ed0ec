"""Timezone helpers.

SQLite hands back naive datetimes even for ``DateTime(timezone=True)``
columns, so anything read from the database is passed through
``ensure_utc`` before being compared with ``utc_now()``.
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def start_of_day(value: datetime) -> datetime:
    """Midnight UTC of the given instant's day."""
    value = ensure_utc(value)
    return value.replace(hour=0, minute=0, second=0, microsecond=0)
