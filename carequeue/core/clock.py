"""Time helpers shared by the scheduling services."""

from datetime import UTC, date, datetime, time
from zoneinfo import ZoneInfo

from carequeue.config import settings


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def today() -> date:
    """Current calendar date in the hospital's timezone."""
    return utcnow().astimezone(ZoneInfo(settings.hospital_timezone)).date()


def ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes read back from the store as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def minutes_between(later: datetime, earlier: datetime) -> int:
    """Whole minutes elapsed between two instants, never negative."""
    delta = ensure_aware(later) - ensure_aware(earlier)
    return max(int(delta.total_seconds() // 60), 0)


def start_of_today() -> datetime:
    """Midnight of the current hospital date, expressed in UTC like stored timestamps."""
    zone = ZoneInfo(settings.hospital_timezone)
    return datetime.combine(today(), time.min, tzinfo=zone).astimezone(UTC)
