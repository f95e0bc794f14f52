"""UTC time helpers.

The forecast layer keeps all timestamps as POSIX seconds (``float``) so the
cache, limiter and cooldown state can share one injectable clock. These
helpers convert between those seconds and aware UTC datetimes / ISO strings.
"""

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Return the current UTC time as an aware datetime."""
    return datetime.now(timezone.utc)


def utcfromtimestamp(ts: float) -> datetime:
    """Convert a POSIX timestamp to an aware UTC datetime."""
    return datetime.fromtimestamp(ts, tz=timezone.utc)


def utc_isoformat(dt: datetime) -> str:
    """Render ``dt`` as second-precision ISO 8601 with a ``Z`` suffix."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    else:
        dt = dt.astimezone(timezone.utc)
    return dt.replace(microsecond=0).isoformat().replace("+00:00", "Z")


def epoch_to_iso(ts: Optional[float]) -> Optional[str]:
    if ts is None:
        return None
    return utc_isoformat(utcfromtimestamp(ts))
