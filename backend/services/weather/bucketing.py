"""Hour bucketing and cache-key derivation for forecast lookups."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

COORDINATE_DECIMALS = 4
CACHE_KEY_UNITS = "metric"
CACHE_KEY_LOCALE = "en"


@dataclass(frozen=True)
class ForecastBucket:
    """UTC hour slot a kickoff falls into."""

    cache_time_key: str  # 2026-03-14T19:00Z
    provider_time_label: str  # 2026-03-14T19:00, as listed in Open-Meteo hourly series
    calendar_date: str  # 2026-03-14
    target_time: datetime

    @property
    def epoch(self) -> int:
        return int(self.target_time.timestamp())


def parse_kickoff(kickoff_iso: Optional[str]) -> Optional[datetime]:
    """Parse an ISO 8601 kickoff into an aware UTC datetime; naive input is UTC."""
    if kickoff_iso is None:
        return None
    text = str(kickoff_iso).strip()
    if not text:
        return None
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    try:
        return parsed.astimezone(timezone.utc)
    except OverflowError:
        # 0001-01-01T00:10+01:00 has no UTC representation
        return None


def round_to_hour(dt: datetime) -> datetime:
    """Nearest whole hour; minute 30 and later rounds up."""
    floored = dt.replace(minute=0, second=0, microsecond=0)
    if dt.minute >= 30:
        return floored + timedelta(hours=1)
    return floored


def build_forecast_bucket(kickoff_iso: Optional[str]) -> Optional[ForecastBucket]:
    kickoff = parse_kickoff(kickoff_iso)
    if kickoff is None:
        return None
    try:
        target = round_to_hour(kickoff)
    except OverflowError:
        return None
    return ForecastBucket(
        cache_time_key=target.strftime("%Y-%m-%dT%H:00Z"),
        provider_time_label=target.strftime("%Y-%m-%dT%H:00"),
        calendar_date=target.strftime("%Y-%m-%d"),
        target_time=target,
    )


def round_coordinate(value: float) -> float:
    return round(float(value), COORDINATE_DECIMALS)


def build_cache_key(provider: str, lat: float, lon: float, bucket: ForecastBucket) -> str:
    """Stable key: same provider, rounded coordinates and hour bucket map to one entry."""
    # Format from the rounded value so -0.0 and 0.0 share a key.
    lat_r = round_coordinate(lat) + 0.0
    lon_r = round_coordinate(lon) + 0.0
    return (
        f"{provider}:{lat_r:.{COORDINATE_DECIMALS}f}:{lon_r:.{COORDINATE_DECIMALS}f}:"
        f"{bucket.cache_time_key}:{CACHE_KEY_UNITS}:{CACHE_KEY_LOCALE}"
    )
