from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from ..bucketing import ForecastBucket
from ..conditions import condition_from_wmo
from ..exceptions import ProviderResponseError
from .base import ForecastProvider, ParsedForecast, nearest_index, series_value

HOURLY_VARIABLES = ("precipitation_probability", "weather_code", "temperature_2m")

# Open-Meteo echoes the requested zone; these say nothing about the venue.
_NON_LOCAL_TIMEZONES = {"UTC", "GMT", "Etc/UTC", "Etc/GMT", "Z"}


def _series_epoch(raw: Any) -> Optional[float]:
    """Hourly ``time`` entry (ISO text or unix seconds) -> epoch seconds, UTC."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        return float(raw)
    text = str(raw).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(text)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp()


def _local_timezone(payload: dict) -> Optional[str]:
    tz_name = payload.get("timezone")
    if not tz_name or not isinstance(tz_name, str):
        return None
    if tz_name.strip() in _NON_LOCAL_TIMEZONES:
        return None
    return tz_name.strip()


class OpenMeteoForecastProvider(ForecastProvider):
    """Primary provider: Open-Meteo hourly forecast, queried in UTC."""

    name = "open_meteo"
    FC_URL = "https://api.open-meteo.com/v1/forecast"

    def __init__(self, base_url: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._base_url = base_url or self.FC_URL

    def build_request(self, lat: float, lon: float, bucket: ForecastBucket) -> tuple[str, dict]:
        params = {
            "latitude": f"{lat:.4f}",
            "longitude": f"{lon:.4f}",
            "hourly": ",".join(HOURLY_VARIABLES),
            "timezone": "UTC",
            "start_date": bucket.calendar_date,
            "end_date": bucket.calendar_date,
        }
        return self._base_url, params

    def parse_payload(self, payload: Any, bucket: ForecastBucket) -> ParsedForecast:
        if not isinstance(payload, dict):
            raise ProviderResponseError(self.name, "payload is not an object")
        hourly = payload.get("hourly")
        if not isinstance(hourly, dict):
            raise ProviderResponseError(self.name, "missing hourly series")
        times = hourly.get("time")
        if not isinstance(times, list):
            raise ProviderResponseError(self.name, "missing hourly.time")

        index = nearest_index([_series_epoch(t) for t in times], bucket.epoch)
        tz_name = _local_timezone(payload)
        if index is None:
            # Reachable provider, nothing for this hour.
            return ParsedForecast(timezone=tz_name)

        weather_code = series_value(hourly.get("weather_code"), index)
        return ParsedForecast(
            value=series_value(hourly.get("precipitation_probability"), index),
            condition=condition_from_wmo(weather_code),
            temp_c=series_value(hourly.get("temperature_2m"), index),
            timezone=tz_name,
            time_index=index,
        )
