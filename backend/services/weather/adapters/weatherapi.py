from __future__ import annotations

import time
from datetime import date
from typing import Any, Callable, Optional

from utils.clock import utcfromtimestamp

from ..bucketing import ForecastBucket
from ..conditions import condition_from_weatherapi
from ..exceptions import ProviderResponseError
from .base import ForecastProvider, ParsedForecast, nearest_index, series_value

# WeatherAPI caps the forecast horizon at 10 days
MAX_FORECAST_DAYS = 10


def _epoch(raw: Any) -> Optional[float]:
    if raw is None or isinstance(raw, bool):
        return None
    try:
        return float(raw)
    except (TypeError, ValueError):
        return None


class WeatherApiForecastProvider(ForecastProvider):
    """Fallback provider: WeatherAPI.com forecast with the venue's IANA timezone."""

    name = "weatherapi"
    BASE_URL = "https://api.weatherapi.com/v1/forecast.json"

    def __init__(
        self,
        api_key: Optional[str],
        base_url: Optional[str] = None,
        clock: Callable[[], float] = time.time,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.api_key = api_key
        self._base_url = base_url or self.BASE_URL
        self._clock = clock

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def forecast_days(self, bucket: ForecastBucket) -> int:
        """Days of forecast needed to include the bucket's date (today counts as 1)."""
        today = utcfromtimestamp(self._clock()).date()
        return (date.fromisoformat(bucket.calendar_date) - today).days + 1

    def can_serve(self, bucket: ForecastBucket) -> bool:
        return 1 <= self.forecast_days(bucket) <= MAX_FORECAST_DAYS

    def build_request(self, lat: float, lon: float, bucket: ForecastBucket) -> tuple[str, dict]:
        days = max(1, min(MAX_FORECAST_DAYS, self.forecast_days(bucket)))
        params = {
            "key": self.api_key or "",
            "q": f"{lat:.4f},{lon:.4f}",
            "days": days,
            "aqi": "no",
            "alerts": "no",
        }
        return self._base_url, params

    def parse_payload(self, payload: Any, bucket: ForecastBucket) -> ParsedForecast:
        if not isinstance(payload, dict):
            raise ProviderResponseError(self.name, "payload is not an object")
        forecast = payload.get("forecast")
        if not isinstance(forecast, dict) or not isinstance(forecast.get("forecastday"), list):
            raise ProviderResponseError(self.name, "missing forecast.forecastday")

        location = payload.get("location") or {}
        tz_name = location.get("tz_id") if isinstance(location, dict) else None
        tz_name = tz_name.strip() if isinstance(tz_name, str) and tz_name.strip() else None

        hours: list[dict] = []
        for day in forecast["forecastday"]:
            if not isinstance(day, dict):
                continue
            for hour in day.get("hour") or []:
                if isinstance(hour, dict):
                    hours.append(hour)

        index = nearest_index([_epoch(h.get("time_epoch")) for h in hours], bucket.epoch)
        if index is None:
            return ParsedForecast(timezone=tz_name)

        hour = hours[index]
        condition = hour.get("condition") or {}
        if not isinstance(condition, dict):
            condition = {}
        return ParsedForecast(
            value=series_value([hour.get("chance_of_rain")], 0),
            condition=condition_from_weatherapi(condition.get("code"), condition.get("text")),
            temp_c=series_value([hour.get("temp_c")], 0),
            timezone=tz_name,
            time_index=index,
        )
