"""Weather layer exceptions.

These never escape ``ForecastService``; adapters raise them internally and
the service turns them into structured ``api_error`` results.
"""

from __future__ import annotations

from typing import Optional


class WeatherError(Exception):
    """Base exception for forecast retrieval errors."""


class ProviderResponseError(WeatherError, ValueError):
    """Upstream answered 2xx but the body could not be used."""

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None) -> None:
        self.provider = provider
        self.status_code = status_code
        super().__init__(f"{provider}: {message}")
