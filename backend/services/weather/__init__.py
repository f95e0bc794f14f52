"""Forecast retrieval layer: cached, rate-limited, single-flight provider access."""

from .bucketing import ForecastBucket, build_cache_key, build_forecast_bucket
from .cache_store import CacheEntry, ForecastCacheStore
from .cooldown import CooldownTracker
from .forecast_service import (
    ForecastConfig,
    ForecastDebug,
    ForecastResult,
    ForecastService,
    create_forecast_service,
)
from .geocoding import GeocodeResult, GeocodingClient
from .inflight import InFlightRegistry
from .telemetry import ForecastTelemetry

__all__ = [
    "ForecastBucket",
    "build_cache_key",
    "build_forecast_bucket",
    "CacheEntry",
    "ForecastCacheStore",
    "CooldownTracker",
    "ForecastConfig",
    "ForecastDebug",
    "ForecastResult",
    "ForecastService",
    "create_forecast_service",
    "GeocodeResult",
    "GeocodingClient",
    "InFlightRegistry",
    "ForecastTelemetry",
]
