"""Forecast orchestrator.

Turns two rate-limited, occasionally failing upstream providers into one
call: ``get_forecast(lat, lon, kickoff_iso)``. Per provider, a lookup goes
through cache -> negative cache -> cooldown -> single-flight -> local rate
limit -> outbound fetch -> cache write, and degrades to stale data or a
structured failure instead of raising.

All state (cache, limiter, cooldowns, in-flight map) hangs off one
``ForecastService`` instance; build one per process and share it.
"""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field, replace
from typing import Any, Callable, NamedTuple, Optional

from config import Settings
from utils.clock import epoch_to_iso, utc_isoformat
from utils.logger import get_logger, setup_logging
from utils.rate_limiter import SlidingWindowRateLimiter
from utils.retry import RetryConfig

from .adapters.base import ForecastProvider, ProviderFetchResult
from .adapters.open_meteo import OpenMeteoForecastProvider
from .adapters.weatherapi import WeatherApiForecastProvider
from .bucketing import ForecastBucket, build_cache_key, build_forecast_bucket
from .cache_store import CacheEntry, ForecastCacheStore
from .cooldown import CooldownTracker
from .geocoding import GeocodingClient
from .inflight import InFlightRegistry
from .telemetry import ForecastTelemetry

logger = get_logger("weather.forecast_service")

CACHE_FRESH = "fresh"
CACHE_STALE = "stale"
CACHE_MISS = "miss"

REASON_BAD_KICKOFF = "bad_kickoff"
REASON_MISSING_LOCATION = "missing_location"
REASON_RATE_LIMITED = "rate_limited"
REASON_API_ERROR = "api_error"


@dataclass
class ForecastConfig:
    cache_ttl_min: float = 60
    stale_ttl_hours: float = 24
    retry_max_attempts: int = 4
    retry_base_delay_ms: float = 500
    retry_max_delay_ms: float = 8000
    rate_limit_per_5s: int = 1
    rate_limit_per_minute: int = 10
    cooldown_max_seconds: float = 120.0
    cooldown_default_seconds: float = 60.0
    http_timeout_seconds: float = 10.0
    user_agent: str = "kickoff-weather/1.0"
    weatherapi_key: Optional[str] = None
    open_meteo_url: str = OpenMeteoForecastProvider.FC_URL
    weatherapi_url: str = WeatherApiForecastProvider.BASE_URL
    geocoding_url: str = GeocodingClient.GEO_URL

    @classmethod
    def from_settings(cls, settings: Settings) -> "ForecastConfig":
        return cls(
            cache_ttl_min=settings.WEATHER_CACHE_TTL_MIN,
            stale_ttl_hours=settings.WEATHER_STALE_TTL_HOURS,
            retry_max_attempts=settings.WEATHER_RETRY_MAX_ATTEMPTS,
            retry_base_delay_ms=settings.WEATHER_RETRY_BASE_DELAY_MS,
            retry_max_delay_ms=settings.WEATHER_RETRY_MAX_DELAY_MS,
            rate_limit_per_5s=settings.WEATHER_RATE_LIMIT_PER_5S,
            rate_limit_per_minute=settings.WEATHER_RATE_LIMIT_PER_MINUTE,
            cooldown_max_seconds=settings.WEATHER_COOLDOWN_MAX_SECONDS,
            cooldown_default_seconds=settings.WEATHER_COOLDOWN_DEFAULT_SECONDS,
            http_timeout_seconds=settings.WEATHER_HTTP_TIMEOUT_SECONDS,
            user_agent=settings.WEATHER_USER_AGENT,
            weatherapi_key=settings.WEATHERAPI_KEY,
            open_meteo_url=settings.OPEN_METEO_FORECAST_URL,
            weatherapi_url=settings.WEATHERAPI_FORECAST_URL,
            geocoding_url=settings.OPEN_METEO_GEOCODING_URL,
        )

    def retry_config(self) -> RetryConfig:
        return RetryConfig(
            max_attempts=self.retry_max_attempts,
            base_delay_ms=self.retry_base_delay_ms,
            max_delay_ms=self.retry_max_delay_ms,
        )


@dataclass
class ForecastDebug:
    target_time: Optional[str] = None
    date_string: Optional[str] = None
    forecast_status: Optional[int] = None
    time_index: Optional[int] = None
    cache_age_min: Optional[float] = None
    geocode_city: Optional[str] = None
    geocode_ok: Optional[bool] = None
    geocode_status: Optional[int] = None


@dataclass
class ForecastResult:
    """Consumer-facing outcome. Failures carry ``reason`` and no data.

    ``reason`` is also set on stale serves to say why fresh data was not
    available.
    """

    ok: bool
    value: Optional[float] = None
    condition: Optional[str] = None
    temp_c: Optional[float] = None
    timezone: Optional[str] = None
    cache_state: str = CACHE_MISS
    is_stale: bool = False
    rate_limited_locally: bool = False
    key: str = ""
    provider: str = ""
    reason: Optional[str] = None
    attempts: int = 0
    retry_after_sec: Optional[float] = None
    status_code: Optional[int] = None
    cooldown_until: Optional[str] = None
    joined_in_flight: bool = False
    debug: ForecastDebug = field(default_factory=ForecastDebug)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class _ProviderLookup(NamedTuple):
    """One provider's outcome, held until the caller knows whether it is kept."""

    result: ForecastResult
    latency_ms: float
    network_call: bool


class ForecastService:
    def __init__(
        self,
        config: Optional[ForecastConfig] = None,
        primary: Optional[ForecastProvider] = None,
        fallback: Optional[ForecastProvider] = None,
        cache: Optional[ForecastCacheStore] = None,
        limiter: Optional[SlidingWindowRateLimiter] = None,
        cooldowns: Optional[CooldownTracker] = None,
        inflight: Optional[InFlightRegistry] = None,
        telemetry: Optional[ForecastTelemetry] = None,
        geocoder: Optional[GeocodingClient] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config or ForecastConfig()
        self._clock = clock
        cfg = self.config

        if primary is None:
            primary = OpenMeteoForecastProvider(
                base_url=cfg.open_meteo_url,
                retry_config=cfg.retry_config(),
                timeout_seconds=cfg.http_timeout_seconds,
                user_agent=cfg.user_agent,
            )
        self.primary = primary
        self.fallback = fallback

        # Explicit None checks: the store and registry define __len__.
        self.cache = cache if cache is not None else ForecastCacheStore(clock=clock)
        self.limiter = limiter if limiter is not None else SlidingWindowRateLimiter(
            per_short_window=cfg.rate_limit_per_5s,
            per_minute=cfg.rate_limit_per_minute,
            clock=clock,
        )
        self.cooldowns = cooldowns if cooldowns is not None else CooldownTracker(
            cap_seconds=cfg.cooldown_max_seconds,
            default_seconds=cfg.cooldown_default_seconds,
            clock=clock,
        )
        self.inflight = inflight if inflight is not None else InFlightRegistry()
        self.telemetry = telemetry if telemetry is not None else ForecastTelemetry()
        self.geocoder = geocoder

    @classmethod
    def from_settings(cls, settings: Settings, clock: Callable[[], float] = time.time) -> "ForecastService":
        """Production wiring: Open-Meteo primary, WeatherAPI fallback when keyed."""
        cfg = ForecastConfig.from_settings(settings)
        fallback = None
        if cfg.weatherapi_key:
            fallback = WeatherApiForecastProvider(
                api_key=cfg.weatherapi_key,
                base_url=cfg.weatherapi_url,
                clock=clock,
                retry_config=cfg.retry_config(),
                timeout_seconds=cfg.http_timeout_seconds,
                user_agent=cfg.user_agent,
            )
        geocoder = GeocodingClient(
            base_url=cfg.geocoding_url,
            timeout_seconds=cfg.http_timeout_seconds,
            user_agent=cfg.user_agent,
        )
        return cls(config=cfg, fallback=fallback, geocoder=geocoder, clock=clock)

    async def close(self) -> None:
        for provider in (self.primary, self.fallback):
            if provider is not None:
                await provider.close()
        if self.geocoder is not None:
            await self.geocoder.close()

    # ------------------------------------------------------------------ #
    #  Public API
    # ------------------------------------------------------------------ #

    async def get_forecast(self, lat: float, lon: float, kickoff_iso: Optional[str]) -> ForecastResult:
        """Best-effort forecast for the kickoff hour at (lat, lon).

        Primary first. The fallback is consulted when the primary failed, or
        when it succeeded without a timezone or temperature; a usable fallback
        result (fresh, fetched or stale) then replaces the primary's entirely.
        """
        bucket = build_forecast_bucket(kickoff_iso)
        if bucket is None:
            return self._bad_kickoff(kickoff_iso)

        primary = await self._get_provider_forecast(self.primary, lat, lon, bucket)
        fallback = self._active_fallback()
        if fallback is None or (
            primary.result.ok
            and primary.result.timezone is not None
            and primary.result.temp_c is not None
        ):
            self._emit(primary)
            return primary.result

        logger.debug(
            "Consulting fallback provider",
            primary=self.primary.name,
            fallback=fallback.name,
            primary_ok=primary.result.ok,
            primary_reason=primary.result.reason,
        )
        secondary = await self._get_provider_forecast(fallback, lat, lon, bucket)
        chosen = secondary if secondary.result.ok else primary
        # Both lookups are logged; the discarded one is tagged so it is not counted as an outcome.
        self._emit(primary, superseded=chosen is not primary)
        self._emit(secondary, superseded=chosen is not secondary)
        return chosen.result

    async def get_venue_forecast(
        self,
        venue_lat: Optional[float],
        venue_lon: Optional[float],
        venue_city: Optional[str],
        kickoff_iso: Optional[str],
    ) -> ForecastResult:
        """Like ``get_forecast`` but geocodes ``venue_city`` when no coordinates are stored."""
        if build_forecast_bucket(kickoff_iso) is None:
            return self._bad_kickoff(kickoff_iso)

        if venue_lat is not None and venue_lon is not None:
            return await self.get_forecast(venue_lat, venue_lon, kickoff_iso)

        city = (venue_city or "").strip() or None
        geo = None
        if city is not None and self.geocoder is not None:
            geo = await self.geocoder.resolve(city)

        if geo is None or not geo.ok:
            result = ForecastResult(
                ok=False,
                provider=self.primary.name,
                reason=REASON_MISSING_LOCATION,
                debug=ForecastDebug(
                    geocode_city=city,
                    geocode_ok=False if city is not None else None,
                    geocode_status=geo.status if geo is not None else None,
                ),
            )
            self.telemetry.emit(result, latency_ms=0.0, network_call=geo is not None)
            return result

        # Joined callers share one result object; copy before annotating.
        result = await self.get_forecast(geo.lat, geo.lon, kickoff_iso)
        return replace(
            result,
            debug=replace(
                result.debug,
                geocode_city=city,
                geocode_ok=True,
                geocode_status=geo.status,
            ),
        )

    # ------------------------------------------------------------------ #
    #  Per-provider state machine
    # ------------------------------------------------------------------ #

    def _active_fallback(self) -> Optional[ForecastProvider]:
        if self.fallback is None or not self.fallback.is_configured():
            return None
        return self.fallback

    async def _get_provider_forecast(
        self,
        provider: ForecastProvider,
        lat: float,
        lon: float,
        bucket: ForecastBucket,
    ) -> "_ProviderLookup":
        started = time.perf_counter()
        key = build_cache_key(provider.name, lat, lon, bucket)
        now = self._clock()

        entry = self.cache.get(key)
        if entry is not None and self.cache.is_fresh(entry, now):
            result = self._from_entry(entry, key, provider, bucket, cache_state=CACHE_FRESH)
            return self._finish(result, started, network_call=False)

        negative = self.cache.get_negative(key)
        if negative is not None and self.cache.is_fresh(negative, now):
            result = self._stale_or_fail(
                entry, key, provider, bucket, REASON_API_ERROR, status_code=negative.status_code
            )
            return self._finish(result, started, network_call=False)

        if not provider.can_serve(bucket):
            result = self._stale_or_fail(entry, key, provider, bucket, REASON_API_ERROR)
            return self._finish(result, started, network_call=False)

        if self.cooldowns.in_cooldown(provider.name):
            result = self._stale_or_fail(
                entry,
                key,
                provider,
                bucket,
                REASON_RATE_LIMITED,
                status_code=429,
                cooldown_until=self.cooldowns.resume_at(provider.name),
            )
            return self._finish(result, started, network_call=False)

        try:
            result, joined = await self.inflight.run(
                key, lambda: self._fetch_and_store(provider, key, lat, lon, bucket)
            )
        except Exception as exc:
            logger.exception(
                "Forecast provider raised unexpectedly",
                provider=provider.name,
                key=key,
                error=str(exc),
            )
            result, joined = self._stale_or_fail(self.cache.get(key), key, provider, bucket, REASON_API_ERROR), False

        if joined:
            result = replace(result, joined_in_flight=True, debug=replace(result.debug))
        return self._finish(result, started, network_call=not joined and result.attempts > 0)

    async def _fetch_and_store(
        self,
        provider: ForecastProvider,
        key: str,
        lat: float,
        lon: float,
        bucket: ForecastBucket,
    ) -> ForecastResult:
        """The single outbound attempt for ``key``; shared with every joiner."""
        if not self.limiter.try_acquire():
            return self._stale_or_fail(
                self.cache.get(key),
                key,
                provider,
                bucket,
                REASON_RATE_LIMITED,
                rate_limited_locally=True,
            )

        fetched = await provider.fetch(lat, lon, bucket)
        now = self._clock()
        # A 429 anywhere in the retry loop pauses the provider, whatever the final status.
        resume_at = None
        if fetched.needs_cooldown:
            resume_at = self.cooldowns.register_throttle(provider.name, fetched.cooldown_hint)

        if fetched.ok:
            self._store(
                key,
                CacheEntry.success(
                    value=fetched.value,
                    condition=fetched.condition,
                    temp_c=fetched.temp_c,
                    timezone=fetched.timezone,
                    fetched_at=now,
                    ttl_minutes=self.config.cache_ttl_min,
                    stale_hours=self.config.stale_ttl_hours,
                    status_code=fetched.status_code,
                ),
            )
            return ForecastResult(
                ok=True,
                value=fetched.value,
                condition=fetched.condition,
                temp_c=fetched.temp_c,
                timezone=fetched.timezone,
                cache_state=CACHE_MISS,
                key=key,
                provider=provider.name,
                attempts=fetched.attempts,
                retry_after_sec=fetched.retry_after_sec,
                status_code=fetched.status_code,
                cooldown_until=epoch_to_iso(resume_at),
                debug=self._debug(bucket, fetched),
            )

        if fetched.throttled:
            return self._stale_or_fail(
                self.cache.get(key),
                key,
                provider,
                bucket,
                REASON_RATE_LIMITED,
                fetched=fetched,
                cooldown_until=resume_at,
            )

        self._store(
            key,
            CacheEntry.failure(
                status_code=fetched.status_code,
                fetched_at=now,
                ttl_minutes=self.config.cache_ttl_min,
                stale_hours=self.config.stale_ttl_hours,
            ),
        )
        return self._stale_or_fail(
            self.cache.get(key),
            key,
            provider,
            bucket,
            REASON_API_ERROR,
            fetched=fetched,
            cooldown_until=resume_at,
        )

    def _store(self, key: str, entry: CacheEntry) -> None:
        # Keys are per venue and kickoff hour and are rarely read again once
        # the match is over, so dead entries are reclaimed on the write path.
        removed = self.cache.purge_expired()
        if removed:
            logger.debug("Purged dead forecast cache entries", removed=removed, remaining=len(self.cache))
        self.cache.put(key, entry)

    # ------------------------------------------------------------------ #
    #  Result builders
    # ------------------------------------------------------------------ #

    def _debug(
        self,
        bucket: ForecastBucket,
        fetched: Optional[ProviderFetchResult] = None,
        status_code: Optional[int] = None,
        cache_age_min: Optional[float] = None,
    ) -> ForecastDebug:
        return ForecastDebug(
            target_time=utc_isoformat(bucket.target_time),
            date_string=bucket.calendar_date,
            forecast_status=fetched.status_code if fetched is not None else status_code,
            time_index=fetched.time_index if fetched is not None else None,
            cache_age_min=None if cache_age_min is None else round(cache_age_min, 1),
        )

    def _from_entry(
        self,
        entry: CacheEntry,
        key: str,
        provider: ForecastProvider,
        bucket: ForecastBucket,
        cache_state: str,
        **overrides: Any,
    ) -> ForecastResult:
        is_stale = cache_state == CACHE_STALE
        fields: dict[str, Any] = {
            "ok": True,
            "value": entry.value,
            "condition": entry.condition,
            "temp_c": entry.temp_c,
            "timezone": entry.timezone,
            "cache_state": cache_state,
            "is_stale": is_stale,
            "key": key,
            "provider": provider.name,
            "status_code": entry.status_code,
            "debug": self._debug(
                bucket,
                status_code=entry.status_code,
                cache_age_min=self.cache.age_minutes(entry),
            ),
        }
        fields.update(overrides)
        return ForecastResult(**fields)

    def _stale_or_fail(
        self,
        entry: Optional[CacheEntry],
        key: str,
        provider: ForecastProvider,
        bucket: ForecastBucket,
        reason: str,
        fetched: Optional[ProviderFetchResult] = None,
        status_code: Optional[int] = None,
        rate_limited_locally: bool = False,
        cooldown_until: Optional[float] = None,
    ) -> ForecastResult:
        """Serve a still-usable cached value flagged as stale, else a structured failure."""
        status = fetched.status_code if fetched is not None else status_code
        common: dict[str, Any] = {
            "reason": reason,
            "rate_limited_locally": rate_limited_locally,
            "attempts": fetched.attempts if fetched is not None else 0,
            "retry_after_sec": fetched.retry_after_sec if fetched is not None else None,
            "status_code": status,
            "cooldown_until": epoch_to_iso(cooldown_until),
        }

        now = self._clock()
        if entry is not None and not entry.is_negative and now <= entry.stale_until:
            state = CACHE_FRESH if self.cache.is_fresh(entry, now) else CACHE_STALE
            result = self._from_entry(entry, key, provider, bucket, cache_state=state, **common)
            result.debug.forecast_status = status
            return result

        return ForecastResult(
            ok=False,
            cache_state=CACHE_MISS,
            key=key,
            provider=provider.name,
            debug=self._debug(bucket, fetched, status_code=status),
            **common,
        )

    def _bad_kickoff(self, kickoff_iso: Optional[str]) -> ForecastResult:
        logger.warning("Unparseable kickoff timestamp", kickoff=kickoff_iso)
        result = ForecastResult(ok=False, provider=self.primary.name, reason=REASON_BAD_KICKOFF)
        self.telemetry.emit(result, latency_ms=0.0, network_call=False)
        return result

    @staticmethod
    def _finish(result: ForecastResult, started: float, network_call: bool) -> "_ProviderLookup":
        return _ProviderLookup(result, (time.perf_counter() - started) * 1000.0, network_call)

    def _emit(self, lookup: "_ProviderLookup", superseded: bool = False) -> None:
        self.telemetry.emit(
            lookup.result,
            latency_ms=lookup.latency_ms,
            network_call=lookup.network_call,
            superseded=superseded,
        )


def create_forecast_service(settings: Optional[Settings] = None) -> ForecastService:
    """Configure logging and build the process-wide service from ``config.settings``."""
    if settings is None:
        from config import settings as app_settings

        settings = app_settings
    setup_logging(level=settings.LOG_LEVEL, json_format=settings.LOG_JSON)
    return ForecastService.from_settings(settings)
