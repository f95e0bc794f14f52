from __future__ import annotations

import asyncio
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Sequence

import httpx

from utils.clock import utc_isoformat
from utils.logger import provider_logger as logger
from utils.retry import (
    RetryConfig,
    calculate_delay,
    is_retryable_error,
    is_retryable_status,
    parse_retry_after,
)

from ..bucketing import ForecastBucket
from ..exceptions import ProviderResponseError


# Series entries further than this from the bucket do not count as a match.
MAX_MATCH_DISTANCE_SECONDS = 3600


@dataclass
class ParsedForecast:
    """Values pulled out of one provider payload for the target hour."""

    value: Optional[float] = None
    condition: Optional[str] = None
    temp_c: Optional[float] = None
    timezone: Optional[str] = None
    time_index: Optional[int] = None


@dataclass
class ProviderFetchResult:
    """Outcome of one provider fetch, including its whole retry loop."""

    ok: bool
    value: Optional[float] = None
    condition: Optional[str] = None
    temp_c: Optional[float] = None
    timezone: Optional[str] = None
    attempts: int = 0
    retry_after_sec: Optional[float] = None
    status_code: Optional[int] = None
    time_index: Optional[int] = None
    target_time: Optional[str] = None
    date_string: Optional[str] = None
    error: Optional[str] = None
    # Any attempt in the loop answered 429, even if a later one did not.
    saw_throttle: bool = False
    throttle_retry_after_sec: Optional[float] = None

    @property
    def throttled(self) -> bool:
        return self.status_code == 429

    @property
    def needs_cooldown(self) -> bool:
        return self.saw_throttle or self.throttled

    @property
    def cooldown_hint(self) -> Optional[float]:
        """Longest Retry-After sent with a 429 during the loop."""
        if self.saw_throttle:
            return self.throttle_retry_after_sec
        return self.retry_after_sec if self.throttled else None


def nearest_index(
    epochs: Sequence[Optional[float]],
    target_epoch: float,
    max_distance: float = MAX_MATCH_DISTANCE_SECONDS,
) -> Optional[int]:
    """Index of the series timestamp closest to ``target_epoch``.

    The first occurrence wins ties. ``None`` entries are skipped, and nothing
    is returned when the best candidate is further than ``max_distance``.
    """
    best_i: Optional[int] = None
    best_diff: Optional[float] = None
    for i, epoch in enumerate(epochs):
        if epoch is None:
            continue
        diff = abs(epoch - target_epoch)
        if best_diff is None or diff < best_diff:
            best_diff = diff
            best_i = i
    if best_diff is None or best_diff > max_distance:
        return None
    return best_i


def series_value(series: Any, index: Optional[int]) -> Optional[float]:
    if index is None or not isinstance(series, list) or index >= len(series):
        return None
    raw = series[index]
    if raw is None or isinstance(raw, bool):
        return None
    try:
        return float(raw)
    except (TypeError, ValueError):
        return None


class ForecastProvider(ABC):
    """Upstream forecast adapter with a bounded retry loop.

    Subclasses describe the request (``build_request``) and how to read the
    payload (``parse_payload``); the retry, backoff and status classification
    live here so both providers behave identically under failure.
    """

    name: str = "provider"

    def __init__(
        self,
        retry_config: Optional[RetryConfig] = None,
        timeout_seconds: float = 10.0,
        user_agent: str = "kickoff-weather/1.0",
        client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: Callable[[], float] = random.random,
    ) -> None:
        self.retry_config = retry_config or RetryConfig()
        self._timeout = timeout_seconds
        self._user_agent = user_agent
        self._client = client
        self._owns_client = client is None
        self._sleep = sleep
        self._rng = rng

    def is_configured(self) -> bool:
        return True

    def can_serve(self, bucket: ForecastBucket) -> bool:
        """Whether the bucket is inside what this provider can forecast."""
        return True

    @abstractmethod
    def build_request(self, lat: float, lon: float, bucket: ForecastBucket) -> tuple[str, dict]:
        """Return ``(url, query_params)`` for the bucket."""
        raise NotImplementedError

    @abstractmethod
    def parse_payload(self, payload: Any, bucket: ForecastBucket) -> ParsedForecast:
        """Extract target-hour values; raise ProviderResponseError on bad shape."""
        raise NotImplementedError

    async def _get_client(self) -> httpx.AsyncClient:
        """Return a long-lived async HTTP client, creating one if needed."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                follow_redirects=True,
                headers={
                    "Accept": "application/json",
                    "User-Agent": self._user_agent,
                },
            )
            self._owns_client = True
        return self._client

    async def close(self) -> None:
        """Shut down the HTTP client cleanly."""
        if self._owns_client and self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    def _result(self, bucket: ForecastBucket, **fields: Any) -> ProviderFetchResult:
        return ProviderFetchResult(
            target_time=utc_isoformat(bucket.target_time),
            date_string=bucket.calendar_date,
            **fields,
        )

    async def fetch(self, lat: float, lon: float, bucket: ForecastBucket) -> ProviderFetchResult:
        config = self.retry_config
        url, params = self.build_request(lat, lon, bucket)
        status_code: Optional[int] = None
        retry_after: Optional[float] = None
        error: Optional[str] = None
        attempts = 0
        saw_throttle = False
        throttle_hint: Optional[float] = None

        for attempt in range(1, config.max_attempts + 1):
            attempts = attempt
            try:
                client = await self._get_client()
                response = await client.get(url, params=params)
            except httpx.HTTPError as exc:
                status_code = None
                retry_after = None
                error = f"{type(exc).__name__}: {exc}"
                if not is_retryable_error(exc, config):
                    break
                if attempt < config.max_attempts:
                    await self._backoff(attempt, retry_after, error=error)
                continue

            status_code = response.status_code
            retry_after = parse_retry_after(response.headers.get("Retry-After"))
            if status_code == 429:
                saw_throttle = True
                if retry_after is not None:
                    throttle_hint = retry_after if throttle_hint is None else max(throttle_hint, retry_after)

            if 200 <= status_code < 300:
                try:
                    parsed = self.parse_payload(response.json(), bucket)
                except (ValueError, TypeError, KeyError) as exc:
                    # json.JSONDecodeError and ProviderResponseError are ValueErrors
                    error = str(exc) or type(exc).__name__
                    logger.warning(
                        "Unusable forecast payload",
                        provider=self.name,
                        status_code=status_code,
                        error=error,
                        saw_throttle=saw_throttle,
                        throttle_retry_after_sec=throttle_hint,
                    )
                    return self._result(
                        bucket,
                        ok=False,
                        attempts=attempts,
                        status_code=status_code,
                        error=error,
                    )
                return self._result(
                    bucket,
                    ok=True,
                    value=parsed.value,
                    condition=parsed.condition,
                    temp_c=parsed.temp_c,
                    timezone=parsed.timezone,
                    time_index=parsed.time_index,
                    attempts=attempts,
                    retry_after_sec=retry_after,
                    status_code=status_code,
                    saw_throttle=saw_throttle,
                    throttle_retry_after_sec=throttle_hint,
                )

            error = f"HTTP {status_code}"
            if not is_retryable_status(status_code, config):
                break
            if attempt < config.max_attempts:
                await self._backoff(attempt, retry_after, status_code=status_code)

        logger.warning(
            "Forecast fetch failed",
            provider=self.name,
            attempts=attempts,
            status_code=status_code,
            retry_after_sec=retry_after,
            error=error,
        )
        return self._result(
            bucket,
            ok=False,
            attempts=attempts,
            retry_after_sec=retry_after,
            status_code=status_code,
            error=error,
            saw_throttle=saw_throttle,
            throttle_retry_after_sec=throttle_hint,
        )

    async def _backoff(self, attempt: int, retry_after: Optional[float], **context: Any) -> None:
        delay = calculate_delay(attempt, self.retry_config, retry_after, self._rng)
        logger.info(
            "Retrying forecast request",
            provider=self.name,
            attempt=attempt,
            max_attempts=self.retry_config.max_attempts,
            delay_seconds=round(delay, 3),
            retry_after_sec=retry_after,
            **context,
        )
        await self._sleep(delay)


__all__ = [
    "ForecastProvider",
    "ParsedForecast",
    "ProviderFetchResult",
    "ProviderResponseError",
    "nearest_index",
    "series_value",
]
