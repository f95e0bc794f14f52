import asyncio
import random
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Callable, Optional, Tuple

import httpx

from utils.logger import get_logger

logger = get_logger("retry")

RETRYABLE_STATUS_CODES: Tuple[int, ...] = (408, 429, 502, 503, 504)


class RetryConfig:
    """Configuration for provider retry behavior"""

    def __init__(
        self,
        max_attempts: int = 4,
        base_delay_ms: float = 500.0,
        max_delay_ms: float = 8000.0,
        exponential_base: float = 2.0,
        jitter_ratio: float = 0.3,
        retryable_exceptions: Tuple[type[Exception], ...] = (
            httpx.TimeoutException,
            httpx.NetworkError,
            httpx.RemoteProtocolError,
            asyncio.TimeoutError,
        ),
        retryable_status_codes: Tuple[int, ...] = RETRYABLE_STATUS_CODES,
    ):
        self.max_attempts = max(1, int(max_attempts))
        self.base_delay_ms = max(0.0, float(base_delay_ms))
        self.max_delay_ms = max(0.0, float(max_delay_ms))
        self.exponential_base = exponential_base
        self.jitter_ratio = max(0.0, float(jitter_ratio))
        self.retryable_exceptions = retryable_exceptions
        self.retryable_status_codes = retryable_status_codes


def calculate_delay(
    attempt: int,
    config: RetryConfig,
    retry_after_sec: Optional[float] = None,
    rng: Callable[[], float] = random.random,
) -> float:
    """Seconds to wait before retrying after failed attempt number ``attempt`` (1-based).

    The exponential term gets up to ``jitter_ratio`` of itself added as jitter,
    a server ``Retry-After`` hint acts as a floor, and ``max_delay_ms`` is a
    hard ceiling over both.
    """
    power = max(0, int(attempt) - 1)
    exp_ms = config.base_delay_ms * (config.exponential_base**power)
    jitter_ms = exp_ms * config.jitter_ratio * rng()
    hint_ms = max(0.0, float(retry_after_sec)) * 1000.0 if retry_after_sec is not None else 0.0
    delay_ms = min(config.max_delay_ms, max(hint_ms, exp_ms + jitter_ms))
    return delay_ms / 1000.0


def is_retryable_status(status_code: Optional[int], config: RetryConfig) -> bool:
    return status_code is not None and status_code in config.retryable_status_codes


def is_retryable_error(error: Exception, config: RetryConfig) -> bool:
    """Check if a transport-level error should be retried"""
    if isinstance(error, config.retryable_exceptions):
        return True

    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code in config.retryable_status_codes

    return False


def parse_retry_after(value: Optional[str], now: Optional[datetime] = None) -> Optional[float]:
    """Parse a ``Retry-After`` header (delta-seconds or HTTP-date) into seconds."""
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    try:
        return max(0.0, float(text))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(text)
    except (TypeError, ValueError, IndexError):
        return None
    if when is None:
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    reference = now or datetime.now(timezone.utc)
    return max(0.0, (when - reference).total_seconds())
