from .logger import setup_logging, get_logger, forecast_logger, provider_logger
from .retry import RetryConfig, calculate_delay, is_retryable_status, parse_retry_after
from .rate_limiter import SlidingWindowRateLimiter, SlidingWindowConfig

__all__ = [
    # Logger
    "setup_logging",
    "get_logger",
    "forecast_logger",
    "provider_logger",

    # Retry
    "RetryConfig",
    "calculate_delay",
    "is_retryable_status",
    "parse_retry_after",

    # Rate Limiter
    "SlidingWindowRateLimiter",
    "SlidingWindowConfig",
]
