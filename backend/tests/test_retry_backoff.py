import sys
from datetime import datetime, timezone
from pathlib import Path

import httpx
import pytest

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from utils.retry import (  # noqa: E402
    RetryConfig,
    calculate_delay,
    is_retryable_error,
    is_retryable_status,
    parse_retry_after,
)


@pytest.mark.parametrize("attempt,expected", [(1, 0.5), (2, 1.0), (3, 2.0), (4, 4.0), (5, 8.0), (6, 8.0)])
def test_delay_without_jitter_doubles_and_caps(attempt, expected):
    config = RetryConfig(base_delay_ms=500, max_delay_ms=8000)
    assert calculate_delay(attempt, config, rng=lambda: 0.0) == pytest.approx(expected)


def test_jitter_adds_at_most_thirty_percent():
    config = RetryConfig(base_delay_ms=500, max_delay_ms=8000)
    assert calculate_delay(2, config, rng=lambda: 0.999999) == pytest.approx(1.3, abs=1e-3)
    assert calculate_delay(2, config, rng=lambda: 0.5) == pytest.approx(1.15)


def test_retry_after_is_a_floor_but_cap_wins():
    config = RetryConfig(base_delay_ms=500, max_delay_ms=8000)
    assert calculate_delay(1, config, retry_after_sec=3, rng=lambda: 0.0) == pytest.approx(3.0)
    assert calculate_delay(1, config, retry_after_sec=60, rng=lambda: 0.0) == pytest.approx(8.0)
    assert calculate_delay(3, config, retry_after_sec=0.1, rng=lambda: 0.0) == pytest.approx(2.0)


@pytest.mark.parametrize("status", [408, 429, 502, 503, 504])
def test_retryable_statuses(status):
    assert is_retryable_status(status, RetryConfig())


@pytest.mark.parametrize("status", [None, 200, 400, 401, 404, 500])
def test_non_retryable_statuses(status):
    assert not is_retryable_status(status, RetryConfig())


def test_transport_errors_are_retryable():
    config = RetryConfig()
    assert is_retryable_error(httpx.ConnectError("refused"), config)
    assert is_retryable_error(httpx.ReadTimeout("slow"), config)
    assert not is_retryable_error(ValueError("nope"), config)


def test_parse_retry_after_forms():
    now = datetime(2026, 3, 14, 12, 0, tzinfo=timezone.utc)
    assert parse_retry_after("30") == 30.0
    assert parse_retry_after(" 2.5 ") == 2.5
    assert parse_retry_after("-4") == 0.0
    assert parse_retry_after("Sat, 14 Mar 2026 12:00:45 GMT", now=now) == pytest.approx(45.0)
    assert parse_retry_after("Sat, 14 Mar 2026 11:00:00 GMT", now=now) == 0.0
    assert parse_retry_after("soon") is None
    assert parse_retry_after(None) is None
    assert parse_retry_after("") is None
