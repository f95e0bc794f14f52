import sys
from datetime import datetime, timezone
from pathlib import Path

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from services.weather.bucketing import (  # noqa: E402
    build_cache_key,
    build_forecast_bucket,
    parse_kickoff,
    round_to_hour,
)


def test_bucket_rounds_down_before_half_hour():
    bucket = build_forecast_bucket("2026-03-16T19:10:00Z")
    assert bucket is not None
    assert bucket.cache_time_key == "2026-03-16T19:00Z"
    assert bucket.provider_time_label == "2026-03-16T19:00"
    assert bucket.calendar_date == "2026-03-16"
    assert bucket.target_time == datetime(2026, 3, 16, 19, 0, tzinfo=timezone.utc)


def test_bucket_rounds_up_at_half_hour_across_midnight():
    bucket = build_forecast_bucket("2026-03-16T23:30:00Z")
    assert bucket is not None
    assert bucket.cache_time_key == "2026-03-17T00:00Z"
    assert bucket.calendar_date == "2026-03-17"


def test_bucket_converts_offsets_to_utc():
    bucket = build_forecast_bucket("2026-03-16T20:05:00+01:00")
    assert bucket is not None
    assert bucket.cache_time_key == "2026-03-16T19:00Z"


def test_naive_kickoff_is_treated_as_utc():
    parsed = parse_kickoff("2026-03-16T19:10:00")
    assert parsed == datetime(2026, 3, 16, 19, 10, tzinfo=timezone.utc)


def test_unparseable_kickoff_yields_no_bucket():
    assert build_forecast_bucket("next tuesday") is None
    assert build_forecast_bucket("") is None
    assert build_forecast_bucket(None) is None


def test_round_to_hour_boundaries():
    base = datetime(2026, 3, 16, 19, 0, tzinfo=timezone.utc)
    assert round_to_hour(base.replace(minute=29, second=59)) == base
    assert round_to_hour(base.replace(minute=30)).hour == 20


def test_cache_key_is_deterministic_within_bucket_and_rounding():
    first = build_forecast_bucket("2026-03-16T19:10:00Z")
    second = build_forecast_bucket("2026-03-16T19:25:00Z")
    key_a = build_cache_key("open_meteo", 51.500004, -0.12501, first)
    key_b = build_cache_key("open_meteo", 51.49996, -0.12499, second)
    assert key_a == key_b == "open_meteo:51.5000:-0.1250:2026-03-16T19:00Z:metric:en"


def test_cache_key_differs_by_provider_and_hour():
    bucket = build_forecast_bucket("2026-03-16T19:10:00Z")
    later = build_forecast_bucket("2026-03-16T20:10:00Z")
    assert build_cache_key("open_meteo", 1.0, 2.0, bucket) != build_cache_key("weatherapi", 1.0, 2.0, bucket)
    assert build_cache_key("open_meteo", 1.0, 2.0, bucket) != build_cache_key("open_meteo", 1.0, 2.0, later)


def test_cache_key_normalizes_negative_zero():
    bucket = build_forecast_bucket("2026-03-16T19:10:00Z")
    assert build_cache_key("open_meteo", -0.00001, 0.0, bucket) == build_cache_key(
        "open_meteo", 0.0, 0.0, bucket
    )


def test_kickoffs_at_the_edge_of_the_calendar_yield_no_bucket():
    # Rounding up past year 9999 and shifting before year 1 both overflow.
    assert build_forecast_bucket("9999-12-31T23:45:00Z") is None
    assert build_forecast_bucket("0001-01-01T00:10:00+01:00") is None
    assert parse_kickoff("0001-01-01T00:10:00+01:00") is None
    assert build_forecast_bucket("9999-12-31T23:10:00Z").cache_time_key == "9999-12-31T23:00Z"
