"""Shared fixtures for forecast retrieval tests."""

import sys
from pathlib import Path

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from datetime import datetime, timezone

import pytest


# ---------------------------------------------------------------------------
# Time fixtures
# ---------------------------------------------------------------------------


class FakeClock:
    """Manually advanced epoch-seconds clock."""

    def __init__(self, start: float):
        self.now = float(start)

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


class RecordingSleep:
    """Drop-in for ``asyncio.sleep`` that records delays instead of waiting."""

    def __init__(self, clock: FakeClock = None):
        self.calls = []
        self._clock = clock

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        if self._clock is not None:
            self._clock.advance(seconds)


# 2026-03-14T12:00:00Z, two days before the sample kickoff.
START_EPOCH = datetime(2026, 3, 14, 12, 0, tzinfo=timezone.utc).timestamp()


@pytest.fixture
def clock():
    return FakeClock(START_EPOCH)


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def kickoff_iso():
    return "2026-03-16T19:10:00Z"


# ---------------------------------------------------------------------------
# Provider payload fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def open_meteo_payload():
    """Open-Meteo hourly response for 2026-03-16 in UTC."""
    hours = [f"2026-03-16T{h:02d}:00" for h in range(24)]
    return {
        "latitude": 51.5,
        "longitude": -0.125,
        "timezone": "UTC",
        "hourly": {
            "time": hours,
            "precipitation_probability": [h * 2 for h in range(24)],
            "weather_code": [61 if h == 19 else 0 for h in range(24)],
            "temperature_2m": [5.0 + h * 0.5 for h in range(24)],
        },
    }


@pytest.fixture
def weatherapi_payload():
    """WeatherAPI forecast response covering 2026-03-16."""
    base = int(datetime(2026, 3, 16, 0, 0, tzinfo=timezone.utc).timestamp())
    hours = []
    for h in range(24):
        hours.append(
            {
                "time_epoch": base + h * 3600,
                "time": f"2026-03-16 {h:02d}:00",
                "temp_c": 8.0 + h * 0.25,
                "chance_of_rain": 70 if h == 19 else 10,
                "condition": {"text": "Patchy rain nearby" if h == 19 else "Sunny", "code": 1063 if h == 19 else 1000},
            }
        )
    return {
        "location": {"name": "London", "tz_id": "Europe/London"},
        "forecast": {"forecastday": [{"date": "2026-03-16", "hour": hours}]},
    }
