import sys
from pathlib import Path

import pytest

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from services.weather.conditions import (  # noqa: E402
    CONDITIONS,
    condition_from_text,
    condition_from_weatherapi,
    condition_from_wmo,
)


@pytest.mark.parametrize(
    "code,expected",
    [(0, "clear"), (2, "partly_cloudy"), (3, "cloudy"), (45, "fog"), (63, "rain"), (81, "rain"), (75, "snow"), (95, "thunderstorm")],
)
def test_wmo_codes(code, expected):
    assert condition_from_wmo(code) == expected


def test_wmo_unknown_or_missing():
    assert condition_from_wmo(None) is None
    assert condition_from_wmo(42) is None
    assert condition_from_wmo("61") == "rain"


def test_weatherapi_code_beats_text():
    assert condition_from_weatherapi(1183, "Sunny") == "rain"
    assert condition_from_weatherapi(1087) == "thunderstorm"


def test_weatherapi_falls_back_to_text():
    assert condition_from_weatherapi(None, "Patchy light drizzle") == "rain"
    assert condition_from_weatherapi(9999, "Thundery outbreaks possible") == "thunderstorm"
    assert condition_from_text("Partly cloudy") == "partly_cloudy"
    assert condition_from_text("") is None
    assert condition_from_text("volcanic ash") is None


def test_vocabulary_is_closed():
    assert set(CONDITIONS) == {"clear", "partly_cloudy", "cloudy", "fog", "rain", "snow", "thunderstorm"}
