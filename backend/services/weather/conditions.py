"""Provider condition codes -> shared weather vocabulary."""

from __future__ import annotations

from typing import Optional

CLEAR = "clear"
PARTLY_CLOUDY = "partly_cloudy"
CLOUDY = "cloudy"
FOG = "fog"
RAIN = "rain"
SNOW = "snow"
THUNDERSTORM = "thunderstorm"

CONDITIONS = (CLEAR, PARTLY_CLOUDY, CLOUDY, FOG, RAIN, SNOW, THUNDERSTORM)


def _expand(mapping: dict[tuple[int, ...], str]) -> dict[int, str]:
    table: dict[int, str] = {}
    for codes, condition in mapping.items():
        for code in codes:
            table[code] = condition
    return table


# WMO weather interpretation codes (Open-Meteo `weather_code`).
WMO_CONDITIONS = _expand(
    {
        (0,): CLEAR,
        (1, 2): PARTLY_CLOUDY,
        (3,): CLOUDY,
        (45, 48): FOG,
        (51, 53, 55, 56, 57, 61, 63, 65, 66, 67, 80, 81, 82): RAIN,
        (71, 73, 75, 77, 85, 86): SNOW,
        (95, 96, 99): THUNDERSTORM,
    }
)

# WeatherAPI.com condition codes.
WEATHERAPI_CONDITIONS = _expand(
    {
        (1000,): CLEAR,
        (1003,): PARTLY_CLOUDY,
        (1006, 1009): CLOUDY,
        (1030, 1135, 1147): FOG,
        (
            1063, 1072, 1150, 1153, 1168, 1171, 1180, 1183, 1186, 1189,
            1192, 1195, 1198, 1201, 1240, 1243, 1246,
        ): RAIN,
        (
            1066, 1069, 1114, 1117, 1204, 1207, 1210, 1213, 1216, 1219,
            1222, 1225, 1237, 1249, 1252, 1255, 1258, 1261, 1264,
        ): SNOW,
        (1087, 1273, 1276, 1279, 1282): THUNDERSTORM,
    }
)

# Checked in order; thunder beats rain in "thundery showers".
_TEXT_KEYWORDS = (
    (("thunder", "storm", "lightning"), THUNDERSTORM),
    (("snow", "sleet", "blizzard", "ice pellets", "hail"), SNOW),
    (("rain", "drizzle", "shower"), RAIN),
    (("fog", "mist", "haze"), FOG),
    (("partly", "partial", "few clouds", "scattered"), PARTLY_CLOUDY),
    (("overcast", "cloud"), CLOUDY),
    (("clear", "sunny", "fair"), CLEAR),
)


def _as_int(code: object) -> Optional[int]:
    if code is None or isinstance(code, bool):
        return None
    try:
        return int(float(code))
    except (TypeError, ValueError):
        return None


def condition_from_wmo(code: object) -> Optional[str]:
    value = _as_int(code)
    if value is None:
        return None
    return WMO_CONDITIONS.get(value)


def condition_from_text(text: object) -> Optional[str]:
    if not text:
        return None
    lowered = str(text).strip().lower()
    for keywords, condition in _TEXT_KEYWORDS:
        if any(word in lowered for word in keywords):
            return condition
    return None


def condition_from_weatherapi(code: object, text: object = None) -> Optional[str]:
    value = _as_int(code)
    if value is not None and value in WEATHERAPI_CONDITIONS:
        return WEATHERAPI_CONDITIONS[value]
    return condition_from_text(text)
