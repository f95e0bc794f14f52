import sys
from pathlib import Path

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from config import Settings  # noqa: E402
from services.weather.forecast_service import ForecastConfig, ForecastService  # noqa: E402


def _settings(**overrides):
    return Settings(_env_file=None, **overrides)


def test_defaults():
    settings = _settings()
    assert settings.WEATHER_CACHE_TTL_MIN == 60
    assert settings.WEATHER_STALE_TTL_HOURS == 24
    assert settings.WEATHER_RETRY_MAX_ATTEMPTS == 4
    assert settings.WEATHER_RETRY_BASE_DELAY_MS == 500
    assert settings.WEATHER_RETRY_MAX_DELAY_MS == 8000
    assert settings.WEATHER_RATE_LIMIT_PER_5S == 1
    assert settings.WEATHER_RATE_LIMIT_PER_MINUTE == 10


def test_env_overrides_and_normalization(monkeypatch):
    monkeypatch.setenv("WEATHER_CACHE_TTL_MIN", "15")
    monkeypatch.setenv("WEATHERAPI_KEY", "  ")
    monkeypatch.setenv("OPEN_METEO_FORECAST_URL", '"https://example.test/v1/forecast/"')
    settings = _settings()
    assert settings.WEATHER_CACHE_TTL_MIN == 15
    assert settings.WEATHERAPI_KEY is None
    assert settings.OPEN_METEO_FORECAST_URL == "https://example.test/v1/forecast"


def test_non_positive_knobs_are_clamped():
    settings = _settings(WEATHER_RETRY_MAX_ATTEMPTS=0, WEATHER_RATE_LIMIT_PER_MINUTE=-3)
    assert settings.WEATHER_RETRY_MAX_ATTEMPTS == 1
    assert settings.WEATHER_RATE_LIMIT_PER_MINUTE == 0


def test_service_wiring_from_settings():
    keyed = ForecastService.from_settings(_settings(WEATHERAPI_KEY="abc", WEATHER_RETRY_MAX_ATTEMPTS=2))
    assert keyed.primary.name == "open_meteo"
    assert keyed.fallback is not None
    assert keyed.fallback.name == "weatherapi"
    assert keyed.primary.retry_config.max_attempts == 2
    assert keyed.geocoder is not None

    unkeyed = ForecastService.from_settings(_settings(WEATHERAPI_KEY=None))
    assert unkeyed.fallback is None
    assert ForecastConfig.from_settings(_settings()).cache_ttl_min == 60


def test_create_forecast_service_applies_log_settings(monkeypatch):
    from services.weather import forecast_service

    calls = []
    monkeypatch.setattr(
        forecast_service,
        "setup_logging",
        lambda **kwargs: calls.append(kwargs),
    )
    service = forecast_service.create_forecast_service(_settings(LOG_LEVEL="DEBUG", LOG_JSON=False))

    assert calls == [{"level": "DEBUG", "json_format": False}]
    assert isinstance(service, ForecastService)
