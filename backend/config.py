from pathlib import Path
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings

# Get the directory where this config file is located.
_BACKEND_DIR = Path(__file__).parent.resolve()


def _detect_project_root(backend_dir: Path) -> Path:
    """Resolve project root from the backend directory in the repo layout."""
    return backend_dir.parent.resolve()


_PROJECT_ROOT = _detect_project_root(_BACKEND_DIR)


class Settings(BaseSettings):
    # Provider endpoints
    OPEN_METEO_FORECAST_URL: str = "https://api.open-meteo.com/v1/forecast"
    OPEN_METEO_GEOCODING_URL: str = "https://geocoding-api.open-meteo.com/v1/search"
    WEATHERAPI_FORECAST_URL: str = "https://api.weatherapi.com/v1/forecast.json"

    # Fallback provider credential; fallback is skipped when unset
    WEATHERAPI_KEY: Optional[str] = None

    # HTTP
    WEATHER_HTTP_TIMEOUT_SECONDS: float = 10.0
    WEATHER_USER_AGENT: str = "kickoff-weather/1.0"

    # Cache tiers
    WEATHER_CACHE_TTL_MIN: int = 60  # Fresh tier; served with no outbound call
    WEATHER_STALE_TTL_HOURS: int = 24  # Stale tier; served only when a fetch cannot complete

    # Provider retry loop
    WEATHER_RETRY_MAX_ATTEMPTS: int = 4
    WEATHER_RETRY_BASE_DELAY_MS: int = 500
    WEATHER_RETRY_MAX_DELAY_MS: int = 8000

    # Local admission control (all keys, both providers)
    WEATHER_RATE_LIMIT_PER_5S: int = 1
    WEATHER_RATE_LIMIT_PER_MINUTE: int = 10

    # Per-provider embargo after a throttling response
    WEATHER_COOLDOWN_MAX_SECONDS: float = 120.0
    WEATHER_COOLDOWN_DEFAULT_SECONDS: float = 60.0  # Used when no Retry-After hint is sent

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    @field_validator(
        "OPEN_METEO_FORECAST_URL",
        "OPEN_METEO_GEOCODING_URL",
        "WEATHERAPI_FORECAST_URL",
        mode="before",
    )
    @classmethod
    def _normalize_url_field(cls, value: object) -> object:
        """Trim accidental quotes/whitespace from URL env vars."""
        if value is None:
            return value
        text = str(value).strip().strip('"').strip("'")
        if not text:
            return text
        return text.rstrip("/")

    @field_validator("WEATHERAPI_KEY", mode="before")
    @classmethod
    def _normalize_api_key(cls, value: object) -> object:
        """Treat blank or quoted-empty keys as not configured."""
        if value is None:
            return None
        text = str(value).strip().strip('"').strip("'")
        return text or None

    @field_validator(
        "WEATHER_CACHE_TTL_MIN",
        "WEATHER_STALE_TTL_HOURS",
        "WEATHER_RETRY_MAX_ATTEMPTS",
        mode="after",
    )
    @classmethod
    def _at_least_one(cls, value: int) -> int:
        return max(1, int(value))

    @field_validator(
        "WEATHER_RETRY_BASE_DELAY_MS",
        "WEATHER_RETRY_MAX_DELAY_MS",
        "WEATHER_RATE_LIMIT_PER_5S",
        "WEATHER_RATE_LIMIT_PER_MINUTE",
        mode="after",
    )
    @classmethod
    def _non_negative_int(cls, value: int) -> int:
        return max(0, int(value))

    @field_validator(
        "WEATHER_COOLDOWN_MAX_SECONDS",
        "WEATHER_COOLDOWN_DEFAULT_SECONDS",
        "WEATHER_HTTP_TIMEOUT_SECONDS",
        mode="after",
    )
    @classmethod
    def _non_negative_float(cls, value: float) -> float:
        return max(0.0, float(value))

    class Config:
        # Load project-root .env first (common workflow), then backend/.env
        # as an override if present.
        env_file = (
            str(_PROJECT_ROOT / ".env"),
            str(_BACKEND_DIR / ".env"),
        )
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
