"""Upstream forecast providers."""

from .base import ForecastProvider, ParsedForecast, ProviderFetchResult
from .open_meteo import OpenMeteoForecastProvider
from .weatherapi import WeatherApiForecastProvider

__all__ = [
    "ForecastProvider",
    "ParsedForecast",
    "ProviderFetchResult",
    "OpenMeteoForecastProvider",
    "WeatherApiForecastProvider",
]
