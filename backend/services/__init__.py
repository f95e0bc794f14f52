from importlib import import_module

__all__ = [
    "ForecastService",
    "ForecastResult",
    "create_forecast_service",
]

_LAZY_EXPORTS = {
    "ForecastService": ("services.weather.forecast_service", "ForecastService"),
    "ForecastResult": ("services.weather.forecast_service", "ForecastResult"),
    "create_forecast_service": ("services.weather.forecast_service", "create_forecast_service"),
}


def __getattr__(name):
    if name not in _LAZY_EXPORTS:
        raise AttributeError(f"module 'services' has no attribute {name!r}")

    module_name, attr_name = _LAZY_EXPORTS[name]
    module = import_module(module_name)
    value = getattr(module, attr_name)
    globals()[name] = value
    return value
