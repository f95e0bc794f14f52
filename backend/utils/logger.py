import logging
import sys
import json
from typing import Any, Optional
from pathlib import Path

from utils.clock import utc_isoformat, utcnow


class JSONFormatter(logging.Formatter):
    """One JSON object per line; structured fields go under ``data``."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": utc_isoformat(utcnow()),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if getattr(record, "extra_data", None):
            log_data["data"] = record.extra_data

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Provider payload fragments may hold datetimes or other non-JSON types.
        return json.dumps(log_data, default=str)


class ContextLogger:
    """``logging.Logger`` wrapper taking structured fields as keyword arguments.

    ``logger.info("Forecast outcome", key=..., provider=...)`` attaches the
    keywords as ``record.extra_data``. ``with_context`` returns a child that
    stamps the same fields on every record, e.g. a provider name.
    """

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)
        self._context: dict[str, Any] = {}

    def with_context(self, **kwargs) -> "ContextLogger":
        child = ContextLogger(self.logger.name)
        child._context = {**self._context, **kwargs}
        return child

    def _log(self, level: int, msg: str, *args: Any, **kwargs: Any):
        exc_info = kwargs.pop("exc_info", None)
        stack_info = kwargs.pop("stack_info", False)
        stacklevel = kwargs.pop("stacklevel", 1)
        extra = kwargs.pop("extra", None)

        try:
            stacklevel_int = max(1, int(stacklevel))
        except (TypeError, ValueError):
            stacklevel_int = 1

        fields: dict[str, Any] = dict(self._context)
        if isinstance(extra, dict):
            fields.update(extra)
        elif extra is not None:
            fields["extra"] = extra
        fields.update(kwargs)

        self.logger.log(
            level,
            msg,
            *args,
            exc_info=exc_info,
            stack_info=stack_info,
            stacklevel=stacklevel_int + 2,  # report the caller, not this wrapper
            extra={"extra_data": fields or None},
        )

    def debug(self, msg: str, *args: Any, **kwargs: Any):
        self._log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any):
        self._log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args: Any, **kwargs: Any):
        self._log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args: Any, **kwargs: Any):
        self._log(logging.ERROR, msg, *args, **kwargs)

    def exception(self, msg: str, *args: Any, **kwargs: Any):
        kwargs.setdefault("exc_info", True)
        self._log(logging.ERROR, msg, *args, **kwargs)


def setup_logging(level: str = "INFO", json_format: bool = True, log_file: Optional[str] = None):
    """Install root handlers for the forecast layer.

    Driven by ``LOG_LEVEL`` / ``LOG_JSON`` through ``create_forecast_service``.
    Unknown level names fall back to INFO.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    root_logger.handlers = []

    console_handler = logging.StreamHandler(sys.stdout)
    if json_format:
        console_handler.setFormatter(JSONFormatter())
    else:
        console_handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(JSONFormatter())
        root_logger.addHandler(file_handler)

    # httpx logs every request at INFO; the outcome records already carry status and latency.
    for noisy in ("httpx", "httpcore", "asyncio"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> ContextLogger:
    return ContextLogger(name)


# Outcome records (one per lookup) and per-attempt provider chatter.
forecast_logger = get_logger("weather.forecast")
provider_logger = get_logger("weather.provider")
