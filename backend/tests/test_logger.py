import json
import logging
import sys
from pathlib import Path

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from utils.logger import JSONFormatter, get_logger, setup_logging  # noqa: E402


def test_context_logger_attaches_structured_fields(caplog):
    logger = get_logger("weather.test").with_context(provider="open_meteo")
    with caplog.at_level(logging.INFO, logger="weather.test"):
        logger.info("Forecast outcome", key="k", status_code=200)

    record = caplog.records[-1]
    assert record.getMessage() == "Forecast outcome"
    assert record.extra_data == {"provider": "open_meteo", "key": "k", "status_code": 200}

    payload = json.loads(JSONFormatter().format(record))
    assert payload["level"] == "INFO"
    assert payload["logger"] == "weather.test"
    assert payload["data"]["key"] == "k"
    assert payload["timestamp"].endswith("Z")


def test_setup_logging_quiets_http_client():
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        setup_logging(level="DEBUG", json_format=False)
        assert root.level == logging.DEBUG
        assert logging.getLogger("httpx").level == logging.WARNING
    finally:
        root.handlers = saved_handlers
        root.setLevel(saved_level)
