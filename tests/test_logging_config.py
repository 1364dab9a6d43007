import json
import logging

from fence_pricing.logging_config import JSONFormatter, setup_logging


def test_json_formatter_includes_resolution_fields():
    record = logging.LogRecord("fence_pricing.engine", logging.INFO, __file__, 1, "Resolved %s", ("S1",), None)
    record.sku_id = "S1"
    record.tier = "catalog"
    entry = json.loads(JSONFormatter().format(record))
    assert entry["message"] == "Resolved S1"
    assert entry["level"] == "INFO"
    assert entry["sku_id"] == "S1"
    assert entry["tier"] == "catalog"


def test_setup_logging_quiets_http_clients():
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        setup_logging("debug", json_output=True)
        assert root.level == logging.DEBUG
        assert isinstance(root.handlers[0].formatter, JSONFormatter)
        assert logging.getLogger("httpx").level == logging.WARNING
    finally:
        root.handlers = saved_handlers
        root.setLevel(saved_level)
