from __future__ import annotations

import json
import logging

from cloudkit.common.logging import JsonFormatter, setup_logging


def _record(**kwargs) -> logging.LogRecord:
    record = logging.LogRecord(
        name="storage",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="bucket_created bucket=%s",
        args=("b1",),
        exc_info=None,
    )
    for key, value in kwargs.items():
        setattr(record, key, value)
    return record


def test_json_formatter_merges_extra_payload():
    line = JsonFormatter().format(_record(extra={"bucket": "b1", "parts": 3}))

    assert json.loads(line) == {
        "level": "INFO",
        "logger": "storage",
        "message": "bucket_created bucket=b1",
        "bucket": "b1",
        "parts": 3,
    }


def test_json_formatter_ignores_non_dict_extra():
    payload = json.loads(JsonFormatter().format(_record(extra="nope")))

    assert "extra" not in payload


def test_setup_logging_applies_level_and_format():
    setup_logging("DEBUG", "plain")
    root = logging.getLogger()

    assert root.level == logging.DEBUG
    assert not isinstance(root.handlers[0].formatter, JsonFormatter)

    setup_logging("INFO", "json")

    assert isinstance(logging.getLogger().handlers[0].formatter, JsonFormatter)
    assert logging.getLogger("cloudkit.startup").propagate is False


def test_setup_logging_defaults_to_settings(monkeypatch):
    monkeypatch.setenv("STORAGE_BACKEND", "memory")
    monkeypatch.setenv("LOG_LEVEL", "warning")

    setup_logging()

    assert logging.getLogger().level == logging.WARNING
