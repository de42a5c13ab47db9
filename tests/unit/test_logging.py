from __future__ import annotations

import json
import logging

from pbdecode.utils.logging import _json_formatter, configure_logging

EXPECTED_RECORDS = 10
EXPECTED_WORKERS = 4


def _record(msg: str = "hello") -> logging.LogRecord:
    return logging.LogRecord(
        name="test.logger",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )


def test_json_formatter_promotes_standard_extra_fields() -> None:
    record = _record()
    record.records = EXPECTED_RECORDS
    record.message_type = "pkg.Person"

    payload = json.loads(_json_formatter(record))

    assert payload["level"] == "INFO"
    assert payload["logger"] == "test.logger"
    assert payload["message"] == "hello"
    assert payload["records"] == EXPECTED_RECORDS
    assert payload["message_type"] == "pkg.Person"
    assert "lineno" not in payload


def test_json_formatter_supports_legacy_nested_extra_field() -> None:
    record = _record()
    record.extra = {"workers": EXPECTED_WORKERS}

    payload = json.loads(_json_formatter(record))

    assert payload["workers"] == EXPECTED_WORKERS


def test_json_formatter_stringifies_unknown_types() -> None:
    record = _record()
    record.path = object()

    payload = json.loads(_json_formatter(record))

    assert payload["path"].startswith("<object")


def test_configure_logging_sets_root_level() -> None:
    root = logging.getLogger()
    previous_level, previous_handlers = root.level, list(root.handlers)
    try:
        configure_logging(level="debug", json_logs=True)
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert root.handlers[0].formatter.__class__.__name__ == "JsonFormatter"
    finally:
        root.handlers = previous_handlers
        root.setLevel(previous_level)
