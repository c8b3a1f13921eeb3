"""
Unit tests for logging setup and credential redaction.
"""

import json
import logging

import pytest

from app.core.logging_config import (
    REDACTED,
    AccountJsonFormatter,
    RedactingFilter,
    resolve_log_level,
)


def make_record(level=logging.INFO, **extra) -> logging.LogRecord:
    record = logging.LogRecord("app.test", level, __file__, 10, "Account API request: POST /x", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestRedactingFilter:

    def test_masks_sensitive_extra(self):
        record = make_record(verification_record_id="rec_1", password="hunter2", target="github")

        assert RedactingFilter().filter(record) is True
        assert record.verification_record_id == REDACTED
        assert record.password == REDACTED
        assert record.target == "github"

    def test_leaves_empty_values(self):
        record = make_record(verification_record_id=None)
        RedactingFilter().filter(record)
        assert record.verification_record_id is None


class TestJsonFormatter:

    def test_standard_fields(self):
        formatter = AccountJsonFormatter('%(timestamp)s %(level)s %(logger)s %(message)s')
        line = json.loads(formatter.format(make_record()))

        assert line["level"] == "INFO"
        assert line["logger"] == "app.test"
        assert line["timestamp"].endswith("Z")
        assert "line" not in line

    def test_location_for_warnings(self):
        formatter = AccountJsonFormatter('%(message)s')
        line = json.loads(formatter.format(make_record(logging.WARNING)))
        assert line["line"] == 10


@pytest.mark.parametrize("value,expected", [
    ("debug", logging.DEBUG),
    ("INFO", logging.INFO),
    ("warning", logging.WARNING),
    ("verbose", logging.INFO),
])
def test_resolve_log_level(value, expected):
    assert resolve_log_level(value) == expected
