"""Tests for JSON logging and correlation IDs."""

import json
import logging
import sys

from zonare.observability.logging import (
    CorrelationIdFilter,
    JSONFormatter,
    bind_correlation_id,
    correlation_id,
    get_correlation_id,
    setup_logging,
)


def _record(msg="hello %s", args=("world",), exc_info=None, **extra) -> logging.LogRecord:
    record = logging.LogRecord("zonare.test", logging.INFO, __file__, 1, msg, args, exc_info)
    for key, val in extra.items():
        setattr(record, key, val)
    return record


class TestJSONFormatter:
    def test_basic_fields(self):
        entry = json.loads(JSONFormatter().format(_record()))
        assert entry["level"] == "INFO"
        assert entry["logger"] == "zonare.test"
        assert entry["message"] == "hello world"
        assert "timestamp" in entry
        assert "correlation_id" not in entry

    def test_correlation_id_included(self):
        token = correlation_id.set("req-123")
        try:
            entry = json.loads(JSONFormatter().format(_record()))
            assert get_correlation_id() == "req-123"
        finally:
            correlation_id.reset(token)
        assert entry["correlation_id"] == "req-123"

    def test_extra_fields(self):
        entry = json.loads(JSONFormatter().format(_record(city="cluj-napoca", zone_code="L1a", unrelated="x")))
        assert entry["city"] == "cluj-napoca"
        assert entry["zone_code"] == "L1a"
        assert "unrelated" not in entry

    def test_non_ascii_kept(self):
        output = JSONFormatter().format(_record(msg="Zona %s", args=("Brașov",)))
        assert "Brașov" in output

    def test_exception_included(self):
        try:
            raise RuntimeError("portal down")
        except RuntimeError:
            exc_info = sys.exc_info()
        entry = json.loads(JSONFormatter().format(_record(exc_info=exc_info)))
        assert "RuntimeError: portal down" in entry["exception"]


class TestSetupLogging:
    def test_json_handler_installed(self):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            setup_logging(json_format=True, level="debug")
            assert root.level == logging.DEBUG
            assert len(root.handlers) == 1
            assert isinstance(root.handlers[0].formatter, JSONFormatter)
            assert logging.getLogger("httpx").level == logging.WARNING
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)

    def test_text_handler(self):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            setup_logging(json_format=False, level="WARNING")
            assert not isinstance(root.handlers[0].formatter, JSONFormatter)
            assert root.level == logging.WARNING
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)


class TestBindCorrelationId:
    def test_explicit_id_bound_and_reset(self):
        with bind_correlation_id("req-7") as cid:
            assert cid == "req-7"
            assert get_correlation_id() == "req-7"
        assert get_correlation_id() == ""

    def test_generates_id_when_missing(self):
        with bind_correlation_id(None) as cid:
            assert cid
            assert get_correlation_id() == cid

    def test_filter_stamps_records(self):
        record = _record()
        CorrelationIdFilter().filter(record)
        assert record.correlation_id == "-"

        with bind_correlation_id("req-9"):
            CorrelationIdFilter().filter(record)
        assert record.correlation_id == "req-9"
