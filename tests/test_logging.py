"""Tests for the structured logging system (payroll_kernel/logging_config.py)."""

import json
import logging
from io import StringIO
from uuid import uuid4

import pytest

from payroll_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests, then restore the suite config."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_log(stream: StringIO) -> dict:
    """Parse the first JSON log line from a stream."""
    line = stream.getvalue().strip().split("\n")[0]
    return json.loads(line)


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


# ---------------------------------------------------------------------------
# StructuredFormatter tests
# ---------------------------------------------------------------------------


class TestStructuredFormatter:
    """Tests for JSON log output format."""

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "payroll_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("paid", extra={"seq": 42, "schedule": "Weekly"})

        record = _parse_log(stream)
        assert record["seq"] == 42
        assert record["schedule"] == "Weekly"

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        LogContext.set(correlation_id="abc-123", operation="pay_employee")
        logger.info("test_msg")

        record = _parse_log(stream)
        assert record["correlation_id"] == "abc-123"
        assert record["operation"] == "pay_employee"

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        try:
            raise ValueError("boom")
        except ValueError:
            logger.error("failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "traceback" in record

    def test_kernel_exception_code_extracted(self):
        """Kernel exceptions carry a .code attribute and structured fields."""
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        from payroll_kernel.exceptions import CapacityExceededError

        try:
            raise CapacityExceededError("ciphertext", 257, 256)
        except CapacityExceededError:
            logger.error("capacity_error", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "CAPACITY_EXCEEDED"
        assert record["exc_type"] == "CapacityExceededError"
        assert record["exc_field_name"] == "ciphertext"
        assert record["exc_size"] == 257
        assert record["exc_limit"] == 256

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("bare_message")

        record = _parse_log(stream)
        assert "correlation_id" not in record
        assert "payroll" not in record

    def test_uuid_and_bytes_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        uid = uuid4()
        logger.info("with_values", extra={"request_id": uid, "blob": b"\x01\xff"})

        record = _parse_log(stream)
        assert record["request_id"] == str(uid)
        assert record["blob"] == "01ff"

    def test_valid_json_every_line(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")

        logs = _parse_all_logs(stream)
        # Default level is INFO, so the debug line is dropped.
        assert len(logs) == 2
        for record in logs:
            assert "ts" in record
            assert "level" in record
            assert "logger" in record
            assert "message" in record


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:
    """Tests for context propagation."""

    def test_set_and_get(self):
        LogContext.set(correlation_id="x", actor_id="y")
        assert LogContext.get_all() == {"correlation_id": "x", "actor_id": "y"}

    def test_clear(self):
        LogContext.set(correlation_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_context_manager(self):
        LogContext.set(correlation_id="outer")
        with LogContext.bind(correlation_id="inner"):
            assert LogContext.get_all()["correlation_id"] == "inner"
        assert LogContext.get_all()["correlation_id"] == "outer"

    def test_bind_restores_none(self):
        """bind() restores to None if there was no previous value."""
        assert "payroll" not in LogContext.get_all()
        with LogContext.bind(payroll="p1"):
            assert LogContext.get_all()["payroll"] == "p1"
        assert "payroll" not in LogContext.get_all()

    def test_bind_ignores_unknown_fields(self):
        with LogContext.bind(not_a_field="x", employee="e1"):
            assert LogContext.get_all() == {"employee": "e1"}

    def test_all_fields(self):
        LogContext.set(
            correlation_id="c",
            actor_id="a",
            operation="o",
            payroll="p",
            employee="e",
        )
        ctx = LogContext.get_all()
        assert len(ctx) == 5
        assert ctx["operation"] == "o"
        assert ctx["employee"] == "e"


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    """Tests for initialization."""

    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)  # second call is no-op
        root = logging.getLogger("payroll_kernel")
        assert h1 in root.handlers
        assert h2 not in root.handlers

    def test_get_logger_returns_child(self):
        logger = get_logger("services.payroll")
        assert logger.name == "payroll_kernel.services.payroll"

    def test_logger_hierarchy(self):
        """Child loggers inherit the payroll_kernel root config."""
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        child = get_logger("deep.nested.module")
        child.debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["message"] == "hierarchy_test"
        assert record["logger"] == "payroll_kernel.deep.nested.module"


# ---------------------------------------------------------------------------
# Context fields emitted by the payroll operations
# ---------------------------------------------------------------------------


class TestPaymentLogContext:
    def test_pay_logs_payroll_and_employee(self, payroll_service, payroll, employee, bot):
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)

        payroll_service.pay_employee(bot, payroll, employee)

        records = _parse_all_logs(stream)
        paid = next(r for r in records if r["message"] == "employee_paid")
        assert paid["payroll"] == payroll.hex
        assert paid["employee"] == employee.hex
        assert paid["actor_id"] == bot.hex
        assert paid["operation"] == "pay_employee"

        processed = next(r for r in records if r["message"] == "instruction_processed")
        assert processed["correlation_id"] == paid["correlation_id"]
        assert "employee" not in processed
        assert LogContext.get_all() == {}
