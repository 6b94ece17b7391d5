"""Tests for the structured logging system (rental_kernel/logging_config.py)."""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from rental_kernel.domain.values import PaymentStatus
from rental_kernel.exceptions import LeaseNotFoundError
from rental_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


def _parse_log(stream: StringIO) -> dict:
    return _parse_all_logs(stream)[0]


# ---------------------------------------------------------------------------
# StructuredFormatter
# ---------------------------------------------------------------------------


class TestStructuredFormatter:
    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "rental_kernel.test"
        assert "ts" in record

    def test_extra_fields_and_domain_types(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        lease_id = uuid4()
        get_logger("test").info(
            "payment_recorded",
            extra={
                "lease_id_value": lease_id,
                "amount_paid": Decimal("700.00"),
                "due": date(2024, 6, 1),
                "payment_status": PaymentStatus.PARTIALLY_PAID,
                "count": 2,
            },
        )

        record = _parse_log(stream)
        assert record["lease_id_value"] == str(lease_id)
        assert record["amount_paid"] == "700.00"
        assert record["due"] == "2024-06-01"
        assert record["payment_status"] == "PartiallyPaid"
        assert record["count"] == 2

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(correlation_id="run-1", job_name="overdue_sweep")
        get_logger("test").info("job_step")

        record = _parse_log(stream)
        assert record["correlation_id"] == "run-1"
        assert record["job_name"] == "overdue_sweep"
        assert "actor_id" not in record

    def test_rental_exception_fields_extracted(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        lease_id = str(uuid4())
        try:
            raise LeaseNotFoundError(lease_id)
        except LeaseNotFoundError:
            get_logger("test").error("lookup_failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "LeaseNotFoundError"
        assert record["exc_code"] == "LEASE_NOT_FOUND"
        assert record["exc_lease_id"] == lease_id
        assert "traceback" in record

    def test_plain_exception(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise ValueError("boom")
        except ValueError:
            get_logger("test").exception("failed")

        record = _parse_log(stream)
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "exc_code" not in record

    def test_level_filtering(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second")
        logger.debug("hidden")

        assert [r["message"] for r in _parse_all_logs(stream)] == ["first", "second"]


# ---------------------------------------------------------------------------
# LogContext
# ---------------------------------------------------------------------------


class TestLogContext:
    def test_set_is_additive(self):
        LogContext.set(correlation_id="a")
        LogContext.set(actor_id="b")
        assert LogContext.get_all() == {"correlation_id": "a", "actor_id": "b"}

    def test_clear(self):
        LogContext.set(lease_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_restores_previous(self):
        LogContext.set(lease_id="outer")
        with LogContext.bind(lease_id="inner", job_name="monthly_payment_creation"):
            assert LogContext.get_all() == {"lease_id": "inner", "job_name": "monthly_payment_creation"}
        assert LogContext.get_all() == {"lease_id": "outer"}

    def test_bind_ignores_none_and_unknown(self):
        with LogContext.bind(actor_id=None, unknown_field="x"):
            assert LogContext.get_all() == {}


# ---------------------------------------------------------------------------
# configure_logging
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)
        assert logging.getLogger("rental_kernel").handlers == [h1]

    def test_level_by_name(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler, level="DEBUG")
        get_logger("batch.jobs").debug("verbose")
        assert _parse_log(stream)["logger"] == "rental_kernel.batch.jobs"

    def test_reset_allows_reconfigure(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        reset_logging()
        h2, stream = _make_handler()
        configure_logging(handler=h2)
        get_logger("api").info("after_reset")
        assert _parse_log(stream)["message"] == "after_reset"
