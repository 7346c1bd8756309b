"""
Structured logging: JSON line format, request context, configuration.

Every test here installs its own in-memory handler.  The fixture restores
the suite-wide DEBUG configuration afterwards so that ``captured_logs`` keeps
working in the tests that run later.
"""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from ledger_kernel.domain.enums import DueItemStatus
from ledger_kernel.domain.money import MoneyAmount
from ledger_kernel.exceptions import InsufficientBalanceError, StudentNotFoundError
from ledger_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)
from tests.conftest import TENANT


@pytest.fixture
def json_lines():
    """
    Route ledger_kernel logs into a buffer; return a reader for its records.

    Usage::

        def test_x(json_lines):
            get_logger("x").info("event")
            assert json_lines()[0]["message"] == "event"
    """
    reset_logging()
    LogContext.clear()
    buffer = StringIO()
    sink = logging.StreamHandler(buffer)
    configure_logging(handler=sink)

    def _records() -> list[dict]:
        return [json.loads(line) for line in buffer.getvalue().splitlines() if line]

    yield _records

    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


@pytest.fixture
def ledger_log():
    return get_logger("tests.ledger")


class TestRecordShape:
    def test_core_keys(self, json_lines, ledger_log):
        ledger_log.info("receipt_printed")

        (record,) = json_lines()
        assert record["message"] == "receipt_printed"
        assert record["level"] == "INFO"
        assert record["logger"] == "ledger_kernel.tests.ledger"
        assert record["ts"].endswith("+00:00")

    def test_extra_becomes_top_level_keys(self, json_lines, ledger_log):
        ledger_log.info("dues_generated", extra={"created_dues": 3, "skipped": 1})

        record = json_lines()[0]
        assert (record["created_dues"], record["skipped"]) == (3, 1)

    def test_ledger_value_types_serialize(self, json_lines, ledger_log):
        receipt_id = uuid4()
        ledger_log.info(
            "payment_processed",
            extra={
                "receipt_id": receipt_id,
                "total": MoneyAmount("12.5"),
                "raw": Decimal("0.10"),
                "billed_on": date(2024, 3, 15),
                "status": DueItemStatus.PARTIAL,
            },
        )

        record = json_lines()[0]
        assert record["receipt_id"] == str(receipt_id)
        assert record["total"] == "12.50"
        assert record["raw"] == "0.10"
        assert record["billed_on"] == "2024-03-15"
        assert record["status"] == "PARTIAL"

    def test_default_level_drops_debug(self, json_lines, ledger_log):
        ledger_log.debug("uow_started")
        ledger_log.info("dues_up_to_date")
        ledger_log.warning("withdrawal_rejected")

        assert [r["message"] for r in json_lines()] == ["dues_up_to_date", "withdrawal_rejected"]


class TestExceptionRecords:
    def test_plain_exception(self, json_lines, ledger_log):
        try:
            raise KeyError("missing")
        except KeyError:
            ledger_log.error("lookup_failed", exc_info=True)

        record = json_lines()[0]
        assert record["exc_type"] == "KeyError"
        assert "Traceback" in record["traceback"]
        assert "exc_code" not in record

    def test_ledger_error_fields(self, json_lines, ledger_log):
        try:
            raise InsufficientBalanceError("acc-1", "Main Cash", Decimal("1000.00"), Decimal("800.00"))
        except InsufficientBalanceError:
            ledger_log.warning("withdrawal_rejected", exc_info=True)

        record = json_lines()[0]
        assert record["exc_code"] == "INSUFFICIENT_BALANCE"
        assert record["exc_account_title"] == "Main Cash"
        assert (record["exc_requested"], record["exc_available"]) == ("1000.00", "800.00")

    def test_not_found_code(self, json_lines, ledger_log):
        try:
            raise StudentNotFoundError("s-1")
        except StudentNotFoundError:
            ledger_log.error("generation_failed", exc_info=True)

        assert json_lines()[0]["exc_code"] == "NOT_FOUND"


class TestLogContext:
    def test_context_merged_into_records(self, json_lines, ledger_log):
        LogContext.set(tenant_id=TENANT, actor="cashier")
        ledger_log.info("deposit_recorded")

        record = json_lines()[0]
        assert record["tenant_id"] == TENANT
        assert record["actor"] == "cashier"
        assert "student_id" not in record

    def test_set_skips_none(self):
        LogContext.clear()
        LogContext.set(tenant_id="t", student_id=None)
        assert LogContext.get_all() == {"tenant_id": "t"}
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_nests_and_restores(self):
        LogContext.clear()
        with LogContext.bind(tenant_id="outer"):
            with LogContext.bind(tenant_id="inner", receipt_id="r-1"):
                assert LogContext.get_all() == {"tenant_id": "inner", "receipt_id": "r-1"}
            assert LogContext.get_all() == {"tenant_id": "outer"}
        assert LogContext.get_all() == {}

    def test_bind_restores_after_error(self):
        LogContext.clear()
        with pytest.raises(RuntimeError):
            with LogContext.bind(actor="cli"):
                raise RuntimeError("boom")
        assert LogContext.get_all() == {}

    def test_bind_stringifies_and_ignores_unknown(self):
        LogContext.clear()
        student = uuid4()
        with LogContext.bind(student_id=student, shoe_size="42"):
            assert LogContext.get_all() == {"student_id": str(student)}


class TestConfiguration:
    def test_second_configure_is_ignored(self, json_lines):
        configure_logging(handler=logging.StreamHandler(StringIO()))
        structured = [
            h
            for h in logging.getLogger("ledger_kernel").handlers
            if isinstance(h.formatter, StructuredFormatter)
        ]
        assert len(structured) == 1

    def test_namespace(self):
        assert get_logger("services.payment").name == "ledger_kernel.services.payment"

    def test_records_do_not_reach_root(self, json_lines):
        root_buffer = StringIO()
        root_handler = logging.StreamHandler(root_buffer)
        logging.getLogger().addHandler(root_handler)
        try:
            get_logger("services.cache").warning("cache_invalidation_failed")
        finally:
            logging.getLogger().removeHandler(root_handler)

        assert json_lines()
        assert logging.getLogger("ledger_kernel").propagate is False
        assert root_buffer.getvalue() == ""


class TestEngineEvents:
    def test_generation_logs_with_bound_context(self, json_lines, generation_engine, student):
        generation_engine.generate_for_student(
            student.id, TENANT, date(2024, 1, 1), date(2024, 2, 28)
        )

        generated = next(r for r in json_lines() if r["message"] == "dues_generated")
        assert generated["created_dues"] == 2
        assert generated["tenant_id"] == TENANT
        assert generated["student_id"] == str(student.id)
