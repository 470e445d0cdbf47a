"""Structured JSON logging: formatter output, LogContext binding, configuration."""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from assessment_kernel.exceptions import InvalidLineItemError
from assessment_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _fresh_logging():
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


@pytest.fixture
def emitted():
    """Configure logging into a buffer; calling the fixture returns parsed lines."""
    buffer = StringIO()
    sink = logging.StreamHandler(buffer)
    sink.setFormatter(StructuredFormatter())
    configure_logging(handler=sink)
    return lambda: [json.loads(raw) for raw in buffer.getvalue().splitlines() if raw]


class TestStructuredFormatter:

    def test_base_fields(self, emitted):
        get_logger("services.financials").info("estimate_finalized")

        (record,) = emitted()
        assert record["level"] == "INFO"
        assert record["message"] == "estimate_finalized"
        assert record["logger"] == "assessment_kernel.services.financials"
        assert "ts" in record

    def test_extras_become_top_level_keys(self, emitted):
        get_logger("engines").info("line_priced", extra={"line_total": "15625.00", "process_type": "N"})

        (record,) = emitted()
        assert record["line_total"] == "15625.00"
        assert record["process_type"] == "N"

    def test_bound_context_merged(self, emitted):
        LogContext.set(correlation_id="claim-77", estimate_id="est-456")
        get_logger("modules").info("line_added")

        (record,) = emitted()
        assert record["correlation_id"] == "claim-77"
        assert record["estimate_id"] == "est-456"

    def test_unbound_context_omitted(self, emitted):
        get_logger("modules").info("line_added")

        (record,) = emitted()
        assert not {"correlation_id", "estimate_id", "actor_id"} & set(record)

    def test_plain_exception(self, emitted):
        try:
            raise ValueError("rate set missing")
        except ValueError:
            get_logger("services").error("quote_failed", exc_info=True)

        (record,) = emitted()
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "rate set missing"
        assert "Traceback" in record["traceback"]

    def test_kernel_exception_attributes_flattened(self, emitted):
        try:
            raise InvalidLineItemError(field="labour_hours", process_type="R", value=None)
        except InvalidLineItemError:
            get_logger("modules").error("line_rejected", exc_info=True)

        (record,) = emitted()
        assert record["exc_code"] == "INVALID_LINE_ITEM"
        assert record["exc_type"] == "InvalidLineItemError"
        assert record["exc_field"] == "labour_hours"
        assert record["exc_process_type"] == "R"

    def test_uuid_and_decimal_rendered_as_strings(self, emitted):
        line_id = uuid4()
        get_logger("modules").info("line_removed", extra={"line_id": line_id, "amount": Decimal("12.50")})

        (record,) = emitted()
        assert record["line_id"] == str(line_id)
        assert record["amount"] == "12.50"

    def test_debug_suppressed_at_default_level(self, emitted):
        log = get_logger("engines")
        log.info("costing_started")
        log.warning("markup_defaulted", extra={"part_type": "oem"})
        log.debug("intermediate_sum")

        assert [r["message"] for r in emitted()] == ["costing_started", "markup_defaulted"]


class TestLogContext:

    def test_set_then_read(self):
        LogContext.set(correlation_id="x", ledger_id="y")

        assert LogContext.get_all() == {"correlation_id": "x", "ledger_id": "y"}

    def test_set_accumulates(self):
        LogContext.set(correlation_id="claim-1")
        LogContext.set(actor_id="assessor-9")

        assert LogContext.get_all() == {"correlation_id": "claim-1", "actor_id": "assessor-9"}

    def test_none_leaves_value(self):
        LogContext.set(frc_id="frc-1")
        LogContext.set(frc_id=None)

        assert LogContext.get_all()["frc_id"] == "frc-1"

    def test_clear_empties_everything(self):
        LogContext.set(
            correlation_id="c", actor_id="a", estimate_id="e",
            ledger_id="l", frc_id="f", trace_id="t",
        )
        assert len(LogContext.get_all()) == 6

        LogContext.clear()

        assert LogContext.get_all() == {}

    def test_bind_restores_outer_value(self):
        LogContext.set(frc_id="outer")
        with LogContext.bind(frc_id="inner"):
            assert LogContext.get_all()["frc_id"] == "inner"

        assert LogContext.get_all()["frc_id"] == "outer"

    def test_bind_restores_absence(self):
        with LogContext.bind(estimate_id="temp"):
            assert LogContext.get_all()["estimate_id"] == "temp"

        assert "estimate_id" not in LogContext.get_all()

    def test_bind_restores_after_error(self):
        with pytest.raises(RuntimeError):
            with LogContext.bind(actor_id="assessor-001"):
                raise RuntimeError

        assert "actor_id" not in LogContext.get_all()

    def test_ids_stringified(self):
        estimate_id = uuid4()
        with LogContext.bind(estimate_id=estimate_id):
            assert LogContext.get_all()["estimate_id"] == str(estimate_id)

    def test_unknown_field_rejected(self):
        with pytest.raises(ValueError):
            LogContext.set(event_id="x")


class TestConfigureLogging:

    def test_second_call_is_ignored(self):
        configure_logging(handler=logging.StreamHandler(StringIO()))
        configure_logging(handler=logging.StreamHandler(StringIO()))

        assert len(logging.getLogger("assessment_kernel").handlers) == 1

    def test_get_logger_namespaced(self):
        assert get_logger("db.engine").name == "assessment_kernel.db.engine"

    def test_nested_logger_reaches_handler(self):
        buffer = StringIO()
        sink = logging.StreamHandler(buffer)
        configure_logging(handler=sink, level=logging.DEBUG)

        get_logger("modules.frc.reconciliation").debug("line_decided")

        record = json.loads(buffer.getvalue())
        assert record["logger"] == "assessment_kernel.modules.frc.reconciliation"
        assert record["message"] == "line_decided"

    def test_reset_restores_propagation(self):
        configure_logging(handler=logging.StreamHandler(StringIO()))
        reset_logging()

        root = logging.getLogger("assessment_kernel")
        assert root.handlers == []
        assert root.propagate is True
