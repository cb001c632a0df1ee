"""Tests for the structured logging system (stock_kernel/logging_config.py)."""

import contextvars
import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from stock_kernel.exceptions import InsufficientStockError, WarehouseNotFoundError
from stock_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()


@pytest.fixture
def emitted():
    """Configure JSON logging into a buffer; calling the fixture returns parsed lines."""
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    configure_logging(handler=handler, level=logging.DEBUG)

    def _records() -> list[dict]:
        return [json.loads(line) for line in stream.getvalue().splitlines() if line]

    return _records


class TestStructuredFormatter:

    def test_envelope(self, emitted):
        get_logger("services.ledger").info("movement_appended")

        (record,) = emitted()
        assert record["level"] == "INFO"
        assert record["message"] == "movement_appended"
        assert record["logger"] == "stock_kernel.services.ledger"
        assert record["ts"].endswith("+00:00")

    def test_extra_fields_and_value_types(self, emitted):
        movement_id = uuid4()
        get_logger("test").info(
            "movement_appended",
            extra={"movement_id": movement_id, "seq": 42, "quantity": Decimal("2.50")},
        )

        (record,) = emitted()
        assert record["movement_id"] == str(movement_id)
        assert record["seq"] == 42
        assert record["quantity"] == "2.50"

    def test_context_merged_into_every_record(self, emitted):
        LogContext.set(correlation_id="abc-123", transfer_number="TRF000001")
        logger = get_logger("modules.transfers")
        logger.info("transfer_approved")
        logger.warning("transfer_dispatched")

        for record in emitted():
            assert record["correlation_id"] == "abc-123"
            assert record["transfer_number"] == "TRF000001"

    def test_no_context_keys_when_empty(self, emitted):
        get_logger("test").info("bare")

        (record,) = emitted()
        assert "correlation_id" not in record
        assert "reference_number" not in record

    def test_plain_exception(self, emitted):
        try:
            raise ValueError("boom")
        except ValueError:
            get_logger("test").error("failed", exc_info=True)

        (record,) = emitted()
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "exc_code" not in record
        assert "Traceback" in record["traceback"]

    def test_stock_error_fields_extracted(self, emitted):
        try:
            raise InsufficientStockError("Wheat", Decimal("10"), Decimal("15"))
        except InsufficientStockError:
            get_logger("test").error("transfer_failed", exc_info=True)

        (record,) = emitted()
        assert record["exc_code"] == "INSUFFICIENT_STOCK"
        assert record["exc_type"] == "InsufficientStockError"
        assert record["exc_item"] == "Wheat"
        assert record["exc_available"] == "10"
        assert record["exc_requested"] == "15"

    def test_not_found_error_fields(self, emitted):
        missing = uuid4()
        try:
            raise WarehouseNotFoundError(missing)
        except WarehouseNotFoundError:
            get_logger("test").warning("lookup_failed", exc_info=True)

        (record,) = emitted()
        assert record["exc_code"] == "NOT_FOUND"
        assert record["exc_entity_id"] == str(missing)

    def test_level_filtering(self):
        stream = StringIO()
        configure_logging(handler=logging.StreamHandler(stream))
        logger = get_logger("test")
        logger.debug("dropped")
        logger.info("kept")

        lines = [json.loads(line) for line in stream.getvalue().splitlines()]
        assert [line["message"] for line in lines] == ["kept"]

    def test_formatter_standalone(self):
        record = logging.LogRecord("stock_kernel.x", logging.INFO, __file__, 1, "hello %s", ("world",), None)
        payload = json.loads(StructuredFormatter().format(record))
        assert payload["message"] == "hello world"


class TestLogContext:

    def test_set_and_get(self):
        LogContext.set(correlation_id="x", reference_number="BP-1")
        assert LogContext.get_all() == {"correlation_id": "x", "reference_number": "BP-1"}

    def test_set_is_additive(self):
        LogContext.set(correlation_id="a")
        LogContext.set(actor_id="b", correlation_id=None)
        assert LogContext.get_all() == {"correlation_id": "a", "actor_id": "b"}

    def test_clear(self):
        LogContext.set(correlation_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_overrides_then_restores(self):
        LogContext.set(correlation_id="outer")
        with LogContext.bind(correlation_id="inner", reference_number="PROD-PB-1"):
            assert LogContext.get_all() == {
                "correlation_id": "inner",
                "reference_number": "PROD-PB-1",
            }
        assert LogContext.get_all() == {"correlation_id": "outer"}

    def test_bind_restores_after_exception(self):
        with pytest.raises(RuntimeError):
            with LogContext.bind(transfer_number="TRF000009"):
                raise RuntimeError("dispatch failed")
        assert "transfer_number" not in LogContext.get_all()

    def test_bind_stringifies_and_skips_none(self):
        uid = uuid4()
        with LogContext.bind(actor_id=uid, inventory_item_id=None):
            ctx = LogContext.get_all()
        assert ctx == {"actor_id": str(uid)}

    def test_unknown_field_rejected(self):
        with pytest.raises(TypeError, match="warehouse_colour"):
            LogContext.set(warehouse_colour="red")

    def test_isolated_per_context(self):
        LogContext.set(actor_id="main")

        def _inside():
            LogContext.set(actor_id="copy")
            return LogContext.get_all()

        assert contextvars.copy_context().run(_inside) == {"actor_id": "copy"}
        assert LogContext.get_all() == {"actor_id": "main"}


class TestConfigureLogging:

    def test_idempotent(self):
        configure_logging(handler=logging.StreamHandler(StringIO()))
        configure_logging(handler=logging.StreamHandler(StringIO()))
        assert len(logging.getLogger("stock_kernel").handlers) == 1

    def test_does_not_propagate(self):
        configure_logging(handler=logging.StreamHandler(StringIO()))
        assert logging.getLogger("stock_kernel").propagate is False

    def test_reset_allows_reconfigure(self):
        configure_logging(handler=logging.StreamHandler(StringIO()))
        reset_logging()
        assert logging.getLogger("stock_kernel").handlers == []
        configure_logging(handler=logging.StreamHandler(StringIO()))
        assert len(logging.getLogger("stock_kernel").handlers) == 1

    def test_child_loggers_share_handler(self, emitted):
        get_logger("modules.transfers.service").debug("hierarchy_test")

        (record,) = emitted()
        assert record["logger"] == "stock_kernel.modules.transfers.service"
