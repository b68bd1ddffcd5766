"""
Structured logging: JSON envelope, context propagation and the operation
lifecycle events emitted by the orchestrator.
"""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from inventory_kernel.exceptions import InsufficientStockError
from inventory_kernel.logging_config import LogContext, StructuredFormatter, get_logger


def _format(**extra):
    record = logging.LogRecord("inventory_kernel.test", logging.INFO, __file__, 1, "event_name", (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return json.loads(StructuredFormatter().format(record))


class TestStructuredFormatter:
    def test_envelope(self):
        payload = _format()
        assert payload["level"] == "INFO"
        assert payload["logger"] == "inventory_kernel.test"
        assert payload["message"] == "event_name"
        assert "ts" in payload

    def test_extra_values_serialized(self):
        item_id = uuid4()
        payload = _format(item_id=item_id, qty=Decimal("1.500"))
        assert payload["item_id"] == str(item_id)
        assert payload["qty"] == "1.500"

    def test_context_fields_included(self):
        with LogContext.bind(correlation_id="corr-1", operation="CONSUME"):
            payload = _format()
        assert payload["correlation_id"] == "corr-1"
        assert payload["operation"] == "CONSUME"
        assert "correlation_id" not in _format()

    def test_nested_bind_restores(self):
        with LogContext.bind(actor_id="outer"):
            with LogContext.bind(actor_id="inner"):
                assert LogContext.get_all()["actor_id"] == "inner"
            assert LogContext.get_all()["actor_id"] == "outer"
        assert "actor_id" not in LogContext.get_all()

    def test_kernel_error_fields(self):
        stream = StringIO()
        handler = logging.StreamHandler(stream)
        handler.setFormatter(StructuredFormatter())
        logger = get_logger("test.errors")
        logger.addHandler(handler)
        try:
            try:
                raise InsufficientStockError("loc", "item", None, Decimal("5"), Decimal("2"))
            except InsufficientStockError:
                logger.error("boom", exc_info=True)
        finally:
            logger.removeHandler(handler)
        payload = json.loads(stream.getvalue().strip().splitlines()[-1])
        assert payload["exc_type"] == "InsufficientStockError"
        assert payload["exc_code"] == "INSUFFICIENT_STOCK"
        assert "traceback" in payload


class TestOperationEvents:
    def test_completed_operation(self, orchestrator, store, plain_item, test_actor_id, captured_logs):
        result = orchestrator.receive(plain_item.id, store.id, Decimal("5"), "ea", test_actor_id)

        records = [r for r in captured_logs() if r.get("correlation_id") == result.correlation_id]
        messages = [r["message"] for r in records]
        assert messages[0] == "stock_operation_started"
        assert messages[-1] == "stock_operation_completed"
        assert records[-1]["operation"] == "RECEIPT"
        assert records[-1]["actor_id"] == str(test_actor_id)
        assert records[-1]["attempts"] == 1
        assert "duration_ms" in records[-1]

    def test_rejected_operation(self, orchestrator, store, plain_item, test_actor_id, captured_logs):
        with pytest.raises(InsufficientStockError):
            orchestrator.consume(plain_item.id, store.id, Decimal("1"), "ea", test_actor_id)

        (rejected,) = [r for r in captured_logs() if r["message"] == "stock_operation_rejected"]
        assert rejected["error_code"] == "INSUFFICIENT_STOCK"
        assert rejected["operation"] == "CONSUME"
        assert rejected["level"] == "INFO"

    def test_context_cleared_after_operation(self, orchestrator, store, plain_item, test_actor_id):
        orchestrator.receive(plain_item.id, store.id, Decimal("5"), "ea", test_actor_id)
        assert LogContext.get_all() == {}
