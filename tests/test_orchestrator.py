"""
Tests for the totals flow and the audit logger

Async flows are driven with asyncio.run against the in-memory audit store.
"""

import asyncio
from decimal import Decimal

import pytest

from invoice_engine.audit import AuditLogger, create_correlation_id
from invoice_engine.models.audit import AuditEvent, AuditEventType
from invoice_engine.orchestrator import InvoiceTotalsFlow, create_app_components
from invoice_engine.services.storage import InMemoryAuditStorage, StorageError
from invoice_engine.validation import InvoiceValidationError


INVOICE = {
    "items": [
        {"description": "=== Lot 1 ===", "isSection": True},
        {"description": "Prestation", "quantity": 1, "unitPrice": "100", "taxRate": "20"},
    ],
    "discount": 10,
    "shipping": 15,
    "deposit": 30,
}


class FailingAuditStorage(InMemoryAuditStorage):
    async def append_event(self, event: AuditEvent) -> bool:
        raise StorageError("audit store unavailable")


@pytest.fixture
def storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def flow(storage) -> InvoiceTotalsFlow:
    return InvoiceTotalsFlow(audit_logger=AuditLogger(storage))


class TestInvoiceTotalsFlow:
    """Tests for validate → calculate → audit."""

    def test_compute_totals(self, flow):
        """Test the full flow on a stored invoice record."""
        result, validation = asyncio.run(flow.compute_totals(INVOICE))
        assert validation.is_valid is True
        assert result.final_pre_tax == Decimal("90")
        assert result.tax_amount == Decimal("18")
        assert result.total == Decimal("123")
        assert result.balance_due == Decimal("93")

    def test_exemption_from_profile(self, flow):
        """Test that the caller-supplied exemption applies."""
        result, _ = asyncio.run(flow.compute_totals(INVOICE, is_tax_exempt=True))
        assert result.tax_amount == 0
        assert result.total == result.final_pre_tax + Decimal("15")

    def test_audit_events_share_correlation_id(self, flow, storage):
        """Test that validation and totals events are recorded together."""
        correlation_id = create_correlation_id()
        asyncio.run(flow.compute_totals(INVOICE, correlation_id=correlation_id))

        events = asyncio.run(storage.get_events_by_correlation_id(correlation_id))
        assert [e.event_type for e in events] == [
            AuditEventType.INVOICE_VALIDATION_PASSED,
            AuditEventType.TOTALS_CALCULATED,
        ]
        totals_event = events[1]
        assert totals_event.details["totals"]["total"] == "123.00"
        assert totals_event.details["line_count"] == 2
        assert totals_event.details["currency"] == "EUR"

    def test_invalid_payload_raises_and_is_audited(self, flow, storage):
        """Test that invalid input stops before the engine."""
        correlation_id = create_correlation_id()
        bad = {**INVOICE, "discount": 150}

        with pytest.raises(InvoiceValidationError):
            asyncio.run(flow.compute_totals(bad, correlation_id=correlation_id))

        events = asyncio.run(storage.get_events_by_correlation_id(correlation_id))
        assert len(events) == 1
        assert events[0].event_type == AuditEventType.INVOICE_VALIDATION_FAILED
        assert events[0].details["stage"] == "semantic"

    def test_audit_failure_does_not_block(self):
        """Test that a broken audit store never fails a calculation."""
        flow = InvoiceTotalsFlow(audit_logger=AuditLogger(FailingAuditStorage()))
        result, _ = asyncio.run(flow.compute_totals(INVOICE))
        assert result.total == Decimal("123")

    def test_without_audit_logger(self):
        """Test that auditing is optional."""
        result, _ = asyncio.run(InvoiceTotalsFlow().compute_totals(INVOICE))
        assert result.total == Decimal("123")

    def test_preview_lines(self, flow):
        """Test per-row figures aligned with the payload rows."""
        rows = flow.preview_lines(INVOICE)
        assert rows[0] is None
        assert rows[1].net == Decimal("100")
        assert rows[1].tax == Decimal("20")

    def test_preview_lines_rejects_invalid(self, flow):
        """Test that previews also refuse invalid rows."""
        with pytest.raises(InvoiceValidationError):
            flow.preview_lines({"items": [{"quantity": -1, "unitPrice": "5"}]})


class TestAuditLogger:
    """Tests for the audit logger."""

    def test_log_without_storage(self):
        """Test local-only logging reports success."""
        logger = AuditLogger()
        event = AuditEvent(event_type=AuditEventType.SYSTEM_ERROR, description="boom")
        assert asyncio.run(logger.log(event)) is True

    def test_log_storage_failure_returns_false(self):
        """Test that storage errors are contained."""
        logger = AuditLogger(FailingAuditStorage())
        event = AuditEvent(event_type=AuditEventType.TOTALS_CALCULATED, description="ok")
        assert asyncio.run(logger.log(event)) is False

    def test_log_error(self, storage):
        """Test the system error helper."""
        logger = AuditLogger(storage)
        asyncio.run(logger.log_error("engine", "unexpected", details={"k": "v"}))
        events = asyncio.run(storage.get_recent_events(limit=1))
        assert events[0].event_type == AuditEventType.SYSTEM_ERROR
        assert events[0].error_message == "unexpected"


class TestFactory:
    """Tests for create_app_components."""

    def test_with_storage(self):
        """Test that storage-backed components share the store."""
        flow, storage = create_app_components(use_storage=True)
        assert isinstance(storage, InMemoryAuditStorage)
        asyncio.run(flow.compute_totals(INVOICE))
        assert len(asyncio.run(storage.get_recent_events())) == 2

    def test_without_storage(self):
        """Test local-only components."""
        flow, storage = create_app_components()
        assert storage is None
        result, _ = asyncio.run(flow.compute_totals(INVOICE))
        assert result.balance_due == Decimal("93")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
