"""
Tests for the two-stage invoice validator
"""

from decimal import Decimal

import pytest

from invoice_engine.models.invoice import CalculationInput, LineItem
from invoice_engine.validation import InvoiceValidationError, InvoiceValidator


def stored_invoice(**overrides) -> dict:
    record = {
        "id": "inv-1",
        "number": "FAC-2026-001",
        "items": [
            {"description": "=== Design ===", "isSection": True, "quantity": 0},
            {"description": "Maquettes", "quantity": 2, "unit": "j", "unitPrice": "450", "taxRate": "20"},
            {"description": "Livre", "quantity": 1, "unit": "u", "unitPrice": "30", "taxRate": "5.5", "discount": "10"},
        ],
        "discount": 0,
        "shipping": 0,
        "deposit": 0,
    }
    record.update(overrides)
    return record


@pytest.fixture
def validator() -> InvoiceValidator:
    return InvoiceValidator()


def fields_with(result, severity):
    return {i.field for i in result.issues if i.severity == severity}


class TestSchemaStage:
    """Stage 1: types, limits, quantities."""

    def test_valid_stored_invoice(self, validator):
        """Test that a clean stored record passes both stages."""
        result = validator.validate(stored_invoice())
        assert result.schema_valid is True
        assert result.semantic_valid is True
        assert result.is_valid is True
        assert result.issues == []
        assert isinstance(result.calculation_input, CalculationInput)
        assert len(result.calculation_input.items) == 3

    def test_non_numeric_quantity(self, validator):
        """Test that a non-numeric value is a schema error on its row."""
        record = stored_invoice(items=[{"quantity": "deux", "unitPrice": "10"}])
        result = validator.validate(record)
        assert result.schema_valid is False
        assert result.semantic_valid is False
        assert result.calculation_input is None
        assert "items.0.quantity" in fields_with(result, "error")

    def test_nan_is_rejected(self, validator):
        """Test that NaN is caught before the engine."""
        result = validator.validate({"items": [{"quantity": 1, "unit_price": "NaN"}]})
        assert result.schema_valid is False
        assert result.has_errors

    def test_not_a_mapping(self, validator):
        """Test that a non-dict payload is reported at the root."""
        result = validator.validate("not an invoice")
        assert result.schema_valid is False
        assert "root" in fields_with(result, "error")

    def test_zero_quantity_on_billable_row(self, validator):
        """Test that billable rows need a positive quantity."""
        record = stored_invoice(items=[{"quantity": 0, "unitPrice": "10"}])
        result = validator.validate(record)
        assert result.schema_valid is False
        assert "items.0.quantity" in fields_with(result, "error")

    def test_zero_quantity_on_section_is_fine(self, validator):
        """Test that section rows are exempt from the quantity rule."""
        result = validator.validate(stored_invoice())
        assert "items.0.quantity" not in fields_with(result, "error")

    def test_too_many_items(self, monkeypatch):
        """Test the configurable row limit."""
        monkeypatch.setenv("INVOICE_MAX_LINE_ITEMS", "2")
        result = InvoiceValidator().validate(stored_invoice())
        assert result.schema_valid is False
        assert "items" in fields_with(result, "error")


class TestSemanticStage:
    """Stage 2: ranges and suspicious values."""

    def test_line_discount_out_of_range(self, validator):
        """Test that a line discount above 100% is an error."""
        record = stored_invoice(items=[{"quantity": 1, "unitPrice": "10", "discount": "150"}])
        result = validator.validate(record)
        assert result.schema_valid is True
        assert result.semantic_valid is False
        assert "items.0.line_discount_percent" in fields_with(result, "error")

    def test_negative_tax_rate(self, validator):
        """Test that a negative tax rate is an error."""
        record = stored_invoice(items=[{"quantity": 1, "unitPrice": "10", "taxRate": "-5"}])
        result = validator.validate(record)
        assert "items.0.tax_rate_percent" in fields_with(result, "error")

    def test_global_discount_out_of_range(self, validator):
        """Test that a negative global discount is an error."""
        result = validator.validate(stored_invoice(discount=-5))
        assert result.is_valid is False
        assert "global_discount_percent" in fields_with(result, "error")

    def test_negative_shipping_and_deposit(self, validator):
        """Test that shipping and deposit cannot be negative."""
        result = validator.validate(stored_invoice(shipping=-1, deposit=-1))
        errors = fields_with(result, "error")
        assert "shipping_amount" in errors
        assert "deposit_amount" in errors

    def test_negative_price_is_only_a_warning(self, validator):
        """Test that credit lines are allowed but flagged."""
        record = stored_invoice(items=[
            {"quantity": 1, "unitPrice": "100", "taxRate": "20"},
            {"quantity": 1, "unitPrice": "-40", "taxRate": "20"},
        ])
        result = validator.validate(record)
        assert result.is_valid is True
        assert "items.1.unit_price" in fields_with(result, "warning")
        assert len(result.warnings) == 1

    def test_no_billable_rows(self, validator):
        """Test that a sections-only invoice is flagged."""
        record = stored_invoice(items=[{"isSection": True}])
        result = validator.validate(record)
        assert result.is_valid is True
        assert "items" in fields_with(result, "warning")

    def test_deposit_above_total(self, validator):
        """Test that an oversized deposit is flagged, not rejected."""
        result = validator.validate(stored_invoice(deposit=5000))
        assert result.is_valid is True
        assert "deposit_amount" in fields_with(result, "warning")

    def test_total_above_threshold(self, validator):
        """Test the sanity ceiling on totals."""
        record = stored_invoice(items=[{"quantity": 1, "unitPrice": "2000000"}])
        result = validator.validate(record)
        assert result.is_valid is True
        assert "total" in fields_with(result, "warning")

    def test_semantic_skipped_when_schema_fails(self, validator):
        """Test that stage 2 does not run after a schema failure."""
        record = stored_invoice(
            items=[{"quantity": "x", "discount": "150"}],
        )
        result = validator.validate(record)
        assert "items.0.line_discount_percent" not in fields_with(result, "error")


class TestEntryPoints:
    """validate_or_raise, exemption override and summaries."""

    def test_exemption_override_on_dict(self, validator):
        """Test that the profile-level exemption flag wins."""
        result = validator.validate(stored_invoice(), is_tax_exempt=True)
        assert result.calculation_input.is_tax_exempt is True

    def test_exemption_override_on_model(self, validator):
        """Test the override on an already-built input."""
        calculation_input = CalculationInput(items=[LineItem(quantity=Decimal("1"))])
        result = validator.validate(calculation_input, is_tax_exempt=True)
        assert result.calculation_input.is_tax_exempt is True

    def test_validate_or_raise_returns_input(self, validator):
        """Test the happy path returns the parsed input."""
        calculation_input = validator.validate_or_raise(stored_invoice(shipping=15))
        assert calculation_input.shipping_amount == Decimal("15")

    def test_validate_or_raise_raises(self, validator):
        """Test that invalid input raises with the full result attached."""
        with pytest.raises(InvoiceValidationError, match="global_discount_percent") as exc_info:
            validator.validate_or_raise(stored_invoice(discount=120))
        assert exc_info.value.result.is_valid is False
        assert exc_info.value.result.error_count == 1

    def test_summary_all_clear(self, validator):
        """Test the summary for a clean invoice."""
        result = validator.validate(stored_invoice())
        assert validator.get_user_friendly_summary(result) == "✅ All checks passed."

    def test_summary_lists_errors_and_warnings(self, validator):
        """Test that the summary lists each problem."""
        record = stored_invoice(
            items=[
                {"quantity": 1, "unitPrice": "-10"},
                {"quantity": 1, "unitPrice": "10", "taxRate": "-1"},
            ],
        )
        summary = validator.get_user_friendly_summary(validator.validate(record))
        assert "cannot be totalled" in summary
        assert "items.1.tax_rate_percent" in summary
        assert "Please verify" in summary


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
