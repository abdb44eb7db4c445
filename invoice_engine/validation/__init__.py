"""Invoice input validation package."""

from invoice_engine.validation.validator import InvoiceValidationError, InvoiceValidator

__all__ = ["InvoiceValidationError", "InvoiceValidator"]
