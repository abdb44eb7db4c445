"""
Data Models Package

This package contains all Pydantic models used by the invoice totals engine.
All data flowing into and out of the engine must conform to these schemas.
"""

from invoice_engine.models.invoice import (
    CalculationInput,
    CalculationResult,
    LineAmounts,
    LineItem,
    TaxBucket,
    ValidationIssue,
    ValidationResult,
)
from invoice_engine.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Invoice models
    "CalculationInput",
    "CalculationResult",
    "LineAmounts",
    "LineItem",
    "TaxBucket",
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
