"""
Main Orchestrator for the Invoice Totals Engine

This module ties the components together and defines the end-to-end
totals flow:
    raw invoice payload → validate → calculate → audit → result

DESIGN DECISION: The orchestrator enforces the boundaries:
- The engine only ever sees validated, well-typed input
- The engine itself never logs; every calculation is audited here
- Audit failures never block a calculation
"""

from typing import Any, Optional
from uuid import UUID

from invoice_engine.audit import AuditLogger, create_correlation_id
from invoice_engine.calculations import calculate, compute_line_amounts
from invoice_engine.config import get_settings
from invoice_engine.models.invoice import (
    CalculationResult,
    LineAmounts,
    ValidationResult,
)
from invoice_engine.services.storage import AuditStorageInterface, InMemoryAuditStorage
from invoice_engine.validation import InvoiceValidationError, InvoiceValidator


class InvoiceTotalsFlow:
    """
    Orchestrates the invoice totals flow.

    Flow:
    1. Validate → Two-stage validation of the raw payload
    2. Calculate → Pure engine call on the parsed input
    3. Audit → Record the request and its totals

    Invalid input stops at step 1 with InvoiceValidationError.
    """

    def __init__(
        self,
        validator: Optional[InvoiceValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._validator = validator or InvoiceValidator()
        self._audit_logger = audit_logger
        self._currency = get_settings().app.currency

    async def compute_totals(
        self,
        payload: Any,
        is_tax_exempt: Optional[bool] = None,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[CalculationResult, ValidationResult]:
        """
        Validate a raw invoice payload and compute its totals.

        Returns:
            (calculation_result, validation_result)

        Raises:
            InvoiceValidationError: If the payload has error-level issues
        """
        correlation_id = correlation_id or create_correlation_id()

        validation = self._validator.validate(payload, is_tax_exempt=is_tax_exempt)

        if not validation.is_valid:
            if self._audit_logger:
                issues = [
                    {"field": i.field, "type": i.issue_type, "message": i.message}
                    for i in validation.issues
                ]
                stage = "schema" if not validation.schema_valid else "semantic"
                await self._audit_logger.log_validation_failed(
                    request_id=validation.request_id,
                    stage=stage,
                    issues=issues,
                    correlation_id=correlation_id,
                )
            raise InvoiceValidationError(validation)

        if self._audit_logger:
            await self._audit_logger.log_validation_passed(
                request_id=validation.request_id,
                warning_count=len(validation.warnings),
                correlation_id=correlation_id,
            )

        calculation_input = validation.calculation_input
        result = calculate(calculation_input)

        if self._audit_logger:
            await self._audit_logger.log_totals_calculated(
                request_id=validation.request_id,
                line_count=len(calculation_input.items),
                totals=result.to_log_dict(),
                currency=self._currency,
                correlation_id=correlation_id,
            )

        return result, validation

    def preview_lines(
        self,
        payload: Any,
        is_tax_exempt: Optional[bool] = None,
    ) -> list[Optional[LineAmounts]]:
        """
        Per-row figures for the invoice form, aligned with the payload's rows.

        Section headers map to None.

        Raises:
            InvoiceValidationError: If the payload has error-level issues
        """
        calculation_input = self._validator.validate_or_raise(
            payload, is_tax_exempt=is_tax_exempt
        )
        return [
            compute_line_amounts(item, calculation_input.is_tax_exempt)
            for item in calculation_input.items
        ]


def create_app_components(
    use_storage: bool = False,
    audit_storage: Optional[AuditStorageInterface] = None,
) -> tuple[InvoiceTotalsFlow, Optional[AuditStorageInterface]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to persist audit events. Without an explicit
                    audit_storage an in-memory store is used.
        audit_storage: Host-provided audit store

    Returns:
        (totals_flow, audit_storage)
    """
    if use_storage:
        audit_storage = audit_storage or InMemoryAuditStorage()
        audit_logger = AuditLogger(audit_storage)
    else:
        audit_storage = None
        audit_logger = AuditLogger()  # Local-only logging

    totals_flow = InvoiceTotalsFlow(audit_logger=audit_logger)

    return totals_flow, audit_storage
