"""
Two-Stage Validation Pipeline

The calculation engine is a total function over well-typed numbers and
never checks its input. This module is the layer in front of it that does.

STAGE 1 - SCHEMA VALIDATION:
- Type checking (non-numeric strings, NaN and infinity are rejected)
- Row count limit
- Billable rows must have a positive quantity
- This catches corrupted or half-edited invoice records

STAGE 2 - SEMANTIC VALIDATION:
- Percentages within 0-100
- No negative tax rates, shipping or deposits
- Suspicious but legal values (negative prices, huge totals,
  deposits exceeding the total) become warnings
- This catches logically impossible or suspicious invoices

IMPORTANT: Validation NEVER silently fixes issues.
It reports them so the user can correct the invoice.
"""

from decimal import Decimal
from typing import Any, Optional

from pydantic import ValidationError

from invoice_engine.calculations import calculate
from invoice_engine.config import get_settings
from invoice_engine.models.invoice import (
    CalculationInput,
    ValidationIssue,
    ValidationResult,
)


_HUNDRED = Decimal("100")


class InvoiceValidationError(Exception):
    """Invoice input rejected before reaching the engine."""

    def __init__(self, result: ValidationResult):
        self.result = result
        errors = [i for i in result.issues if i.severity == "error"]
        summary = "; ".join(f"{i.field}: {i.message}" for i in errors[:5])
        super().__init__(f"Invalid invoice input ({len(errors)} errors): {summary}")


class InvoiceValidator:
    """
    Validates raw invoice payloads through a two-stage pipeline.

    Accepts either a stored invoice record (items, discount, shipping,
    deposit) or a dict shaped like CalculationInput.
    """

    def __init__(self):
        self._settings = get_settings().app

    def _validate_schema(
        self,
        payload: Any,
    ) -> tuple[Optional[CalculationInput], list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (parsed_input_or_None, list_of_issues)
        """
        issues = []

        try:
            parsed = CalculationInput.model_validate(payload)
        except ValidationError as e:
            for error in e.errors():
                field = ".".join(str(part) for part in error["loc"]) or "root"
                issues.append(ValidationIssue(
                    field=field,
                    issue_type=error["type"],
                    message=error["msg"],
                    severity="error",
                    suggested_fix="Enter a valid number" if "decimal" in error["type"] else None,
                ))
            return None, issues

        if len(parsed.items) > self._settings.max_line_items:
            issues.append(ValidationIssue(
                field="items",
                issue_type="too_many_items",
                message=(
                    f"Invoice has {len(parsed.items)} rows, "
                    f"the limit is {self._settings.max_line_items}"
                ),
                severity="error",
                suggested_fix="Split the invoice or group rows",
            ))

        for index, item in enumerate(parsed.items):
            if item.is_section_header:
                continue
            if item.quantity <= 0:
                issues.append(ValidationIssue(
                    field=f"items.{index}.quantity",
                    issue_type="invalid_value",
                    message="Quantity must be greater than zero",
                    severity="error",
                    suggested_fix="Remove the row or enter a positive quantity",
                ))

        if any(issue.severity == "error" for issue in issues):
            return None, issues

        return parsed, issues

    def _validate_semantic(
        self,
        parsed: CalculationInput,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 2: Semantic validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        billable = 0
        for index, item in enumerate(parsed.items):
            if item.is_section_header:
                continue
            billable += 1

            if not 0 <= item.line_discount_percent <= _HUNDRED:
                issues.append(ValidationIssue(
                    field=f"items.{index}.line_discount_percent",
                    issue_type="out_of_range",
                    message=f"Line discount ({item.line_discount_percent}%) must be between 0 and 100",
                    severity="error",
                ))
            if item.tax_rate_percent < 0:
                issues.append(ValidationIssue(
                    field=f"items.{index}.tax_rate_percent",
                    issue_type="out_of_range",
                    message=f"Tax rate ({item.tax_rate_percent}%) cannot be negative",
                    severity="error",
                ))
            if item.unit_price < 0:
                issues.append(ValidationIssue(
                    field=f"items.{index}.unit_price",
                    issue_type="suspicious_value",
                    message=f"Unit price ({item.unit_price}) is negative",
                    severity="warning",
                    suggested_fix="Negative prices are only expected on credit lines",
                ))

        if billable == 0:
            issues.append(ValidationIssue(
                field="items",
                issue_type="empty",
                message="Invoice has no billable rows",
                severity="warning",
                suggested_fix="Add at least one product or service",
            ))

        if not 0 <= parsed.global_discount_percent <= _HUNDRED:
            issues.append(ValidationIssue(
                field="global_discount_percent",
                issue_type="out_of_range",
                message=(
                    f"Global discount ({parsed.global_discount_percent}%) "
                    "must be between 0 and 100"
                ),
                severity="error",
            ))
        if parsed.shipping_amount < 0:
            issues.append(ValidationIssue(
                field="shipping_amount",
                issue_type="out_of_range",
                message="Shipping cannot be negative",
                severity="error",
            ))
        if parsed.deposit_amount < 0:
            issues.append(ValidationIssue(
                field="deposit_amount",
                issue_type="out_of_range",
                message="Deposit cannot be negative",
                severity="error",
            ))

        # Total-based checks only make sense on an otherwise valid invoice
        if not any(issue.severity == "error" for issue in issues):
            result = calculate(parsed)

            max_total = Decimal(str(self._settings.max_invoice_total))
            if result.total > max_total:
                issues.append(ValidationIssue(
                    field="total",
                    issue_type="suspicious_value",
                    message=f"Total ({result.total:,.2f}) seems unusually high",
                    severity="warning",
                    suggested_fix="Please verify quantities and unit prices",
                ))

            if parsed.deposit_amount > 0 and parsed.deposit_amount > result.total:
                issues.append(ValidationIssue(
                    field="deposit_amount",
                    issue_type="inconsistent",
                    message=(
                        f"Deposit ({parsed.deposit_amount}) exceeds the total "
                        f"({result.total}); balance due will be zero"
                    ),
                    severity="warning",
                    suggested_fix="Please verify the deposit amount",
                ))

        is_valid = not any(issue.severity == "error" for issue in issues)

        return is_valid, issues

    def validate(
        self,
        payload: Any,
        is_tax_exempt: Optional[bool] = None,
    ) -> ValidationResult:
        """
        Run full two-stage validation pipeline.

        Args:
            payload: Stored invoice record, CalculationInput-shaped dict,
                     or a CalculationInput
            is_tax_exempt: Overrides the payload's exemption flag when given
                           (the flag lives on the user profile)

        Returns:
            ValidationResult with all issues found
        """
        if is_tax_exempt is not None:
            if isinstance(payload, CalculationInput):
                payload = payload.model_copy(update={"is_tax_exempt": is_tax_exempt})
            elif isinstance(payload, dict):
                payload = {**payload, "is_tax_exempt": is_tax_exempt}

        all_issues = []

        # Stage 1: Schema validation
        parsed, schema_issues = self._validate_schema(payload)
        all_issues.extend(schema_issues)
        schema_valid = parsed is not None

        # Only run stage 2 if stage 1 passes
        semantic_valid = False
        if schema_valid:
            semantic_valid, semantic_issues = self._validate_semantic(parsed)
            all_issues.extend(semantic_issues)

        warnings = [i.message for i in all_issues if i.severity == "warning"]

        return ValidationResult(
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            is_valid=schema_valid and semantic_valid,
            issues=all_issues,
            warnings=warnings,
            calculation_input=parsed,
        )

    def validate_or_raise(
        self,
        payload: Any,
        is_tax_exempt: Optional[bool] = None,
    ) -> CalculationInput:
        """
        Validate and return the engine input.

        Raises:
            InvoiceValidationError: If any error-level issue was found
        """
        result = self.validate(payload, is_tax_exempt=is_tax_exempt)
        if not result.is_valid:
            raise InvoiceValidationError(result)
        return result.calculation_input

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """
        Generate a user-friendly summary of validation results.

        This is what we show next to the invoice form.
        """
        if result.is_valid and not result.warnings:
            return "✅ All checks passed."

        lines = []

        if result.has_errors:
            lines.append("❌ The invoice cannot be totalled yet:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.field}: {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines)
