"""
Core Data Models for the Invoice Totals Engine

These models define the strict schemas for everything the engine consumes
and produces. They are designed to:
1. Carry monetary values as exact decimals, never floats
2. Accept invoice rows exactly as the invoice store persists them
3. Be immutable and hashable so callers can memoize on them
4. Be serializable for logging and the audit trail

DESIGN DECISION: Input models are frozen. The engine is a pure function,
so nothing downstream is allowed to mutate what the caller handed in.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# INPUT MODELS
# =============================================================================

class LineItem(BaseModel):
    """
    One row of an invoice.

    Section headers are visual separators: their numeric fields are
    ignored and they contribute nothing to any total.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    is_section_header: bool = Field(
        default=False,
        validation_alias=AliasChoices("is_section_header", "isSectionHeader", "isSection"),
        description="Non-billable divider row",
    )
    quantity: Decimal = Field(
        default=Decimal("0"),
        description="Billed quantity",
    )
    unit_price: Decimal = Field(
        default=Decimal("0"),
        validation_alias=AliasChoices("unit_price", "unitPrice"),
        description="Price of one unit, before discount and tax",
    )
    line_discount_percent: Decimal = Field(
        default=Decimal("0"),
        validation_alias=AliasChoices(
            "line_discount_percent", "lineDiscountPercent", "discount"
        ),
        description="Percentage discount on this line's pre-tax amount",
    )
    tax_rate_percent: Decimal = Field(
        default=Decimal("0"),
        validation_alias=AliasChoices("tax_rate_percent", "taxRatePercent", "taxRate"),
        description="Tax rate applied to the discounted line amount",
    )

    # Descriptive fields kept for display, never read by the engine
    description: Optional[str] = Field(default=None, max_length=2000)
    unit: Optional[str] = Field(default=None, max_length=50)

    @field_validator(
        "quantity", "unit_price", "line_discount_percent", "tax_rate_percent",
        mode="before",
    )
    @classmethod
    def empty_as_zero(cls, v: Any) -> Any:
        """The invoice store leaves numeric fields empty instead of zero."""
        if v is None or v == "":
            return Decimal("0")
        return v

    @field_validator("is_section_header", mode="before")
    @classmethod
    def missing_flag_is_false(cls, v: Any) -> Any:
        return False if v is None else v


class CalculationInput(BaseModel):
    """
    The full request to the engine.

    Frozen and hashable: a caller that memoizes totals must key on the
    whole input, and this model is that key.
    """
    model_config = ConfigDict(frozen=True)

    items: tuple[LineItem, ...] = Field(
        default=(),
        description="Invoice rows in display order",
    )
    global_discount_percent: Decimal = Field(
        default=Decimal("0"),
        validation_alias=AliasChoices(
            "global_discount_percent", "globalDiscountPercent", "discount"
        ),
        description="Discount applied once to the aggregated pre-tax subtotal",
    )
    shipping_amount: Decimal = Field(
        default=Decimal("0"),
        validation_alias=AliasChoices("shipping_amount", "shippingAmount", "shipping"),
        description="Added after tax, never discounted or taxed",
    )
    deposit_amount: Decimal = Field(
        default=Decimal("0"),
        validation_alias=AliasChoices("deposit_amount", "depositAmount", "deposit"),
        description="Amount already received, subtracted from the total",
    )
    is_tax_exempt: bool = Field(
        default=False,
        validation_alias=AliasChoices("is_tax_exempt", "isTaxExempt"),
        description="Forces every line's effective tax rate to zero",
    )

    @field_validator(
        "global_discount_percent", "shipping_amount", "deposit_amount",
        mode="before",
    )
    @classmethod
    def empty_as_zero(cls, v: Any) -> Any:
        if v is None or v == "":
            return Decimal("0")
        return v

    @field_validator("items", mode="before")
    @classmethod
    def missing_items_are_empty(cls, v: Any) -> Any:
        return () if v is None else v

    @classmethod
    def from_invoice(
        cls,
        record: dict[str, Any],
        is_tax_exempt: bool = False,
    ) -> "CalculationInput":
        """
        Build the input from a stored invoice record.

        The tax exemption lives on the user profile, not on the invoice,
        so the caller passes it separately.
        """
        return cls.model_validate({
            "items": record.get("items") or [],
            "global_discount_percent": record.get("discount"),
            "shipping_amount": record.get("shipping"),
            "deposit_amount": record.get("deposit"),
            "is_tax_exempt": is_tax_exempt,
        })


# =============================================================================
# OUTPUT MODELS
# =============================================================================

class LineAmounts(BaseModel):
    """Per-row figures derived for one billable line."""
    model_config = ConfigDict(frozen=True)

    raw_total: Decimal
    discount_amount: Decimal
    net: Decimal
    effective_rate: Decimal
    tax: Decimal


class TaxBucket(BaseModel):
    """All line amounts and tax sharing one effective rate, after global discount."""
    model_config = ConfigDict(frozen=True)

    rate: Decimal
    base: Decimal
    amount: Decimal


class CalculationResult(BaseModel):
    """
    Everything needed to render and check an invoice's totals.

    Entirely derived from a CalculationInput; it has no lifecycle of
    its own and is never persisted by the engine.
    """
    model_config = ConfigDict(frozen=True)

    subtotal: Decimal = Field(
        ...,
        description="Sum of discounted line amounts, before global discount",
    )
    final_pre_tax: Decimal = Field(
        ...,
        description="Subtotal after the global discount",
    )
    tax_amount: Decimal = Field(
        ...,
        description="Sum of the adjusted per-rate tax amounts",
    )
    tax_breakdown: tuple[TaxBucket, ...] = Field(
        default=(),
        description="One bucket per distinct rate, ascending",
    )
    global_discount_amount: Decimal = Field(
        ...,
        description="Amount removed by the global discount",
    )
    total: Decimal = Field(
        ...,
        description="final_pre_tax + tax_amount + shipping",
    )
    balance_due: Decimal = Field(
        ...,
        description="Total minus deposit, floored at zero",
    )
    is_tax_exempt: bool = False

    def to_log_dict(self) -> dict:
        """Stringified totals, safe for JSON logs without float conversion."""
        return {
            "subtotal": str(self.subtotal),
            "final_pre_tax": str(self.final_pre_tax),
            "tax_amount": str(self.tax_amount),
            "global_discount_amount": str(self.global_discount_amount),
            "total": str(self.total),
            "balance_due": str(self.balance_due),
            "is_tax_exempt": self.is_tax_exempt,
            "tax_breakdown": [
                {"rate": str(b.rate), "base": str(b.base), "amount": str(b.amount)}
                for b in self.tax_breakdown
            ],
        }


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue, dotted for nested rows (items.2.quantity)"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'out_of_range')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """
    Result of the two-stage validation.

    Stage 1: Schema validation (types, required fields)
    Stage 2: Semantic validation (business range checks)
    """

    request_id: UUID = Field(
        default_factory=uuid4,
        description="ID of the validation request"
    )
    validated_at: datetime = Field(
        default_factory=_utcnow
    )

    schema_valid: bool = Field(
        ...,
        description="Did schema validation pass?"
    )
    semantic_valid: bool = Field(
        ...,
        description="Did semantic validation pass?"
    )
    is_valid: bool = Field(
        ...,
        description="Overall validation result"
    )

    issues: list[ValidationIssue] = Field(
        default_factory=list,
        description="All validation issues found"
    )
    warnings: list[str] = Field(
        default_factory=list,
        description="Non-blocking warnings"
    )

    # Only set once stage 1 has produced a well-typed input
    calculation_input: Optional[CalculationInput] = None

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")
