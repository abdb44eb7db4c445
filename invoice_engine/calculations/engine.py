"""
Invoice Calculation Engine

Turns invoice rows plus the global adjustments (discount, shipping,
deposit, tax exemption) into a reconciled set of totals.

DESIGN DECISION: Every step uses exact decimal arithmetic. Rounding
happens only at documented points, always to 2 places with
ROUND_HALF_UP (half away from zero), through round2():

- each line's quantity x unit price
- each line's discount amount and tax amount
- the global discount amount
- each tax bucket's base and amount after the global discount
- the grand total

Between those points nothing is rounded. Intermediate arithmetic runs in
a private context with maximal precision and exponent range, so large
values are exact and never raise. Percentages are applied as an exact
decimal shift instead of a division.

The engine is pure: no I/O, no logging, no mutation of its input.
"""

from decimal import (
    MAX_EMAX,
    MAX_PREC,
    MIN_EMIN,
    ROUND_HALF_UP,
    Context,
    Decimal,
    localcontext,
)
from typing import Optional

from invoice_engine.models.invoice import (
    CalculationInput,
    CalculationResult,
    LineAmounts,
    LineItem,
    TaxBucket,
)


_EXACT = Context(
    prec=MAX_PREC,
    rounding=ROUND_HALF_UP,
    Emax=MAX_EMAX,
    Emin=MIN_EMIN,
)
_CENT = Decimal("0.01")
_ZERO = Decimal("0.00")
_NO_TAX = Decimal("0")
_ONE = Decimal("1")


def round2(value: Decimal) -> Decimal:
    """Quantize to exactly 2 fractional digits, half away from zero."""
    with localcontext(_EXACT):
        return Decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP)


def _percent_of(amount: Decimal, percent: Decimal) -> Decimal:
    # amount * percent / 100, without a division
    return (amount * percent).scaleb(-2)


def compute_line_amounts(
    item: LineItem,
    is_tax_exempt: bool = False,
) -> Optional[LineAmounts]:
    """
    Derive the per-row figures for one invoice line.

    Returns None for section headers, which are not billable.
    """
    if item.is_section_header:
        return None

    with localcontext(_EXACT):
        raw_total = round2(item.quantity * item.unit_price)
        discount_amount = round2(_percent_of(raw_total, item.line_discount_percent))
        # Both operands are already at 2 places
        net = raw_total - discount_amount
        effective_rate = _NO_TAX if is_tax_exempt else item.tax_rate_percent
        tax = round2(_percent_of(net, effective_rate))

    return LineAmounts(
        raw_total=raw_total,
        discount_amount=discount_amount,
        net=net,
        effective_rate=effective_rate,
        tax=tax,
    )


def calculate(calculation_input: CalculationInput) -> CalculationResult:
    """
    Compute all monetary totals for an invoice.

    Lines sharing an effective tax rate merge into one bucket. The global
    discount is taken off the aggregated subtotal, then each bucket's base
    and tax are scaled by the same factor and rounded independently. That
    proportional reallocation is an accepted approximation; recomputing tax
    from the discounted bases would change issued invoice totals.

    Args:
        calculation_input: Rows and global adjustments

    Returns:
        CalculationResult with the breakdown ordered by ascending rate
    """
    exempt = calculation_input.is_tax_exempt
    global_discount = calculation_input.global_discount_percent

    with localcontext(_EXACT):
        subtotal = _ZERO
        buckets: dict[Decimal, tuple[Decimal, Decimal]] = {}

        for item in calculation_input.items:
            line = compute_line_amounts(item, exempt)
            if line is None:
                continue

            subtotal += line.net
            base, amount = buckets.get(line.effective_rate, (_ZERO, _ZERO))
            buckets[line.effective_rate] = (base + line.net, amount + line.tax)

        global_discount_amount = round2(_percent_of(subtotal, global_discount))
        final_pre_tax = subtotal - global_discount_amount

        factor = _ONE - global_discount.scaleb(-2)
        tax_amount = _ZERO
        breakdown = []
        for rate in sorted(buckets):
            base, amount = buckets[rate]
            adjusted_amount = round2(amount * factor)
            tax_amount += adjusted_amount
            breakdown.append(TaxBucket(
                rate=rate,
                base=round2(base * factor),
                amount=adjusted_amount,
            ))

        total = round2(final_pre_tax + tax_amount + calculation_input.shipping_amount)
        balance_due = max(_ZERO, total - calculation_input.deposit_amount)

    return CalculationResult(
        subtotal=subtotal,
        final_pre_tax=final_pre_tax,
        tax_amount=tax_amount,
        tax_breakdown=tuple(breakdown),
        global_discount_amount=global_discount_amount,
        total=total,
        balance_due=balance_due,
        is_tax_exempt=exempt,
    )
