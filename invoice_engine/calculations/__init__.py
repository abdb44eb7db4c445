"""Invoice totals calculation package."""

from invoice_engine.calculations.engine import calculate, compute_line_amounts, round2

__all__ = ["calculate", "compute_line_amounts", "round2"]
