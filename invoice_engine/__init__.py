"""
Invoice Totals Engine - Source Package

Exact-decimal invoice totals for a solo-entrepreneur invoicing tool.

DESIGN PRINCIPLES:
1. Money is Decimal, never float
2. Round only at documented points, always the same way
3. The engine is pure; validation and auditing live around it
4. Fail early, fail visibly: invalid input never reaches the engine
"""

__version__ = "1.0.0"
__author__ = "Invoice Engine Team"
