"""
Household Ledger - Source Package

A shared-finance tracker for a household: people, installment debts,
recurring and one-off bills, categories and reports.

DESIGN PRINCIPLES:
1. Money is Decimal, always cent-exact
2. Documents are parsed once, at the store boundary
3. Derived views are recomputed from snapshots, never patched
4. Every user action is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Household Ledger Team"
