"""
Expense Ledger - Source Package

Persistence and business-rule layer of a personal finance tracker.
Authenticates a single local user, stores that user's expenses and
per-category budgets, and warns when an expense would reach a budget.

DESIGN PRINCIPLES:
1. One engine handle, constructed once and passed around
2. Storage faults are converted at the store boundary
3. Credentials are only ever stored as digests
4. Budget checks are recomputed from stored rows on every call
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Expense Ledger Team"
