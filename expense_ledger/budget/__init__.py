"""Budget calculation package."""

from expense_ledger.budget.engine import BudgetEngine

__all__ = ["BudgetEngine"]
