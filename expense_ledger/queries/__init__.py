"""Expense query package."""

from expense_ledger.queries.executor import ExpenseQueryExecutor, parse_expense_date

__all__ = ["ExpenseQueryExecutor", "parse_expense_date"]
