"""
Data Models Package

This package contains all Pydantic models used in the Expense Ledger.
All data flowing through the system must conform to these schemas.
"""

from expense_ledger.models.ledger import (
    BreakdownSort,
    Budget,
    BudgetAlertLevel,
    BudgetCheckResult,
    BudgetStatus,
    CategoryBreakdown,
    Expense,
    ExpenseQuery,
    ExpenseQueryResult,
    ExpenseSort,
    SessionUser,
    User,
    ValidationIssue,
)
from expense_ledger.models.results import (
    ErrorKind,
    LedgerError,
    LedgerResult,
)
from expense_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "BreakdownSort",
    "Budget",
    "BudgetAlertLevel",
    "BudgetCheckResult",
    "BudgetStatus",
    "CategoryBreakdown",
    "Expense",
    "ExpenseQuery",
    "ExpenseQueryResult",
    "ExpenseSort",
    "SessionUser",
    "User",
    "ValidationIssue",
    # Results
    "ErrorKind",
    "LedgerError",
    "LedgerResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
