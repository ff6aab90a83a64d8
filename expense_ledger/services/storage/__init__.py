"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Users, expenses and budgets live in SQLite; the session and category
lists live in a JSON key-value file.
"""

from expense_ledger.services.storage.interface import (
    BudgetStorageInterface,
    DuplicateError,
    ExpenseStorageInterface,
    NoActiveSessionError,
    NotFoundError,
    PreferenceStorageInterface,
    StorageError,
    UserStorageInterface,
    is_active_user,
    require_active_user,
)
from expense_ledger.services.storage.sqlite import (
    SQLiteBudgetStorage,
    SQLiteDatabase,
    SQLiteExpenseStorage,
    SQLiteUserStorage,
)
from expense_ledger.services.storage.preferences import JsonPreferenceStorage

__all__ = [
    # Interfaces
    "BudgetStorageInterface",
    "ExpenseStorageInterface",
    "PreferenceStorageInterface",
    "UserStorageInterface",
    # Exceptions
    "DuplicateError",
    "NoActiveSessionError",
    "NotFoundError",
    "StorageError",
    # Helpers
    "is_active_user",
    "require_active_user",
    # SQLite implementation
    "SQLiteBudgetStorage",
    "SQLiteDatabase",
    "SQLiteExpenseStorage",
    "SQLiteUserStorage",
    # Key-value implementation
    "JsonPreferenceStorage",
]
