"""Services package."""

from expense_ledger.services.storage import (
    BudgetStorageInterface,
    DuplicateError,
    ExpenseStorageInterface,
    JsonPreferenceStorage,
    NoActiveSessionError,
    NotFoundError,
    PreferenceStorageInterface,
    SQLiteBudgetStorage,
    SQLiteDatabase,
    SQLiteExpenseStorage,
    SQLiteUserStorage,
    StorageError,
    UserStorageInterface,
)

__all__ = [
    "BudgetStorageInterface",
    "DuplicateError",
    "ExpenseStorageInterface",
    "JsonPreferenceStorage",
    "NoActiveSessionError",
    "NotFoundError",
    "PreferenceStorageInterface",
    "SQLiteBudgetStorage",
    "SQLiteDatabase",
    "SQLiteExpenseStorage",
    "SQLiteUserStorage",
    "StorageError",
    "UserStorageInterface",
]
