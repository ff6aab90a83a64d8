"""Accounts package: users and the current session."""

from expense_ledger.accounts.users import (
    DuplicateUsernameError,
    InvalidCredentialsError,
    UserStore,
    WrongCurrentPasswordError,
)
from expense_ledger.accounts.session import SessionState

__all__ = [
    "DuplicateUsernameError",
    "InvalidCredentialsError",
    "SessionState",
    "UserStore",
    "WrongCurrentPasswordError",
]
