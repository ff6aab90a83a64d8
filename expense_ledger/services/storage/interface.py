"""
Abstract Storage Interface

DESIGN DECISION: Storage is described by abstract interfaces so the
SQLite backend can be replaced (or faked in tests) without touching the
account, category or budget logic built on top of it.

Implementations must convert every backend-specific exception into
StorageError (or one of its subclasses) before it leaves the store.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional, Union

from expense_ledger.models.ledger import Budget, Expense, User
from expense_ledger.models.results import ErrorKind, LedgerError


PreferenceValue = Union[str, int, float, bool]


def is_active_user(user_id: Optional[int]) -> bool:
    """Ids <= 0 (or None) mean nobody is logged in."""
    return user_id is not None and user_id > 0


def require_active_user(user_id: Optional[int]) -> int:
    """Return user_id, or raise NoActiveSessionError for the no-session sentinel."""
    if not is_active_user(user_id):
        raise NoActiveSessionError()
    return user_id


class UserStorageInterface(ABC):
    """
    Abstract interface for user rows.

    Works on already-normalised usernames and already-computed digests;
    validation and hashing belong to the UserStore.
    """

    @abstractmethod
    def insert_user(
        self,
        username: str,
        password_hash: str,
        security_answer_hash: str,
    ) -> int:
        """
        Insert a user row.

        Returns:
            The new user id

        Raises:
            DuplicateError: If the username is already taken
            StorageError: If the insert fails for any other reason
        """
        pass

    @abstractmethod
    def get_user_by_id(self, user_id: int) -> Optional[User]:
        pass

    @abstractmethod
    def get_user_by_username(self, username: str) -> Optional[User]:
        pass

    @abstractmethod
    def username_taken(
        self,
        username: str,
        exclude_user_id: Optional[int] = None,
    ) -> bool:
        """Check whether any user other than exclude_user_id has this username."""
        pass

    @abstractmethod
    def update_username(self, user_id: int, username: str) -> bool:
        """
        Rename a user.

        Returns:
            True if a row was updated

        Raises:
            DuplicateError: If another user already has the username
        """
        pass

    @abstractmethod
    def update_password_hash(self, user_id: int, password_hash: str) -> bool:
        """Replace a user's password digest. Returns True if a row was updated."""
        pass

    @abstractmethod
    def user_exists(self, user_id: int) -> bool:
        pass


class ExpenseStorageInterface(ABC):
    """
    Abstract interface for expense storage (the ExpenseStore).

    Expenses are always scoped to their owning user.
    """

    @abstractmethod
    def add_expense(
        self,
        user_id: Optional[int],
        category: str,
        amount: Union[Decimal, float, str],
        note: Optional[str] = None,
        date: Optional[str] = None,
        image_ref: Optional[str] = None,
    ) -> int:
        """
        Add an expense.

        Returns:
            The new expense id

        Raises:
            NoActiveSessionError: If user_id is the no-session sentinel
            ValidationFailedError: If category is blank or amount <= 0
            StorageError: If the insert fails
        """
        pass

    @abstractmethod
    def get_expense(self, expense_id: int) -> Optional[Expense]:
        pass

    @abstractmethod
    def list_expenses(self, user_id: Optional[int]) -> list[Expense]:
        """
        List a user's expenses, most recently added first.

        Ordering is by descending id, never by the free-text date.
        """
        pass

    @abstractmethod
    def update_expense(
        self,
        expense_id: int,
        category: str,
        amount: Union[Decimal, float, str],
        note: Optional[str] = None,
        date: Optional[str] = None,
        image_ref: Optional[str] = None,
        user_id: Optional[int] = None,
    ) -> bool:
        """
        Replace every mutable field of an expense.

        When user_id is given, only that user's row can match.

        Returns:
            True if a row was updated
        """
        pass

    @abstractmethod
    def delete_expense(self, expense_id: int, user_id: Optional[int] = None) -> bool:
        """Delete one expense. Returns True if a row was deleted."""
        pass

    @abstractmethod
    def clear_expenses(self, user_id: Optional[int]) -> bool:
        """Delete all of a user's expenses. Succeeds even if none existed."""
        pass


class BudgetStorageInterface(ABC):
    """
    Abstract interface for budget storage (the BudgetStore).

    Budgets are keyed by (user_id, category).
    """

    @abstractmethod
    def set_budget(
        self,
        user_id: Optional[int],
        category: str,
        limit: Union[Decimal, float, str],
    ) -> bool:
        """
        Create or replace the budget for a category.

        Raises:
            NoActiveSessionError: If user_id is the no-session sentinel
            ValidationFailedError: If limit <= 0
        """
        pass

    @abstractmethod
    def get_budget(self, user_id: Optional[int], category: str) -> Optional[Budget]:
        pass

    @abstractmethod
    def list_budgets(self, user_id: Optional[int]) -> list[Budget]:
        """List a user's budgets (no particular order)."""
        pass

    @abstractmethod
    def delete_budget(self, user_id: Optional[int], category: str) -> bool:
        """Delete a budget. Returns True if a row was deleted."""
        pass


class PreferenceStorageInterface(ABC):
    """
    Abstract interface for the durable key-value store.

    Holds scalar values only: the session pair and serialised per-user
    category lists.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[PreferenceValue]:
        pass

    @abstractmethod
    def set_many(self, values: dict[str, PreferenceValue]) -> None:
        """Write several keys in one durable update."""
        pass

    def set(self, key: str, value: PreferenceValue) -> None:
        self.set_many({key: value})

    @abstractmethod
    def remove(self, *keys: str) -> None:
        pass

    @abstractmethod
    def clear(self) -> None:
        """Remove every key."""
        pass


class StorageError(LedgerError):
    """Base exception for storage operations."""

    kind = ErrorKind.STORAGE_ERROR


class NotFoundError(StorageError):
    """Entity not found in storage."""

    kind = ErrorKind.NOT_FOUND
    user_message = "No matching record was found."


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""

    kind = ErrorKind.DUPLICATE_USERNAME
    user_message = "That record already exists."


class NoActiveSessionError(LedgerError):
    """A user-scoped operation was attempted with nobody logged in."""

    kind = ErrorKind.NO_ACTIVE_SESSION
    user_message = "Please log in first."
