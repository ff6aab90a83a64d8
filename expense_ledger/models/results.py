"""
Operation Results and Error Kinds

Every collaborator-facing operation returns a LedgerResult instead of
raising. Internally, components raise LedgerError subclasses; each one
carries the ErrorKind it is reported as.
"""

from enum import Enum
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, Field

from expense_ledger.models.ledger import ValidationIssue


T = TypeVar("T")


class ErrorKind(str, Enum):
    """Recoverable failure categories reported to the caller."""
    VALIDATION_ERROR = "validation_error"
    DUPLICATE_USERNAME = "duplicate_username"
    INVALID_CREDENTIALS = "invalid_credentials"
    WRONG_CURRENT_PASSWORD = "wrong_current_password"
    NOT_FOUND = "not_found"
    NO_ACTIVE_SESSION = "no_active_session"
    STORAGE_ERROR = "storage_error"


class LedgerError(Exception):
    """Base exception for ledger operations."""

    kind: ErrorKind = ErrorKind.STORAGE_ERROR
    user_message: str = "Something went wrong. Please try again."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.user_message)


class LedgerResult(BaseModel, Generic[T]):
    """
    Result of a ledger operation.

    success=True carries the value; success=False carries the error kind,
    a message safe to show the user and any validation issues.
    """

    success: bool
    value: Optional[T] = None
    error: Optional[ErrorKind] = None
    message: Optional[str] = None
    issues: list[ValidationIssue] = Field(default_factory=list)

    @classmethod
    def ok(cls, value: Any = None) -> "LedgerResult":
        return cls(success=True, value=value)

    @classmethod
    def fail(
        cls,
        error: ErrorKind,
        message: Optional[str] = None,
        issues: Optional[list[ValidationIssue]] = None,
    ) -> "LedgerResult":
        return cls(
            success=False,
            error=error,
            message=message,
            issues=issues or [],
        )

    @classmethod
    def from_error(cls, exc: LedgerError) -> "LedgerResult":
        return cls.fail(
            exc.kind,
            message=str(exc),
            issues=getattr(exc, "issues", None),
        )
