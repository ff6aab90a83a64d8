"""
Input Validation

Checks user-supplied credentials and amounts before anything is written.

Validation NEVER silently fixes issues beyond the documented
normalisation (trimming usernames, trimming and lower-casing security
answers). Problems are reported as ValidationIssue lists and raised
together in a ValidationFailedError.
"""

import math
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from expense_ledger.config import SecuritySettings, get_settings
from expense_ledger.models.ledger import ValidationIssue
from expense_ledger.models.results import ErrorKind, LedgerError


class ValidationFailedError(LedgerError):
    """Input was empty, too short or otherwise unusable."""

    kind = ErrorKind.VALIDATION_ERROR
    user_message = "Please check the highlighted fields and try again."

    def __init__(self, issues: list[ValidationIssue], message: Optional[str] = None):
        self.issues = issues
        if message is None and issues:
            message = "; ".join(issue.message for issue in issues)
        super().__init__(message)


def normalize_username(username: Optional[str]) -> str:
    """Usernames are compared and stored trimmed."""
    return (username or "").strip()


def normalize_security_answer(answer: Optional[str]) -> str:
    """Security answers are case-insensitive: trimmed and lower-cased."""
    return (answer or "").strip().lower()


class CredentialValidator:
    """Validates usernames, passwords and security answers."""

    def __init__(self, settings: Optional[SecuritySettings] = None):
        self._settings = settings or get_settings().security

    @property
    def min_password_length(self) -> int:
        return self._settings.min_password_length

    def check_username(self, username: Optional[str]) -> list[ValidationIssue]:
        if not normalize_username(username):
            return [ValidationIssue(
                field="username",
                issue_type="missing",
                message="Username is required",
            )]
        return []

    def check_password(
        self,
        password: Optional[str],
        field: str = "password",
    ) -> list[ValidationIssue]:
        if password is None or len(password) < self.min_password_length:
            return [ValidationIssue(
                field=field,
                issue_type="too_short",
                message=(
                    f"Password must be at least "
                    f"{self.min_password_length} characters"
                ),
            )]
        return []

    def check_security_answer(self, answer: Optional[str]) -> list[ValidationIssue]:
        if not normalize_security_answer(answer):
            return [ValidationIssue(
                field="security_answer",
                issue_type="missing",
                message="Security answer is required",
            )]
        return []

    def validate_signup(
        self,
        username: Optional[str],
        password: Optional[str],
        security_answer: Optional[str],
    ) -> None:
        """Raise ValidationFailedError listing every problem with a signup."""
        issues = (
            self.check_username(username)
            + self.check_password(password)
            + self.check_security_answer(security_answer)
        )
        if issues:
            raise ValidationFailedError(issues)

    def validate_username(self, username: Optional[str]) -> None:
        issues = self.check_username(username)
        if issues:
            raise ValidationFailedError(issues)

    def validate_new_password(self, password: Optional[str]) -> None:
        issues = self.check_password(password, field="new_password")
        if issues:
            raise ValidationFailedError(issues)


def validate_positive_amount(value: Any, field: str = "amount") -> Decimal:
    """
    Coerce a money value to Decimal and require it to be > 0.

    Floats go through str() so 19.99 stays 19.99.
    """
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationFailedError([ValidationIssue(
            field=field,
            issue_type="invalid_format",
            message=f"{field.capitalize()} must be a number",
        )])

    # Stored as REAL: the float must stay finite and above zero too
    if not amount.is_finite() or amount <= 0 or not 0 < float(amount) < math.inf:
        raise ValidationFailedError([ValidationIssue(
            field=field,
            issue_type="invalid_value",
            message=f"{field.capitalize()} must be greater than zero",
        )])

    return amount


def validate_category(category: Optional[str]) -> str:
    """Categories are free text but must not be blank."""
    name = (category or "").strip()
    if not name:
        raise ValidationFailedError([ValidationIssue(
            field="category",
            issue_type="missing",
            message="Category is required",
        )])
    return name
