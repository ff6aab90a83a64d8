"""Input validation package."""

from expense_ledger.validation.validator import (
    CredentialValidator,
    ValidationFailedError,
    normalize_security_answer,
    normalize_username,
    validate_category,
    validate_positive_amount,
)

__all__ = [
    "CredentialValidator",
    "ValidationFailedError",
    "normalize_security_answer",
    "normalize_username",
    "validate_category",
    "validate_positive_amount",
]
