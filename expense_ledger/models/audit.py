"""
Audit Models for Expense Ledger

Every significant ledger action is recorded as an AuditEvent:
account changes, expense and budget writes, budget warnings and
storage failures.

Credentials never appear in audit events, not even as digests.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Accounts
    USER_SIGNED_UP = "user_signed_up"
    LOGIN_SUCCEEDED = "login_succeeded"
    LOGIN_FAILED = "login_failed"
    LOGGED_OUT = "logged_out"
    STALE_SESSION_CLEARED = "stale_session_cleared"
    USERNAME_UPDATED = "username_updated"
    PASSWORD_UPDATED = "password_updated"
    PASSWORD_RESET = "password_reset"
    PASSWORD_RESET_FAILED = "password_reset_failed"

    # Expenses
    EXPENSE_ADDED = "expense_added"
    EXPENSE_UPDATED = "expense_updated"
    EXPENSE_DELETED = "expense_deleted"
    EXPENSES_CLEARED = "expenses_cleared"

    # Budgets and categories
    BUDGET_SET = "budget_set"
    BUDGET_DELETED = "budget_deleted"
    BUDGET_THRESHOLD_REACHED = "budget_threshold_reached"
    CATEGORY_ADDED = "category_added"

    # System events
    DATA_RESET = "data_reset"
    STORAGE_ERROR = "storage_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of the audit trail.
    """

    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'user', 'expense', 'budget')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )
    user_id: Optional[int] = Field(
        default=None,
        description="Owning user, when known"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "user_id": self.user_id,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.user_signed_up(user_id, username)
        event = AuditEventBuilder.expense_added(user_id, expense_id, "Food", "12.50")
    """

    @staticmethod
    def user_signed_up(user_id: int, username: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_SIGNED_UP,
            entity_type="user",
            entity_id=str(user_id),
            user_id=user_id,
            description=f"User signed up: {username}",
            details={"username": username},
            is_user_action=True,
        )

    @staticmethod
    def login(username: str, succeeded: bool, user_id: Optional[int] = None) -> AuditEvent:
        if succeeded:
            return AuditEvent(
                event_type=AuditEventType.LOGIN_SUCCEEDED,
                entity_type="user",
                entity_id=str(user_id) if user_id else None,
                user_id=user_id,
                description=f"User logged in: {username}",
                is_user_action=True,
            )
        return AuditEvent(
            event_type=AuditEventType.LOGIN_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="user",
            description="Login rejected: invalid credentials",
            details={"username": username},
            is_user_action=True,
        )

    @staticmethod
    def logged_out(user_id: Optional[int]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOGGED_OUT,
            entity_type="user",
            entity_id=str(user_id) if user_id else None,
            user_id=user_id,
            description="User logged out",
            is_user_action=True,
        )

    @staticmethod
    def stale_session_cleared(user_id: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STALE_SESSION_CLEARED,
            severity=AuditSeverity.WARNING,
            entity_type="user",
            entity_id=str(user_id),
            user_id=user_id,
            description="Session referenced a missing user and was cleared",
        )

    @staticmethod
    def account_updated(
        event_type: AuditEventType,
        user_id: Optional[int],
        description: str,
        succeeded: bool = True,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            severity=AuditSeverity.INFO if succeeded else AuditSeverity.WARNING,
            entity_type="user",
            entity_id=str(user_id) if user_id else None,
            user_id=user_id,
            description=description,
            is_user_action=True,
        )

    @staticmethod
    def expense_added(
        user_id: int,
        expense_id: int,
        category: str,
        amount: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_ADDED,
            entity_type="expense",
            entity_id=str(expense_id),
            user_id=user_id,
            description=f"Expense added: {category} - {amount}",
            details={"category": category, "amount": amount},
            is_user_action=True,
        )

    @staticmethod
    def expense_changed(
        event_type: AuditEventType,
        user_id: int,
        expense_id: Optional[int],
        description: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            entity_type="expense",
            entity_id=str(expense_id) if expense_id else None,
            user_id=user_id,
            description=description,
            is_user_action=True,
        )

    @staticmethod
    def budget_changed(
        event_type: AuditEventType,
        user_id: int,
        category: str,
        limit: Optional[str] = None,
    ) -> AuditEvent:
        details = {"category": category}
        if limit is not None:
            details["limit"] = limit
        verb = "set" if event_type == AuditEventType.BUDGET_SET else "deleted"
        return AuditEvent(
            event_type=event_type,
            entity_type="budget",
            entity_id=category,
            user_id=user_id,
            description=f"Budget {verb}: {category}",
            details=details,
            is_user_action=True,
        )

    @staticmethod
    def budget_threshold_reached(
        user_id: int,
        category: str,
        limit: str,
        new_total: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_THRESHOLD_REACHED,
            severity=AuditSeverity.WARNING,
            entity_type="budget",
            entity_id=category,
            user_id=user_id,
            description=f"Budget for {category} reached: {new_total} of {limit}",
            details={"limit": limit, "new_total": new_total},
        )

    @staticmethod
    def category_added(user_id: int, category: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_ADDED,
            entity_type="category",
            entity_id=category,
            user_id=user_id,
            description=f"Category added: {category}",
            is_user_action=True,
        )

    @staticmethod
    def data_reset() -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_RESET,
            severity=AuditSeverity.WARNING,
            description="All ledger data was wiped",
            is_user_action=True,
        )

    @staticmethod
    def storage_error(
        operation: str,
        error_message: str,
        user_id: Optional[int] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            description=f"Storage error during {operation}",
            error_message=error_message,
            details={"operation": operation},
        )
