"""
Core Data Models for Expense Ledger

These models define the schemas for everything the ledger stores or returns:
users, the session pair, expenses, budgets and budget calculations.

Amounts are Decimal in the domain. SQLite stores them as REAL and the
storage layer converts back through str() so that two-decimal amounts
compare exactly.
"""

from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# ENUMS
# =============================================================================

class BudgetAlertLevel(str, Enum):
    """How close a category is to its budget."""
    OK = "ok"
    WARNING = "warning"     # At or above the warning percentage
    EXCEEDED = "exceeded"   # At or above 100% of the limit


class ExpenseSort(str, Enum):
    """Sort orders for expense listings."""
    DATE_DESC = "date_desc"
    DATE_ASC = "date_asc"
    AMOUNT_DESC = "amount_desc"
    AMOUNT_ASC = "amount_asc"
    CATEGORY_ASC = "category_asc"
    CATEGORY_DESC = "category_desc"


class BreakdownSort(str, Enum):
    """Sort orders for the per-category breakdown."""
    AMOUNT_DESC = "amount_desc"
    AMOUNT_ASC = "amount_asc"
    NAME_ASC = "name_asc"
    NAME_DESC = "name_desc"
    PERCENTAGE_DESC = "percentage_desc"
    PERCENTAGE_ASC = "percentage_asc"


# =============================================================================
# ACCOUNT MODELS
# =============================================================================

class User(BaseModel):
    """
    A stored user row.

    Usernames are unique (case-sensitive, compared after trimming).
    Hashes are hex digests and never appear in repr output.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: int = Field(
        ...,
        gt=0,
        description="Stable numeric identifier, never reused"
    )
    username: str = Field(
        ...,
        min_length=1,
        description="Unique username"
    )
    password_hash: str = Field(
        ...,
        repr=False,
        description="Hex digest of the password"
    )
    security_answer_hash: str = Field(
        ...,
        repr=False,
        description="Hex digest of the trimmed, lower-cased security answer"
    )


class SessionUser(BaseModel):
    """The currently logged in user as held by the session."""
    model_config = ConfigDict(frozen=True)

    user_id: int = Field(..., gt=0)
    username: str


# =============================================================================
# LEDGER MODELS
# =============================================================================

class Expense(BaseModel):
    """
    A single expense record owned by one user.

    Note and date are free text; blanks are replaced with the configured
    defaults before the row is written.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: int = Field(..., gt=0)
    user_id: int = Field(..., gt=0)
    category: str = Field(..., min_length=1)
    amount: Decimal = Field(
        ...,
        gt=0,
        description="Amount spent"
    )
    note: str = ""
    date: str = ""
    image_ref: Optional[str] = Field(
        default=None,
        description="Opaque reference to an attached receipt image"
    )


class Budget(BaseModel):
    """A spending ceiling for one category of one user."""
    model_config = ConfigDict(str_strip_whitespace=True)

    user_id: int = Field(..., gt=0)
    category: str = Field(..., min_length=1)
    limit: Decimal = Field(..., gt=0)


class BudgetCheckResult(BaseModel):
    """
    Outcome of a threshold-exceeded check.

    When no budget exists for the category, budget_configured is False and
    every amount is zero. exceeds is inclusive: reaching the limit exactly
    counts as exceeding it.
    """

    exceeds: bool
    limit: Decimal = Decimal("0")
    current_spent: Decimal = Decimal("0")
    new_total: Decimal = Decimal("0")
    budget_configured: bool = True

    @classmethod
    def unconstrained(cls) -> "BudgetCheckResult":
        return cls(exceeds=False, budget_configured=False)


class BudgetStatus(BaseModel):
    """Progress of one category against its budget."""

    category: str
    limit: Decimal
    spent: Decimal
    percentage: float = Field(..., ge=0.0)
    alert_level: BudgetAlertLevel

    @property
    def remaining(self) -> Decimal:
        return max(self.limit - self.spent, Decimal("0"))


class CategoryBreakdown(BaseModel):
    """Total spent in one category and its share of all spending."""

    category: str
    amount: Decimal
    percentage: float = Field(..., ge=0.0, le=100.0)


# =============================================================================
# QUERY MODELS
# =============================================================================

class ExpenseQuery(BaseModel):
    """Search text, optional category filter and sort order for a listing."""
    model_config = ConfigDict(str_strip_whitespace=True)

    search: str = Field(
        default="",
        description="Case-insensitive text matched against note, category, amount and date"
    )
    category_filter: Optional[str] = None
    sort: ExpenseSort = ExpenseSort.DATE_DESC


class ExpenseQueryResult(BaseModel):
    """Expenses matching a query and the total of what is shown."""

    expenses: list[Expense] = Field(default_factory=list)
    result_count: int = Field(ge=0)
    total_amount: Decimal = Decimal("0")
    query_description: str


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'too_short', 'invalid_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning)$",
    )
