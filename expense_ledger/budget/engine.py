"""
Budget Engine

Computes spend per category and decides whether an expense amount would
reach a category's budget.

DESIGN DECISION: nothing is cached. Every call reads the user's budget
and expense rows and sums them again. The threshold is inclusive:
reaching the limit exactly counts as exceeding it.
"""

from collections import defaultdict
from decimal import Decimal
from typing import Optional, Union

from expense_ledger.config import LedgerSettings, get_settings
from expense_ledger.models.ledger import (
    BudgetAlertLevel,
    BudgetCheckResult,
    BudgetStatus,
)
from expense_ledger.services.storage import (
    BudgetStorageInterface,
    ExpenseStorageInterface,
)


Amount = Union[Decimal, float, int, str]


def _as_decimal(value: Amount) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


class BudgetEngine:
    """Read-then-compute budget calculations over the expense and budget stores."""

    def __init__(
        self,
        expenses: ExpenseStorageInterface,
        budgets: BudgetStorageInterface,
        settings: Optional[LedgerSettings] = None,
    ):
        self._expenses = expenses
        self._budgets = budgets
        self._settings = settings or get_settings().ledger

    def _spent_in_category(
        self,
        user_id: int,
        category: str,
        exclude_expense_id: Optional[int] = None,
    ) -> Decimal:
        total = Decimal("0")
        for expense in self._expenses.list_expenses(user_id):
            if expense.category != category:
                continue
            if exclude_expense_id is not None and expense.id == exclude_expense_id:
                continue
            total += expense.amount
        return total

    def _check(
        self,
        user_id: Optional[int],
        category: str,
        amount: Amount,
        exclude_expense_id: Optional[int] = None,
    ) -> BudgetCheckResult:
        category = (category or "").strip()
        budget = self._budgets.get_budget(user_id, category)
        if budget is None:
            return BudgetCheckResult.unconstrained()

        current_spent = self._spent_in_category(user_id, category, exclude_expense_id)
        new_total = current_spent + _as_decimal(amount)
        return BudgetCheckResult(
            exceeds=new_total >= budget.limit,
            limit=budget.limit,
            current_spent=current_spent,
            new_total=new_total,
        )

    def check_budget(
        self,
        user_id: Optional[int],
        category: str,
        candidate_amount: Amount,
    ) -> BudgetCheckResult:
        """Would adding candidate_amount to category reach its budget?"""
        return self._check(user_id, category, candidate_amount)

    def check_budget_on_update(
        self,
        user_id: Optional[int],
        category: str,
        new_amount: Amount,
        exclude_expense_id: int,
    ) -> BudgetCheckResult:
        """
        Same as check_budget, but leaves the expense being edited out of
        the current spend so its old amount is not counted twice.
        """
        return self._check(user_id, category, new_amount, exclude_expense_id)

    def spend_by_category(self, user_id: Optional[int]) -> dict[str, Decimal]:
        """Total spent per category, in first-seen order (newest expense first)."""
        totals: dict[str, Decimal] = defaultdict(lambda: Decimal("0"))
        for expense in self._expenses.list_expenses(user_id):
            totals[expense.category] += expense.amount
        return dict(totals)

    def budget_statuses(self, user_id: Optional[int]) -> list[BudgetStatus]:
        """Progress of every budget the user has set."""
        spent = self.spend_by_category(user_id)
        warning_percent = self._settings.budget_warning_percent

        statuses = []
        for budget in self._budgets.list_budgets(user_id):
            category_spent = spent.get(budget.category, Decimal("0"))
            percentage = (
                float(category_spent / budget.limit * 100) if budget.limit > 0 else 0.0
            )
            if percentage >= 100:
                level = BudgetAlertLevel.EXCEEDED
            elif percentage >= warning_percent:
                level = BudgetAlertLevel.WARNING
            else:
                level = BudgetAlertLevel.OK

            statuses.append(BudgetStatus(
                category=budget.category,
                limit=budget.limit,
                spent=category_spent,
                percentage=percentage,
                alert_level=level,
            ))
        return statuses
