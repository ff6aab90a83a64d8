"""
Expense Query Execution

Search, sort and summarise expense listings and the per-category
breakdown. Queries run over expenses already loaded from storage; the
executor never touches storage itself.

Expense dates are free text. For sorting they are parsed with the
formats the ledger accepts ("October 5, 2025", "Oct 5, 2025",
"2025-10-05", "10/05/2025"); a blank date or "Today" means today, and
anything unparseable sorts last in either direction.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Optional

from expense_ledger.models.ledger import (
    BreakdownSort,
    CategoryBreakdown,
    Expense,
    ExpenseQuery,
    ExpenseQueryResult,
    ExpenseSort,
)


DATE_FORMATS = (
    "%B %d, %Y",
    "%b %d, %Y",
    "%Y-%m-%d",
    "%m/%d/%Y",
)

TODAY_MARKER = "today"


def parse_expense_date(value: Optional[str], today: Optional[date] = None) -> Optional[date]:
    """Parse a free-text expense date, or return None if it is unrecognised."""
    text = (value or "").strip()
    if not text or text.lower() == TODAY_MARKER:
        return today or date.today()

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def _matches(expense: Expense, needle: str) -> bool:
    return (
        needle in expense.note.lower()
        or needle in expense.category.lower()
        or needle in f"{expense.amount:.2f}"
        or needle in expense.date.lower()
    )


class ExpenseQueryExecutor:
    """
    Runs ExpenseQuery objects over a list of expenses.

    GUARANTEES:
    - Only returns expenses it was given
    - total_amount is the sum of exactly the expenses returned
    """

    def __init__(self, today: Optional[date] = None):
        self._today = today

    def execute(
        self,
        expenses: Iterable[Expense],
        query: Optional[ExpenseQuery] = None,
    ) -> ExpenseQueryResult:
        query = query or ExpenseQuery()
        needle = query.search.lower()

        matched = []
        for expense in expenses:
            if query.category_filter and expense.category != query.category_filter:
                continue
            if needle and not _matches(expense, needle):
                continue
            matched.append(expense)

        ordered = self._sort(matched, query.sort)
        total = sum((e.amount for e in ordered), Decimal("0"))

        desc_parts = ["Listing expenses"]
        if query.category_filter:
            desc_parts.append(f"category: {query.category_filter}")
        if needle:
            desc_parts.append(f"matching: {query.search}")
        desc_parts.append(f"sorted by {query.sort.value}")

        return ExpenseQueryResult(
            expenses=ordered,
            result_count=len(ordered),
            total_amount=total,
            query_description=" | ".join(desc_parts),
        )

    def _sort(self, expenses: list[Expense], sort: ExpenseSort) -> list[Expense]:
        if sort in (ExpenseSort.DATE_DESC, ExpenseSort.DATE_ASC):
            descending = sort == ExpenseSort.DATE_DESC

            def date_key(expense: Expense):
                parsed = parse_expense_date(expense.date, self._today)
                if parsed is None:
                    return (1, 0)
                ordinal = parsed.toordinal()
                return (0, -ordinal if descending else ordinal)

            return sorted(expenses, key=date_key)

        if sort == ExpenseSort.AMOUNT_DESC:
            return sorted(expenses, key=lambda e: e.amount, reverse=True)
        if sort == ExpenseSort.AMOUNT_ASC:
            return sorted(expenses, key=lambda e: e.amount)
        if sort == ExpenseSort.CATEGORY_ASC:
            return sorted(expenses, key=lambda e: e.category.lower())
        if sort == ExpenseSort.CATEGORY_DESC:
            return sorted(expenses, key=lambda e: e.category.lower(), reverse=True)
        return list(expenses)

    def breakdown(
        self,
        expenses: Iterable[Expense],
        search: str = "",
        sort: BreakdownSort = BreakdownSort.AMOUNT_DESC,
    ) -> list[CategoryBreakdown]:
        """
        Total per category with its share of overall spending.

        Percentages are computed against every expense given, before the
        search filter is applied.
        """
        totals: dict[str, Decimal] = {}
        for expense in expenses:
            totals[expense.category] = totals.get(expense.category, Decimal("0")) + expense.amount

        overall = sum(totals.values(), Decimal("0"))
        rows = [
            CategoryBreakdown(
                category=category,
                amount=amount,
                percentage=float(amount / overall * 100) if overall > 0 else 0.0,
            )
            for category, amount in totals.items()
        ]

        needle = search.strip().lower()
        if needle:
            rows = [
                row for row in rows
                if needle in row.category.lower()
                or needle in f"{row.amount:.2f}"
                or needle in f"{row.percentage:.1f}"
            ]

        return self._sort_breakdown(rows, sort)

    def _sort_breakdown(
        self,
        rows: list[CategoryBreakdown],
        sort: BreakdownSort,
    ) -> list[CategoryBreakdown]:
        if sort == BreakdownSort.AMOUNT_DESC:
            return sorted(rows, key=lambda r: r.amount, reverse=True)
        if sort == BreakdownSort.AMOUNT_ASC:
            return sorted(rows, key=lambda r: r.amount)
        if sort == BreakdownSort.NAME_ASC:
            return sorted(rows, key=lambda r: r.category.lower())
        if sort == BreakdownSort.NAME_DESC:
            return sorted(rows, key=lambda r: r.category.lower(), reverse=True)
        if sort == BreakdownSort.PERCENTAGE_DESC:
            return sorted(rows, key=lambda r: r.percentage, reverse=True)
        if sort == BreakdownSort.PERCENTAGE_ASC:
            return sorted(rows, key=lambda r: r.percentage)
        return rows
