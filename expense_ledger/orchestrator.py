"""
Main Orchestrator for Expense Ledger

This module ties together all the components and exposes the
operations a UI collaborator calls:
1. Accounts (signup, login, logout, credential changes)
2. Expenses and budgets (CRUD scoped to the logged in user)
3. Budget checks, categories and analytics

DESIGN DECISION: the LedgerEngine enforces the boundaries:
- Nothing raises past this layer; every operation returns a LedgerResult
- User-scoped operations always act for the session user
- Every write is audited

Build one engine per process with create_ledger_engine() and pass it to
whoever needs it.
"""

from typing import Any, Callable, Optional

import structlog

from expense_ledger.accounts import SessionState, UserStore
from expense_ledger.audit import AuditLogger
from expense_ledger.budget import BudgetEngine
from expense_ledger.categories import CategoryRegistry
from expense_ledger.config import (
    LedgerSettings,
    SecuritySettings,
    StorageSettings,
    get_settings,
)
from expense_ledger.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from expense_ledger.models.ledger import (
    BreakdownSort,
    ExpenseQuery,
    SessionUser,
)
from expense_ledger.models.results import ErrorKind, LedgerError, LedgerResult
from expense_ledger.queries import ExpenseQueryExecutor
from expense_ledger.security import CredentialHasher
from expense_ledger.services.storage import (
    BudgetStorageInterface,
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
)
from expense_ledger.validation import CredentialValidator, validate_positive_amount


logger = structlog.get_logger(__name__)


class LedgerEngine:
    """
    The collaborator-facing facade.

    Holds the one storage handle and session for the process. Every
    public method returns a LedgerResult; failures carry an ErrorKind
    and a message that is safe to show the user.
    """

    def __init__(
        self,
        database: SQLiteDatabase,
        preferences: PreferenceStorageInterface,
        users: UserStore,
        session: SessionState,
        expenses: ExpenseStorageInterface,
        budgets: BudgetStorageInterface,
        categories: CategoryRegistry,
        budget_engine: BudgetEngine,
        audit_logger: Optional[AuditLogger] = None,
        query_executor: Optional[ExpenseQueryExecutor] = None,
    ):
        self._database = database
        self._preferences = preferences
        self._users = users
        self._session = session
        self._expenses = expenses
        self._budgets = budgets
        self._categories = categories
        self._budget_engine = budget_engine
        self._audit_logger = audit_logger
        self._query_executor = query_executor or ExpenseQueryExecutor()

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _audit(self, event: AuditEvent) -> None:
        if self._audit_logger:
            self._audit_logger.log(event)

    def _fail(
        self,
        operation: str,
        error: LedgerError,
        user_id: Optional[int] = None,
    ) -> LedgerResult:
        if error.kind == ErrorKind.STORAGE_ERROR:
            logger.error("operation_failed", operation=operation, error=str(error))
            self._audit(AuditEventBuilder.storage_error(operation, str(error), user_id))
            return LedgerResult.fail(error.kind, message=StorageError.user_message)
        return LedgerResult.from_error(error)

    def _require_session(self) -> SessionUser:
        session = self._session.current()
        if session is None:
            raise NoActiveSessionError()
        return session

    def _session_user_id(self) -> Optional[int]:
        return self._session.current_user_id()

    # -------------------------------------------------------------------------
    # Accounts
    # -------------------------------------------------------------------------

    def signup(
        self,
        username: str,
        password: str,
        security_answer: str,
    ) -> LedgerResult:
        """Create an account and log it in. Value: the new SessionUser."""
        try:
            user_id = self._users.create_user(username, password, security_answer)
            user = self._users.find_by_id(user_id)
            if user is None:
                raise StorageError(f"User {user_id} missing right after insert")
            session = self._session.save(user)
        except LedgerError as e:
            return self._fail("signup", e)

        self._audit(AuditEventBuilder.user_signed_up(session.user_id, session.username))
        return LedgerResult.ok(session)

    def login(self, username: str, password: str) -> LedgerResult:
        """Verify credentials and start a session. Value: the SessionUser."""
        try:
            user = self._users.verify_credentials(username, password)
            session = self._session.save(user)
        except LedgerError as e:
            if e.kind == ErrorKind.INVALID_CREDENTIALS:
                self._audit(AuditEventBuilder.login((username or "").strip(), succeeded=False))
            return self._fail("login", e)

        self._audit(AuditEventBuilder.login(session.username, True, session.user_id))
        return LedgerResult.ok(session)

    def logout(self) -> LedgerResult:
        try:
            user_id = self._session_user_id()
            self._session.clear()
        except LedgerError as e:
            return self._fail("logout", e)

        self._audit(AuditEventBuilder.logged_out(user_id))
        return LedgerResult.ok()

    def get_current_user(self) -> LedgerResult:
        """Value: the SessionUser, or None when nobody is logged in."""
        try:
            return LedgerResult.ok(self._session.current())
        except LedgerError as e:
            return self._fail("get_current_user", e)

    def update_username(self, new_username: str) -> LedgerResult:
        """Rename the logged in user. The session follows the new name."""
        user_id = None
        try:
            user_id = self._require_session().user_id
            name = self._users.update_username(user_id, new_username)
            session = self._session.save(SessionUser(user_id=user_id, username=name))
        except LedgerError as e:
            return self._fail("update_username", e, user_id)

        self._audit(AuditEventBuilder.account_updated(
            AuditEventType.USERNAME_UPDATED,
            user_id,
            f"Username changed to {name}",
        ))
        return LedgerResult.ok(session)

    def update_password(self, current_password: str, new_password: str) -> LedgerResult:
        user_id = None
        try:
            user_id = self._require_session().user_id
            self._users.update_password(user_id, current_password, new_password)
        except LedgerError as e:
            return self._fail("update_password", e, user_id)

        self._audit(AuditEventBuilder.account_updated(
            AuditEventType.PASSWORD_UPDATED,
            user_id,
            "Password changed",
        ))
        return LedgerResult.ok()

    def reset_password(
        self,
        username: str,
        security_answer: str,
        new_password: str,
    ) -> LedgerResult:
        """Replace a forgotten password. Does not log the user in."""
        try:
            user_id = self._users.reset_password(username, security_answer, new_password)
        except NotFoundError as e:
            self._audit(AuditEventBuilder.account_updated(
                AuditEventType.PASSWORD_RESET_FAILED,
                None,
                "Password reset rejected: no matching account",
                succeeded=False,
            ))
            return self._fail("reset_password", e)
        except LedgerError as e:
            return self._fail("reset_password", e)

        self._audit(AuditEventBuilder.account_updated(
            AuditEventType.PASSWORD_RESET,
            user_id,
            "Password reset with security answer",
        ))
        return LedgerResult.ok()

    # -------------------------------------------------------------------------
    # Expenses
    # -------------------------------------------------------------------------

    def add_expense(
        self,
        category: str,
        amount: Any,
        note: Optional[str] = None,
        date: Optional[str] = None,
        image_ref: Optional[str] = None,
    ) -> LedgerResult:
        """Record an expense for the session user. Value: the new expense id."""
        user_id = None
        try:
            user_id = self._session_user_id()
            expense_id = self._expenses.add_expense(
                user_id, category, amount, note, date, image_ref
            )
        except LedgerError as e:
            return self._fail("add_expense", e, user_id)

        self._audit(AuditEventBuilder.expense_added(
            user_id, expense_id, category.strip(), str(amount)
        ))
        return LedgerResult.ok(expense_id)

    def list_expenses(self) -> LedgerResult:
        """Value: the session user's expenses, most recently added first."""
        try:
            return LedgerResult.ok(self._expenses.list_expenses(self._session_user_id()))
        except LedgerError as e:
            return self._fail("list_expenses", e)

    def update_expense(
        self,
        expense_id: int,
        category: str,
        amount: Any,
        note: Optional[str] = None,
        date: Optional[str] = None,
        image_ref: Optional[str] = None,
    ) -> LedgerResult:
        """
        Replace an expense's fields.

        Value: True if a row was updated, False if the id matched nothing
        the session user owns.
        """
        user_id = None
        try:
            user_id = self._require_session().user_id
            updated = self._expenses.update_expense(
                expense_id, category, amount, note, date, image_ref, user_id=user_id
            )
        except LedgerError as e:
            return self._fail("update_expense", e, user_id)

        if updated:
            self._audit(AuditEventBuilder.expense_changed(
                AuditEventType.EXPENSE_UPDATED,
                user_id,
                expense_id,
                f"Expense updated: {category.strip()} - {amount}",
            ))
        return LedgerResult.ok(updated)

    def delete_expense(self, expense_id: int) -> LedgerResult:
        user_id = None
        try:
            user_id = self._require_session().user_id
            deleted = self._expenses.delete_expense(expense_id, user_id=user_id)
        except LedgerError as e:
            return self._fail("delete_expense", e, user_id)

        if deleted:
            self._audit(AuditEventBuilder.expense_changed(
                AuditEventType.EXPENSE_DELETED,
                user_id,
                expense_id,
                "Expense deleted",
            ))
        return LedgerResult.ok(deleted)

    def clear_expenses(self) -> LedgerResult:
        """Delete every expense of the session user."""
        user_id = None
        try:
            user_id = self._session_user_id()
            cleared = self._expenses.clear_expenses(user_id)
        except LedgerError as e:
            return self._fail("clear_expenses", e, user_id)

        self._audit(AuditEventBuilder.expense_changed(
            AuditEventType.EXPENSES_CLEARED,
            user_id,
            None,
            "All expenses cleared",
        ))
        return LedgerResult.ok(cleared)

    # -------------------------------------------------------------------------
    # Budgets
    # -------------------------------------------------------------------------

    def set_budget(self, category: str, limit: Any) -> LedgerResult:
        """Create or replace the budget for a category."""
        user_id = None
        try:
            user_id = self._session_user_id()
            saved = self._budgets.set_budget(user_id, category, limit)
        except LedgerError as e:
            return self._fail("set_budget", e, user_id)

        self._audit(AuditEventBuilder.budget_changed(
            AuditEventType.BUDGET_SET, user_id, category.strip(), str(limit)
        ))
        return LedgerResult.ok(saved)

    def list_budgets(self) -> LedgerResult:
        try:
            return LedgerResult.ok(self._budgets.list_budgets(self._session_user_id()))
        except LedgerError as e:
            return self._fail("list_budgets", e)

    def delete_budget(self, category: str) -> LedgerResult:
        user_id = None
        try:
            user_id = self._session_user_id()
            deleted = self._budgets.delete_budget(user_id, category)
        except LedgerError as e:
            return self._fail("delete_budget", e, user_id)

        if deleted:
            self._audit(AuditEventBuilder.budget_changed(
                AuditEventType.BUDGET_DELETED, user_id, category.strip()
            ))
        return LedgerResult.ok(deleted)

    def _audit_threshold(self, user_id: int, category: str, result) -> None:
        if result.exceeds:
            self._audit(AuditEventBuilder.budget_threshold_reached(
                user_id, category, str(result.limit), str(result.new_total)
            ))

    def check_budget(self, category: str, amount: Any) -> LedgerResult:
        """
        Would adding amount to category reach its budget?

        Value: BudgetCheckResult. Warns, never blocks.
        """
        user_id = None
        try:
            user_id = self._require_session().user_id
            result = self._budget_engine.check_budget(
                user_id, category, validate_positive_amount(amount)
            )
        except LedgerError as e:
            return self._fail("check_budget", e, user_id)

        self._audit_threshold(user_id, category, result)
        return LedgerResult.ok(result)

    def check_budget_on_update(
        self,
        category: str,
        new_amount: Any,
        exclude_expense_id: int,
    ) -> LedgerResult:
        """check_budget for an edit: the edited expense's old amount is left out."""
        user_id = None
        try:
            user_id = self._require_session().user_id
            result = self._budget_engine.check_budget_on_update(
                user_id,
                category,
                validate_positive_amount(new_amount),
                exclude_expense_id,
            )
        except LedgerError as e:
            return self._fail("check_budget_on_update", e, user_id)

        self._audit_threshold(user_id, category, result)
        return LedgerResult.ok(result)

    def budget_statuses(self) -> LedgerResult:
        """Value: a BudgetStatus for every budget of the session user."""
        try:
            return LedgerResult.ok(
                self._budget_engine.budget_statuses(self._session_user_id())
            )
        except LedgerError as e:
            return self._fail("budget_statuses", e)

    def spend_by_category(self) -> LedgerResult:
        try:
            return LedgerResult.ok(
                self._budget_engine.spend_by_category(self._session_user_id())
            )
        except LedgerError as e:
            return self._fail("spend_by_category", e)

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    def list_categories(self) -> LedgerResult:
        try:
            user_id = self._session_user_id()
        except LedgerError as e:
            logger.error("session_lookup_failed", operation="list_categories", error=str(e))
            user_id = None
        return LedgerResult.ok(self._categories.list(user_id))

    def add_category(self, name: str) -> LedgerResult:
        """Value: False when nobody is logged in or the name is blank or taken."""
        user_id = None
        try:
            user_id = self._session_user_id()
            added = self._categories.add(user_id, name)
        except LedgerError as e:
            return self._fail("add_category", e, user_id)

        if added:
            self._audit(AuditEventBuilder.category_added(user_id, name.strip()))
        return LedgerResult.ok(added)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def search_expenses(self, query: Optional[ExpenseQuery] = None) -> LedgerResult:
        """Value: ExpenseQueryResult for the session user's expenses."""
        try:
            expenses = self._expenses.list_expenses(self._session_user_id())
        except LedgerError as e:
            return self._fail("search_expenses", e)
        return LedgerResult.ok(self._query_executor.execute(expenses, query))

    def category_breakdown(
        self,
        search: str = "",
        sort: BreakdownSort = BreakdownSort.AMOUNT_DESC,
    ) -> LedgerResult:
        """Value: list of CategoryBreakdown rows."""
        try:
            expenses = self._expenses.list_expenses(self._session_user_id())
        except LedgerError as e:
            return self._fail("category_breakdown", e)
        return LedgerResult.ok(self._query_executor.breakdown(expenses, search, sort))

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def reset_all_data(self) -> LedgerResult:
        """Wipe everything: session, category lists and all three tables."""
        try:
            self._preferences.clear()
            self._database.reset()
        except LedgerError as e:
            return self._fail("reset_all_data", e)

        self._audit(AuditEventBuilder.data_reset())
        return LedgerResult.ok()

    def close(self) -> None:
        self._database.close()


def create_ledger_engine(
    storage_settings: Optional[StorageSettings] = None,
    security_settings: Optional[SecuritySettings] = None,
    ledger_settings: Optional[LedgerSettings] = None,
    audit_sink: Optional[Callable[[AuditEvent], None]] = None,
) -> LedgerEngine:
    """
    Factory function to create all ledger components.

    Settings not given are read from the environment. The database is
    opened eagerly; if it cannot be opened even after recreating it, the
    engine is still returned and storage-backed operations report
    storage_error.
    """
    settings = get_settings()
    storage_settings = storage_settings or settings.storage
    security_settings = security_settings or settings.security
    ledger_settings = ledger_settings or settings.ledger

    audit_logger = AuditLogger(sink=audit_sink)

    database = SQLiteDatabase(storage_settings)
    try:
        database.get_engine()
    except StorageError as e:
        # Storage unavailable - continue, operations will report it
        logger.error("storage_unavailable", path=database.path, error=str(e))
        audit_logger.log(AuditEventBuilder.storage_error("open_database", str(e)))

    preferences = JsonPreferenceStorage(storage_settings)
    expenses = SQLiteExpenseStorage(database, ledger_settings)
    budgets = SQLiteBudgetStorage(database)

    users = UserStore(
        SQLiteUserStorage(database),
        CredentialHasher(security_settings),
        CredentialValidator(security_settings),
    )

    return LedgerEngine(
        database=database,
        preferences=preferences,
        users=users,
        session=SessionState(preferences, users, audit_logger),
        expenses=expenses,
        budgets=budgets,
        categories=CategoryRegistry(preferences, ledger_settings),
        budget_engine=BudgetEngine(expenses, budgets, ledger_settings),
        audit_logger=audit_logger,
    )
