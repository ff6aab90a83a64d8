"""
SQLite Storage Implementation

Users, expenses and budgets live in one SQLite file accessed through a
single SQLAlchemy engine. The engine uses StaticPool, so every store in
the process shares exactly one connection.

SCHEMA VERSIONING: the schema version is kept in PRAGMA user_version.
When it differs from StorageSettings.schema_version all three tables are
dropped and recreated. Existing rows are lost on upgrade; this is the
intended v1 behaviour.

RECOVERY: if the file cannot be opened (missing directory permissions,
corrupt file) it is deleted and opened once more. A second failure marks
the database unavailable and every later call raises StorageError.
"""

import os
import sqlite3
from decimal import Decimal
from typing import Optional, Union

import structlog
from pydantic import ValidationError
from sqlalchemy import (
    Column,
    Float,
    ForeignKey,
    Integer,
    MetaData,
    PrimaryKeyConstraint,
    Table,
    Text,
    and_,
    create_engine,
    delete,
    event,
    insert,
    select,
    update,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.pool import StaticPool
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
)

from expense_ledger.config import LedgerSettings, StorageSettings, get_settings
from expense_ledger.models.ledger import Budget, Expense, User
from expense_ledger.services.storage.interface import (
    BudgetStorageInterface,
    DuplicateError,
    ExpenseStorageInterface,
    StorageError,
    UserStorageInterface,
    is_active_user,
    require_active_user,
)
from expense_ledger.validation import validate_category, validate_positive_amount


logger = structlog.get_logger(__name__)

MEMORY_DATABASE = ":memory:"

metadata = MetaData()

users_table = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", Text, unique=True, nullable=False),
    Column("password_hash", Text, nullable=False),
    Column("security_answer_hash", Text, nullable=False),
    sqlite_autoincrement=True,
)

expenses_table = Table(
    "expenses",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey("users.id"), nullable=False),
    Column("category", Text, nullable=False),
    Column("amount", Float, nullable=False),
    Column("note", Text),
    Column("date", Text),
    Column("image_ref", Text),
    sqlite_autoincrement=True,
)

budgets_table = Table(
    "budgets",
    metadata,
    Column("user_id", Integer, ForeignKey("users.id"), nullable=False),
    Column("category", Text, nullable=False),
    Column("limit", Float, nullable=False),
    PrimaryKeyConstraint("user_id", "category"),
)


def _to_decimal(value) -> Decimal:
    """REAL column value -> Decimal without binary float noise."""
    return Decimal(str(value))


def _enable_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _discard_database_file(retry_state: RetryCallState) -> None:
    """tenacity before_sleep hook: drop the broken file before the second attempt."""
    database = retry_state.args[0]
    outcome = retry_state.outcome
    logger.warning(
        "database_open_failed_recreating",
        path=database.path,
        error=str(outcome.exception()) if outcome else None,
    )
    database.discard_file()


class SQLiteDatabase:
    """
    Owner of the SQLite engine.

    Construct once per process and share between the stores.
    """

    def __init__(self, settings: Optional[StorageSettings] = None):
        self._settings = settings or get_settings().storage
        self._engine: Optional[Engine] = None
        self._unavailable = False

    @property
    def path(self) -> str:
        return self._settings.database_path

    @property
    def is_memory(self) -> bool:
        return self.path == MEMORY_DATABASE

    def _url(self) -> str:
        if self.is_memory:
            return "sqlite://"
        return f"sqlite:///{self.path}"

    @retry(
        stop=stop_after_attempt(2),
        retry=retry_if_exception_type(StorageError),
        before_sleep=_discard_database_file,
        reraise=True,
    )
    def connect(self) -> Engine:
        """
        Open the database and bring the schema to the configured version.

        A failed first attempt deletes the file and tries once more.
        """
        if self._engine is None:
            engine = create_engine(
                self._url(),
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
            )
            event.listen(engine, "connect", _enable_foreign_keys)
            try:
                self._ensure_schema(engine)
            except (SQLAlchemyError, sqlite3.Error) as e:
                engine.dispose()
                raise StorageError(f"Failed to open database {self.path}: {e}")
            self._engine = engine
        return self._engine

    def get_engine(self) -> Engine:
        """Return the shared engine, connecting on first use."""
        if self._engine is not None:
            return self._engine
        if self._unavailable:
            raise StorageError("Storage is unavailable")
        try:
            return self.connect()
        except StorageError:
            self._unavailable = True
            logger.error("database_unavailable", path=self.path)
            raise

    def _ensure_schema(self, engine: Engine) -> None:
        target = self._settings.schema_version
        with engine.begin() as conn:
            current = conn.exec_driver_sql("PRAGMA user_version").scalar() or 0
            if current != target:
                if current:
                    logger.warning(
                        "schema_upgrade_wiping_tables",
                        from_version=current,
                        to_version=target,
                    )
                metadata.drop_all(conn)
                metadata.create_all(conn)
                conn.exec_driver_sql(f"PRAGMA user_version = {int(target)}")
                logger.info("schema_created", version=target, path=self.path)
            else:
                metadata.create_all(conn)

    def discard_file(self) -> None:
        """Forget the engine and delete the database file (if on disk)."""
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
        if self.is_memory:
            return
        for suffix in ("", "-journal", "-wal", "-shm"):
            try:
                os.remove(self.path + suffix)
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.error("database_file_delete_failed", path=self.path + suffix, error=str(e))

    def reset(self) -> None:
        """Drop and recreate every table, losing all rows."""
        try:
            with self.get_engine().begin() as conn:
                metadata.drop_all(conn)
                metadata.create_all(conn)
                conn.exec_driver_sql(
                    f"PRAGMA user_version = {int(self._settings.schema_version)}"
                )
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to reset database: {e}")
        logger.warning("database_reset", path=self.path)

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None


class SQLiteUserStorage(UserStorageInterface):
    """SQLite implementation of user storage."""

    def __init__(self, database: SQLiteDatabase):
        self._db = database

    def _row_to_user(self, row) -> User:
        return User(
            id=row.id,
            username=row.username,
            password_hash=row.password_hash,
            security_answer_hash=row.security_answer_hash,
        )

    def insert_user(
        self,
        username: str,
        password_hash: str,
        security_answer_hash: str,
    ) -> int:
        try:
            with self._db.get_engine().begin() as conn:
                result = conn.execute(
                    insert(users_table).values(
                        username=username,
                        password_hash=password_hash,
                        security_answer_hash=security_answer_hash,
                    )
                )
                return int(result.inserted_primary_key[0])
        except IntegrityError as e:
            if "unique" in str(e.orig).lower():
                raise DuplicateError(f"Username already exists: {username}")
            raise StorageError(f"Failed to create user: {e}")
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to create user: {e}")

    def get_user_by_id(self, user_id: int) -> Optional[User]:
        try:
            with self._db.get_engine().connect() as conn:
                row = conn.execute(
                    select(users_table).where(users_table.c.id == user_id)
                ).first()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to get user: {e}")
        return self._row_to_user(row) if row else None

    def get_user_by_username(self, username: str) -> Optional[User]:
        try:
            with self._db.get_engine().connect() as conn:
                row = conn.execute(
                    select(users_table).where(users_table.c.username == username)
                ).first()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to get user: {e}")
        return self._row_to_user(row) if row else None

    def username_taken(
        self,
        username: str,
        exclude_user_id: Optional[int] = None,
    ) -> bool:
        query = select(users_table.c.id).where(users_table.c.username == username)
        if exclude_user_id is not None:
            query = query.where(users_table.c.id != exclude_user_id)
        try:
            with self._db.get_engine().connect() as conn:
                return conn.execute(query).first() is not None
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to check username: {e}")

    def update_username(self, user_id: int, username: str) -> bool:
        try:
            with self._db.get_engine().begin() as conn:
                result = conn.execute(
                    update(users_table)
                    .where(users_table.c.id == user_id)
                    .values(username=username)
                )
                return result.rowcount > 0
        except IntegrityError:
            raise DuplicateError(f"Username already exists: {username}")
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to update username: {e}")

    def update_password_hash(self, user_id: int, password_hash: str) -> bool:
        try:
            with self._db.get_engine().begin() as conn:
                result = conn.execute(
                    update(users_table)
                    .where(users_table.c.id == user_id)
                    .values(password_hash=password_hash)
                )
                return result.rowcount > 0
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to update password: {e}")

    def user_exists(self, user_id: int) -> bool:
        if not is_active_user(user_id):
            return False
        try:
            with self._db.get_engine().connect() as conn:
                row = conn.execute(
                    select(users_table.c.id).where(users_table.c.id == user_id)
                ).first()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to check user: {e}")
        return row is not None


class SQLiteExpenseStorage(ExpenseStorageInterface):
    """
    SQLite implementation of expense storage.

    Blank notes and dates are stored as the configured defaults.
    """

    def __init__(
        self,
        database: SQLiteDatabase,
        settings: Optional[LedgerSettings] = None,
    ):
        self._db = database
        self._settings = settings or get_settings().ledger

    def _prepare(
        self,
        category: str,
        amount: Union[Decimal, float, str],
        note: Optional[str],
        date: Optional[str],
        image_ref: Optional[str],
    ) -> dict:
        """Validate and normalise the mutable columns of an expense."""
        return {
            "category": validate_category(category),
            "amount": float(validate_positive_amount(amount)),
            "note": (note or "").strip() or self._settings.default_note,
            "date": (date or "").strip() or self._settings.default_date,
            "image_ref": image_ref or None,
        }

    def _row_to_expense(self, row) -> Expense:
        return Expense(
            id=row.id,
            user_id=row.user_id,
            category=row.category,
            amount=_to_decimal(row.amount),
            note=row.note or "",
            date=row.date or "",
            image_ref=row.image_ref,
        )

    def add_expense(
        self,
        user_id: Optional[int],
        category: str,
        amount: Union[Decimal, float, str],
        note: Optional[str] = None,
        date: Optional[str] = None,
        image_ref: Optional[str] = None,
    ) -> int:
        user_id = require_active_user(user_id)
        values = self._prepare(category, amount, note, date, image_ref)
        try:
            with self._db.get_engine().begin() as conn:
                result = conn.execute(
                    insert(expenses_table).values(user_id=user_id, **values)
                )
                return int(result.inserted_primary_key[0])
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to add expense: {e}")

    def get_expense(self, expense_id: int) -> Optional[Expense]:
        try:
            with self._db.get_engine().connect() as conn:
                row = conn.execute(
                    select(expenses_table).where(expenses_table.c.id == expense_id)
                ).first()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to get expense: {e}")
        return self._row_to_expense(row) if row else None

    def list_expenses(self, user_id: Optional[int]) -> list[Expense]:
        if not is_active_user(user_id):
            return []
        try:
            with self._db.get_engine().connect() as conn:
                rows = conn.execute(
                    select(expenses_table)
                    .where(expenses_table.c.user_id == user_id)
                    .order_by(expenses_table.c.id.desc())
                ).all()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to list expenses: {e}")

        expenses = []
        for row in rows:
            try:
                expenses.append(self._row_to_expense(row))
            except ValidationError as e:
                logger.warning("malformed_expense_row_skipped", expense_id=row.id, error=str(e))
        return expenses

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
        values = self._prepare(category, amount, note, date, image_ref)
        condition = expenses_table.c.id == expense_id
        if user_id is not None:
            condition = and_(condition, expenses_table.c.user_id == user_id)
        try:
            with self._db.get_engine().begin() as conn:
                result = conn.execute(
                    update(expenses_table).where(condition).values(**values)
                )
                return result.rowcount > 0
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to update expense: {e}")

    def delete_expense(self, expense_id: int, user_id: Optional[int] = None) -> bool:
        condition = expenses_table.c.id == expense_id
        if user_id is not None:
            condition = and_(condition, expenses_table.c.user_id == user_id)
        try:
            with self._db.get_engine().begin() as conn:
                result = conn.execute(delete(expenses_table).where(condition))
                return result.rowcount > 0
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to delete expense: {e}")

    def clear_expenses(self, user_id: Optional[int]) -> bool:
        user_id = require_active_user(user_id)
        try:
            with self._db.get_engine().begin() as conn:
                result = conn.execute(
                    delete(expenses_table).where(expenses_table.c.user_id == user_id)
                )
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to clear expenses: {e}")
        logger.info("expenses_cleared", user_id=user_id, count=result.rowcount)
        return True


class SQLiteBudgetStorage(BudgetStorageInterface):
    """SQLite implementation of budget storage."""

    def __init__(self, database: SQLiteDatabase):
        self._db = database

    def _row_to_budget(self, row) -> Budget:
        return Budget(
            user_id=row.user_id,
            category=row.category,
            limit=_to_decimal(row.limit),
        )

    def set_budget(
        self,
        user_id: Optional[int],
        category: str,
        limit: Union[Decimal, float, str],
    ) -> bool:
        user_id = require_active_user(user_id)
        category = validate_category(category)
        value = validate_positive_amount(limit, field="limit")
        try:
            with self._db.get_engine().begin() as conn:
                conn.execute(
                    insert(budgets_table)
                    .prefix_with("OR REPLACE")
                    .values(user_id=user_id, category=category, limit=float(value))
                )
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to set budget: {e}")
        return True

    def get_budget(self, user_id: Optional[int], category: str) -> Optional[Budget]:
        if not is_active_user(user_id):
            return None
        category = (category or "").strip()
        try:
            with self._db.get_engine().connect() as conn:
                row = conn.execute(
                    select(budgets_table).where(
                        budgets_table.c.user_id == user_id,
                        budgets_table.c.category == category,
                    )
                ).first()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to get budget: {e}")
        return self._row_to_budget(row) if row else None

    def list_budgets(self, user_id: Optional[int]) -> list[Budget]:
        if not is_active_user(user_id):
            return []
        try:
            with self._db.get_engine().connect() as conn:
                rows = conn.execute(
                    select(budgets_table).where(budgets_table.c.user_id == user_id)
                ).all()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to list budgets: {e}")
        return [self._row_to_budget(row) for row in rows]

    def delete_budget(self, user_id: Optional[int], category: str) -> bool:
        user_id = require_active_user(user_id)
        category = (category or "").strip()
        try:
            with self._db.get_engine().begin() as conn:
                result = conn.execute(
                    delete(budgets_table).where(
                        budgets_table.c.user_id == user_id,
                        budgets_table.c.category == category,
                    )
                )
                return result.rowcount > 0
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to delete budget: {e}")
