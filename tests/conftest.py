"""
Shared fixtures.

Every test gets its own SQLite file and key-value file under tmp_path,
so nothing leaks between tests or into the working directory.
"""

import pytest
from sqlalchemy import delete

from expense_ledger.accounts import SessionState, UserStore
from expense_ledger.budget import BudgetEngine
from expense_ledger.categories import CategoryRegistry
from expense_ledger.config import LedgerSettings, SecuritySettings, StorageSettings
from expense_ledger.orchestrator import create_ledger_engine
from expense_ledger.security import CredentialHasher
from expense_ledger.services.storage import (
    JsonPreferenceStorage,
    SQLiteBudgetStorage,
    SQLiteDatabase,
    SQLiteExpenseStorage,
    SQLiteUserStorage,
)
from expense_ledger.services.storage.sqlite import users_table
from expense_ledger.validation import CredentialValidator


FAKE_HASH = "0" * 64


@pytest.fixture
def storage_settings(tmp_path):
    return StorageSettings(
        database_path=str(tmp_path / "ledger.db"),
        preferences_path=str(tmp_path / "prefs.json"),
    )


@pytest.fixture
def security_settings():
    return SecuritySettings()


@pytest.fixture
def ledger_settings():
    return LedgerSettings()


@pytest.fixture
def database(storage_settings):
    db = SQLiteDatabase(storage_settings)
    yield db
    db.close()


@pytest.fixture
def preferences(storage_settings):
    return JsonPreferenceStorage(storage_settings)


@pytest.fixture
def user_storage(database):
    return SQLiteUserStorage(database)


@pytest.fixture
def expense_storage(database, ledger_settings):
    return SQLiteExpenseStorage(database, ledger_settings)


@pytest.fixture
def budget_storage(database):
    return SQLiteBudgetStorage(database)


@pytest.fixture
def hasher(security_settings):
    return CredentialHasher(security_settings)


@pytest.fixture
def user_store(user_storage, hasher, security_settings):
    return UserStore(user_storage, hasher, CredentialValidator(security_settings))


@pytest.fixture
def session(preferences, user_store):
    return SessionState(preferences, user_store)


@pytest.fixture
def registry(preferences, ledger_settings):
    return CategoryRegistry(preferences, ledger_settings)


@pytest.fixture
def budget_engine(expense_storage, budget_storage, ledger_settings):
    return BudgetEngine(expense_storage, budget_storage, ledger_settings)


@pytest.fixture
def make_user(user_storage):
    """Insert a bare user row and return its id."""
    def _make(username: str) -> int:
        return user_storage.insert_user(username, FAKE_HASH, FAKE_HASH)
    return _make


@pytest.fixture
def remove_user(database):
    """Delete a user row directly, bypassing every store."""
    def _remove(user_id: int) -> None:
        with database.get_engine().begin() as conn:
            conn.execute(delete(users_table).where(users_table.c.id == user_id))
    return _remove


@pytest.fixture
def audit_events():
    return []


@pytest.fixture
def ledger(storage_settings, security_settings, ledger_settings, audit_events):
    engine = create_ledger_engine(
        storage_settings,
        security_settings,
        ledger_settings,
        audit_sink=audit_events.append,
    )
    yield engine
    engine.close()


@pytest.fixture
def alice(ledger):
    """A ledger with alice signed up and logged in."""
    result = ledger.signup("alice", "secret", "Fluffy")
    assert result.success
    return result.value
