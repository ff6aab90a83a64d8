"""
Tests for the storage layer

Expenses, budgets and the key-value store, plus schema versioning and
the recreate-once recovery of the SQLite file.
"""

import os
from decimal import Decimal

import pytest

from expense_ledger.config import StorageSettings
from expense_ledger.services.storage import (
    JsonPreferenceStorage,
    NoActiveSessionError,
    SQLiteDatabase,
    SQLiteUserStorage,
    StorageError,
)
from expense_ledger.validation import ValidationFailedError


class TestExpenseStorage:
    """Tests for SQLiteExpenseStorage."""

    def test_add_and_get(self, expense_storage, make_user):
        user_id = make_user("alice")
        expense_id = expense_storage.add_expense(
            user_id, "Food", Decimal("12.50"), "Lunch", "2025-01-05", "receipt-1"
        )
        expense = expense_storage.get_expense(expense_id)
        assert expense.user_id == user_id
        assert expense.category == "Food"
        assert expense.amount == Decimal("12.50")
        assert expense.note == "Lunch"
        assert expense.date == "2025-01-05"
        assert expense.image_ref == "receipt-1"

    def test_blank_note_and_date_get_defaults(self, expense_storage, make_user):
        user_id = make_user("alice")
        expense_id = expense_storage.add_expense(user_id, "Food", "3", "   ", None)
        expense = expense_storage.get_expense(expense_id)
        assert expense.note == "No note"
        assert expense.date == "Today"
        assert expense.image_ref is None

    def test_list_is_most_recent_first(self, expense_storage, make_user):
        """Test that listing orders by insertion, not by the date text."""
        user_id = make_user("alice")
        a = expense_storage.add_expense(user_id, "Food", 1, date="2030-12-31")
        b = expense_storage.add_expense(user_id, "Food", 2, date="1999-01-01")
        c = expense_storage.add_expense(user_id, "Food", 3, date="June 5, 2024")

        assert [e.id for e in expense_storage.list_expenses(user_id)] == [c, b, a]

    def test_float_amounts_round_trip(self, expense_storage, make_user):
        user_id = make_user("alice")
        expense_id = expense_storage.add_expense(user_id, "Food", 19.99)
        assert expense_storage.get_expense(expense_id).amount == Decimal("19.99")

    @pytest.mark.parametrize("user_id", [None, 0, -3])
    def test_add_without_session(self, expense_storage, user_id):
        with pytest.raises(NoActiveSessionError):
            expense_storage.add_expense(user_id, "Food", 10)

    @pytest.mark.parametrize(
        "amount", [0, -1, "abc", "NaN", Decimal("1e-400"), Decimal("1e400")]
    )
    def test_add_rejects_bad_amounts(self, expense_storage, make_user, amount):
        user_id = make_user("alice")
        with pytest.raises(ValidationFailedError):
            expense_storage.add_expense(user_id, "Food", amount)

    def test_add_rejects_blank_category(self, expense_storage, make_user):
        user_id = make_user("alice")
        with pytest.raises(ValidationFailedError):
            expense_storage.add_expense(user_id, "  ", 10)

    def test_add_for_unknown_user_is_storage_error(self, expense_storage, database):
        database.get_engine()
        with pytest.raises(StorageError):
            expense_storage.add_expense(999, "Food", 10)

    def test_update_replaces_mutable_fields(self, expense_storage, make_user):
        user_id = make_user("alice")
        expense_id = expense_storage.add_expense(user_id, "Food", 10, "Lunch", "Today")

        assert expense_storage.update_expense(
            expense_id, "Transport", Decimal("4.20"), "Bus", "2025-02-01", "img"
        ) is True

        expense = expense_storage.get_expense(expense_id)
        assert expense.id == expense_id
        assert expense.user_id == user_id
        assert expense.category == "Transport"
        assert expense.amount == Decimal("4.20")
        assert expense.note == "Bus"
        assert expense.date == "2025-02-01"
        assert expense.image_ref == "img"

    def test_update_unknown_id(self, expense_storage, database):
        database.get_engine()
        assert expense_storage.update_expense(12345, "Food", 1) is False

    def test_update_and_delete_scoped_to_owner(self, expense_storage, make_user):
        alice = make_user("alice")
        bob = make_user("bob")
        expense_id = expense_storage.add_expense(alice, "Food", 10)

        assert expense_storage.update_expense(expense_id, "Food", 99, user_id=bob) is False
        assert expense_storage.delete_expense(expense_id, user_id=bob) is False
        assert expense_storage.get_expense(expense_id).amount == Decimal("10")

    def test_delete(self, expense_storage, make_user):
        user_id = make_user("alice")
        expense_id = expense_storage.add_expense(user_id, "Food", 10)
        assert expense_storage.delete_expense(expense_id) is True
        assert expense_storage.delete_expense(expense_id) is False
        assert expense_storage.get_expense(expense_id) is None

    def test_clear_only_touches_one_user(self, expense_storage, make_user):
        alice = make_user("alice")
        bob = make_user("bob")
        for amount in (1, 2, 3):
            expense_storage.add_expense(alice, "Food", amount)
        bob_expense = expense_storage.add_expense(bob, "Food", 5)

        assert expense_storage.clear_expenses(alice) is True

        assert expense_storage.list_expenses(alice) == []
        assert [e.id for e in expense_storage.list_expenses(bob)] == [bob_expense]

    def test_clear_with_nothing_to_clear(self, expense_storage, make_user):
        assert expense_storage.clear_expenses(make_user("alice")) is True

    def test_ids_are_never_reused(self, expense_storage, make_user):
        user_id = make_user("alice")
        first = expense_storage.add_expense(user_id, "Food", 1)
        expense_storage.delete_expense(first)
        assert expense_storage.add_expense(user_id, "Food", 1) > first


class TestBudgetStorage:
    """Tests for SQLiteBudgetStorage."""

    def test_set_and_get(self, budget_storage, make_user):
        user_id = make_user("alice")
        assert budget_storage.set_budget(user_id, "Food", Decimal("100.00")) is True
        budget = budget_storage.get_budget(user_id, "Food")
        assert budget.limit == Decimal("100.00")

    def test_set_is_an_upsert(self, budget_storage, make_user):
        user_id = make_user("alice")
        budget_storage.set_budget(user_id, "Food", 100)
        budget_storage.set_budget(user_id, "Food", 250)

        budgets = budget_storage.list_budgets(user_id)
        assert len(budgets) == 1
        assert budgets[0].limit == Decimal("250")

    @pytest.mark.parametrize("limit", [0, -10, Decimal("1e-400"), Decimal("1e400")])
    def test_unstorable_limit_rejected(self, budget_storage, make_user, limit):
        with pytest.raises(ValidationFailedError):
            budget_storage.set_budget(make_user("alice"), "Food", limit)

    def test_set_without_session(self, budget_storage):
        with pytest.raises(NoActiveSessionError):
            budget_storage.set_budget(0, "Food", 100)

    def test_budgets_are_per_user(self, budget_storage, make_user):
        alice = make_user("alice")
        bob = make_user("bob")
        budget_storage.set_budget(alice, "Food", 100)
        assert budget_storage.get_budget(bob, "Food") is None
        assert budget_storage.list_budgets(bob) == []

    def test_delete(self, budget_storage, make_user):
        user_id = make_user("alice")
        budget_storage.set_budget(user_id, "Food", 100)
        assert budget_storage.delete_budget(user_id, "Food") is True
        assert budget_storage.delete_budget(user_id, "Food") is False
        assert budget_storage.get_budget(user_id, "Food") is None

    def test_category_is_trimmed_on_every_path(self, budget_storage, make_user):
        """Test that a padded category finds and deletes the trimmed budget."""
        user_id = make_user("alice")
        budget_storage.set_budget(user_id, " Food ", 100)

        assert [b.category for b in budget_storage.list_budgets(user_id)] == ["Food"]
        assert budget_storage.get_budget(user_id, " Food ").limit == Decimal("100")
        assert budget_storage.delete_budget(user_id, " Food ") is True
        assert budget_storage.get_budget(user_id, "Food") is None

    def test_no_session_reads_are_empty(self, budget_storage):
        assert budget_storage.get_budget(None, "Food") is None
        assert budget_storage.list_budgets(0) == []


class TestPreferenceStorage:
    """Tests for the JSON key-value store."""

    def test_missing_file_is_empty(self, preferences):
        assert preferences.get("anything") is None

    def test_values_persist(self, preferences, storage_settings):
        preferences.set_many({"user_id": 3, "username": "alice"})
        reopened = JsonPreferenceStorage(storage_settings)
        assert reopened.get("user_id") == 3
        assert reopened.get("username") == "alice"

    def test_remove_and_clear(self, preferences):
        preferences.set_many({"a": 1, "b": "two", "c": True})
        preferences.remove("a", "missing")
        assert preferences.get("a") is None
        assert preferences.get("b") == "two"

        preferences.clear()
        assert preferences.get("b") is None
        assert preferences.get("c") is None

    def test_corrupt_file_reads_as_empty(self, storage_settings):
        with open(storage_settings.preferences_path, "w", encoding="utf-8") as f:
            f.write("{ not json")
        store = JsonPreferenceStorage(storage_settings)
        assert store.get("user_id") is None
        store.set("user_id", 1)
        assert JsonPreferenceStorage(storage_settings).get("user_id") == 1

    def test_writes_leave_no_temp_files(self, preferences, tmp_path):
        preferences.set("a", 1)
        preferences.set("b", 2)
        assert sorted(os.listdir(tmp_path)) == ["prefs.json"]


class TestDatabaseLifecycle:
    """Tests for schema versioning, reset and recovery."""

    def _user_version(self, database):
        with database.get_engine().connect() as conn:
            return conn.exec_driver_sql("PRAGMA user_version").scalar()

    def test_schema_version_recorded(self, database):
        assert self._user_version(database) == 5

    def test_version_change_wipes_tables(self, storage_settings):
        """Test that a schema upgrade drops every row."""
        old = SQLiteDatabase(storage_settings)
        SQLiteUserStorage(old).insert_user("alice", "h", "h")
        old.close()

        upgraded_settings = StorageSettings(
            database_path=storage_settings.database_path,
            preferences_path=storage_settings.preferences_path,
            schema_version=6,
        )
        upgraded = SQLiteDatabase(upgraded_settings)
        try:
            assert SQLiteUserStorage(upgraded).get_user_by_username("alice") is None
            assert self._user_version(upgraded) == 6
        finally:
            upgraded.close()

    def test_same_version_keeps_rows(self, storage_settings):
        first = SQLiteDatabase(storage_settings)
        SQLiteUserStorage(first).insert_user("alice", "h", "h")
        first.close()

        second = SQLiteDatabase(storage_settings)
        try:
            assert SQLiteUserStorage(second).get_user_by_username("alice") is not None
        finally:
            second.close()

    def test_reset_drops_everything(self, database, user_storage):
        user_id = user_storage.insert_user("alice", "h", "h")
        database.reset()
        assert user_storage.user_exists(user_id) is False
        assert self._user_version(database) == 5

    def test_corrupt_file_is_recreated(self, storage_settings):
        """Test that an unreadable database is deleted and opened once more."""
        with open(storage_settings.database_path, "wb") as f:
            f.write(b"this is not a sqlite database " * 100)

        database = SQLiteDatabase(storage_settings)
        try:
            user_id = SQLiteUserStorage(database).insert_user("alice", "h", "h")
            assert user_id > 0
        finally:
            database.close()

    def test_unopenable_database_is_unavailable(self, tmp_path):
        """Test that a second failure surfaces as StorageError every time."""
        settings = StorageSettings(
            database_path=str(tmp_path / "missing-dir" / "ledger.db"),
            preferences_path=str(tmp_path / "prefs.json"),
        )
        database = SQLiteDatabase(settings)
        storage = SQLiteUserStorage(database)

        with pytest.raises(StorageError):
            storage.get_user_by_username("alice")
        with pytest.raises(StorageError):
            storage.get_user_by_username("alice")
