"""Tests for the UserStore account rules."""

import pytest

from expense_ledger.accounts import (
    DuplicateUsernameError,
    InvalidCredentialsError,
    UserStore,
    WrongCurrentPasswordError,
)
from expense_ledger.config import SecuritySettings
from expense_ledger.models import ErrorKind
from expense_ledger.security import CredentialHasher
from expense_ledger.services.storage import (
    DuplicateError,
    NotFoundError,
    SQLiteUserStorage,
    StorageError,
)
from expense_ledger.validation import CredentialValidator, ValidationFailedError


class TestSignupAndLogin:
    """Tests for createUser and verifyCredentials."""

    @pytest.mark.parametrize("username", ["alice", "  alice  ", "Bob Smith", "\tcarol\n"])
    def test_created_user_can_log_in(self, user_store, username):
        """Test that signup then login succeeds and returns the trimmed username."""
        user_id = user_store.create_user(username, "secret", "Fluffy")
        user = user_store.verify_credentials(username, "secret")
        assert user.id == user_id
        assert user.username == username.strip()

    def test_duplicate_username_rejected(self, user_store):
        """Test that the same trimmed username cannot sign up twice."""
        user_store.create_user("alice", "secret", "Fluffy")
        with pytest.raises(DuplicateUsernameError):
            user_store.create_user("  alice ", "different", "Rex")

    def test_usernames_are_case_sensitive(self, user_store):
        user_store.create_user("alice", "secret", "Fluffy")
        assert user_store.create_user("Alice", "secret", "Fluffy") > 0

    def test_duplicate_from_insert_maps_to_duplicate_username(self, database, hasher):
        """Test that a unique-index violation on insert is still a duplicate."""

        class NoPrecheckStorage(SQLiteUserStorage):
            def username_taken(self, username, exclude_user_id=None):
                return False

        storage = NoPrecheckStorage(database)
        store = UserStore(storage, hasher, CredentialValidator())
        store.create_user("alice", "secret", "Fluffy")
        with pytest.raises(DuplicateUsernameError) as exc_info:
            store.create_user("alice", "secret", "Fluffy")
        assert exc_info.value.kind == ErrorKind.DUPLICATE_USERNAME

    def test_storage_reports_raw_duplicate(self, user_storage):
        user_storage.insert_user("alice", "h", "h")
        with pytest.raises(DuplicateError):
            user_storage.insert_user("alice", "h", "h")

    @pytest.mark.parametrize(
        "username,password,answer,field",
        [
            ("   ", "secret", "Fluffy", "username"),
            ("alice", "ab", "Fluffy", "password"),
            ("alice", "secret", "   ", "security_answer"),
        ],
    )
    def test_signup_validation(self, user_store, username, password, answer, field):
        """Test blank usernames/answers and short passwords are rejected."""
        with pytest.raises(ValidationFailedError) as exc_info:
            user_store.create_user(username, password, answer)
        assert [issue.field for issue in exc_info.value.issues] == [field]

    def test_signup_reports_every_problem(self, user_store):
        with pytest.raises(ValidationFailedError) as exc_info:
            user_store.create_user("", "", "")
        assert len(exc_info.value.issues) == 3

    def test_three_character_password_is_enough(self, user_store):
        assert user_store.create_user("alice", "abc", "Fluffy") > 0

    def test_only_digests_are_stored(self, user_store, user_storage, hasher):
        user_id = user_store.create_user("alice", "secret", "  Fluffy ")
        user = user_storage.get_user_by_id(user_id)
        assert user.password_hash == hasher.hash("secret")
        assert user.security_answer_hash == hasher.hash("fluffy")

    def test_login_failures_are_indistinguishable(self, user_store):
        """Test that unknown user and wrong password give the same error."""
        user_store.create_user("alice", "secret", "Fluffy")

        with pytest.raises(InvalidCredentialsError) as wrong_password:
            user_store.verify_credentials("alice", "wrong")
        with pytest.raises(InvalidCredentialsError) as unknown_user:
            user_store.verify_credentials("nobody", "secret")

        assert str(wrong_password.value) == str(unknown_user.value)

    def test_unavailable_hash_fails_signup(self, user_storage):
        """Test that signup fails instead of storing plaintext."""
        broken = CredentialHasher(SecuritySettings(hash_algorithm="no-such-hash"))
        store = UserStore(user_storage, broken, CredentialValidator())
        with pytest.raises(StorageError):
            store.create_user("alice", "secret", "Fluffy")
        assert user_storage.get_user_by_username("alice") is None


class TestCredentialChanges:
    """Tests for username/password updates and password reset."""

    def test_update_username(self, user_store):
        user_id = user_store.create_user("alice", "secret", "Fluffy")
        assert user_store.update_username(user_id, "  alicia ") == "alicia"
        assert user_store.verify_credentials("alicia", "secret").id == user_id

    def test_update_username_to_own_name(self, user_store):
        user_id = user_store.create_user("alice", "secret", "Fluffy")
        assert user_store.update_username(user_id, "alice") == "alice"

    def test_update_username_collision(self, user_store):
        user_store.create_user("alice", "secret", "Fluffy")
        bob = user_store.create_user("bob", "secret", "Rex")
        with pytest.raises(DuplicateUsernameError):
            user_store.update_username(bob, "alice")

    def test_update_username_blank(self, user_store):
        user_id = user_store.create_user("alice", "secret", "Fluffy")
        with pytest.raises(ValidationFailedError):
            user_store.update_username(user_id, "   ")

    def test_update_username_unknown_user(self, user_store):
        with pytest.raises(NotFoundError):
            user_store.update_username(999, "ghost")

    def test_update_password(self, user_store):
        user_id = user_store.create_user("alice", "secret", "Fluffy")
        user_store.update_password(user_id, "secret", "newpass")
        assert user_store.verify_credentials("alice", "newpass").id == user_id
        with pytest.raises(InvalidCredentialsError):
            user_store.verify_credentials("alice", "secret")

    def test_update_password_wrong_current(self, user_store):
        user_id = user_store.create_user("alice", "secret", "Fluffy")
        with pytest.raises(WrongCurrentPasswordError):
            user_store.update_password(user_id, "nope", "newpass")

    def test_update_password_too_short(self, user_store):
        user_id = user_store.create_user("alice", "secret", "Fluffy")
        with pytest.raises(ValidationFailedError):
            user_store.update_password(user_id, "secret", "ab")

    @pytest.mark.parametrize("old_password", ["abc", "secret", "longer password"])
    def test_reset_password(self, user_store, old_password):
        """Test that after a reset only the new password works."""
        user_store.create_user("alice", old_password, "Fluffy")
        user_store.reset_password("alice", "Fluffy", "brandnew")

        assert user_store.verify_credentials("alice", "brandnew").username == "alice"
        with pytest.raises(InvalidCredentialsError):
            user_store.verify_credentials("alice", old_password)

    def test_reset_password_answer_is_case_insensitive(self, user_store):
        user_id = user_store.create_user("alice", "secret", "Fluffy")
        assert user_store.reset_password(" alice ", "  FLUFFY ", "brandnew") == user_id

    def test_reset_password_wrong_answer(self, user_store):
        user_store.create_user("alice", "secret", "Fluffy")
        with pytest.raises(NotFoundError):
            user_store.reset_password("alice", "Rex", "brandnew")
        assert user_store.verify_credentials("alice", "secret")

    def test_reset_password_unknown_user(self, user_store):
        with pytest.raises(NotFoundError):
            user_store.reset_password("nobody", "Fluffy", "brandnew")

    def test_exists_and_find_by_id(self, user_store):
        user_id = user_store.create_user("alice", "secret", "Fluffy")
        assert user_store.exists(user_id) is True
        assert user_store.exists(user_id + 1) is False
        assert user_store.exists(0) is False
        assert user_store.find_by_id(user_id).username == "alice"
        assert user_store.find_by_id(user_id + 1) is None
