"""
User Store

Account creation, credential verification and credential changes.

Usernames are trimmed before every comparison and write. Security answers
are trimmed and lower-cased before hashing, so they are case-insensitive.
Login failures never say whether the username or the password was wrong.
"""

from typing import Optional

import structlog

from expense_ledger.models.ledger import User
from expense_ledger.models.results import ErrorKind, LedgerError
from expense_ledger.security import CredentialHasher
from expense_ledger.services.storage import (
    DuplicateError,
    NotFoundError,
    StorageError,
    UserStorageInterface,
)
from expense_ledger.validation import (
    CredentialValidator,
    normalize_security_answer,
    normalize_username,
)


logger = structlog.get_logger(__name__)


class DuplicateUsernameError(LedgerError):
    kind = ErrorKind.DUPLICATE_USERNAME
    user_message = "Username already exists. Please choose a different username."


class InvalidCredentialsError(LedgerError):
    kind = ErrorKind.INVALID_CREDENTIALS
    user_message = "Invalid username or password"


class WrongCurrentPasswordError(LedgerError):
    kind = ErrorKind.WRONG_CURRENT_PASSWORD
    user_message = "Current password is incorrect"


class UserStore:
    """Business rules for user accounts on top of a UserStorageInterface."""

    def __init__(
        self,
        storage: UserStorageInterface,
        hasher: CredentialHasher,
        validator: CredentialValidator,
    ):
        self._storage = storage
        self._hasher = hasher
        self._validator = validator

    def _hash(self, value: str) -> str:
        digest = self._hasher.hash(value)
        if digest is None:
            raise StorageError(
                f"Credential hashing unavailable ({self._hasher.algorithm})"
            )
        return digest

    def create_user(
        self,
        username: str,
        password: str,
        security_answer: str,
    ) -> int:
        """
        Create an account.

        Returns:
            The new user id

        Raises:
            ValidationFailedError: Blank username/answer or short password
            DuplicateUsernameError: The trimmed username is taken
            StorageError: Hashing or the insert failed
        """
        self._validator.validate_signup(username, password, security_answer)

        name = normalize_username(username)
        password_hash = self._hash(password)
        answer_hash = self._hash(normalize_security_answer(security_answer))

        if self._storage.username_taken(name):
            raise DuplicateUsernameError()

        # The insert can still hit the unique index
        try:
            user_id = self._storage.insert_user(name, password_hash, answer_hash)
        except DuplicateError:
            raise DuplicateUsernameError()

        logger.info("user_created", user_id=user_id)
        return user_id

    def verify_credentials(self, username: str, password: str) -> User:
        """
        Check a username/password pair.

        Raises:
            InvalidCredentialsError: Unknown user or wrong password (not distinguished)
        """
        name = normalize_username(username)
        if not name or not password:
            raise InvalidCredentialsError()

        password_hash = self._hash(password)
        user = self._storage.get_user_by_username(name)
        if user is None or user.password_hash != password_hash:
            raise InvalidCredentialsError()
        return user

    def update_username(self, user_id: int, new_username: str) -> str:
        """
        Rename a user.

        Returns:
            The stored (trimmed) username

        Raises:
            ValidationFailedError: Blank username
            DuplicateUsernameError: Another user already has it
            NotFoundError: No such user
        """
        self._validator.validate_username(new_username)
        name = normalize_username(new_username)

        if self._storage.username_taken(name, exclude_user_id=user_id):
            raise DuplicateUsernameError()

        try:
            updated = self._storage.update_username(user_id, name)
        except DuplicateError:
            raise DuplicateUsernameError()

        if not updated:
            raise NotFoundError(f"User not found: {user_id}")
        return name

    def update_password(
        self,
        user_id: int,
        current_password: str,
        new_password: str,
    ) -> None:
        """
        Change a password after re-verifying the current one.

        Raises:
            ValidationFailedError: New password too short
            WrongCurrentPasswordError: Current password does not match
            NotFoundError: No such user
        """
        self._validator.validate_new_password(new_password)

        if not current_password:
            raise WrongCurrentPasswordError()

        user = self._storage.get_user_by_id(user_id)
        if user is None:
            raise NotFoundError(f"User not found: {user_id}")

        if self._hash(current_password) != user.password_hash:
            raise WrongCurrentPasswordError()

        if not self._storage.update_password_hash(user_id, self._hash(new_password)):
            raise NotFoundError(f"User not found: {user_id}")

    def reset_password(
        self,
        username: str,
        security_answer: str,
        new_password: str,
    ) -> int:
        """
        Replace a forgotten password using the security answer.

        Returns:
            The id of the user whose password was reset

        Raises:
            ValidationFailedError: New password too short
            NotFoundError: No user matches the username/answer pair
        """
        self._validator.validate_new_password(new_password)

        name = normalize_username(username)
        if not name:
            raise NotFoundError("No matching account")

        answer_hash = self._hash(normalize_security_answer(security_answer))
        user = self._storage.get_user_by_username(name)
        if user is None or user.security_answer_hash != answer_hash:
            raise NotFoundError("No matching account")

        if not self._storage.update_password_hash(user.id, self._hash(new_password)):
            raise NotFoundError("No matching account")
        return user.id

    def exists(self, user_id: Optional[int]) -> bool:
        return self._storage.user_exists(user_id)

    def find_by_id(self, user_id: int) -> Optional[User]:
        return self._storage.get_user_by_id(user_id)
