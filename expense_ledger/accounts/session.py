"""
Session State

The single "currently logged in user", persisted in the key-value store
so it survives a restart. A session must never point at a user that no
longer exists: current() clears it when the user row is gone.
"""

from typing import Optional, Union

import structlog

from expense_ledger.accounts.users import UserStore
from expense_ledger.audit import AuditLogger
from expense_ledger.models.audit import AuditEventBuilder
from expense_ledger.models.ledger import SessionUser, User
from expense_ledger.services.storage import PreferenceStorageInterface


logger = structlog.get_logger(__name__)

USER_ID_KEY = "user_id"
USERNAME_KEY = "username"


class SessionState:
    """Load/save/clear lifecycle for the current user."""

    def __init__(
        self,
        preferences: PreferenceStorageInterface,
        users: UserStore,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._preferences = preferences
        self._users = users
        self._audit_logger = audit_logger

    def save(self, user: Union[User, SessionUser]) -> SessionUser:
        if isinstance(user, User):
            user = SessionUser(user_id=user.id, username=user.username)
        self._preferences.set_many({
            USER_ID_KEY: user.user_id,
            USERNAME_KEY: user.username,
        })
        return user

    def _stored(self) -> Optional[SessionUser]:
        user_id = self._preferences.get(USER_ID_KEY)
        username = self._preferences.get(USERNAME_KEY)
        if not isinstance(user_id, int) or isinstance(user_id, bool) or user_id <= 0:
            return None
        if not isinstance(username, str):
            return None
        return SessionUser(user_id=user_id, username=username)

    def current(self) -> Optional[SessionUser]:
        """
        Return the logged in user, or None.

        Clears the session when the referenced user no longer exists.
        """
        session = self._stored()
        if session is None:
            return None

        if not self._users.exists(session.user_id):
            logger.warning("stale_session_cleared", user_id=session.user_id)
            self.clear()
            if self._audit_logger:
                self._audit_logger.log(
                    AuditEventBuilder.stale_session_cleared(session.user_id)
                )
            return None

        return session

    def current_user_id(self) -> Optional[int]:
        session = self.current()
        return session.user_id if session else None

    def clear(self) -> None:
        self._preferences.remove(USER_ID_KEY, USERNAME_KEY)
