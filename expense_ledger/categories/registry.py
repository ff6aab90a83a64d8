"""
Category Registry

Per-user ordered list of expense categories. Until a user adds a custom
category they see the seed list from LedgerSettings. The fallback
category ("Others") always stays last: new names are inserted right
before it, or appended if it is missing.

Lists are stored as a JSON string under categories_<user_id>.
"""

import json
from typing import Optional

import structlog
from pydantic import TypeAdapter, ValidationError

from expense_ledger.config import LedgerSettings, get_settings
from expense_ledger.services.storage import (
    PreferenceStorageInterface,
    StorageError,
    is_active_user,
)


logger = structlog.get_logger(__name__)

_category_list = TypeAdapter(list[str])


def categories_key(user_id: int) -> str:
    return f"categories_{user_id}"


class CategoryRegistry:
    """Reads and extends each user's category list."""

    def __init__(
        self,
        preferences: PreferenceStorageInterface,
        settings: Optional[LedgerSettings] = None,
    ):
        self._preferences = preferences
        self._settings = settings or get_settings().ledger

    @property
    def defaults(self) -> list[str]:
        return list(self._settings.default_categories)

    def list(self, user_id: Optional[int]) -> list[str]:
        """
        Return the user's categories in display order.

        Falls back to the seed list when nothing is stored or the stored
        value cannot be parsed. Never raises.
        """
        if not is_active_user(user_id):
            return self.defaults

        try:
            raw = self._preferences.get(categories_key(user_id))
        except StorageError as e:
            logger.error("stored_categories_unreadable", user_id=user_id, error=str(e))
            return self.defaults
        if not isinstance(raw, str):
            return self.defaults

        try:
            categories = _category_list.validate_json(raw)
        except ValidationError:
            logger.warning("stored_categories_unparsable", user_id=user_id)
            return self.defaults
        return categories

    def add(self, user_id: Optional[int], name: str) -> bool:
        """
        Add a custom category.

        Returns False when nobody is logged in, the name is blank, or the
        name is already in the list.
        """
        if not is_active_user(user_id):
            return False

        name = (name or "").strip()
        if not name:
            return False

        categories = self.list(user_id)
        if name in categories:
            return False

        fallback = self._settings.fallback_category
        if fallback in categories:
            categories.insert(categories.index(fallback), name)
        else:
            categories.append(name)

        self._preferences.set(categories_key(user_id), json.dumps(categories))
        return True
