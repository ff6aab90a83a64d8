"""
JSON Key-Value Storage

Durable scalar key-value store used for the session pair and the
per-user category lists. The whole store is one JSON object on disk,
rewritten atomically on every change (temp file + os.replace).

A missing or unreadable file reads as an empty store.
"""

import json
import os
import tempfile
from typing import Optional

import structlog

from expense_ledger.config import StorageSettings, get_settings
from expense_ledger.services.storage.interface import (
    PreferenceStorageInterface,
    PreferenceValue,
    StorageError,
)


logger = structlog.get_logger(__name__)


class JsonPreferenceStorage(PreferenceStorageInterface):
    """File-backed implementation of the key-value store."""

    def __init__(self, settings: Optional[StorageSettings] = None):
        self._settings = settings or get_settings().storage
        self._data: Optional[dict[str, PreferenceValue]] = None

    @property
    def path(self) -> str:
        return self._settings.preferences_path

    def _load(self) -> dict[str, PreferenceValue]:
        if self._data is not None:
            return self._data

        data: dict = {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            data = {}
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning("preferences_unreadable", path=self.path, error=str(e))
            data = {}
        except OSError as e:
            raise StorageError(f"Failed to read preferences: {e}")

        if not isinstance(data, dict):
            logger.warning("preferences_not_an_object", path=self.path)
            data = {}

        self._data = data
        return self._data

    def _save(self, data: dict[str, PreferenceValue]) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        try:
            fd, tmp_path = tempfile.mkstemp(
                prefix=".prefs-", suffix=".json", dir=directory
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
                raise
        except OSError as e:
            raise StorageError(f"Failed to write preferences: {e}")
        self._data = data

    def get(self, key: str) -> Optional[PreferenceValue]:
        return self._load().get(key)

    def set_many(self, values: dict[str, PreferenceValue]) -> None:
        data = dict(self._load())
        data.update(values)
        self._save(data)

    def remove(self, *keys: str) -> None:
        data = dict(self._load())
        if not any(key in data for key in keys):
            return
        for key in keys:
            data.pop(key, None)
        self._save(data)

    def clear(self) -> None:
        self._save({})
