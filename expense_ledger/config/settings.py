"""
Configuration Management for Expense Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Storage locations, credential rules and ledger defaults are validated
when the engine is built rather than at first use.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_CATEGORIES = [
    "Food",
    "Transport",
    "Shopping",
    "Bills",
    "Entertainment",
    "Others",
]


class StorageSettings(BaseSettings):
    """Durable storage configuration (SQLite database + key-value file)."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_STORAGE_",
        extra="ignore"
    )

    database_path: str = Field(
        default="expense_tracker.db",
        description="Path to the SQLite database file"
    )
    preferences_path: str = Field(
        default="expense_tracker_prefs.json",
        description="Path to the key-value file holding session and categories"
    )
    schema_version: int = Field(
        default=5,
        ge=1,
        description="Current schema version; a mismatch wipes and recreates the tables"
    )

    @field_validator('database_path', 'preferences_path')
    @classmethod
    def validate_path(cls, v: str) -> str:
        """Paths must not be blank."""
        if not v.strip():
            raise ValueError("Storage path cannot be empty")
        return v.strip()


class SecuritySettings(BaseSettings):
    """Credential hashing and password rules."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_SECURITY_",
        extra="ignore"
    )

    hash_algorithm: str = Field(
        default="sha256",
        description="hashlib algorithm used for passwords and security answers"
    )
    min_password_length: int = Field(
        default=3,
        ge=1,
        le=128,
        description="Minimum accepted password length"
    )


class LedgerSettings(BaseSettings):
    """Ledger defaults and budget thresholds."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        extra="ignore"
    )

    default_categories: list[str] = Field(
        default_factory=lambda: list(DEFAULT_CATEGORIES),
        description="Seed category list used until a user adds their own"
    )
    fallback_category: str = Field(
        default="Others",
        description="Catch-all category; new categories are inserted before it"
    )
    default_note: str = Field(
        default="No note",
        description="Stored when an expense note is blank"
    )
    default_date: str = Field(
        default="Today",
        description="Stored when an expense date is blank"
    )
    budget_warning_percent: float = Field(
        default=80.0,
        ge=0.0,
        le=100.0,
        description="Percentage of a budget at which a warning is raised"
    )

    @field_validator('default_categories')
    @classmethod
    def validate_default_categories(cls, v: list[str]) -> list[str]:
        """Seed list must be non-empty and free of duplicates."""
        cleaned = [c.strip() for c in v if c and c.strip()]
        if not cleaned:
            raise ValueError("At least one default category is required")
        if len(set(cleaned)) != len(cleaned):
            raise ValueError("Default categories must be unique")
        return cleaned


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def security(self) -> SecuritySettings:
        return SecuritySettings()

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("storage", "security", "ledger"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
