"""
Configuration Management for SmartLedger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
User preferences (budget, sound, haptics) are NOT configuration: they live in
BudgetSettings and are persisted through the ledger storage.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class GeminiSettings(BaseSettings):
    """Gemini parsing service configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Optional: a key saved from the settings screen takes precedence,
    # and a missing key is reported to the user rather than failing startup.
    api_key: Optional[str] = Field(
        default=None,
        description="Gemini API key"
    )
    model_name: str = Field(
        default="gemini-2.5-flash",
        description="Gemini model to use"
    )
    max_output_tokens: int = Field(
        default=2048,
        ge=100,
        le=8192,
        description="Maximum tokens in response"
    )
    temperature: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Model temperature (lower = more deterministic)"
    )
    max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts per parse call before reporting a service failure"
    )


class StorageSettings(BaseSettings):
    """Local key-value storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SMARTLEDGER_STORAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    data_file: Path = Field(
        default=Path.home() / ".smartledger" / "store.json",
        description="JSON file backing the key-value store"
    )

    # Keys within the store
    transactions_key: str = Field(default="smartledger_transactions_v2")
    settings_key: str = Field(default="smartledger_settings_v1")
    api_key_key: str = Field(default="gemini_api_key")
    audit_key: str = Field(default="smartledger_audit_v1")

    max_audit_events: int = Field(
        default=1000,
        ge=0,
        description="Audit events kept in the store (oldest dropped first)"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="SMARTLEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # First-run budget
    default_monthly_budget_minor_units: int = Field(
        default=500000,
        ge=0,
        description="Monthly budget used before the user sets one"
    )

    # Keypad
    commit_settle_delay_seconds: float = Field(
        default=0.6,
        ge=0.0,
        le=5.0,
        description="Pause between pressing OK and reporting the amount"
    )

    # Normalizer note defaults
    default_note: str = Field(default="智能录入")
    reimbursement_note: str = Field(default="报销款")
    refund_note: str = Field(default="退款")
    manual_note: str = Field(
        default="手动添加",
        description="Note for candidates typed into a batch without one"
    )

    # Candidate review thresholds
    low_confidence_threshold: float = Field(
        default=0.6,
        ge=0.0,
        le=1.0,
        description="Confidence below which a candidate is flagged for review"
    )
    future_date_tolerance_days: int = Field(
        default=1,
        ge=0,
        description="How many days in the future a candidate date can be"
    )

    # Aggregates
    top_category_count: int = Field(
        default=4,
        ge=1,
        description="Number of spending categories in the breakdown"
    )


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
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, object]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid} plus "<name>_error" entries.
    Useful for startup checks.
    """
    results: dict[str, object] = {}

    settings = get_settings()

    for name in ("gemini", "storage", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
