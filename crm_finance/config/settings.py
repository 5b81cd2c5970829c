"""
Configuration Management for CRM Finance

Environment-driven settings (pydantic-settings), read from the process
environment and an optional .env file.

DESIGN DECISION: The composition root reads settings and passes them down.
Stores, the engine and the composer take plain arguments and never read
the environment themselves.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """Record store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_STORAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    backend: str = Field(
        default="memory",
        pattern="^(memory|json)$",
        description="Which record store to build: in-memory or JSON file"
    )
    json_path: str = Field(
        default="financial_records.json",
        description="Path of the JSON file holding the `financialRecords` array"
    )

    @field_validator('json_path')
    @classmethod
    def validate_json_path(cls, v: str) -> str:
        """Parent directory must exist; the file itself is created on first write."""
        parent = Path(v).expanduser().parent
        if not parent.exists():
            import warnings
            warnings.warn(
                f"Directory for record file does not exist: {parent}. "
                "Create it before the first record is saved."
            )
        return v


class AppSettings(BaseSettings):
    """Report sizing, demo seeding, validation thresholds and logging."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
    )

    # Reports
    report_top_n: int = Field(
        default=5,
        ge=0,
        le=100,
        description="Length of the top member/item lists"
    )
    seed_demo_records: bool = Field(
        default=False,
        description="Populate an empty store with the demo records"
    )

    # Validation thresholds
    max_record_amount: float = Field(
        default=1000000.0,
        description="Records above this total get a warning (sanity check)"
    )


class Settings(BaseSettings):
    """
    Entry point for all settings groups.

    Each group is built when first accessed, so a bad storage variable
    does not stop report-only callers from starting.
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
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Build every settings group once and report which ones fail.

    Returns {group: is_valid}, plus "<group>_error" messages for failures.
    """
    results = {}

    settings = get_settings()

    try:
        _ = settings.storage
        results["storage"] = True
    except Exception as e:
        results["storage"] = False
        results["storage_error"] = str(e)

    try:
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    return results
