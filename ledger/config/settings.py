"""
Ledger configuration.

Every tunable of the ledger is read here, from environment variables or a
local `.env` file, through pydantic-settings.

DESIGN DECISION: The Google Sheets block is only loaded when something asks
for it. The in-memory backend must start without any Google credentials.
"""

import warnings
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GoogleSheetsSettings(BaseSettings):
    """Where the Sheets backend keeps its worksheets."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Service account key file (JSON)"
    )
    spreadsheet_id: str = Field(
        ...,
        description="Key of the spreadsheet holding the ledger"
    )

    # One worksheet per entity
    wallets_sheet_name: str = Field(default="Wallets")
    categories_sheet_name: str = Field(default="Categories")
    transactions_sheet_name: str = Field(default="Transactions")
    budgets_sheet_name: str = Field(default="Budgets")
    audit_sheet_name: str = Field(
        default="ActivityLog",
        description="Append-only activity log worksheet"
    )

    @field_validator('credentials_path')
    @classmethod
    def check_credentials_file(cls, v: str) -> str:
        """A missing key file only warns; it may be mounted after startup."""
        if not Path(v).exists():
            warnings.warn(
                f"Service account key not found at {v}. "
                "The Sheets backend will fail to connect until it is present."
            )
        return v


class LedgerSettings(BaseSettings):
    """
    Core ledger settings.

    No env prefix: STORAGE_BACKEND, DEFAULT_CURRENCY, LOG_LEVEL, ...
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    app_environment: str = Field(
        default="development",
        description="Deployment name, reported in the startup log"
    )
    debug_mode: bool = Field(default=False)
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
    )

    storage_backend: str = Field(
        default="memory",
        pattern="^(memory|google_sheets)$",
        description="Persistence backend used by create_ledger()"
    )

    default_currency: str = Field(
        default="VND",
        min_length=3,
        max_length=3,
        description="Currency given to wallets created without one"
    )
    default_alert_threshold: int = Field(
        default=80,
        ge=0,
        le=100,
        description="Alert threshold given to budgets created without one"
    )
    max_page_size: int = Field(
        default=500,
        ge=1,
        le=5000,
        description="Upper bound for the `limit` transaction filter"
    )


class Settings(BaseSettings):
    """Entry point for all settings blocks; each is built on access."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def app(self) -> LedgerSettings:
        return LedgerSettings()


@lru_cache()
def get_settings() -> Settings:
    """Process-wide settings. Tests reset it with get_settings.cache_clear()."""
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Startup check of the configuration.

    The Sheets block is only checked when it is the selected backend.
    Failing blocks are reported under `<name>_error` instead of raising.
    """
    results = {}

    settings = get_settings()

    try:
        app = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)
        return results

    if app.storage_backend == "google_sheets":
        try:
            settings.google_sheets
            results["google_sheets"] = True
        except Exception as e:
            results["google_sheets"] = False
            results["google_sheets_error"] = str(e)

    return results
