"""
Configuration Management for FluxCash

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All tunable numbers live here (XP stipends, insight
thresholds, cache location, remote backend). Business modules receive
them through constructors so tests can pass their own values.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerSettings(BaseSettings):
    """Ledger store behaviour."""

    model_config = SettingsConfigDict(
        env_prefix="FLUXCASH_LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    default_category: str = Field(
        default="Geral",
        min_length=1,
        description="Sentinel category that triggers automatic categorization"
    )

    # XP stipends granted on optimistic adds
    xp_per_transaction: int = Field(default=10, ge=0)
    xp_per_card: int = Field(default=50, ge=0)
    xp_per_goal: int = Field(default=50, ge=0)
    xp_per_debt: int = Field(default=30, ge=0)

    load_limit: int = Field(
        default=500,
        ge=1,
        description="Maximum transactions fetched on a normal load (exports ignore it)"
    )
    demo_mode: bool = Field(
        default=False,
        description="Use the in-memory remote instead of Google Sheets"
    )


class InsightSettings(BaseSettings):
    """Thresholds for aggregates and mission eligibility."""

    model_config = SettingsConfigDict(
        env_prefix="FLUXCASH_INSIGHTS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    tunnel_horizon: int = Field(
        default=5,
        ge=1,
        le=36,
        description="Number of future months projected by the installment tunnel"
    )
    tunnel_risk_fraction: float = Field(
        default=0.5,
        gt=0.0,
        description="A tunnel bucket above this fraction of income is high risk"
    )
    top_categories: int = Field(default=3, ge=1)
    defense_mode_ratio: float = Field(
        default=0.4,
        gt=0.0,
        description="Expense/income ratio that unlocks the defense mission"
    )
    invest_balance_threshold: float = Field(
        default=500.0,
        description="Balance above which the invest mission appears"
    )


class CacheSettings(BaseSettings):
    """Local durable cache configuration."""

    model_config = SettingsConfigDict(
        env_prefix="FLUXCASH_CACHE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    backend: Literal["file", "memory"] = Field(default="file")
    directory: Path = Field(
        default=Path.home() / ".fluxcash" / "cache",
        description="Directory holding one JSON file per cache key"
    )


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets remote backend configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the spreadsheet holding the remote collections"
    )
    worksheet_prefix: str = Field(
        default="",
        description="Optional prefix for worksheet names (e.g. 'staging_')"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class Settings(BaseSettings):
    """
    Root settings container.

    Sub-settings are loaded lazily so a missing Google Sheets
    configuration does not prevent demo mode from starting.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

    @property
    def insights(self) -> InsightSettings:
        return InsightSettings()

    @property
    def cache(self) -> CacheSettings:
        return CacheSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings groups.

    Returns a dict of {group_name: is_valid} plus '<group>_error'
    entries for the ones that failed. Useful for startup checks.
    """
    results = {}
    settings = get_settings()

    for name in ("ledger", "insights", "cache", "google_sheets"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
