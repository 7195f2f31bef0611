"""
Configuration Management for Pondok Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures all required configuration is validated at startup.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CloudinarySettings(BaseSettings):
    """Cloudinary configuration (institution logo hosting)."""

    model_config = SettingsConfigDict(
        env_prefix="CLOUDINARY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    cloud_name: str = Field(
        ...,
        description="Cloudinary cloud name"
    )
    api_key: str = Field(
        ...,
        description="Cloudinary API key"
    )
    api_secret: str = Field(
        ...,
        description="Cloudinary API secret"
    )
    logo_folder: str = Field(
        default="pondok_ledger",
        description="Folder for uploaded logos"
    )


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

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
        description="ID of the Google Sheets spreadsheet to use"
    )

    # Sheet names within the spreadsheet
    transactions_sheet_name: str = Field(default="Transactions")
    categories_sheet_name: str = Field(default="Categories")
    settings_sheet_name: str = Field(default="Settings")
    audit_sheet_name: str = Field(default="AuditLog")

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


class InstitutionDefaults(BaseSettings):
    """
    Report header used until the treasurer saves their own settings.
    """

    model_config = SettingsConfigDict(
        env_prefix="INSTITUTION_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    name: str = Field(default="Pondok Pesantren Al-Hidayah")
    address: str = Field(default="Jl. Kebenaran No. 1, Kota Berkah")
    treasurer_name: str = Field(default="Ahmad Syafi'i")


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Storage
    storage_backend: Literal["local", "google_sheets", "memory"] = Field(
        default="local",
        description="Which record store to use"
    )
    data_dir: Path = Field(
        default=Path("data"),
        description="Directory for the local JSON store"
    )
    seed_default_categories: bool = Field(
        default=True,
        description="Create the default categories when the store has none"
    )

    # Validation thresholds
    max_transaction_amount: float = Field(
        default=1_000_000_000.0,
        gt=0,
        description="Amounts above this are flagged for a second look"
    )
    future_date_tolerance_days: int = Field(
        default=0,
        ge=0,
        description="How many days in the future a transaction date can be"
    )

    # Display
    dashboard_recent_limit: int = Field(
        default=5,
        ge=1,
        le=50,
        description="How many recent transactions the dashboard lists"
    )
    transactions_page_size: int = Field(
        default=10,
        ge=1,
        le=100,
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

    # Note: These are loaded lazily to allow partial configuration

    @property
    def cloudinary(self) -> CloudinarySettings:
        return CloudinarySettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def institution(self) -> InstitutionDefaults:
        return InstitutionDefaults()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
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

    for name in ("cloudinary", "google_sheets", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except ValidationError as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
