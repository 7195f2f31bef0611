"""Configuration package."""

from src.config.settings import (
    AppSettings,
    CloudinarySettings,
    GoogleSheetsSettings,
    InstitutionDefaults,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "CloudinarySettings",
    "GoogleSheetsSettings",
    "InstitutionDefaults",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
