"""Configuration package."""

from chamber.config.settings import (
    AppSettings,
    CloudinarySettings,
    GeminiSettings,
    GoogleSheetsSettings,
    MindeeSettings,
    Settings,
    TelegramSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "CloudinarySettings",
    "GeminiSettings",
    "GoogleSheetsSettings",
    "MindeeSettings",
    "Settings",
    "TelegramSettings",
    "get_settings",
    "validate_all_settings",
]
