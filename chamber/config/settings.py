"""
Configuration Management for the Chat Capture Gateway

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Each external collaborator (Telegram, Gemini, Mindee, Cloudinary,
Google Sheets) has its own settings class with its own env prefix,
so a missing key for one service never blocks the others.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class TelegramSettings(BaseSettings):
    """Telegram Bot API configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TELEGRAM_",
        extra="ignore"
    )

    bot_token: str = Field(
        ...,
        description="Bot token issued by @BotFather"
    )
    webhook_secret: str = Field(
        ...,
        min_length=1,
        description="Shared secret Telegram echoes in X-Telegram-Bot-Api-Secret-Token"
    )
    api_base_url: str = Field(
        default="https://api.telegram.org",
        description="Bot API base URL"
    )
    webhook_url: Optional[str] = Field(
        default=None,
        description="Public URL of the webhook endpoint (used by register-webhook)"
    )
    request_timeout_seconds: float = Field(
        default=15.0,
        gt=0,
        description="Timeout for a single Bot API request"
    )


class GeminiSettings(BaseSettings):
    """Gemini LLM configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        extra="ignore"
    )

    api_key: str = Field(
        ...,
        description="Gemini API key"
    )
    model_name: str = Field(
        default="gemini-1.5-flash",
        description="Gemini model to use"
    )
    max_tokens: int = Field(
        default=200,
        ge=50,
        le=8192,
        description="Maximum tokens in response"
    )
    temperature: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Model temperature (lower = more deterministic)"
    )


class MindeeSettings(BaseSettings):
    """Mindee OCR service configuration."""

    model_config = SettingsConfigDict(
        env_prefix="MINDEE_",
        extra="ignore"
    )

    api_key: str = Field(
        ...,
        description="Mindee API key"
    )


class CloudinarySettings(BaseSettings):
    """Cloudinary receipt storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="CLOUDINARY_",
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
    folder: str = Field(
        default="chamber",
        description="Folder all receipts are stored under"
    )


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
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
    expenses_sheet_name: str = Field(
        default="Expenses",
        description="Name of the sheet for expenses"
    )
    links_sheet_name: str = Field(
        default="TelegramLinks",
        description="Name of the sheet mapping chat ids to users"
    )
    linking_codes_sheet_name: str = Field(
        default="LinkingCodes",
        description="Name of the sheet holding one-time linking codes"
    )
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
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
        description="Root log level"
    )

    # Conversation
    pending_capture_ttl_seconds: int = Field(
        default=300,
        ge=10,
        le=3600,
        description="How long a capture waits for a payment method"
    )
    timezone: str = Field(
        default="Asia/Kolkata",
        description="Timezone that defines 'today' for duplicate detection"
    )
    currency_symbol: str = Field(
        default="₹",
        description="Currency symbol shown in chat messages"
    )

    # Extraction limits
    pdf_text_char_limit: int = Field(
        default=2000,
        ge=200,
        description="How much PDF text is sent to the extraction model"
    )
    max_expense_amount: float = Field(
        default=10_000_000.0,
        gt=0,
        description="Maximum reasonable expense amount (for sanity checking)"
    )
    max_download_size_mb: int = Field(
        default=20,
        ge=1,
        le=50,
        description="Largest attachment the bot will download"
    )

    @property
    def max_download_size_bytes(self) -> int:
        """Get max download size in bytes."""
        return self.max_download_size_mb * 1024 * 1024


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

    # Sub-settings are loaded lazily to allow partial configuration

    @property
    def telegram(self) -> TelegramSettings:
        return TelegramSettings()

    @property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()

    @property
    def mindee(self) -> MindeeSettings:
        return MindeeSettings()

    @property
    def cloudinary(self) -> CloudinarySettings:
        return CloudinarySettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

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

    for name in ("telegram", "gemini", "mindee", "cloudinary", "google_sheets", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
