"""Runtime settings loaded from the environment using Pydantic settings."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_FILE = Path(__file__).parent.parent / ".env"


class Settings(BaseSettings):
    """Configuration handed to each component at construction time.

    Fields read ``VOICELOG_<FIELD>`` from the environment or ``backend/.env``.
    The Google Sheets options keep their unprefixed ``GOOGLE_SHEETS_*`` names.
    """

    database_url: str = "sqlite+aiosqlite:///./voicelog.db"
    sync_batch_size: int = Field(default=100, ge=1)
    statistics_window_days: int = Field(default=30, ge=1)
    default_page: int = Field(default=1, ge=1)
    default_page_size: int = Field(default=10, ge=1)
    max_page_size: int = Field(default=100, ge=1)
    sync_timeout_seconds: float = Field(default=10.0, gt=0)
    sync_worker_concurrency: int = Field(default=4, ge=1)
    timezone: str = "UTC"
    upload_dir: Path = Field(default_factory=lambda: Path("uploads/audio"))
    transcription_model: str = "gpt-4o-mini-transcribe"
    host: str = "127.0.0.1"
    port: int = Field(default=8000, ge=1, le=65535)

    google_sheets_spreadsheet_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("GOOGLE_SHEETS_SPREADSHEET_ID", "google_sheets_spreadsheet_id"),
    )
    google_sheets_worksheet: str = Field(
        default="Sheet1",
        validation_alias=AliasChoices("GOOGLE_SHEETS_WORKSHEET", "google_sheets_worksheet"),
    )
    google_sheets_access_token: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("GOOGLE_SHEETS_ACCESS_TOKEN", "google_sheets_access_token"),
    )
    google_sheets_refresh_token: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("GOOGLE_SHEETS_REFRESH_TOKEN", "google_sheets_refresh_token"),
    )
    google_sheets_client_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("GOOGLE_SHEETS_CLIENT_ID", "google_sheets_client_id"),
    )
    google_sheets_client_secret: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("GOOGLE_SHEETS_CLIENT_SECRET", "google_sheets_client_secret"),
    )

    model_config = SettingsConfigDict(
        env_prefix="VOICELOG_",
        env_file=ENV_FILE,
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    @property
    def sheets_enabled(self) -> bool:
        return bool(self.google_sheets_spreadsheet_id)


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Return the process-wide settings, loading them on first use."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
