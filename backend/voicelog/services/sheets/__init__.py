"""External row sinks that meeting records are synced to."""

from __future__ import annotations

import logging

from ...config import Settings
from .base import SheetRow, SheetSink, build_row
from .google_sheets import GoogleSheetsSink
from .memory import InMemorySheetSink

logger = logging.getLogger(__name__)

__all__ = [
    "SheetRow",
    "SheetSink",
    "build_row",
    "GoogleSheetsSink",
    "InMemorySheetSink",
    "create_sink",
]


def create_sink(settings: Settings) -> SheetSink:
    """Build the sink selected by ``settings``.

    Falls back to the in-memory sink when no spreadsheet is configured.
    """
    if settings.sheets_enabled:
        return GoogleSheetsSink(
            settings.google_sheets_spreadsheet_id,
            settings.google_sheets_access_token,
            settings.google_sheets_worksheet,
            refresh_token=settings.google_sheets_refresh_token,
            client_id=settings.google_sheets_client_id,
            client_secret=settings.google_sheets_client_secret,
            timeout=settings.sync_timeout_seconds,
        )

    logger.warning(
        "GOOGLE_SHEETS_SPREADSHEET_ID not set. Records will sync to an in-memory sink only."
    )
    return InMemorySheetSink()
