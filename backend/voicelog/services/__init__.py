"""Services layer for the voicelog backend."""

from .daily_stats import DailyStatsUpdater
from .meetings_service import AudioUpload, MeetingsService, get_meetings_service
from .sync_coordinator import SyncCoordinator
from .sync_worker import SyncWorker
from .transcription import TranscriptionService, get_transcription_service

__all__ = [
    "AudioUpload",
    "DailyStatsUpdater",
    "MeetingsService",
    "SyncCoordinator",
    "SyncWorker",
    "TranscriptionService",
    "get_meetings_service",
    "get_transcription_service",
]
