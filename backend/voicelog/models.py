from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class RecordingStatus(str, Enum):
    SUBMITTED = "SUBMITTED"
    VALIDATED = "VALIDATED"
    PROCESSED = "PROCESSED"
    FAILED = "FAILED"
    ARCHIVED = "ARCHIVED"


class ProcessingStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    RETRYING = "RETRYING"


# Forward-only progression; FAILED may be entered from any non-archived state
_STATUS_RANK = {
    RecordingStatus.SUBMITTED: 0,
    RecordingStatus.VALIDATED: 1,
    RecordingStatus.PROCESSED: 2,
    RecordingStatus.FAILED: 3,
    RecordingStatus.ARCHIVED: 4,
}


def can_advance_status(current: RecordingStatus, target: RecordingStatus) -> bool:
    """Return True when moving from ``current`` to ``target`` is not a regression."""
    if current == RecordingStatus.ARCHIVED:
        return False
    if target == RecordingStatus.FAILED:
        return current != RecordingStatus.FAILED
    if current == RecordingStatus.FAILED:
        return target == RecordingStatus.ARCHIVED
    return _STATUS_RANK[target] > _STATUS_RANK[current]


class CamelModel(BaseModel):
    """Base model serialising to the camelCase keys the web client expects."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class VoiceMessage(CamelModel):
    """The four spans captured from a transcription matching the template."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    speaker_name: str
    group_number: str
    person_met: str
    location: str


class ValidationResult(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    is_valid: bool
    message: str
    extracted_data: Optional[VoiceMessage] = None
    errors: tuple[str, ...] = ()
    confidence: Optional[float] = None


class RecordMetadata(CamelModel):
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class MeetingRecordOut(CamelModel):
    """A stored record formatted for clients. Display fields are computed at read time."""

    id: str
    recording_date: str
    recording_date_time: str
    recording_date_display: str
    recording_time: str
    speaker_name: str
    group_number: str
    person_met: str
    location: str
    full_transcription: str
    recording_duration: str
    year: int
    month: int
    day: int
    day_of_week: str
    status: RecordingStatus
    processing_status: ProcessingStatus
    validation_score: Optional[float] = None
    audio_file_url: Optional[str] = None
    google_sheets_row_id: Optional[str] = None
    synced_to_sheets: bool = False
    sheets_last_sync: Optional[str] = None
    created_at: str
    updated_at: str


class RecordFilter(CamelModel):
    """Query options for listing records."""

    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1)
    group_number: Optional[str] = None
    speaker_name: Optional[str] = None
    status: Optional[RecordingStatus] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    sort_by: str = "recordingDate"
    sort_order: str = Field(default="desc", pattern="^(asc|desc)$")


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool


class RecordPage(CamelModel):
    data: list[MeetingRecordOut]
    pagination: Pagination


class DailyStatisticsOut(CamelModel):
    date: str
    total_recordings: int
    successful_recordings: int
    failed_recordings: int
    unique_groups: int
    unique_speakers: int
    average_duration: float


class GroupStatisticsOut(CamelModel):
    group_number: str
    total_meetings: int
    last_meeting: Optional[str] = None
    average_meetings_per_week: float = 0
    locations: list[dict] = Field(default_factory=list)


class StatisticsTotals(CamelModel):
    total_meetings: int
    total_groups: int
    total_speakers: int
    avg_meetings_per_day: float


class StatisticsOut(CamelModel):
    daily: list[DailyStatisticsOut]
    groups: list[GroupStatisticsOut]
    totals: StatisticsTotals


class SyncResult(CamelModel):
    synced: int = 0
    errors: int = 0


class TranscriptionResult(CamelModel):
    text: str
    provider: str = "openai"
    model: str
    processing_time: float
