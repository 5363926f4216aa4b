"""Meeting record lifecycle: validate, snapshot the date, persist, roll up, sync."""

from __future__ import annotations

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .. import constants
from ..config import Settings, get_settings
from ..database import (
    MeetingRecord,
    async_session_maker,
    count_distinct,
    count_meeting_records,
    count_records,
    create_meeting_record,
    find_meeting_records,
    get_daily_stats_since,
    get_group_statistics,
    get_meeting_record,
    update_record_status,
)
from ..date_utils import (
    as_aware,
    derive_current,
    format_display_date,
    format_display_time,
    resolve_timezone,
)
from ..errors import PersistenceError, RecordNotFoundError, ValidationError
from ..models import (
    DailyStatisticsOut,
    GroupStatisticsOut,
    MeetingRecordOut,
    Pagination,
    ProcessingStatus,
    RecordFilter,
    RecordingStatus,
    RecordMetadata,
    RecordPage,
    StatisticsOut,
    StatisticsTotals,
    SyncResult,
    ValidationResult,
    can_advance_status,
)
from ..validation import validate_transcription
from .daily_stats import DailyStatsUpdater
from .sheets import create_sink
from .sync_coordinator import SyncCoordinator
from .sync_worker import SyncWorker

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AudioUpload:
    filename: str
    content: bytes


class MeetingsService:
    """Creates, lists and summarises meeting records.

    The daily rollup is updated before ``create_record`` returns; the sheet
    sync is only queued on ``sync_worker`` and may lag or fail without
    affecting the caller.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        *,
        settings: Settings,
        sync_coordinator: SyncCoordinator,
        sync_worker: SyncWorker,
        stats_updater: Optional[DailyStatsUpdater] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._session_maker = session_maker
        self.settings = settings
        self.sync_coordinator = sync_coordinator
        self.sync_worker = sync_worker
        self.stats_updater = stats_updater or DailyStatsUpdater(session_maker)
        self.tz = resolve_timezone(settings.timezone)
        self._clock = clock

    def validate(self, text: str) -> ValidationResult:
        return validate_transcription(text)

    async def create_record(
        self,
        transcription: str,
        duration: str,
        audio: Optional[AudioUpload] = None,
        metadata: Optional[RecordMetadata] = None,
    ) -> MeetingRecordOut:
        """
        Validate and store a new meeting record.

        Args:
            transcription: Full transcribed sentence
            duration: Recording length as MM:SS
            audio: Optional uploaded audio file
            metadata: Optional client ip/user agent

        Returns:
            The stored record, formatted

        Raises:
            ValidationError: The text does not follow the template or a field is invalid
            PersistenceError: The record or its daily rollup could not be written
        """
        result = validate_transcription(transcription)
        if not result.is_valid:
            raise ValidationError(result.message, details=list(result.errors) or None)

        extracted = result.extracted_data
        date_data = derive_current(self.tz, now=self._clock() if self._clock else None)
        audio_url = await self._save_audio_file(audio) if audio else None

        data = {
            "recording_date": date_data.calendar_date,
            "recording_date_time": date_data.instant.astimezone(timezone.utc),
            "year": date_data.year,
            "month": date_data.month,
            "day": date_data.day,
            "day_of_week": date_data.day_of_week,
            "speaker_name": extracted.speaker_name,
            "group_number": extracted.group_number,
            "person_met": extracted.person_met,
            "location": extracted.location,
            "full_transcription": transcription,
            "recording_duration": duration,
            "audio_file_url": audio_url,
            "status": RecordingStatus.SUBMITTED.value,
            "processing_status": ProcessingStatus.PENDING.value,
            "validation_score": result.confidence if result.confidence is not None else 1.0,
            "ip_address": metadata.ip_address if metadata else None,
            "user_agent": metadata.user_agent if metadata else None,
        }

        try:
            async with self._session_maker() as session:
                record = await create_meeting_record(session, data)
        except SQLAlchemyError as e:
            logger.error(f"Failed to create meeting record: {e}", exc_info=True)
            raise PersistenceError("Failed to create meeting record") from e

        self.sync_worker.enqueue(record.id)
        await self.stats_updater.bump(date_data.calendar_date)

        logger.info(f"Meeting record created: {record.id} for date: {date_data.recording_date}")
        return self.format_record(record)

    async def list_records(self, filters: RecordFilter) -> RecordPage:
        """Return one page of records plus pagination metadata."""
        if filters.sort_by not in constants.SORTABLE_FIELDS:
            raise ValidationError(
                f"Cannot sort by {filters.sort_by}",
                code=constants.VALIDATION_ERROR,
                details={"allowed": sorted(constants.SORTABLE_FIELDS)},
            )

        limit = min(filters.limit, self.settings.max_page_size)
        page = filters.page
        skip = (page - 1) * limit

        try:
            async with self._session_maker() as session:
                records = await find_meeting_records(session, filters, skip=skip, take=limit)
                total = await count_meeting_records(session, filters)
        except SQLAlchemyError as e:
            logger.error(f"Failed to list meeting records: {e}", exc_info=True)
            raise PersistenceError("Failed to list meeting records") from e

        total_pages = math.ceil(total / limit)
        return RecordPage(
            data=[self.format_record(record) for record in records],
            pagination=Pagination(
                page=page,
                limit=limit,
                total=total,
                total_pages=total_pages,
                has_next=page < total_pages,
                has_prev=page > 1,
            ),
        )

    async def get_record(self, record_id: str) -> MeetingRecordOut:
        try:
            async with self._session_maker() as session:
                record = await get_meeting_record(session, record_id)
        except SQLAlchemyError as e:
            logger.error(f"Failed to load meeting record {record_id}: {e}", exc_info=True)
            raise PersistenceError("Failed to load meeting record") from e

        if record is None:
            raise RecordNotFoundError(f"Meeting record {record_id} not found")
        return self.format_record(record)

    async def get_statistics(self, group_number: Optional[str] = None) -> StatisticsOut:
        """
        Summarise the last ``statistics_window_days`` of activity.

        ``avg_meetings_per_day`` divides the total by the window length even
        when some days have no records.
        """
        window = self.settings.statistics_window_days
        today = derive_current(self.tz, now=self._clock() if self._clock else None).calendar_date
        # Exactly `window` calendar dates, today included
        since = today - timedelta(days=window - 1)

        try:
            async with self._session_maker() as session:
                daily = await get_daily_stats_since(session, since)
                groups = await get_group_statistics(session, group_number)
                total = await count_records(session, group_number)
                total_groups = await count_distinct(
                    session, MeetingRecord.group_number, group_number
                )
                total_speakers = await count_distinct(
                    session, MeetingRecord.speaker_name, group_number
                )
        except SQLAlchemyError as e:
            logger.error(f"Failed to compute statistics: {e}", exc_info=True)
            raise PersistenceError("Failed to compute statistics") from e

        return StatisticsOut(
            daily=[
                DailyStatisticsOut(
                    date=stat.date.isoformat(),
                    total_recordings=stat.total_recordings,
                    successful_recordings=stat.successful_recordings,
                    failed_recordings=stat.failed_recordings,
                    unique_groups=stat.unique_groups,
                    unique_speakers=stat.unique_speakers,
                    average_duration=stat.average_duration,
                )
                for stat in daily
            ],
            groups=[
                GroupStatisticsOut(
                    group_number=group,
                    total_meetings=count,
                    last_meeting=last.isoformat() if last else None,
                )
                for group, count, last in groups
            ],
            totals=StatisticsTotals(
                total_meetings=total,
                total_groups=total_groups,
                total_speakers=total_speakers,
                avg_meetings_per_day=total / window if window else 0.0,
            ),
        )

    async def advance_status(self, record_id: str, target: RecordingStatus) -> MeetingRecordOut:
        """Move a record's status forward. Regressions raise ValidationError."""
        try:
            async with self._session_maker() as session:
                record = await get_meeting_record(session, record_id)
                if record is None:
                    raise RecordNotFoundError(f"Meeting record {record_id} not found")

                current = RecordingStatus(record.status)
                if not can_advance_status(current, target):
                    raise ValidationError(
                        f"Cannot change status from {current.value} to {target.value}",
                        code=constants.INVALID_STATUS_TRANSITION,
                    )

                if not await update_record_status(session, record_id, current, target):
                    raise ValidationError(
                        f"Status of record {record_id} changed concurrently",
                        code=constants.INVALID_STATUS_TRANSITION,
                    )
                record = await get_meeting_record(session, record_id)
        except SQLAlchemyError as e:
            logger.error(f"Failed to update status of {record_id}: {e}", exc_info=True)
            raise PersistenceError("Failed to update record status") from e

        logger.info(f"Record {record_id} status {current.value} -> {target.value}")
        return self.format_record(record)

    async def sync_to_sheets(self, batch_size: Optional[int] = None) -> SyncResult:
        return await self.sync_coordinator.sync_pending(batch_size)

    def format_record(self, record: MeetingRecord) -> MeetingRecordOut:
        """Format a stored record; display strings are recomputed on every read."""
        instant = as_aware(record.recording_date_time).astimezone(self.tz)
        return MeetingRecordOut(
            id=record.id,
            recording_date=record.recording_date.isoformat(),
            recording_date_time=instant.isoformat(),
            recording_date_display=format_display_date(record.recording_date),
            recording_time=format_display_time(instant),
            speaker_name=record.speaker_name,
            group_number=record.group_number,
            person_met=record.person_met,
            location=record.location,
            full_transcription=record.full_transcription,
            recording_duration=record.recording_duration,
            year=record.year,
            month=record.month,
            day=record.day,
            day_of_week=record.day_of_week,
            status=RecordingStatus(record.status),
            processing_status=ProcessingStatus(record.processing_status),
            validation_score=record.validation_score,
            audio_file_url=record.audio_file_url,
            google_sheets_row_id=record.google_sheets_row_id,
            synced_to_sheets=record.synced_to_sheets,
            sheets_last_sync=(
                as_aware(record.sheets_last_sync).isoformat() if record.sheets_last_sync else None
            ),
            created_at=as_aware(record.created_at).isoformat(),
            updated_at=as_aware(record.updated_at).isoformat(),
        )

    async def _save_audio_file(self, audio: AudioUpload) -> str:
        upload_dir = Path(self.settings.upload_dir)
        filename = f"audio_{int(time.time() * 1000)}_{Path(audio.filename).name}"

        def write() -> None:
            upload_dir.mkdir(parents=True, exist_ok=True)
            (upload_dir / filename).write_bytes(audio.content)

        await asyncio.to_thread(write)
        return f"{constants.AUDIO_URL_PREFIX}/{filename}"


_meetings_service: Optional[MeetingsService] = None


def get_meetings_service() -> MeetingsService:
    """Get or create the meetings service singleton wired to the app database."""
    global _meetings_service
    if _meetings_service is None:
        settings = get_settings()
        tz = resolve_timezone(settings.timezone)
        coordinator = SyncCoordinator(
            async_session_maker,
            create_sink(settings),
            batch_size=settings.sync_batch_size,
            timeout_seconds=settings.sync_timeout_seconds,
            tz=tz,
        )
        worker = SyncWorker(coordinator.sync_one, concurrency=settings.sync_worker_concurrency)
        _meetings_service = MeetingsService(
            async_session_maker,
            settings=settings,
            sync_coordinator=coordinator,
            sync_worker=worker,
        )
    return _meetings_service
