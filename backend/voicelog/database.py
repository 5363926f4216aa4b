from __future__ import annotations

import datetime as dt
import logging
import uuid
from datetime import date, datetime, timezone
from typing import Any, Optional, Sequence

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
    distinct,
    func,
    insert,
    select,
    update,
)
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import Select

from .config import get_settings
from .constants import GROUP_MAX_LENGTH, SORTABLE_FIELDS
from .models import ProcessingStatus, RecordFilter, RecordingStatus

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    pass


class MeetingRecord(Base):
    __tablename__ = "meeting_records"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)

    # Date fields are written together from one snapshot and never edited
    recording_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    recording_date_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    day: Mapped[int] = mapped_column(Integer, nullable=False)
    day_of_week: Mapped[str] = mapped_column(String(16), nullable=False)

    speaker_name: Mapped[str] = mapped_column(String(100), nullable=False)
    group_number: Mapped[str] = mapped_column(
        String(GROUP_MAX_LENGTH), nullable=False, index=True
    )
    person_met: Mapped[str] = mapped_column(String(100), nullable=False)
    location: Mapped[str] = mapped_column(String(200), nullable=False)
    full_transcription: Mapped[str] = mapped_column(Text, nullable=False)
    recording_duration: Mapped[str] = mapped_column(String(16), nullable=False)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=RecordingStatus.SUBMITTED.value
    )
    processing_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ProcessingStatus.PENDING.value
    )
    validation_score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    audio_file_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    ip_address: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    synced_to_sheets: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    google_sheets_row_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    sheets_last_sync: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    __table_args__ = (
        Index("idx_meeting_records_year_month", "year", "month"),
        Index("idx_meeting_records_synced", "synced_to_sheets", "recording_date"),
    )


class DailyStats(Base):
    __tablename__ = "daily_stats"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    date: Mapped[dt.date] = mapped_column(Date, unique=True, nullable=False)
    total_recordings: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    successful_recordings: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    failed_recordings: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    unique_groups: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    unique_speakers: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    average_duration: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )


engine = create_async_engine(get_settings().database_url, echo=False)
async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db() -> None:
    """Initialize database by creating all tables."""
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise


# ---------------------------------------------------------------------------
# Meeting records
# ---------------------------------------------------------------------------


async def create_meeting_record(session: AsyncSession, data: dict[str, Any]) -> MeetingRecord:
    """Insert a new meeting record and return it refreshed."""
    record = MeetingRecord(**data)
    session.add(record)
    await session.commit()
    await session.refresh(record)
    return record


async def get_meeting_record(session: AsyncSession, record_id: str) -> Optional[MeetingRecord]:
    return await session.get(MeetingRecord, record_id, populate_existing=True)


def _apply_filters(stmt: Select, filters: RecordFilter) -> Select:
    if filters.group_number:
        stmt = stmt.where(MeetingRecord.group_number == filters.group_number)
    if filters.speaker_name:
        stmt = stmt.where(MeetingRecord.speaker_name.ilike(f"%{filters.speaker_name}%"))
    if filters.status:
        stmt = stmt.where(MeetingRecord.status == filters.status.value)
    # Date range is inclusive on both ends
    if filters.start_date:
        stmt = stmt.where(MeetingRecord.recording_date >= filters.start_date)
    if filters.end_date:
        stmt = stmt.where(MeetingRecord.recording_date <= filters.end_date)
    return stmt


async def find_meeting_records(
    session: AsyncSession,
    filters: RecordFilter,
    skip: int,
    take: int,
) -> list[MeetingRecord]:
    """Return one page of records matching ``filters``."""
    column = getattr(MeetingRecord, SORTABLE_FIELDS[filters.sort_by])
    order = column.asc() if filters.sort_order == "asc" else column.desc()
    tiebreak = (
        MeetingRecord.created_at.asc()
        if filters.sort_order == "asc"
        else MeetingRecord.created_at.desc()
    )

    stmt = _apply_filters(select(MeetingRecord), filters)
    stmt = stmt.order_by(order, tiebreak).offset(skip).limit(take)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def count_meeting_records(session: AsyncSession, filters: RecordFilter) -> int:
    stmt = _apply_filters(select(func.count(MeetingRecord.id)), filters)
    result = await session.execute(stmt)
    return int(result.scalar_one())


async def find_unsynced_records(session: AsyncSession, limit: int) -> list[MeetingRecord]:
    """Oldest recording date first, regardless of creation order."""
    stmt = (
        select(MeetingRecord)
        .where(MeetingRecord.synced_to_sheets.is_(False))
        .order_by(
            MeetingRecord.recording_date.asc(),
            MeetingRecord.recording_date_time.asc(),
            MeetingRecord.created_at.asc(),
        )
        .limit(limit)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def mark_record_synced(
    session: AsyncSession,
    record_id: str,
    row_id: str,
    synced_at: datetime,
) -> bool:
    """
    Flip ``synced_to_sheets`` to true together with the row id and sync time.

    The update only applies while the flag is still false, so concurrent
    writers cannot flip it twice.

    Returns:
        True if this call performed the flip
    """
    stmt = (
        update(MeetingRecord)
        .where(MeetingRecord.id == record_id, MeetingRecord.synced_to_sheets.is_(False))
        .values(
            synced_to_sheets=True,
            google_sheets_row_id=row_id,
            sheets_last_sync=synced_at,
            processing_status=ProcessingStatus.COMPLETED.value,
        )
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    await session.commit()
    return result.rowcount == 1


async def update_processing_status(
    session: AsyncSession, record_id: str, status: ProcessingStatus
) -> None:
    stmt = (
        update(MeetingRecord)
        .where(MeetingRecord.id == record_id)
        .values(processing_status=status.value)
        .execution_options(synchronize_session=False)
    )
    await session.execute(stmt)
    await session.commit()


async def update_record_status(
    session: AsyncSession,
    record_id: str,
    current: RecordingStatus,
    target: RecordingStatus,
) -> bool:
    """Compare-and-set the record status. Returns False if ``current`` was stale."""
    stmt = (
        update(MeetingRecord)
        .where(MeetingRecord.id == record_id, MeetingRecord.status == current.value)
        .values(status=target.value)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    await session.commit()
    return result.rowcount == 1


# ---------------------------------------------------------------------------
# Daily statistics
# ---------------------------------------------------------------------------


def _daily_stats_baseline(day: date) -> dict[str, Any]:
    now = _utcnow()
    return {
        "date": day,
        "total_recordings": 1,
        "successful_recordings": 1,
        "failed_recordings": 0,
        "unique_groups": 1,
        "unique_speakers": 1,
        "average_duration": 0,
        "created_at": now,
        "updated_at": now,
    }


def _daily_stats_increment() -> dict[str, Any]:
    return {
        "total_recordings": DailyStats.total_recordings + 1,
        "successful_recordings": DailyStats.successful_recordings + 1,
        "updated_at": _utcnow(),
    }


async def upsert_daily_stats(session: AsyncSession, day: date) -> None:
    """
    Create the row for ``day`` or increment its counters in one statement.

    PostgreSQL and SQLite use ``INSERT .. ON CONFLICT DO UPDATE``. Other
    dialects increment in place and fall back to an insert, retrying the
    increment if a concurrent insert won the race.
    """
    dialect = session.get_bind().dialect.name

    if dialect in ("postgresql", "sqlite"):
        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert as dialect_insert
        else:
            from sqlalchemy.dialects.sqlite import insert as dialect_insert

        stmt = dialect_insert(DailyStats).values(**_daily_stats_baseline(day))
        stmt = stmt.on_conflict_do_update(
            index_elements=[DailyStats.date],
            set_=_daily_stats_increment(),
        )
        await session.execute(stmt)
        await session.commit()
        return

    increment = (
        update(DailyStats)
        .where(DailyStats.date == day)
        .values(**_daily_stats_increment())
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(increment)
    if result.rowcount == 0:
        try:
            await session.execute(insert(DailyStats).values(**_daily_stats_baseline(day)))
            await session.commit()
            return
        except IntegrityError:
            await session.rollback()
            await session.execute(increment)
    await session.commit()


async def get_daily_stats(session: AsyncSession, day: date) -> Optional[DailyStats]:
    result = await session.execute(select(DailyStats).where(DailyStats.date == day))
    return result.scalar_one_or_none()


async def get_daily_stats_since(session: AsyncSession, since: date) -> list[DailyStats]:
    stmt = select(DailyStats).where(DailyStats.date >= since).order_by(DailyStats.date.asc())
    result = await session.execute(stmt)
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Aggregates
# ---------------------------------------------------------------------------


def _group_scope(stmt: Select, group_number: Optional[str]) -> Select:
    if group_number:
        stmt = stmt.where(MeetingRecord.group_number == group_number)
    return stmt


async def get_group_statistics(
    session: AsyncSession, group_number: Optional[str] = None
) -> Sequence[tuple[str, int, Optional[date]]]:
    """Return ``(group_number, count, latest recording_date)`` per group."""
    stmt = select(
        MeetingRecord.group_number,
        func.count(MeetingRecord.id),
        func.max(MeetingRecord.recording_date),
    )
    stmt = _group_scope(stmt, group_number)
    stmt = stmt.group_by(MeetingRecord.group_number).order_by(MeetingRecord.group_number)
    result = await session.execute(stmt)
    return [tuple(row) for row in result.all()]


async def count_records(session: AsyncSession, group_number: Optional[str] = None) -> int:
    stmt = _group_scope(select(func.count(MeetingRecord.id)), group_number)
    result = await session.execute(stmt)
    return int(result.scalar_one())


async def count_distinct(
    session: AsyncSession, column: Any, group_number: Optional[str] = None
) -> int:
    stmt = _group_scope(select(func.count(distinct(column))), group_number)
    result = await session.execute(stmt)
    return int(result.scalar_one())
