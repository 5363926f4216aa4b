"""Pushes meeting records to the external sheet sink."""

from __future__ import annotations

import asyncio
import logging
import weakref
from datetime import datetime, timezone, tzinfo
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..database import (
    find_unsynced_records,
    get_meeting_record,
    mark_record_synced,
    update_processing_status,
)
from ..errors import PersistenceError, SyncError
from ..models import ProcessingStatus, SyncResult
from .sheets import SheetSink, build_row

logger = logging.getLogger(__name__)


class SyncCoordinator:
    """Syncs records to a sheet, one at a time or in date-ordered batches.

    Both the background per-record path and the manual batch path go through
    ``push_record``, which serialises work per record id and skips records that
    are already synced. Concurrent ``sync_pending`` calls in separate processes
    are not coordinated; the sink's upsert-by-record-id keeps that race from
    creating duplicate rows.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        sink: SheetSink,
        *,
        batch_size: int = 100,
        timeout_seconds: float = 10.0,
        tz: tzinfo = timezone.utc,
    ) -> None:
        self._session_maker = session_maker
        self.sink = sink
        self.batch_size = batch_size
        self.timeout_seconds = timeout_seconds
        self._tz = tz
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _lock_for(self, record_id: str) -> asyncio.Lock:
        lock = self._locks.get(record_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[record_id] = lock
        return lock

    async def _set_processing_status(
        self, session: AsyncSession, record_id: str, status: ProcessingStatus
    ) -> None:
        try:
            await update_processing_status(session, record_id, status)
        except SQLAlchemyError as e:
            await session.rollback()
            logger.warning(f"Could not set processing status {status.value} on {record_id}: {e}")

    async def push_record(self, record_id: str) -> Optional[str]:
        """
        Push one record to the sink and mark it synced.

        Args:
            record_id: Meeting record id

        Returns:
            External row id, or None if the record no longer exists

        Raises:
            SyncError: On sink failure, timeout or failure to mark the record
        """
        async with self._lock_for(record_id):
            async with self._session_maker() as session:
                try:
                    record = await get_meeting_record(session, record_id)
                except SQLAlchemyError as e:
                    raise SyncError(f"Could not load record {record_id}") from e

                if record is None:
                    return None
                if record.synced_to_sheets:
                    return record.google_sheets_row_id

                row = build_row(record, self._tz)
                await self._set_processing_status(session, record_id, ProcessingStatus.PROCESSING)

                try:
                    row_id = await asyncio.wait_for(
                        self.sink.add_record(record_id, row),
                        timeout=self.timeout_seconds,
                    )
                except asyncio.TimeoutError as e:
                    await self._set_processing_status(session, record_id, ProcessingStatus.FAILED)
                    raise SyncError(
                        f"Sink push for record {record_id} timed out after {self.timeout_seconds}s"
                    ) from e
                except SyncError:
                    await self._set_processing_status(session, record_id, ProcessingStatus.FAILED)
                    raise
                except Exception as e:
                    await self._set_processing_status(session, record_id, ProcessingStatus.FAILED)
                    raise SyncError(f"Sink push for record {record_id} failed: {e}") from e

                try:
                    await mark_record_synced(
                        session, record_id, row_id, datetime.now(timezone.utc)
                    )
                except SQLAlchemyError as e:
                    await session.rollback()
                    raise SyncError(f"Pushed record {record_id} but could not mark it synced") from e

                return row_id

    async def sync_one(self, record_id: str) -> bool:
        """Background path: push one record, containing any failure.

        A failed record stays unsynced and is picked up by the next
        ``sync_pending`` pass.
        """
        try:
            row_id = await self.push_record(record_id)
        except SyncError as e:
            logger.error(f"Background sync failed for record {record_id}: {e.message}")
            return False
        except Exception as e:
            logger.error(f"Background sync failed for record {record_id}: {e}", exc_info=True)
            return False

        if row_id is None:
            logger.warning(f"Record {record_id} disappeared before background sync")
            return False
        logger.info(f"Record {record_id} synced to {self.sink.name} as {row_id}")
        return True

    async def sync_pending(self, batch_size: Optional[int] = None) -> SyncResult:
        """
        Push up to ``batch_size`` unsynced records, oldest recording date first.

        One record failing does not stop the batch; failures are counted and
        left unsynced for the next pass.

        Raises:
            PersistenceError: If the batch itself cannot be loaded
        """
        limit = batch_size or self.batch_size
        try:
            async with self._session_maker() as session:
                records = await find_unsynced_records(session, limit)
        except SQLAlchemyError as e:
            logger.error(f"Failed to load unsynced records: {e}", exc_info=True)
            raise PersistenceError("Failed to load unsynced records") from e

        result = SyncResult()
        for record in records:
            try:
                row_id = await self.push_record(record.id)
            except SyncError as e:
                logger.error(f"Failed to sync record {record.id} to {self.sink.name}: {e.message}")
                result.errors += 1
                continue

            if row_id is None:
                result.errors += 1
            else:
                result.synced += 1

        logger.info(
            f"{self.sink.name} sync completed: {result.synced} synced, {result.errors} errors"
        )
        return result
