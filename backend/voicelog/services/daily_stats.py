"""Per-date rollup maintenance."""

from __future__ import annotations

import logging
from datetime import date

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..database import upsert_daily_stats
from ..errors import PersistenceError

logger = logging.getLogger(__name__)


class DailyStatsUpdater:
    """Owns writes to the ``daily_stats`` table.

    Only the total and successful counters move after a row exists.
    ``unique_groups``/``unique_speakers`` keep the baseline written when the
    row was created and will under-count once a date has several records.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        self._session_maker = session_maker

    async def bump(self, day: date) -> None:
        """Count one more successful recording on ``day`` (atomic upsert)."""
        try:
            async with self._session_maker() as session:
                await upsert_daily_stats(session, day)
        except SQLAlchemyError as e:
            logger.error(f"Failed to update daily statistics for {day}: {e}", exc_info=True)
            raise PersistenceError("Failed to update daily statistics") from e
