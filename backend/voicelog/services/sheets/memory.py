"""In-process sink used when no spreadsheet is configured, and by tests."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from ...errors import SyncError
from .base import SheetRow, SheetSink

logger = logging.getLogger(__name__)


class InMemorySheetSink(SheetSink):
    """Keeps rows in a list, keyed by record id.

    ``fail_ids`` and ``delay`` let callers simulate a rejecting or slow sink.
    """

    name = "memory"

    def __init__(
        self,
        *,
        fail_ids: Optional[set[str]] = None,
        delay: float = 0.0,
    ) -> None:
        self.rows: list[SheetRow] = []
        self.fail_ids: set[str] = set(fail_ids or ())
        self.delay = delay
        self.calls = 0
        self._index: dict[str, int] = {}

    async def add_record(self, record_id: str, row: SheetRow) -> str:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if record_id in self.fail_ids:
            raise SyncError(f"Sink rejected record {record_id}")

        position = self._index.get(record_id)
        if position is None:
            self.rows.append(row)
            position = len(self.rows) - 1
            self._index[record_id] = position
        else:
            self.rows[position] = row

        # Row 1 holds the header in a real sheet
        row_id = f"row_{position + 2}"
        logger.debug(f"Stored record {record_id} as {row_id}")
        return row_id

    def row_for(self, record_id: str) -> Optional[SheetRow]:
        position = self._index.get(record_id)
        return None if position is None else self.rows[position]
