"""Base classes for external row sinks."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import astuple, dataclass
from datetime import timezone, tzinfo
from typing import TYPE_CHECKING

from ...date_utils import as_aware, format_display_time

if TYPE_CHECKING:
    from ...database import MeetingRecord


@dataclass(frozen=True)
class SheetRow:
    """One spreadsheet row. Field order is the column order (A through I)."""

    date: str
    time: str
    speaker: str
    group: str
    person_met: str
    location: str
    day_of_week: str
    transcription: str
    duration: str

    def to_values(self) -> list[str]:
        return list(astuple(self))


def build_row(record: "MeetingRecord", tz: tzinfo = timezone.utc) -> SheetRow:
    """Map a stored record onto the nine-column sheet layout."""
    instant = as_aware(record.recording_date_time).astimezone(tz)
    return SheetRow(
        date=record.recording_date.isoformat(),
        time=format_display_time(instant),
        speaker=record.speaker_name,
        group=record.group_number,
        person_met=record.person_met,
        location=record.location,
        day_of_week=record.day_of_week,
        transcription=record.full_transcription,
        duration=record.recording_duration,
    )


class SheetSink(ABC):
    """Row-oriented destination that meeting records are pushed to.

    ``add_record`` must behave as an upsert keyed by ``record_id``: pushing the
    same record twice updates the existing row instead of adding a second one.
    """

    name: str = "sheet"

    @abstractmethod
    async def add_record(self, record_id: str, row: SheetRow) -> str:
        """Insert or update the row for ``record_id``.

        Args:
            record_id: Meeting record id, the idempotency key
            row: Values to write

        Returns:
            Identifier of the external row

        Raises:
            SyncError: If the sink is unreachable or rejects the row
        """
        pass

    async def health_check(self) -> bool:
        """Check if the sink is reachable."""
        return True

    async def aclose(self) -> None:
        """Release any held connections."""
        return None
