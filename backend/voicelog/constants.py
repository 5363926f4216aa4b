"""Constants shared across the voicelog backend."""

from __future__ import annotations

from typing import Final

# Sentence every recording must follow
TEMPLATE_SENTENCE: Final[str] = (
    "My name is [name] and I belong to group [#] and today I met [name] at [location]."
)

FORMAT_HINT_MESSAGE: Final[str] = f'❌ Please follow the exact format: "{TEMPLATE_SENTENCE}"'
VALID_MESSAGE: Final[str] = "✅ Perfect! The message follows the required format."
DATA_ISSUES_PREFIX: Final[str] = "Format is correct but data has issues: "

# Field error strings (returned verbatim to clients)
INVALID_SPEAKER_NAME: Final[str] = "Invalid speaker name"
INVALID_PERSON_NAME: Final[str] = "Invalid person name"
INVALID_GROUP_NUMBER: Final[str] = "Group number must be a valid number"
INVALID_LOCATION: Final[str] = "Invalid location"

NAME_MIN_LENGTH: Final[int] = 2
NAME_MAX_LENGTH: Final[int] = 100
LOCATION_MIN_LENGTH: Final[int] = 2
LOCATION_MAX_LENGTH: Final[int] = 200
GROUP_MIN: Final[int] = 1
GROUP_MAX: Final[int] = 999
GROUP_MAX_LENGTH: Final[int] = 50

# Error codes used in the failure envelope
INVALID_MESSAGE_FORMAT: Final[str] = "INVALID_MESSAGE_FORMAT"
INVALID_STATUS_TRANSITION: Final[str] = "INVALID_STATUS_TRANSITION"
VALIDATION_ERROR: Final[str] = "VALIDATION_ERROR"
RECORD_NOT_FOUND: Final[str] = "RECORD_NOT_FOUND"
DATABASE_ERROR: Final[str] = "DATABASE_ERROR"
GOOGLE_SHEETS_ERROR: Final[str] = "GOOGLE_SHEETS_ERROR"
TRANSCRIPTION_FAILED: Final[str] = "TRANSCRIPTION_FAILED"
INTERNAL_SERVER_ERROR: Final[str] = "INTERNAL_SERVER_ERROR"

# Column order is consumed by downstream spreadsheets, do not reorder
SHEET_COLUMNS: Final[tuple[str, ...]] = (
    "Date",
    "Time",
    "Speaker",
    "Group",
    "PersonMet",
    "Location",
    "DayOfWeek",
    "Transcription",
    "Duration",
)

# Sortable columns accepted by the list endpoint (API name -> ORM attribute)
SORTABLE_FIELDS: Final[dict[str, str]] = {
    "recordingDate": "recording_date",
    "recordingDateTime": "recording_date_time",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    "speakerName": "speaker_name",
    "groupNumber": "group_number",
    "personMet": "person_met",
    "location": "location",
    "status": "status",
}

AUDIO_URL_PREFIX: Final[str] = "/uploads/audio"
