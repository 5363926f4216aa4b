"""Meetings API router: create, list, statistics and sheet sync."""

from __future__ import annotations

import json
import logging
from datetime import date
from typing import Any, Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile, status
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ..constants import VALIDATION_ERROR
from ..errors import ValidationError
from ..models import RecordFilter, RecordingStatus, RecordMetadata
from ..responses import success_envelope
from ..services.meetings_service import AudioUpload, MeetingsService, get_meetings_service
from ..services.transcription import TranscriptionService, get_transcription_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/meetings", tags=["meetings"])


class ValidateRequest(BaseModel):
    """Request body for a validation preview."""

    text: str


class StatusUpdateRequest(BaseModel):
    status: RecordingStatus


def _parse_metadata(raw: Optional[str], request: Request) -> RecordMetadata:
    if raw:
        try:
            return RecordMetadata.model_validate(json.loads(raw))
        except (json.JSONDecodeError, PydanticValidationError) as e:
            raise ValidationError(
                "metadata must be a JSON object",
                code=VALIDATION_ERROR,
                details=str(e),
            ) from e

    # Fall back to what the request itself tells us
    return RecordMetadata(
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_meeting_record(
    request: Request,
    full_transcription: str = Form(..., alias="fullTranscription"),
    recording_duration: str = Form(..., alias="recordingDuration"),
    metadata: Optional[str] = Form(None),
    audio_file: Optional[UploadFile] = File(None, alias="audioFile"),
    service: MeetingsService = Depends(get_meetings_service),
) -> dict[str, Any]:
    """
    Create a new meeting record from a transcription.

    The transcription must follow the meeting template; otherwise a 400 with
    the validation message and field errors is returned.
    """
    audio = None
    if audio_file is not None:
        audio = AudioUpload(
            filename=audio_file.filename or "recording.webm",
            content=await audio_file.read(),
        )

    record = await service.create_record(
        full_transcription,
        recording_duration,
        audio=audio,
        metadata=_parse_metadata(metadata, request),
    )
    return success_envelope(record.model_dump(by_alias=True, mode="json"))


@router.get("")
async def list_meeting_records(
    page: Optional[int] = Query(None, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    group_number: Optional[str] = Query(None, alias="groupNumber"),
    speaker_name: Optional[str] = Query(None, alias="speakerName"),
    record_status: Optional[RecordingStatus] = Query(None, alias="status"),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    sort_by: str = Query("recordingDate", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder", pattern="^(asc|desc)$"),
    service: MeetingsService = Depends(get_meetings_service),
) -> dict[str, Any]:
    """
    Get meeting records with pagination and filtering.

    Defaults to the newest recording date first.
    """
    filters = RecordFilter(
        page=page or service.settings.default_page,
        limit=limit or service.settings.default_page_size,
        group_number=group_number,
        speaker_name=speaker_name,
        status=record_status,
        start_date=start_date,
        end_date=end_date,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    result = await service.list_records(filters)
    logger.info(f"Listing {len(result.data)} of {result.pagination.total} meeting records")

    return success_envelope(
        [record.model_dump(by_alias=True, mode="json") for record in result.data],
        pagination=result.pagination.model_dump(by_alias=True),
    )


@router.get("/statistics")
async def get_statistics(
    group_number: Optional[str] = Query(None, alias="groupNumber"),
    service: MeetingsService = Depends(get_meetings_service),
) -> dict[str, Any]:
    """Get daily, per-group and overall meeting statistics."""
    stats = await service.get_statistics(group_number)
    return success_envelope(stats.model_dump(by_alias=True, mode="json"))


@router.post("/sync-to-sheets")
async def sync_to_sheets(
    service: MeetingsService = Depends(get_meetings_service),
) -> dict[str, Any]:
    """Manually push unsynced records to the sheet, oldest date first."""
    result = await service.sync_to_sheets()
    return success_envelope(result.model_dump(by_alias=True))


@router.post("/validate")
async def validate_transcription_text(
    body: ValidateRequest,
    service: MeetingsService = Depends(get_meetings_service),
) -> dict[str, Any]:
    """Check a transcription against the template without storing anything."""
    result = service.validate(body.text)
    return success_envelope(result.model_dump(by_alias=True, mode="json"))


@router.post("/transcribe")
async def transcribe_audio(
    audio_file: UploadFile = File(..., alias="audioFile"),
    service: MeetingsService = Depends(get_meetings_service),
    transcriber: TranscriptionService = Depends(get_transcription_service),
) -> dict[str, Any]:
    """Transcribe uploaded audio and report whether the text follows the template."""
    content = await audio_file.read()
    transcription = await transcriber.transcribe(content, audio_file.filename or "recording.webm")
    validation = service.validate(transcription.text)

    return success_envelope(
        {
            "transcription": transcription.model_dump(by_alias=True),
            "validation": validation.model_dump(by_alias=True, mode="json"),
        }
    )


@router.get("/{record_id}")
async def get_meeting_record(
    record_id: str,
    service: MeetingsService = Depends(get_meetings_service),
) -> dict[str, Any]:
    """Get a single meeting record by id."""
    record = await service.get_record(record_id)
    return success_envelope(record.model_dump(by_alias=True, mode="json"))


@router.patch("/{record_id}/status")
async def update_meeting_status(
    record_id: str,
    body: StatusUpdateRequest,
    service: MeetingsService = Depends(get_meetings_service),
) -> dict[str, Any]:
    """Move a record's status forward (SUBMITTED -> VALIDATED -> PROCESSED -> ARCHIVED)."""
    record = await service.advance_status(record_id, body.status)
    return success_envelope(record.model_dump(by_alias=True, mode="json"))
