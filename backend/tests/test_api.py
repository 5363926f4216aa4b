"""Tests for the meetings HTTP API."""

from types import SimpleNamespace

import pytest

from voicelog.errors import TranscriptionError
from voicelog.main import app
from voicelog.models import TranscriptionResult
from voicelog.services.transcription import TranscriptionService, get_transcription_service

BASE = "/api/v1/meetings"

VALID_TEXT = (
    "My name is John Smith and I belong to group 5 and today I met Sarah Johnson "
    "at the coffee shop."
)


def _form(text: str = VALID_TEXT, duration: str = "01:23", **extra) -> dict:
    return {"fullTranscription": text, "recordingDuration": duration, **extra}


class FakeTranscriber:
    def __init__(self, text: str) -> None:
        self.text = text
        self.seen: list[tuple[str, int]] = []

    async def transcribe(self, audio: bytes, filename: str = "recording.webm") -> TranscriptionResult:
        self.seen.append((filename, len(audio)))
        return TranscriptionResult(text=self.text, model="fake", processing_time=0.01)


class TestCreateEndpoint:
    """Tests for POST /api/v1/meetings."""

    @pytest.mark.asyncio
    async def test_create_returns_envelope(self, client):
        response = await client.post(
            BASE, data=_form(), headers={"user-agent": "pytest-client"}
        )

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["meta"]["requestId"].startswith("req_")
        assert body["meta"]["timestamp"].endswith("Z")

        record = body["data"]
        assert record["speakerName"] == "John Smith"
        assert record["groupNumber"] == "5"
        assert record["recordingDate"] == "2025-07-25"
        assert record["recordingDateDisplay"] == "Friday, July 25, 2025"
        assert record["recordingTime"] == "03:04:05 PM"
        assert record["dayOfWeek"] == "Friday"
        assert record["status"] == "SUBMITTED"
        assert record["syncedToSheets"] is False

    @pytest.mark.asyncio
    async def test_invalid_transcription_returns_400(self, client):
        text = VALID_TEXT.replace("group 5", "group 1000")

        response = await client.post(BASE, data=_form(text))

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error"]["code"] == "INVALID_MESSAGE_FORMAT"
        assert body["error"]["details"] == ["Group number must be a valid number"]

    @pytest.mark.asyncio
    async def test_unmatched_sentence_has_format_hint(self, client):
        response = await client.post(BASE, data=_form("hello there"))

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["message"].startswith("❌ Please follow the exact format")
        assert "details" not in error

    @pytest.mark.asyncio
    async def test_missing_field_returns_422_envelope(self, client):
        response = await client.post(BASE, data={"fullTranscription": VALID_TEXT})

        assert response.status_code == 422
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert any("recordingDuration" in item["loc"] for item in error["details"])

    @pytest.mark.asyncio
    async def test_bad_metadata_json_rejected(self, client):
        response = await client.post(BASE, data=_form(metadata="{not json"))

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_audio_upload_is_stored(self, client, settings):
        response = await client.post(
            BASE,
            data=_form(),
            files={"audioFile": ("clip.webm", b"\x1a\x45\xdf\xa3", "audio/webm")},
        )

        assert response.status_code == 201
        url = response.json()["data"]["audioFileUrl"]
        assert url.startswith("/uploads/audio/audio_")
        assert url.endswith("_clip.webm")
        saved = settings.upload_dir / url.rsplit("/", 1)[1]
        assert saved.read_bytes() == b"\x1a\x45\xdf\xa3"


class TestListEndpoint:
    """Tests for GET /api/v1/meetings."""

    @pytest.mark.asyncio
    async def test_list_with_pagination(self, client):
        for name in ["Alice", "Bob", "Carol"]:
            await client.post(BASE, data=_form(VALID_TEXT.replace("John Smith", name)))

        response = await client.get(BASE, params={"page": 2, "limit": 2})

        assert response.status_code == 200
        body = response.json()
        assert len(body["data"]) == 1
        assert body["pagination"] == {
            "page": 2,
            "limit": 2,
            "total": 3,
            "totalPages": 2,
            "hasNext": False,
            "hasPrev": True,
        }

    @pytest.mark.asyncio
    async def test_filters_by_group(self, client):
        await client.post(BASE, data=_form())
        await client.post(BASE, data=_form(VALID_TEXT.replace("group 5", "group 7")))

        response = await client.get(BASE, params={"groupNumber": "7"})

        data = response.json()["data"]
        assert [record["groupNumber"] for record in data] == ["7"]

    @pytest.mark.asyncio
    async def test_unknown_sort_field_rejected(self, client):
        response = await client.get(BASE, params={"sortBy": "fullTranscription"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_bad_sort_order_is_422(self, client):
        response = await client.get(BASE, params={"sortOrder": "sideways"})

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_empty_list(self, client):
        body = (await client.get(BASE)).json()

        assert body["data"] == []
        assert body["pagination"]["total"] == 0
        assert body["pagination"]["totalPages"] == 0


class TestRecordEndpoints:
    """Tests for single-record routes."""

    @pytest.mark.asyncio
    async def test_get_by_id(self, client):
        created = (await client.post(BASE, data=_form())).json()["data"]

        response = await client.get(f"{BASE}/{created['id']}")

        assert response.status_code == 200
        assert response.json()["data"]["id"] == created["id"]

    @pytest.mark.asyncio
    async def test_unknown_id_is_404(self, client):
        response = await client.get(f"{BASE}/missing")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "RECORD_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_status_moves_forward_only(self, client):
        created = (await client.post(BASE, data=_form())).json()["data"]
        url = f"{BASE}/{created['id']}/status"

        forward = await client.patch(url, json={"status": "VALIDATED"})
        backward = await client.patch(url, json={"status": "SUBMITTED"})

        assert forward.status_code == 200
        assert forward.json()["data"]["status"] == "VALIDATED"
        assert backward.status_code == 400
        assert backward.json()["error"]["code"] == "INVALID_STATUS_TRANSITION"


class TestStatisticsAndSync:
    """Tests for statistics and manual sync routes."""

    @pytest.mark.asyncio
    async def test_statistics(self, client):
        await client.post(BASE, data=_form())
        await client.post(BASE, data=_form(VALID_TEXT.replace("John Smith", "Jane Doe")))

        response = await client.get(f"{BASE}/statistics")

        assert response.status_code == 200
        stats = response.json()["data"]
        assert stats["daily"][0]["date"] == "2025-07-25"
        assert stats["daily"][0]["totalRecordings"] == 2
        assert stats["groups"][0]["groupNumber"] == "5"
        assert stats["groups"][0]["totalMeetings"] == 2
        assert stats["totals"]["totalMeetings"] == 2
        assert stats["totals"]["totalSpeakers"] == 2

    @pytest.mark.asyncio
    async def test_sync_to_sheets(self, client, sink):
        await client.post(BASE, data=_form())
        await client.post(BASE, data=_form(VALID_TEXT.replace("John Smith", "Jane Doe")))

        response = await client.post(f"{BASE}/sync-to-sheets")

        assert response.status_code == 200
        assert response.json()["data"] == {"synced": 2, "errors": 0}
        assert len(sink.rows) == 2

    @pytest.mark.asyncio
    async def test_sync_reports_failures(self, client, sink):
        created = (await client.post(BASE, data=_form())).json()["data"]
        sink.fail_ids = {created["id"]}

        response = await client.post(f"{BASE}/sync-to-sheets")

        assert response.json()["data"] == {"synced": 0, "errors": 1}


class TestValidationAndTranscription:
    """Tests for the preview routes."""

    @pytest.mark.asyncio
    async def test_validate_preview(self, client):
        response = await client.post(f"{BASE}/validate", json={"text": VALID_TEXT})

        data = response.json()["data"]
        assert data["isValid"] is True
        assert data["extractedData"]["personMet"] == "Sarah Johnson"

    @pytest.mark.asyncio
    async def test_validate_does_not_store(self, client):
        await client.post(f"{BASE}/validate", json={"text": VALID_TEXT})

        body = (await client.get(BASE)).json()
        assert body["pagination"]["total"] == 0

    @pytest.mark.asyncio
    async def test_transcribe_returns_text_and_validation(self, client):
        transcriber = FakeTranscriber(VALID_TEXT)
        app.dependency_overrides[get_transcription_service] = lambda: transcriber

        response = await client.post(
            f"{BASE}/transcribe",
            files={"audioFile": ("clip.webm", b"audio-bytes", "audio/webm")},
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["transcription"]["text"] == VALID_TEXT
        assert data["validation"]["isValid"] is True
        assert transcriber.seen == [("clip.webm", 11)]

    @pytest.mark.asyncio
    async def test_transcription_failure_is_502(self, client):
        async def create(**kwargs):
            raise RuntimeError("upstream down")

        fake_client = SimpleNamespace(
            audio=SimpleNamespace(transcriptions=SimpleNamespace(create=create))
        )
        service = TranscriptionService("fake-model", client=fake_client)
        app.dependency_overrides[get_transcription_service] = lambda: service

        response = await client.post(
            f"{BASE}/transcribe",
            files={"audioFile": ("clip.webm", b"audio-bytes", "audio/webm")},
        )

        assert response.status_code == 502
        assert response.json()["error"]["code"] == "TRANSCRIPTION_FAILED"


class TestTranscriptionService:
    """Tests for TranscriptionService against a stub client."""

    @pytest.mark.asyncio
    async def test_passes_model_and_file(self):
        calls = []

        async def create(**kwargs):
            calls.append(kwargs)
            return SimpleNamespace(text="  hello world  ")

        fake_client = SimpleNamespace(
            audio=SimpleNamespace(transcriptions=SimpleNamespace(create=create))
        )
        service = TranscriptionService("fake-model", client=fake_client)

        result = await service.transcribe(b"abc", "note.m4a")

        assert result.text == "hello world"
        assert result.model == "fake-model"
        assert calls[0]["model"] == "fake-model"
        assert calls[0]["file"] == ("note.m4a", b"abc")

    @pytest.mark.asyncio
    async def test_empty_audio_rejected(self):
        service = TranscriptionService("fake-model", client=SimpleNamespace())

        with pytest.raises(TranscriptionError):
            await service.transcribe(b"")


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")

        assert response.json() == {"status": "healthy"}
