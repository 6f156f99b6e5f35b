"""Tests for the Google REST adapters (Sheets, Drive, Speech-to-Text).

WHY: The adapters are the only place that knows the Google wire formats:
A1 ranges, the append response, the Drive upload call, the recognize
request. Each is checked against a scripted transport or a mocked
discovery service so no real Google API is ever called.

HOW: httpx.MockTransport routes requests to a handler function that
records them and returns canned JSON. StaticTokenProvider stands in for
the service account.

RULES:
- Google APIs are never called (MockTransport or a patched build())
- Every adapter failure must surface as a StorageError subclass
- Speech failures never raise; they return UNAVAILABLE
"""

from __future__ import annotations

import asyncio
import base64
import json
from typing import List
from unittest.mock import AsyncMock, MagicMock, patch

import httplib2
import httpx
import pytest
from googleapiclient.errors import HttpError

from voice_journal.core.interfaces import StorageError, TranscriptionStatus
from voice_journal.google.auth import (
    GoogleAuthError,
    ServiceAccountTokenProvider,
    StaticTokenProvider,
)
from voice_journal.google.client import GoogleAPIError, GoogleClient
from voice_journal.google.drive import DriveStore
from voice_journal.google.models import (
    AppendResponse,
    DriveFile,
    RecognizeResponse,
    ValueRange,
)
from voice_journal.google.sheets import SheetsLog, a1_range
from voice_journal.google.speech import SpeechTranscriber

TOKEN = StaticTokenProvider("test-token")


class Recorder:
    """MockTransport handler that records requests and replays responses."""

    def __init__(self, *responses: httpx.Response) -> None:
        self.requests: List[httpx.Request] = []
        self._responses = list(responses)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._responses.pop(0)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class TestModels:

    def test_append_row_from_updated_range(self):
        data = {"updates": {"updatedRange": "Sheet1!A17:D17"}}
        assert AppendResponse.from_dict(data).row == 17

    def test_append_without_row_raises(self):
        with pytest.raises(ValueError):
            AppendResponse.from_dict({"updates": {"updatedRange": "Sheet1!A:D"}})

    def test_append_without_updates_raises(self):
        with pytest.raises(ValueError):
            AppendResponse.from_dict({})

    def test_value_range_first_value(self):
        assert ValueRange.from_dict({"range": "x", "values": [["①link"]]}).first_value == "①link"

    def test_value_range_empty_cell(self):
        assert ValueRange.from_dict({"range": "Sheet1!B5"}).first_value is None

    def test_value_range_empty_string(self):
        assert ValueRange.from_dict({"values": [[""]]}).first_value is None

    def test_drive_view_url(self):
        assert DriveFile.from_dict({"id": "abc123"}).view_url == (
            "https://drive.google.com/file/d/abc123/view"
        )

    def test_recognize_joins_first_alternatives(self):
        data = {"results": [
            {"alternatives": [{"transcript": "first part"}, {"transcript": "other"}]},
            {"alternatives": [{"transcript": "second part"}]},
        ]}
        assert RecognizeResponse.from_dict(data).transcript == "first part\nsecond part"

    def test_recognize_no_results(self):
        assert RecognizeResponse.from_dict({}).transcript == ""


# ---------------------------------------------------------------------------
# GoogleClient
# ---------------------------------------------------------------------------


class TestGoogleClient:

    def test_adds_bearer_token(self):
        recorder = Recorder(httpx.Response(200, json={}))
        client = GoogleClient(TOKEN, "https://api.test/v1", transport=recorder.transport)

        asyncio.run(client.request("GET", "/thing"))

        assert recorder.requests[0].headers["Authorization"] == "Bearer test-token"
        assert recorder.requests[0].url.path == "/v1/thing"

    def test_non_2xx_raises_google_api_error(self):
        recorder = Recorder(httpx.Response(403, text="forbidden"))
        client = GoogleClient(TOKEN, "https://api.test", transport=recorder.transport)

        with pytest.raises(GoogleAPIError) as exc_info:
            asyncio.run(client.request("GET", "/x"))

        assert exc_info.value.status_code == 403
        assert "forbidden" in exc_info.value.message
        assert isinstance(exc_info.value, StorageError)

    def test_transport_error_has_no_status(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        client = GoogleClient(TOKEN, "https://api.test", transport=httpx.MockTransport(handler))
        with pytest.raises(GoogleAPIError) as exc_info:
            asyncio.run(client.request("GET", "/x"))
        assert exc_info.value.status_code is None

    def test_async_context_manager_closes_client(self):
        recorder = Recorder(httpx.Response(200, json={}))

        async def _run():
            async with GoogleClient(TOKEN, "https://api.test", transport=recorder.transport) as c:
                await c.request("GET", "/x")
            return c

        client = asyncio.run(_run())
        assert client._client is None


# ---------------------------------------------------------------------------
# SheetsLog
# ---------------------------------------------------------------------------


class TestSheetsLog:

    def test_a1_range_quotes_sheet_name(self):
        assert a1_range("Sheet1", "B5") == "'Sheet1'!B5"
        assert a1_range("Tom's log", "A:D") == "'Tom''s log'!A:D"

    def test_create_entry_row_appends_raw(self):
        recorder = Recorder(httpx.Response(
            200, json={"updates": {"updatedRange": "'Sheet1'!A12:D12"}}
        ))
        log = SheetsLog(TOKEN, "sheet-id", transport=recorder.transport)

        row = asyncio.run(log.create_entry_row("2024-05-01T10:00:00.000Z"))

        assert row == 12
        request = recorder.requests[0]
        assert request.method == "POST"
        assert request.url.path == "/v4/spreadsheets/sheet-id/values/'Sheet1'!A:D:append"
        assert request.url.params["valueInputOption"] == "RAW"
        assert request.url.params["insertDataOption"] == "INSERT_ROWS"
        assert json.loads(request.content) == {
            "values": [["2024-05-01T10:00:00.000Z", "", "", ""]]
        }

    def test_create_entry_row_unparseable_range(self):
        recorder = Recorder(httpx.Response(200, json={"updates": {}}))
        log = SheetsLog(TOKEN, "sheet-id", transport=recorder.transport)
        with pytest.raises(GoogleAPIError):
            asyncio.run(log.create_entry_row("ts"))

    def test_read_cell_value(self):
        recorder = Recorder(httpx.Response(200, json={"range": "'Sheet1'!D5", "values": [["①x"]]}))
        log = SheetsLog(TOKEN, "sheet-id", transport=recorder.transport)

        assert asyncio.run(log.read_cell(5, "D")) == "①x"
        assert recorder.requests[0].method == "GET"
        assert recorder.requests[0].url.path.endswith("/values/'Sheet1'!D5")

    def test_read_empty_cell(self):
        recorder = Recorder(httpx.Response(200, json={"range": "'Sheet1'!D5"}))
        log = SheetsLog(TOKEN, "sheet-id", transport=recorder.transport)
        assert asyncio.run(log.read_cell(5, "D")) is None

    def test_read_cell_non_json_is_storage_error(self):
        recorder = Recorder(httpx.Response(200, text="<html>proxy</html>"))
        log = SheetsLog(TOKEN, "sheet-id", transport=recorder.transport)

        with pytest.raises(GoogleAPIError) as exc_info:
            asyncio.run(log.read_cell(5, "D"))
        assert exc_info.value.status_code == 200
        assert isinstance(exc_info.value, StorageError)

    def test_read_cell_non_object_is_storage_error(self):
        recorder = Recorder(httpx.Response(200, json=["D5"]))
        log = SheetsLog(TOKEN, "sheet-id", transport=recorder.transport)
        with pytest.raises(GoogleAPIError):
            asyncio.run(log.read_cell(5, "D"))

    def test_create_entry_row_non_json_is_storage_error(self):
        recorder = Recorder(httpx.Response(200, text="not json"))
        log = SheetsLog(TOKEN, "sheet-id", transport=recorder.transport)
        with pytest.raises(GoogleAPIError):
            asyncio.run(log.create_entry_row("ts"))

    def test_write_cell_puts_single_value(self):
        recorder = Recorder(httpx.Response(200, json={}))
        log = SheetsLog(TOKEN, "sheet-id", sheet_name="Journal", transport=recorder.transport)

        asyncio.run(log.write_cell(6, "B", "②link[text]"))

        request = recorder.requests[0]
        assert request.method == "PUT"
        assert request.url.path.endswith("/values/'Journal'!B6")
        assert request.url.params["valueInputOption"] == "RAW"
        assert json.loads(request.content) == {
            "range": "'Journal'!B6",
            "values": [["②link[text]"]],
        }

    def test_write_failure_is_storage_error(self):
        recorder = Recorder(httpx.Response(500, text="backend error"))
        log = SheetsLog(TOKEN, "sheet-id", transport=recorder.transport)
        with pytest.raises(StorageError):
            asyncio.run(log.write_cell(6, "B", "x"))


# ---------------------------------------------------------------------------
# DriveStore
# ---------------------------------------------------------------------------


class TestDriveStore:

    def _service(self, response=None, error=None):
        service = MagicMock()
        execute = service.files.return_value.create.return_value.execute
        if error is not None:
            execute.side_effect = error
        else:
            execute.return_value = response
        return service

    def _upload(self, service, store=None):
        store = store or DriveStore(TOKEN, "folder-9")
        with patch("voice_journal.google.drive.build", return_value=service) as build:
            ref = asyncio.run(store.store_audio(b"OggS", "voice-1.ogg"))
        return ref, build

    def test_store_audio_returns_view_url(self):
        service = self._service({"id": "file-1"})

        ref, build = self._upload(service)

        assert ref == "https://drive.google.com/file/d/file-1/view"
        assert build.call_args.args == ("drive", "v3")
        assert build.call_args.kwargs["credentials"].token == "test-token"
        kwargs = service.files.return_value.create.call_args.kwargs
        assert kwargs["body"] == {
            "name": "voice-1.ogg",
            "parents": ["folder-9"],
            "mimeType": "audio/ogg",
        }
        assert kwargs["fields"] == "id"
        media = kwargs["media_body"]
        assert media.mimetype() == "audio/ogg"
        assert media.getbytes(0, media.size()) == b"OggS"
        assert media.resumable() is False
        service.close.assert_called_once()

    def test_missing_file_id_is_storage_error(self):
        with pytest.raises(GoogleAPIError):
            self._upload(self._service({}))

    def test_http_error_keeps_status(self):
        error = HttpError(httplib2.Response({"status": 404}), b"folder not found")
        service = self._service(error=error)

        with pytest.raises(GoogleAPIError) as exc_info:
            self._upload(service)

        assert exc_info.value.status_code == 404
        assert "folder not found" in exc_info.value.message
        assert isinstance(exc_info.value, StorageError)
        service.close.assert_called_once()

    def test_transport_error_is_storage_error(self):
        service = self._service(error=httplib2.ServerNotFoundError("no route"))
        with pytest.raises(GoogleAPIError) as exc_info:
            self._upload(service)
        assert exc_info.value.status_code is None

    def test_token_failure_skips_upload(self):
        tokens = MagicMock()
        tokens.get_token = AsyncMock(side_effect=GoogleAuthError("no key"))
        service = self._service({"id": "file-1"})

        with pytest.raises(StorageError):
            self._upload(service, DriveStore(tokens, "folder-9"))
        service.files.assert_not_called()


# ---------------------------------------------------------------------------
# SpeechTranscriber
# ---------------------------------------------------------------------------


class TestSpeechTranscriber:

    def test_request_config(self):
        transcriber = SpeechTranscriber(TOKEN, language="uk-UA", fallback_language="ru-RU")
        body = transcriber.build_request(b"OggS")

        assert body["config"] == {
            "encoding": "OGG_OPUS",
            "sampleRateHertz": 48000,
            "languageCode": "uk-UA",
            "enableAutomaticPunctuation": True,
            "model": "default",
            "alternativeLanguageCodes": ["ru-RU"],
        }
        assert base64.b64decode(body["audio"]["content"]) == b"OggS"

    def test_no_fallback_language(self):
        transcriber = SpeechTranscriber(TOKEN, fallback_language=None)
        assert "alternativeLanguageCodes" not in transcriber.build_request(b"x")["config"]

    def test_recognized_text(self):
        recorder = Recorder(httpx.Response(200, json={
            "results": [{"alternatives": [{"transcript": "я пішов на роботу"}]}]
        }))
        transcriber = SpeechTranscriber(TOKEN, transport=recorder.transport)

        result = asyncio.run(transcriber.transcribe(b"OggS"))

        assert result.status is TranscriptionStatus.RECOGNIZED
        assert result.text == "я пішов на роботу"
        assert recorder.requests[0].url.path == "/v1/speech:recognize"

    def test_too_large_skips_network(self):
        recorder = Recorder()
        transcriber = SpeechTranscriber(TOKEN, max_bytes=4, transport=recorder.transport)

        result = asyncio.run(transcriber.transcribe(b"12345"))

        assert result.status is TranscriptionStatus.TOO_LARGE
        assert recorder.requests == []

    def test_payload_at_ceiling_is_sent(self):
        recorder = Recorder(httpx.Response(200, json={}))
        transcriber = SpeechTranscriber(TOKEN, max_bytes=4, transport=recorder.transport)

        result = asyncio.run(transcriber.transcribe(b"1234"))

        assert result.status is TranscriptionStatus.RECOGNIZED
        assert result.text == ""
        assert len(recorder.requests) == 1

    def test_service_error_is_unavailable(self):
        recorder = Recorder(httpx.Response(400, text="bad audio"))
        transcriber = SpeechTranscriber(TOKEN, transport=recorder.transport)
        result = asyncio.run(transcriber.transcribe(b"OggS"))
        assert result.status is TranscriptionStatus.UNAVAILABLE

    def test_malformed_json_is_unavailable(self):
        recorder = Recorder(httpx.Response(200, text="not json"))
        transcriber = SpeechTranscriber(TOKEN, transport=recorder.transport)
        result = asyncio.run(transcriber.transcribe(b"OggS"))
        assert result.status is TranscriptionStatus.UNAVAILABLE

    def test_non_object_json_is_unavailable(self):
        recorder = Recorder(httpx.Response(200, json=[]))
        transcriber = SpeechTranscriber(TOKEN, transport=recorder.transport)
        result = asyncio.run(transcriber.transcribe(b"OggS"))
        assert result.status is TranscriptionStatus.UNAVAILABLE


# ---------------------------------------------------------------------------
# ServiceAccountTokenProvider
# ---------------------------------------------------------------------------


class TestServiceAccountTokenProvider:

    def test_missing_key_file_is_auth_error(self, tmp_path):
        provider = ServiceAccountTokenProvider(str(tmp_path / "missing.json"))
        with pytest.raises(GoogleAuthError):
            asyncio.run(provider.get_token())

    def test_auth_error_is_storage_error(self):
        assert issubclass(GoogleAuthError, StorageError)

    def test_refreshes_invalid_credentials(self):
        credentials = MagicMock()
        credentials.valid = False
        credentials.token = "fresh-token"

        with patch(
            "voice_journal.google.auth.service_account.Credentials.from_service_account_file",
            return_value=credentials,
        ) as from_file:
            provider = ServiceAccountTokenProvider("key.json")
            token = asyncio.run(provider.get_token())

        assert token == "fresh-token"
        credentials.refresh.assert_called_once()
        assert from_file.call_args.kwargs["scopes"] == list(provider._scopes)

    def test_valid_credentials_not_refreshed(self):
        credentials = MagicMock()
        credentials.valid = True
        credentials.token = "cached"

        with patch(
            "voice_journal.google.auth.service_account.Credentials.from_service_account_file",
            return_value=credentials,
        ):
            provider = ServiceAccountTokenProvider("key.json")
            assert asyncio.run(provider.get_token()) == "cached"

        credentials.refresh.assert_not_called()
