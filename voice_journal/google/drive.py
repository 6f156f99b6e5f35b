"""Google Drive adapter implementing the BlobStore contract.

WHY: Voice clips are kept as audio files in a shared Drive folder so the
spreadsheet can link to them. The workflow only needs "store these bytes
under this name, give me a link".

HOW: google-api-python-client does the upload: files().create() with a
MediaInMemoryUpload body. The client is synchronous, so the whole call
runs in asyncio.to_thread(). The bearer token comes from the shared
TokenProvider and is wrapped in google-auth Credentials for build().
The returned file id is turned into a drive.google.com view URL.

RULES:
- Files are created inside the configured folder
- MIME type defaults to audio/ogg (Telegram voice notes)
- Returns https://drive.google.com/file/d/<id>/view
- HttpError, transport errors and a missing id surface as GoogleAPIError
- A service is built per upload and closed afterwards; nothing to aclose()
"""

from __future__ import annotations

import asyncio
import logging

import httplib2
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import Error as DiscoveryClientError
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaInMemoryUpload

from voice_journal.config import AUDIO_MIME_TYPE
from voice_journal.core.interfaces import BlobStore
from voice_journal.google.auth import TokenProvider
from voice_journal.google.client import GoogleAPIError
from voice_journal.google.models import DriveFile

logger = logging.getLogger(__name__)


class DriveStore(BlobStore):
    """BlobStore backed by a Google Drive folder."""

    def __init__(
        self,
        token_provider: TokenProvider,
        folder_id: str,
        mime_type: str = AUDIO_MIME_TYPE,
    ) -> None:
        self.token_provider = token_provider
        self.folder_id = folder_id
        self.mime_type = mime_type

    async def store_audio(self, payload: bytes, name: str) -> str:
        token = await self.token_provider.get_token()
        metadata = {"name": name, "parents": [self.folder_id], "mimeType": self.mime_type}

        result = await asyncio.to_thread(self._upload, token, metadata, payload)

        try:
            uploaded = DriveFile.from_dict(result)
        except (KeyError, TypeError) as exc:
            raise GoogleAPIError(None, "Upload response without file id") from exc

        logger.debug("Uploaded %s as Drive file %s", name, uploaded.id)
        return uploaded.view_url

    def _upload(self, token: str, metadata: dict, payload: bytes) -> dict:
        media = MediaInMemoryUpload(payload, mimetype=self.mime_type, resumable=False)
        try:
            service = build(
                "drive", "v3", credentials=Credentials(token), cache_discovery=False
            )
            try:
                return service.files().create(
                    body=metadata, media_body=media, fields="id"
                ).execute()
            finally:
                service.close()
        except HttpError as exc:
            raise GoogleAPIError(exc.resp.status, _error_detail(exc)) from exc
        except (DiscoveryClientError, httplib2.HttpLib2Error, OSError) as exc:
            raise GoogleAPIError(None, "Drive upload failed: {}".format(exc)) from exc


def _error_detail(exc: HttpError) -> str:
    content = exc.content
    if isinstance(content, bytes):
        content = content.decode("utf-8", errors="replace")
    return content[:500] if content else str(exc)
