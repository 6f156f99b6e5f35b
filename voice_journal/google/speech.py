"""Google Cloud Speech-to-Text adapter implementing the Transcriber contract.

WHY: A filed clip is far more useful with its words next to the audio
link. Voice notes are short, so the synchronous recognize endpoint is
enough; anything too large for it is simply filed without text.

HOW: Base64-encodes the OGG/Opus payload and POSTs it to
v1/speech:recognize with a primary and a fallback language. The first
alternative of every result is joined with newlines.

RULES:
- Payloads above max_bytes return TOO_LARGE without any network call
- Any failure (HTTP, auth, malformed JSON) returns UNAVAILABLE and is
  logged; transcribe() never raises
- No recognized speech returns RECOGNIZED with empty text
- Encoding OGG_OPUS at 48000 Hz, automatic punctuation on, model "default"
"""

from __future__ import annotations

import base64
import logging
from typing import Optional

import httpx

from voice_journal.config import (
    DEFAULT_SPEECH_FALLBACK_LANGUAGE,
    DEFAULT_SPEECH_LANGUAGE,
    DEFAULT_TRANSCRIBE_MAX_BYTES,
)
from voice_journal.core.interfaces import StorageError, Transcriber, TranscriptionResult
from voice_journal.google.auth import TokenProvider
from voice_journal.google.client import GoogleClient
from voice_journal.google.models import RecognizeResponse

logger = logging.getLogger(__name__)

SPEECH_BASE_URL = "https://speech.googleapis.com/v1"

_ENCODING = "OGG_OPUS"
_SAMPLE_RATE_HZ = 48000


class SpeechTranscriber(GoogleClient, Transcriber):
    """Transcriber backed by Google Cloud Speech-to-Text."""

    def __init__(
        self,
        token_provider: TokenProvider,
        language: str = DEFAULT_SPEECH_LANGUAGE,
        fallback_language: Optional[str] = DEFAULT_SPEECH_FALLBACK_LANGUAGE,
        max_bytes: int = DEFAULT_TRANSCRIBE_MAX_BYTES,
        base_url: str = SPEECH_BASE_URL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(token_provider, base_url, transport=transport)
        self.language = language
        self.fallback_language = fallback_language
        self.max_bytes = max_bytes

    def build_request(self, payload: bytes) -> dict:
        """Build the speech:recognize request body for ``payload``."""
        config = {
            "encoding": _ENCODING,
            "sampleRateHertz": _SAMPLE_RATE_HZ,
            "languageCode": self.language,
            "enableAutomaticPunctuation": True,
            "model": "default",
        }
        if self.fallback_language:
            config["alternativeLanguageCodes"] = [self.fallback_language]
        return {
            "config": config,
            "audio": {"content": base64.b64encode(payload).decode("ascii")},
        }

    async def transcribe(self, payload: bytes) -> TranscriptionResult:
        if len(payload) > self.max_bytes:
            logger.warning(
                "Audio payload of %d bytes exceeds the %d byte recognize limit",
                len(payload), self.max_bytes,
            )
            return TranscriptionResult.too_large()

        try:
            resp = await self.request("POST", "/speech:recognize", json=self.build_request(payload))
            recognized = RecognizeResponse.from_dict(resp.json())
        except (StorageError, ValueError, AttributeError) as exc:
            logger.error("Speech-to-Text error: %s", exc)
            return TranscriptionResult.unavailable()

        return TranscriptionResult.recognized(recognized.transcript)
