"""Google REST adapters: Sheets log, Drive blob store, Speech-to-Text.

WHY: The journal keeps its rows in Google Sheets, its audio in Google
Drive, and transcribes with Google Cloud Speech-to-Text. This package
implements the core.interfaces contracts on top of those APIs.

HOW: Sheets and Speech use httpx.AsyncClient (via GoogleClient) for
non-blocking HTTP; the Drive upload uses google-api-python-client in a
worker thread. google-auth service-account credentials supply the bearer
tokens for both. Response data is parsed into the dataclasses in
models.py.

RULES:
- REST calls go through GoogleClient.request (no direct httpx usage
  elsewhere); DriveStore is the one googleapiclient user
- Every failure is a GoogleAPIError or GoogleAuthError, both StorageError
- Close the httpx adapters (aclose / async with) on shutdown
"""

from voice_journal.google.auth import ServiceAccountTokenProvider, StaticTokenProvider
from voice_journal.google.client import GoogleAPIError
from voice_journal.google.drive import DriveStore
from voice_journal.google.sheets import SheetsLog
from voice_journal.google.speech import SpeechTranscriber

__all__ = [
    "DriveStore",
    "GoogleAPIError",
    "ServiceAccountTokenProvider",
    "SheetsLog",
    "SpeechTranscriber",
    "StaticTokenProvider",
]
