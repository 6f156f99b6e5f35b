"""Service-account access tokens for the Google REST APIs.

WHY: Sheets, Drive and Speech-to-Text all accept the same OAuth2 bearer
token. The bot runs unattended, so it authenticates as a service account
whose key file is named in the configuration.

HOW: google-auth loads the key file and refreshes the token through its
requests transport. Refreshing is blocking I/O, so it runs in a worker
thread via asyncio.to_thread and is guarded by an asyncio.Lock so that
concurrent callers share one refresh.

RULES:
- The key file is loaded lazily on the first get_token() call
- Refresh failures are raised as GoogleAuthError (a StorageError), so
  the workflow treats them like any other transport failure
- TokenProvider is the seam tests replace with a static token
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional, Sequence

import google.auth.exceptions
from google.auth.transport.requests import Request
from google.oauth2 import service_account

from voice_journal.config import GOOGLE_SCOPES
from voice_journal.core.interfaces import StorageError

logger = logging.getLogger(__name__)


class GoogleAuthError(StorageError):
    """Raised when no access token can be obtained."""


class TokenProvider(ABC):
    """Source of OAuth2 bearer tokens."""

    @abstractmethod
    async def get_token(self) -> str:
        """Return a currently valid access token."""


class StaticTokenProvider(TokenProvider):
    """Fixed token, for tests and for tokens minted outside the process."""

    def __init__(self, token: str) -> None:
        self._token = token

    async def get_token(self) -> str:
        return self._token


class ServiceAccountTokenProvider(TokenProvider):
    """Tokens from a service-account JSON key file.

    RULES:
    - credentials_file: path to the downloaded JSON key
    - scopes default to config.GOOGLE_SCOPES (Drive, Sheets, Cloud Platform)
    """

    def __init__(
        self,
        credentials_file: str,
        scopes: Sequence[str] = GOOGLE_SCOPES,
    ) -> None:
        self._credentials_file = credentials_file
        self._scopes = list(scopes)
        self._credentials: Optional[service_account.Credentials] = None
        self._lock = asyncio.Lock()

    async def get_token(self) -> str:
        async with self._lock:
            credentials = self._load()
            if not credentials.valid:
                await asyncio.to_thread(self._refresh, credentials)
            return credentials.token

    def _load(self) -> service_account.Credentials:
        if self._credentials is None:
            try:
                self._credentials = service_account.Credentials.from_service_account_file(
                    self._credentials_file, scopes=self._scopes
                )
            except (OSError, ValueError) as exc:
                raise GoogleAuthError(
                    "Cannot load service account key {}: {}".format(self._credentials_file, exc)
                ) from exc
            logger.info("Loaded service account key from %s", self._credentials_file)
        return self._credentials

    @staticmethod
    def _refresh(credentials: service_account.Credentials) -> None:
        try:
            credentials.refresh(Request())
        except google.auth.exceptions.GoogleAuthError as exc:
            raise GoogleAuthError("Token refresh failed: {}".format(exc)) from exc
