"""Shared async HTTP plumbing for the Google REST adapters.

WHY: The Sheets and Speech adapters both need the same things: a
pooled httpx client, a fresh bearer token on every request, and one
typed error for non-2xx answers and network failures. Centralizing it
keeps each adapter down to request building and response parsing.

HOW: GoogleClient wraps httpx.AsyncClient. Use it as an async context
manager (or call aclose()) to release the connection pool. request()
injects the Authorization header from the TokenProvider and converts
failures into GoogleAPIError. The Drive adapter reuses GoogleAPIError
but uploads through google-api-python-client instead.

RULES:
- GoogleAPIError is a StorageError: the workflow treats it as a
  transport failure
- status_code is None when the request never got an HTTP answer
- A transport can be injected (httpx.MockTransport in tests)
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from voice_journal.core.interfaces import StorageError
from voice_journal.google.auth import TokenProvider

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = httpx.Timeout(60.0, connect=15.0)


class GoogleAPIError(StorageError):
    """Raised when a Google API call fails.

    RULES:
    - Always include status_code (None for network errors) and message
    - message is the response body text or the transport error
    """

    def __init__(self, status_code: Optional[int], message: str) -> None:
        self.status_code = status_code
        self.message = message
        if status_code is None:
            super().__init__("Google API request failed: {}".format(message))
        else:
            super().__init__("Google API error {}: {}".format(status_code, message))


class GoogleClient:
    """Authenticated async client for one Google REST service.

    RULES:
    - base_url is the service root, e.g. "https://sheets.googleapis.com/v4"
    - Use as: async with SheetsLog(...) as log: ...
    - The underlying httpx client is created on first use
    """

    def __init__(
        self,
        token_provider: TokenProvider,
        base_url: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: httpx.Timeout = _DEFAULT_TIMEOUT,
    ) -> None:
        self._token_provider = token_provider
        self._base_url = base_url.rstrip("/")
        self._transport = transport
        self._timeout = timeout
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send an authenticated request and return the 2xx response.

        RULES:
        - Raises GoogleAPIError(status, body) on non-2xx responses
        - Raises GoogleAPIError(None, ...) on httpx transport errors
        - GoogleAuthError from the token provider propagates unchanged
        """
        client = self._ensure_client()
        token = await self._token_provider.get_token()
        headers = dict(kwargs.pop("headers", None) or {})
        headers["Authorization"] = "Bearer {}".format(token)

        try:
            resp = await client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            raise GoogleAPIError(None, str(exc) or type(exc).__name__) from exc

        if resp.status_code < 200 or resp.status_code >= 300:
            logger.debug("%s %s -> %d: %s", method, url, resp.status_code, resp.text)
            raise GoogleAPIError(resp.status_code, resp.text)
        return resp
