"""Collaborator contracts consumed by the entry workflow.

WHY: The workflow must stay testable and independent of Google or any
other provider. It only needs four narrow operations on storage and one
on transcription, so those are declared here as abstract base classes
and the concrete adapters live in voice_journal.google.

HOW: TabularLog, BlobStore and Transcriber are ABCs with async abstract
methods. TranscriptionResult is the typed result of a transcription
attempt; StorageError is the single exception type adapters raise for
transport failures.

RULES:
- Storage adapters raise StorageError (or a subclass) on any transport
  or service failure; nothing else escapes them
- Transcriber.transcribe never raises: failures are reported as
  TranscriptionStatus.UNAVAILABLE
- Rows are 1-based (spreadsheet convention); columns are letters
"""

from __future__ import annotations

import enum
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


class StorageError(Exception):
    """Raised by Tabular Log / Blob Store adapters on transport failure."""


class TranscriptionStatus(str, enum.Enum):
    """Outcome of a transcription attempt.

    RULES:
    - recognized: the service answered; text may still be empty when no
      speech was found
    - too_large: payload above the size ceiling, no call was made
    - unavailable: transport or service failure
    """

    RECOGNIZED = "recognized"
    TOO_LARGE = "too_large"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class TranscriptionResult:
    """Typed result of Transcriber.transcribe()."""

    status: TranscriptionStatus
    text: str = ""

    @property
    def has_text(self) -> bool:
        """True when the clip was recognized and produced non-blank text."""
        return self.status is TranscriptionStatus.RECOGNIZED and bool(self.text.strip())

    @classmethod
    def recognized(cls, text: str) -> TranscriptionResult:
        return cls(TranscriptionStatus.RECOGNIZED, text)

    @classmethod
    def too_large(cls) -> TranscriptionResult:
        return cls(TranscriptionStatus.TOO_LARGE)

    @classmethod
    def unavailable(cls) -> TranscriptionResult:
        return cls(TranscriptionStatus.UNAVAILABLE)


class TabularLog(ABC):
    """Append-only entry rows plus cell-level read and write."""

    @abstractmethod
    async def create_entry_row(self, timestamp: str) -> int:
        """Append a row with ``timestamp`` in the first column, blanks elsewhere.

        Returns:
            The 1-based index of the appended row.
        """

    @abstractmethod
    async def read_cell(self, row: int, column: str) -> Optional[str]:
        """Return the cell value, or None if the cell is unset."""

    @abstractmethod
    async def write_cell(self, row: int, column: str, value: str) -> None:
        """Overwrite a single cell."""


class BlobStore(ABC):
    """Persists audio payloads and returns a stable reference."""

    @abstractmethod
    async def store_audio(self, payload: bytes, name: str) -> str:
        """Store ``payload`` under ``name`` and return its reference (URL)."""


class Transcriber(ABC):
    """Speech-to-text for bounded audio payloads."""

    @abstractmethod
    async def transcribe(self, payload: bytes) -> TranscriptionResult:
        """Transcribe ``payload``. Must not raise."""
