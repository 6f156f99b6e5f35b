"""Shared test fixtures for the voice_journal test suite.

WHY: The workflow, bot and server tests all need the same in-memory
collaborators: a spreadsheet-like log, a blob store and a transcriber.
Centralizing them here keeps every test talking to identical fakes.

HOW: FakeLog keeps cells in a dict keyed by (row, column) and appends
rows from a configurable starting index. FakeBlobStore returns
predictable Drive-style links. FakeTranscriber returns a scripted
TranscriptionResult. Each fake has a failure switch that makes its next
calls raise StorageError.

RULES:
- No network access anywhere in the suite
- Fakes record their calls so tests can assert "nothing was written"
- The session store clock is a mutable FakeClock for TTL tests
"""

from __future__ import annotations

from typing import Dict, List, Optional, Tuple

import pytest

from voice_journal.core.interfaces import (
    BlobStore,
    StorageError,
    TabularLog,
    Transcriber,
    TranscriptionResult,
)
from voice_journal.core.session import SessionStore
from voice_journal.core.workflow import EntryWorkflow


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeLog(TabularLog):
    """Dict-backed TabularLog. Appends start at ``next_row``."""

    def __init__(self, next_row: int = 5) -> None:
        self.cells: Dict[Tuple[int, str], str] = {}
        self.next_row = next_row
        self.appended: List[Tuple[int, str]] = []
        self.reads: List[Tuple[int, str]] = []
        self.writes: List[Tuple[int, str, str]] = []
        self.fail_append = False
        self.fail_read = False
        self.fail_write = False

    async def create_entry_row(self, timestamp: str) -> int:
        if self.fail_append:
            raise StorageError("append failed")
        row = self.next_row
        self.next_row += 1
        self.cells[(row, "A")] = timestamp
        self.appended.append((row, timestamp))
        return row

    async def read_cell(self, row: int, column: str) -> Optional[str]:
        if self.fail_read:
            raise StorageError("read failed")
        self.reads.append((row, column))
        return self.cells.get((row, column))

    async def write_cell(self, row: int, column: str, value: str) -> None:
        if self.fail_write:
            raise StorageError("write failed")
        self.writes.append((row, column, value))
        self.cells[(row, column)] = value


class FakeBlobStore(BlobStore):
    """Returns https://drive.test/<n> links, numbered from 1."""

    def __init__(self) -> None:
        self.stored: List[Tuple[str, bytes]] = []
        self.fail = False

    async def store_audio(self, payload: bytes, name: str) -> str:
        if self.fail:
            raise StorageError("upload failed")
        self.stored.append((name, payload))
        return "https://drive.test/{}".format(len(self.stored))


class FakeTranscriber(Transcriber):
    """Returns ``result`` for every payload."""

    def __init__(self, result: Optional[TranscriptionResult] = None) -> None:
        self.result = result or TranscriptionResult.recognized("hello")
        self.payloads: List[bytes] = []

    async def transcribe(self, payload: bytes) -> TranscriptionResult:
        self.payloads.append(payload)
        return self.result


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_log():
    return FakeLog()


@pytest.fixture
def fake_blobs():
    return FakeBlobStore()


@pytest.fixture
def fake_transcriber():
    return FakeTranscriber()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sessions(clock):
    return SessionStore(clock=clock)


@pytest.fixture
def workflow(sessions, fake_log, fake_blobs, fake_transcriber):
    """EntryWorkflow on fakes with a fixed timestamp and filename sequence."""
    counter = iter(range(1, 10_000))
    return EntryWorkflow(
        sessions,
        fake_log,
        fake_blobs,
        fake_transcriber,
        row_scan_limit=500,
        timestamp_factory=lambda: "2024-05-01T10:00:00.000Z",
        filename_factory=lambda: "voice-{}.ogg".format(next(counter)),
    )


async def audio(payload: bytes = b"OggS-voice"):
    """Download callable handed to receive_voice()."""
    return payload
