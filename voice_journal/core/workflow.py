"""Entry workflow: the per-chat state machine behind the journal bot.

WHY: One chat builds one journal entry at a time: the user opens an
entry, sends voice clips, and files each clip under a category. Every
step touches external services (Sheets, Drive, Speech-to-Text) that can
fail, and the user must be able to simply retry the same action. This
module owns those transitions and keeps the session consistent.

HOW: EntryWorkflow exposes one coroutine per transition:
  create_entry   -- any state -> ENTRY_OPEN (appends the timestamp row)
  receive_voice  -- ENTRY_OPEN | VOICE_PENDING -> VOICE_PENDING
  categorize     -- VOICE_PENDING -> ENTRY_OPEN (transcribe, place, write)
Each transition runs under the conversation's lock, reads the current
Session, performs all external calls, and only then stores the new
Session. Results are returned as small frozen dataclasses; user mistakes
and storage failures are raised as typed exceptions for the gateway to
render.

RULES:
- PreconditionError subclasses never change state
- TransitionFailedError is raised for storage/log failures and for an
  exhausted row scan; the session stays as it was before the call
- Transcription problems never fail categorize(); the clip is filed
  without text
- Ordinal markers count clips per category within the entry
"""

from __future__ import annotations

import enum
import logging
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional, Tuple

from voice_journal.core.categories import Category
from voice_journal.core.interfaces import (
    BlobStore,
    StorageError,
    TabularLog,
    Transcriber,
    TranscriptionResult,
    TranscriptionStatus,
)
from voice_journal.core.placement import (
    RowScanExhaustedError,
    compose_cell_value,
    find_free_row,
)
from voice_journal.core.session import PendingAudio, Session, SessionStore

logger = logging.getLogger(__name__)

DEFAULT_ROW_SCAN_LIMIT = 500


# ---------------------------------------------------------------------------
# States and errors
# ---------------------------------------------------------------------------


class EntryState(str, enum.Enum):
    """Where a conversation is in the entry lifecycle."""

    NO_SESSION = "no_session"
    ENTRY_OPEN = "entry_open"
    VOICE_PENDING = "voice_pending"


class EntryWorkflowError(Exception):
    """Base class for everything the workflow reports to the gateway."""


class PreconditionError(EntryWorkflowError):
    """The user asked for a transition the current state does not allow."""


class NoActiveEntryError(PreconditionError):
    """A voice clip arrived before any entry was created."""


class NoPendingVoiceError(PreconditionError):
    """A category was chosen but there is no clip waiting for one."""


class TransitionFailedError(EntryWorkflowError):
    """An external call failed; the transition was abandoned.

    RULES:
    - Always chained (``raise ... from``) to the underlying error
    - The session is left exactly as it was before the call
    """


# ---------------------------------------------------------------------------
# Transition results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EntryCreated:
    entry_row: int
    discarded_pending: bool = False


@dataclass(frozen=True)
class VoiceReceived:
    entry_row: int
    audio_ref: str
    filename: str
    replaced_pending: bool = False


@dataclass(frozen=True)
class ClipCategorized:
    """Outcome of filing one clip.

    RULES:
    - position: 1-based index of the clip within its category
    - voice_sequence: 1-based index of the clip within the entry
    - cell: A1 address of the written cell, e.g. "D6"
    """

    category: Category
    row: int
    column: str
    position: int
    voice_sequence: int
    value: str
    transcription: TranscriptionResult

    @property
    def cell(self) -> str:
        return "{}{}".format(self.column, self.row)


@dataclass(frozen=True)
class EntrySnapshot:
    """Read-only view of a conversation's entry, for status replies."""

    state: EntryState
    entry_row: Optional[int] = None
    clips_filed: int = 0
    counts: Tuple[Tuple[Category, int], ...] = ()


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def voice_filename(now_ms: Optional[int] = None) -> str:
    """Generate a unique Drive filename for a voice clip."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return "voice-{}-{}.ogg".format(now_ms, uuid.uuid4().hex[:8])


# ---------------------------------------------------------------------------
# Workflow
# ---------------------------------------------------------------------------


class EntryWorkflow:
    """Orchestrates entry transitions for every conversation.

    WHY: The gateway should only translate chat events into calls and
    results into replies. All rules about what may happen when, and what
    is written where, live here.

    HOW: Holds the SessionStore plus the three collaborators. Each public
    coroutine acquires the conversation lock from the store, so two
    events from the same chat never interleave their read-scan-write
    sequences.

    RULES:
    - row_scan_limit bounds the placement scan
    - timestamp_factory produces the entry timestamp (UTC ISO-8601)
    - filename_factory produces the Drive filename for each clip
    """

    def __init__(
        self,
        sessions: SessionStore,
        log: TabularLog,
        blobs: BlobStore,
        transcriber: Transcriber,
        row_scan_limit: int = DEFAULT_ROW_SCAN_LIMIT,
        timestamp_factory: Callable[[], str] = _utc_timestamp,
        filename_factory: Callable[[], str] = voice_filename,
    ) -> None:
        self.sessions = sessions
        self._log = log
        self._blobs = blobs
        self._transcriber = transcriber
        self._row_scan_limit = row_scan_limit
        self._timestamp_factory = timestamp_factory
        self._filename_factory = filename_factory

    def state(self, conversation_id: str) -> EntryState:
        session = self.sessions.get(conversation_id)
        if session is None:
            return EntryState.NO_SESSION
        if session.has_pending_audio:
            return EntryState.VOICE_PENDING
        return EntryState.ENTRY_OPEN

    def snapshot(self, conversation_id: str) -> EntrySnapshot:
        session = self.sessions.get(conversation_id)
        if session is None:
            return EntrySnapshot(state=EntryState.NO_SESSION)
        return EntrySnapshot(
            state=self.state(conversation_id),
            entry_row=session.entry_row,
            clips_filed=session.voice_sequence - 1,
            counts=tuple((c, session.clips_in(c)) for c in Category),
        )

    # ------------------------------------------------------------------
    # Create Entry
    # ------------------------------------------------------------------

    async def create_entry(self, conversation_id: str) -> EntryCreated:
        """Append a new timestamp row and start a fresh session.

        RULES:
        - Allowed from any state; replaces the previous session
        - An uncategorized clip from the previous session is discarded
        - On StorageError the previous session is kept untouched
        """
        async with self.sessions.serialize(conversation_id):
            previous = self.sessions.get(conversation_id)
            timestamp = self._timestamp_factory()

            try:
                entry_row = await self._log.create_entry_row(timestamp)
            except StorageError as exc:
                logger.warning("Could not create entry for %s: %s", conversation_id, exc)
                raise TransitionFailedError("Could not create a new entry row") from exc

            now = self.sessions.now()
            self.sessions.set(
                conversation_id,
                Session(
                    conversation_id=conversation_id,
                    entry_row=entry_row,
                    created_at=now,
                    touched_at=now,
                ),
            )

        discarded = previous is not None and previous.has_pending_audio
        if discarded:
            logger.info("Discarded uncategorized clip for %s", conversation_id)
        logger.info("Created entry at row %d for %s", entry_row, conversation_id)
        return EntryCreated(entry_row=entry_row, discarded_pending=discarded)

    # ------------------------------------------------------------------
    # Receive Voice
    # ------------------------------------------------------------------

    async def receive_voice(
        self,
        conversation_id: str,
        download: Callable[[], Awaitable[bytes]],
    ) -> VoiceReceived:
        """Download a voice clip, store it, and mark it pending.

        HOW: The session is checked before ``download`` is awaited, so a
        clip sent without an entry is never fetched or uploaded.

        RULES:
        - Raises NoActiveEntryError when the conversation has no session
        - download() and the Blob Store may raise StorageError, which
          becomes TransitionFailedError with the session unchanged
        - A second clip before categorization replaces the first one
        """
        async with self.sessions.serialize(conversation_id):
            session = self.sessions.get(conversation_id)
            if session is None:
                raise NoActiveEntryError("No active entry for {}".format(conversation_id))

            filename = self._filename_factory()
            try:
                payload = bytes(await download())
                audio_ref = await self._blobs.store_audio(payload, filename)
            except StorageError as exc:
                logger.warning("Could not store voice clip for %s: %s", conversation_id, exc)
                raise TransitionFailedError("Could not store the voice clip") from exc

            self.sessions.set(
                conversation_id,
                session.with_pending(
                    PendingAudio(reference=audio_ref, payload=payload),
                    self.sessions.now(),
                ),
            )

        logger.info(
            "Stored voice clip %s (%d bytes) for %s",
            filename, len(payload), conversation_id,
        )
        return VoiceReceived(
            entry_row=session.entry_row,
            audio_ref=audio_ref,
            filename=filename,
            replaced_pending=session.has_pending_audio,
        )

    # ------------------------------------------------------------------
    # Categorize
    # ------------------------------------------------------------------

    async def categorize(self, conversation_id: str, category: Category) -> ClipCategorized:
        """File the pending clip under ``category``.

        HOW: Transcribes the retained bytes, finds the first free row in
        the category column at or below the entry row, writes the
        composite value, then clears the pending clip and bumps the
        counters.

        RULES:
        - Raises NoPendingVoiceError without a session or pending clip
        - Transcription outcome never aborts the transition
        - Scan exhaustion or StorageError raise TransitionFailedError and
          keep the clip pending so the user can press the button again
        """
        async with self.sessions.serialize(conversation_id):
            session = self.sessions.get(conversation_id)
            if session is None or session.pending is None:
                raise NoPendingVoiceError(
                    "No voice clip waiting for a category in {}".format(conversation_id)
                )

            transcription = await self._transcribe(conversation_id, session.pending.payload)
            column = category.column
            position = session.clips_in(category) + 1
            value = compose_cell_value(position, session.pending.reference, transcription)

            try:
                row = await find_free_row(
                    self._log, column, session.entry_row, self._row_scan_limit
                )
                await self._log.write_cell(row, column, value)
            except RowScanExhaustedError as exc:
                logger.error("Row scan exhausted for %s: %s", conversation_id, exc)
                raise TransitionFailedError("No free row for the clip") from exc
            except StorageError as exc:
                logger.warning("Could not file clip for %s: %s", conversation_id, exc)
                raise TransitionFailedError("Could not write the clip to the log") from exc

            self.sessions.set(
                conversation_id,
                session.after_categorized(category, self.sessions.now()),
            )

        logger.info(
            "Filed clip %d as %s in %s%d for %s",
            session.voice_sequence, category.value, column, row, conversation_id,
        )
        return ClipCategorized(
            category=category,
            row=row,
            column=column,
            position=position,
            voice_sequence=session.voice_sequence,
            value=value,
            transcription=transcription,
        )

    async def _transcribe(self, conversation_id: str, payload: bytes) -> TranscriptionResult:
        try:
            result = await self._transcriber.transcribe(payload)
        except Exception:
            logger.exception("Transcriber raised for %s", conversation_id)
            return TranscriptionResult.unavailable()

        if result.status is not TranscriptionStatus.RECOGNIZED:
            logger.warning(
                "Transcription %s for %s; filing clip without text",
                result.status.value, conversation_id,
            )
        return result
