"""Per-conversation session records and the in-memory session store.

WHY: Each chat builds one journal entry at a time. The workflow needs to
remember which sheet row the entry owns, which voice clip is waiting for
a category, and how many clips have been filed so far. That state is
volatile by design: losing it on restart only means the user starts a
new entry.

HOW: Two components work together:
  Session      -- frozen dataclass; transitions build a new instance with
                  dataclasses.replace(), so a failed transition never
                  leaves a half-updated record behind
  SessionStore -- dict-like store keyed by conversation id, with an
                  injectable backing map, optional idle TTL, and one
                  asyncio.Lock per conversation

RULES:
- Pending audio reference and bytes travel together as PendingAudio, so
  one can never be present without the other
- voice_sequence starts at 1 and only ever grows by one per filed clip
- An expired session is reported as absent by get()/has(); it is never
  removed while a transition holds the conversation lock
- serialize() shares one Lock per conversation while it is in use; the
  lock is dropped once no caller holds or awaits it and no session exists
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import AsyncIterator, Callable, Dict, Mapping, MutableMapping, Optional

from voice_journal.core.categories import Category

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PendingAudio:
    """A stored voice clip that has not been categorized yet."""

    reference: str
    payload: bytes = field(repr=False)


@dataclass(frozen=True)
class Session:
    """State of the entry currently being built in one conversation.

    RULES:
    - conversation_id: opaque chat identity (store key)
    - entry_row: sheet row holding the entry timestamp, set at creation
    - pending: the uncategorized clip, or None
    - voice_sequence: number of filed clips in this entry plus one
    - category_counts: filed clips per category in this entry
    - touched_at: monotonic time of the last transition (idle eviction)
    """

    conversation_id: str
    entry_row: int
    pending: Optional[PendingAudio] = None
    voice_sequence: int = 1
    category_counts: Mapping[Category, int] = field(
        default_factory=lambda: MappingProxyType({})
    )
    created_at: float = 0.0
    touched_at: float = 0.0

    @property
    def pending_audio_ref(self) -> Optional[str]:
        return self.pending.reference if self.pending else None

    @property
    def pending_audio_bytes(self) -> Optional[bytes]:
        return self.pending.payload if self.pending else None

    @property
    def has_pending_audio(self) -> bool:
        return self.pending is not None

    def clips_in(self, category: Category) -> int:
        """Number of clips already filed under ``category`` in this entry."""
        return self.category_counts.get(category, 0)

    def with_pending(self, pending: PendingAudio, now: float) -> Session:
        return replace(self, pending=pending, touched_at=now)

    def after_categorized(self, category: Category, now: float) -> Session:
        """Return the session after a clip was filed under ``category``."""
        counts = dict(self.category_counts)
        counts[category] = counts.get(category, 0) + 1
        return replace(
            self,
            pending=None,
            voice_sequence=self.voice_sequence + 1,
            category_counts=MappingProxyType(counts),
            touched_at=now,
        )


class SessionStore:
    """In-memory mapping from conversation id to its Session.

    WHY: Sessions are owned by the workflow but must outlive a single
    handler call. Making the store an explicit object (instead of a
    module-level dict) lets tests and future persistent backends inject
    their own map, and gives the per-conversation lock a natural home.

    HOW: Sessions live in the backing MutableMapping. When ttl_seconds is
    set, get()/has() treat sessions idle for longer than the TTL as absent
    and drop them lazily; cleanup_expired() sweeps them eagerly.

    RULES:
    - backing defaults to a fresh dict
    - ttl_seconds None or 0 disables expiry
    - clock is injectable (defaults to time.monotonic)
    """

    def __init__(
        self,
        backing: Optional[MutableMapping[str, Session]] = None,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._sessions: MutableMapping[str, Session] = backing if backing is not None else {}
        self._ttl_seconds = ttl_seconds or None
        self._clock = clock
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    def now(self) -> float:
        return self._clock()

    def get(self, conversation_id: str) -> Optional[Session]:
        session = self._sessions.get(conversation_id)
        if session is None:
            return None
        if self._is_expired(session, self._clock()):
            if not self._in_use(conversation_id):
                self._sessions.pop(conversation_id, None)
                logger.info("Session for %s expired after idle period", conversation_id)
            return None
        return session

    def set(self, conversation_id: str, session: Session) -> None:
        self._sessions[conversation_id] = session

    def has(self, conversation_id: str) -> bool:
        return self.get(conversation_id) is not None

    def __len__(self) -> int:
        return len(self._sessions)

    @asynccontextmanager
    async def serialize(self, conversation_id: str) -> AsyncIterator[None]:
        """Hold the per-conversation mutex for the duration of the block.

        RULES:
        - Holders and waiters are counted; the lock is dropped on exit once
          nobody uses it and the conversation has no session
        - A conversation that never creates a session leaves no lock behind
        """
        lock = self._locks.get(conversation_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[conversation_id] = lock
        self._lock_users[conversation_id] = self._lock_users.get(conversation_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            remaining = self._lock_users[conversation_id] - 1
            if remaining:
                self._lock_users[conversation_id] = remaining
            else:
                del self._lock_users[conversation_id]
                if conversation_id not in self._sessions:
                    self._locks.pop(conversation_id, None)

    def cleanup_expired(self) -> int:
        """Remove idle sessions past the TTL and any orphaned locks.

        RULES:
        - Conversations whose lock is in use are skipped
        - Locks with no session and no users are dropped even when expiry
          is disabled
        - Returns the number of sessions removed
        """
        expired = []
        if self._ttl_seconds is not None:
            now = self._clock()
            expired = [
                conversation_id
                for conversation_id, session in list(self._sessions.items())
                if self._is_expired(session, now) and not self._in_use(conversation_id)
            ]
            for conversation_id in expired:
                del self._sessions[conversation_id]

        for conversation_id in list(self._locks):
            if conversation_id not in self._sessions and not self._in_use(conversation_id):
                del self._locks[conversation_id]

        if expired:
            logger.info("Expired %d idle session(s)", len(expired))
        return len(expired)

    def _is_expired(self, session: Session, now: float) -> bool:
        if self._ttl_seconds is None:
            return False
        return now - session.touched_at > self._ttl_seconds

    def _in_use(self, conversation_id: str) -> bool:
        return self._lock_users.get(conversation_id, 0) > 0
