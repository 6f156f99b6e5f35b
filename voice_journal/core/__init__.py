"""Core entry lifecycle: sessions, categories, placement, and the workflow.

WHY: The journal's rules (what may happen when, and which cell a clip
lands in) are independent of Telegram and Google. Keeping them in one
dependency-free package makes them easy to test with in-memory fakes.

HOW: categories -> session -> placement -> workflow, with the external
collaborators declared in interfaces.

RULES:
- No imports from voice_journal.google, voice_journal.bot or
  voice_journal.server
"""

from voice_journal.core.categories import Category
from voice_journal.core.session import Session, SessionStore
from voice_journal.core.workflow import EntryState, EntryWorkflow

__all__ = ["Category", "EntryState", "EntryWorkflow", "Session", "SessionStore"]
