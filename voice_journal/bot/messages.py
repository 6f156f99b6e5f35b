"""Reply texts, keyboards, and formatters for the Telegram bot.

WHY: The bot sends a small, fixed set of messages: a greeting with the
persistent entry keyboard, the category prompt with its inline buttons,
confirmations, and corrective replies. Centralizing them keeps bot.py
focused on event handling and makes the texts easy to change.

HOW: Module-level text constants, keyboard builders that return
python-telegram-bot markup objects, and formatters that turn workflow
results into reply strings.

RULES:
- Button captions NEW_ENTRY_BUTTON and STATUS_BUTTON double as the text
  triggers registered in bot.py
- Category callback data is Category.value; CATEGORY_PATTERN matches
  exactly those three payloads
- Formatters return plain text (no parse_mode)
"""

from __future__ import annotations

from typing import List

from telegram import InlineKeyboardButton, InlineKeyboardMarkup, ReplyKeyboardMarkup

from voice_journal.core.categories import Category
from voice_journal.core.interfaces import TranscriptionStatus
from voice_journal.core.workflow import (
    ClipCategorized,
    EntryCreated,
    EntrySnapshot,
    EntryState,
)

# ---------------------------------------------------------------------------
# Triggers and callback payloads
# ---------------------------------------------------------------------------

NEW_ENTRY_BUTTON = "➕ New Entry"
STATUS_BUTTON = "ℹ️ Status"

CATEGORY_PATTERN = "^({})$".format("|".join(c.value for c in Category))

# ---------------------------------------------------------------------------
# Texts
# ---------------------------------------------------------------------------

WELCOME_TEXT = "Hi! Press the button below to create a new entry."
VOICE_RECEIVED_TEXT = "\U0001f4e5 Voice message received. Choose a category:"
NO_ACTIVE_ENTRY_TEXT = (
    "❗️ First press \"{}\" to create a new entry.".format(NEW_ENTRY_BUTTON)
)
NO_PENDING_VOICE_TEXT = "❗️ There is no voice message to file. Send one first."
FAILURE_TEXT = "⚠️ Something went wrong while saving. Please try again."
TOO_LARGE_NOTE = "⚠️ The audio is too large to transcribe; saved without text."
UNAVAILABLE_NOTE = "⚠️ Could not transcribe the voice message; saved without text."


# ---------------------------------------------------------------------------
# Keyboards
# ---------------------------------------------------------------------------


def build_main_keyboard() -> ReplyKeyboardMarkup:
    """Persistent two-button keyboard shown under the chat input."""
    return ReplyKeyboardMarkup(
        [[NEW_ENTRY_BUTTON, STATUS_BUTTON]],
        resize_keyboard=True,
        is_persistent=True,
    )


def build_category_keyboard() -> InlineKeyboardMarkup:
    """Inline keyboard with one button per category, one per row."""
    rows: List[List[InlineKeyboardButton]] = [
        [InlineKeyboardButton(text=category.label, callback_data=category.value)]
        for category in Category
    ]
    return InlineKeyboardMarkup(rows)


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------


def format_entry_created(result: EntryCreated) -> str:
    text = "\U0001f504 New entry created! Send a voice message, then choose a category."
    if result.discarded_pending:
        text += "\nThe previous uncategorized voice message was discarded."
    return text


def format_categorized(result: ClipCategorized) -> str:
    """Confirmation shown in place of the category prompt.

    RULES:
    - Always names the chosen category label
    - Adds a note when the clip was filed without a transcription
    """
    text = "✅ Voice message added to category: {}".format(result.category.label)
    if result.transcription.status is TranscriptionStatus.TOO_LARGE:
        text += "\n" + TOO_LARGE_NOTE
    elif result.transcription.status is TranscriptionStatus.UNAVAILABLE:
        text += "\n" + UNAVAILABLE_NOTE
    return text


def format_status(snapshot: EntrySnapshot) -> str:
    if snapshot.state is EntryState.NO_SESSION:
        return "No active entry. Press \"{}\" to start one.".format(NEW_ENTRY_BUTTON)

    lines = [
        "Current entry: row {}".format(snapshot.entry_row),
        "Voice messages filed: {}".format(snapshot.clips_filed),
    ]
    for category, count in snapshot.counts:
        lines.append("  {}: {}".format(category.label, count))
    if snapshot.state is EntryState.VOICE_PENDING:
        lines.append("A voice message is waiting for a category.")
    return "\n".join(lines)
