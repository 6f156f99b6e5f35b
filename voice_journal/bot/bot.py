"""Telegram bot: application factory, update handlers, and polling entry point.

WHY: Users talk to the journal through Telegram. This module is the glue
between Telegram updates and the EntryWorkflow: it turns the "new entry"
button, voice messages and category button presses into workflow calls,
and turns the results (or the typed workflow errors) into replies.

HOW: Uses python-telegram-bot's asyncio Application. build_workflow()
wires the Google adapters into an EntryWorkflow; create_application()
registers the handlers and stores the workflow in bot_data, where each
handler picks it up. Long polling is started by run_polling(); webhook delivery
lives in voice_journal.server.

RULES:
- Handlers never touch the session store directly; only the workflow does
- PreconditionError -> specific corrective reply, no state change
- TransitionFailedError -> generic failure reply; the user can retry
- Unexpected errors are logged by handle_error and answered generically
- Conversation id is str(chat.id)
- Runnable as: python -m voice_journal
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, List, Optional, Tuple

from telegram import Update
from telegram.error import TelegramError
from telegram.ext import (
    Application,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from voice_journal.bot.messages import (
    CATEGORY_PATTERN,
    FAILURE_TEXT,
    NEW_ENTRY_BUTTON,
    NO_ACTIVE_ENTRY_TEXT,
    NO_PENDING_VOICE_TEXT,
    STATUS_BUTTON,
    VOICE_RECEIVED_TEXT,
    WELCOME_TEXT,
    build_category_keyboard,
    build_main_keyboard,
    format_categorized,
    format_entry_created,
    format_status,
)
from voice_journal.config import Settings
from voice_journal.core.categories import Category
from voice_journal.core.interfaces import StorageError
from voice_journal.core.session import SessionStore
from voice_journal.core.workflow import (
    EntryWorkflow,
    NoActiveEntryError,
    NoPendingVoiceError,
    TransitionFailedError,
)
from voice_journal.google import (
    DriveStore,
    ServiceAccountTokenProvider,
    SheetsLog,
    SpeechTranscriber,
)

logger = logging.getLogger(__name__)

WORKFLOW_KEY = "workflow"
ADAPTERS_KEY = "adapters"
CLEANUP_TASK_KEY = "session_cleanup_task"

# Idle-session sweep period (seconds)
SESSION_CLEANUP_INTERVAL_S = 300.0


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------


def build_workflow(settings: Settings) -> Tuple[EntryWorkflow, List[Any]]:
    """Build the EntryWorkflow backed by the Google adapters.

    Returns:
        (workflow, adapters) -- the httpx-backed adapters, closed on shutdown.
        DriveStore builds a client per upload and is not among them.
    """
    tokens = ServiceAccountTokenProvider(settings.credentials_file)
    log = SheetsLog(tokens, settings.sheet_id, settings.sheet_name)
    blobs = DriveStore(tokens, settings.drive_folder_id)
    transcriber = SpeechTranscriber(
        tokens,
        language=settings.speech_language,
        fallback_language=settings.speech_fallback_language,
        max_bytes=settings.transcribe_max_bytes,
    )
    sessions = SessionStore(ttl_seconds=settings.session_ttl_seconds)
    workflow = EntryWorkflow(
        sessions,
        log,
        blobs,
        transcriber,
        row_scan_limit=settings.row_scan_limit,
    )
    return workflow, [log, transcriber]


def create_application(
    settings: Settings,
    workflow: Optional[EntryWorkflow] = None,
    adapters: Optional[List[Any]] = None,
    updater: bool = True,
) -> Application:
    """Create and configure the Telegram Application with all handlers.

    WHY: Factory function lets tests inject a workflow built on fakes and
    lets the webhook server build an Application without an Updater.

    RULES:
    - If workflow is None, build_workflow(settings) is used
    - updater=False for webhook mode (updates are pushed by the server)
    - post_init starts the idle-session sweep; post_shutdown stops it and
      closes the adapters
    """
    if workflow is None:
        workflow, adapters = build_workflow(settings)

    builder = (
        Application.builder()
        .token(settings.bot_token)
        .post_init(_post_init)
        .post_shutdown(_post_shutdown)
    )
    if not updater:
        builder = builder.updater(None)
    application = builder.build()

    application.bot_data[WORKFLOW_KEY] = workflow
    application.bot_data[ADAPTERS_KEY] = list(adapters or [])

    register_handlers(application)
    return application


def register_handlers(application: Application) -> None:
    application.add_handler(CommandHandler("start", handle_start))
    application.add_handler(MessageHandler(filters.Text([NEW_ENTRY_BUTTON]), handle_new_entry))
    application.add_handler(MessageHandler(filters.Text([STATUS_BUTTON]), handle_status))
    application.add_handler(MessageHandler(filters.VOICE, handle_voice))
    application.add_handler(CallbackQueryHandler(handle_category, pattern=CATEGORY_PATTERN))
    application.add_error_handler(handle_error)


async def _post_init(application: Application) -> None:
    start_session_cleanup(application)


async def _post_shutdown(application: Application) -> None:
    await stop_session_cleanup(application)
    for adapter in application.bot_data.get(ADAPTERS_KEY, []):
        await adapter.aclose()


def start_session_cleanup(application: Application) -> None:
    """Start the periodic idle-session sweep for this application."""
    workflow: EntryWorkflow = application.bot_data[WORKFLOW_KEY]
    task = asyncio.create_task(_periodic_session_cleanup(workflow.sessions))
    application.bot_data[CLEANUP_TASK_KEY] = task


async def stop_session_cleanup(application: Application) -> None:
    task = application.bot_data.pop(CLEANUP_TASK_KEY, None)
    if task is None:
        return
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task


async def _periodic_session_cleanup(sessions: SessionStore) -> None:
    while True:
        await asyncio.sleep(SESSION_CLEANUP_INTERVAL_S)
        sessions.cleanup_expired()


def _workflow(context: ContextTypes.DEFAULT_TYPE) -> EntryWorkflow:
    return context.bot_data[WORKFLOW_KEY]


def _conversation_id(update: Update) -> str:
    return str(update.effective_chat.id)


# ---------------------------------------------------------------------------
# Message handlers
# ---------------------------------------------------------------------------


async def handle_start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Greet the user and show the persistent entry keyboard."""
    await update.effective_message.reply_text(WELCOME_TEXT, reply_markup=build_main_keyboard())


async def handle_new_entry(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle the "new entry" trigger: append a timestamp row, reset the session."""
    try:
        result = await _workflow(context).create_entry(_conversation_id(update))
    except TransitionFailedError:
        await update.effective_message.reply_text(FAILURE_TEXT)
        return

    await update.effective_message.reply_text(format_entry_created(result))


async def handle_status(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    snapshot = _workflow(context).snapshot(_conversation_id(update))
    await update.effective_message.reply_text(format_status(snapshot))


async def handle_voice(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle a voice message: download, store in Drive, ask for a category.

    RULES:
    - Without an entry the clip is not downloaded at all
    - Telegram download errors count as storage failures
    """
    message = update.effective_message
    voice = message.voice

    async def download() -> bytes:
        try:
            tg_file = await context.bot.get_file(voice.file_id)
            return bytes(await tg_file.download_as_bytearray())
        except TelegramError as exc:
            raise StorageError("Voice download failed: {}".format(exc)) from exc

    try:
        await _workflow(context).receive_voice(_conversation_id(update), download)
    except NoActiveEntryError:
        await message.reply_text(NO_ACTIVE_ENTRY_TEXT)
        return
    except TransitionFailedError:
        await message.reply_text(FAILURE_TEXT)
        return

    await message.reply_text(VOICE_RECEIVED_TEXT, reply_markup=build_category_keyboard())


# ---------------------------------------------------------------------------
# Callback handlers (inline buttons)
# ---------------------------------------------------------------------------


async def handle_category(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle a category button press: file the pending clip.

    RULES:
    - answer() the callback query first so the button stops spinning
    - On success the category prompt is edited into a confirmation
    - Precondition and storage errors are sent as new messages
    """
    query = update.callback_query
    await query.answer()

    category = Category.from_payload(query.data)
    chat = update.effective_chat

    try:
        result = await _workflow(context).categorize(_conversation_id(update), category)
    except NoPendingVoiceError:
        await chat.send_message(NO_PENDING_VOICE_TEXT)
        return
    except TransitionFailedError:
        await chat.send_message(FAILURE_TEXT)
        return

    await query.edit_message_text(format_categorized(result))


async def handle_error(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Log unexpected handler errors and tell the user something failed."""
    logger.error("Unhandled error while processing update", exc_info=context.error)

    if isinstance(update, Update) and update.effective_chat is not None:
        try:
            await update.effective_chat.send_message(FAILURE_TEXT)
        except TelegramError:
            logger.exception("Failed to send failure reply")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def run_polling(settings: Settings) -> None:
    """Start the bot with long polling (blocks until interrupted)."""
    application = create_application(settings)
    logger.info("Starting Telegram bot with long polling...")
    logger.info("Spreadsheet: %s (sheet %s)", settings.sheet_id, settings.sheet_name)
    application.run_polling(allowed_updates=Update.ALL_TYPES)
