"""Telegram gateway for the voice journal.

WHY: Users create entries, send voice notes and pick categories from a
Telegram chat. This package maps those chat events onto the core
EntryWorkflow and renders its results as replies and keyboards.

HOW: bot.py builds a python-telegram-bot Application with one handler
per event type; messages.py holds texts, keyboards and formatters.

RULES:
- Runs with long polling (bot.run_polling) or behind the webhook server
  (voice_journal.server)
- BOT_TOKEN, SHEET_ID and DRIVE_FOLDER_ID are required
"""
