"""Voice Journal: a Telegram intake bot for categorized voice notes.

WHY: Journaling by voice is faster than typing, but the recordings are
only useful once they are filed somewhere searchable. This package lets a
chat user open a journal entry, send voice clips, and file each clip under
a category; the audio lands in Google Drive and a transcribed reference
lands in the right cell of a Google Sheets log.

HOW: Three layers. ``core`` holds the per-chat entry state machine, the
session store, and the row-allocation algorithm. ``google`` holds async
REST adapters for Sheets, Drive, and Speech-to-Text. ``bot`` and
``server`` wire the state machine to Telegram via long polling or a
webhook.

RULES:
- The core never imports Telegram or Google modules; it talks to the
  collaborators declared in core.interfaces
- One linear entry lifecycle per chat; sessions are in-memory only
"""

__version__ = "0.1.0"
