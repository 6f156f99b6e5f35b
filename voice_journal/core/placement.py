"""Row allocation and cell composition for categorized clips.

WHY: An entry owns one timestamp row, but a category can collect several
clips, and clips of other categories may already have pushed content
into the rows below. Each clip therefore needs the first free cell in
its column at or below the entry row, and a cell value that records its
position, its audio link, and its transcription.

HOW: find_free_row() reads the column row by row with read_cell() until
it sees an empty cell. ordinal_marker() and compose_cell_value() build
the text written into that cell.

RULES:
- Empty means None or ""; a whitespace-only cell is occupied
- The scan is bounded: more than max_offset occupied rows raises
  RowScanExhaustedError and nothing is written
- Scan-then-write is not atomic; callers serialize per conversation
- Markers 1..20 are circled digits, beyond that "N)"
- The transcription segment "[text]" is present only for recognized,
  non-blank text
"""

from __future__ import annotations

from typing import Optional

from voice_journal.core.interfaces import TabularLog, TranscriptionResult

_CIRCLED_DIGITS = "①②③④⑤⑥⑦⑧⑨⑩⑪⑫⑬⑭⑮⑯⑰⑱⑲⑳"


class RowScanExhaustedError(RuntimeError):
    """Raised when no free row is found within the scan bound.

    RULES:
    - Message includes the column, start row and bound
    - Raised before any write is attempted
    """


def ordinal_marker(position: int) -> str:
    """Render a 1-based clip position as a circled glyph or ``"N)"``."""
    if position < 1:
        raise ValueError("Clip position must be >= 1, got {}".format(position))
    if position <= len(_CIRCLED_DIGITS):
        return _CIRCLED_DIGITS[position - 1]
    return "{})".format(position)


def compose_cell_value(
    position: int,
    audio_ref: str,
    transcription: TranscriptionResult,
) -> str:
    """Build the composite cell value: marker, audio reference, ``[text]``."""
    value = ordinal_marker(position) + audio_ref
    if transcription.has_text:
        value += "[{}]".format(transcription.text.strip())
    return value


def is_empty_cell(value: Optional[str]) -> bool:
    return value is None or value == ""


async def find_free_row(
    log: TabularLog,
    column: str,
    start_row: int,
    max_offset: int,
) -> int:
    """Return the first row at or below ``start_row`` whose cell is empty.

    WHY: Keeps the placement rule in one function, so a future
    compare-and-set implementation can replace it without touching the
    workflow.

    HOW: Reads ``column`` at start_row, start_row + 1, ... and stops at
    the first empty cell. Reads at most ``max_offset`` rows.

    RULES:
    - Never returns a row whose cell was non-empty when read
    - Raises RowScanExhaustedError after max_offset occupied rows
    - StorageError from the log propagates unchanged
    """
    for row in range(start_row, start_row + max_offset):
        if is_empty_cell(await log.read_cell(row, column)):
            return row

    raise RowScanExhaustedError(
        "No free cell in column {} within {} rows of row {}".format(
            column, max_offset, start_row
        )
    )
