"""The closed set of journal categories and their sheet columns.

WHY: Every categorized clip is filed under exactly one of three tags, and
each tag owns one column of the log. Keeping the set closed (an enum with
a total column mapping) means there is no "unknown category" branch in
the workflow at all.

HOW: Category is a str enum whose values double as the Telegram callback
payloads. Column letters and button labels are plain dicts keyed by the
enum, checked for totality at import time.

RULES:
- Exactly three categories: situation (B), emotion (C), thought (D)
- Column A holds the entry timestamp
- from_payload() raises ValueError for anything else
"""

from __future__ import annotations

import enum
from typing import Dict

TIMESTAMP_COLUMN = "A"


class Category(str, enum.Enum):
    """A semantic tag a voice clip is filed under."""

    SITUATION = "situation"
    EMOTION = "emotion"
    THOUGHT = "thought"

    @property
    def column(self) -> str:
        """Sheet column letter bound to this category."""
        return _COLUMNS[self]

    @property
    def label(self) -> str:
        """Human-readable button label."""
        return _LABELS[self]

    @classmethod
    def from_payload(cls, payload: str) -> Category:
        """Parse a callback payload into a Category.

        RULES:
        - Only the three enum values are accepted
        - Anything else is a contract violation, reported as ValueError
        """
        try:
            return cls(payload)
        except ValueError:
            raise ValueError("Unknown category payload: {!r}".format(payload)) from None


_COLUMNS: Dict[Category, str] = {
    Category.SITUATION: "B",
    Category.EMOTION: "C",
    Category.THOUGHT: "D",
}

_LABELS: Dict[Category, str] = {
    Category.SITUATION: "\U0001f4c4 Situation",
    Category.EMOTION: "\U0001f622 Emotion",
    Category.THOUGHT: "\U0001f4ad Thought",
}


def _check_tables(columns: Dict[Category, str], labels: Dict[Category, str]) -> None:
    missing = (set(Category) ^ set(columns)) | (set(Category) ^ set(labels))
    if missing:
        raise RuntimeError(
            "Category tables out of sync: {}".format(sorted(c.name for c in missing))
        )


_check_tables(_COLUMNS, _LABELS)

LOG_COLUMNS = (TIMESTAMP_COLUMN,) + tuple(c.column for c in Category)
"""All log columns in sheet order: timestamp, then one per category."""
