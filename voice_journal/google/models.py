"""Google REST response dataclasses.

WHY: The adapters only need a handful of fields from each response, but
those fields are nested and sometimes absent (an empty cell has no
"values" key at all). Typed dataclasses with from_dict() factories keep
that parsing in one place and out of the adapters.

HOW: One dataclass per response shape, each with a from_dict() class
method that tolerates the optional parts of the payload.

RULES:
- AppendResponse.row is parsed from the trailing digits of
  updates.updatedRange (e.g. "Sheet1!A5:D5" -> 5)
- ValueRange.first_value is None for absent or empty cells
- RecognizeResponse.transcript joins each result's first alternative
  with newlines; no results means ""
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List, Optional

_TRAILING_ROW_RE = re.compile(r"(\d+)$")


@dataclass
class AppendResponse:
    """Response of POST .../values/{range}:append."""

    updated_range: str
    row: int

    @classmethod
    def from_dict(cls, data: dict) -> AppendResponse:
        """Parse the appended row index out of updates.updatedRange.

        RULES:
        - Raises ValueError when the range carries no row number
        """
        updated_range = data.get("updates", {}).get("updatedRange", "")
        match = _TRAILING_ROW_RE.search(updated_range)
        if not match:
            raise ValueError("Cannot parse row from updatedRange {!r}".format(updated_range))
        return cls(updated_range=updated_range, row=int(match.group(1)))


@dataclass
class ValueRange:
    """Response of GET .../values/{range}."""

    range: str
    values: List[List[str]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> ValueRange:
        return cls(range=data.get("range", ""), values=data.get("values") or [])

    @property
    def first_value(self) -> Optional[str]:
        if not self.values or not self.values[0]:
            return None
        value = self.values[0][0]
        if value is None or value == "":
            return None
        return str(value)


@dataclass
class DriveFile:
    """Metadata returned by the Drive files.create upload."""

    id: str

    @classmethod
    def from_dict(cls, data: dict) -> DriveFile:
        return cls(id=data["id"])

    @property
    def view_url(self) -> str:
        return "https://drive.google.com/file/d/{}/view".format(self.id)


@dataclass
class RecognizeResponse:
    """Response of POST speech:recognize."""

    transcripts: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> RecognizeResponse:
        transcripts = []
        for result in data.get("results") or []:
            alternatives = result.get("alternatives") or []
            if alternatives:
                transcripts.append(alternatives[0].get("transcript", ""))
        return cls(transcripts=transcripts)

    @property
    def transcript(self) -> str:
        return "\n".join(self.transcripts)
