"""Google Sheets adapter implementing the TabularLog contract.

WHY: The journal log is a shared spreadsheet: one row per entry with a
timestamp in column A and one column per category. The workflow needs to
append entry rows and to read and write single cells.

HOW: Calls the Sheets v4 values API through GoogleClient:
  append  -> POST   values/{sheet}!A:D:append  (RAW, INSERT_ROWS)
  read    -> GET    values/{sheet}!{cell}
  write   -> PUT    values/{sheet}!{cell}      (RAW)
The appended row index is parsed from updates.updatedRange.

RULES:
- All ranges are scoped to the configured sheet name
- Sheet names are quoted A1-style ('My Sheet'!B5)
- Values are written RAW (no formula or date parsing by Sheets)
- Errors surface as GoogleAPIError (a StorageError)
"""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import quote

import httpx

from voice_journal.core.categories import LOG_COLUMNS
from voice_journal.core.interfaces import TabularLog
from voice_journal.google.auth import TokenProvider
from voice_journal.google.client import GoogleAPIError, GoogleClient
from voice_journal.google.models import AppendResponse, ValueRange

logger = logging.getLogger(__name__)

SHEETS_BASE_URL = "https://sheets.googleapis.com/v4"


def a1_range(sheet_name: str, cells: str) -> str:
    """Build an A1 range scoped to ``sheet_name``, e.g. ``'Sheet1'!B5``."""
    return "'{}'!{}".format(sheet_name.replace("'", "''"), cells)


class SheetsLog(GoogleClient, TabularLog):
    """TabularLog backed by one worksheet of a Google spreadsheet."""

    def __init__(
        self,
        token_provider: TokenProvider,
        spreadsheet_id: str,
        sheet_name: str = "Sheet1",
        base_url: str = SHEETS_BASE_URL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(token_provider, base_url, transport=transport)
        self.spreadsheet_id = spreadsheet_id
        self.sheet_name = sheet_name

    def _values_url(self, a1: str, suffix: str = "") -> str:
        return "/spreadsheets/{}/values/{}{}".format(
            self.spreadsheet_id, quote(a1, safe=""), suffix
        )

    async def create_entry_row(self, timestamp: str) -> int:
        """Append ``[timestamp, "", "", ""]`` and return its row index."""
        a1 = a1_range(self.sheet_name, "{}:{}".format(LOG_COLUMNS[0], LOG_COLUMNS[-1]))
        row_values = [timestamp] + [""] * (len(LOG_COLUMNS) - 1)

        resp = await self.request(
            "POST",
            self._values_url(a1, ":append"),
            params={"valueInputOption": "RAW", "insertDataOption": "INSERT_ROWS"},
            json={"values": [row_values]},
        )

        try:
            appended = AppendResponse.from_dict(resp.json())
        except (ValueError, AttributeError) as exc:
            raise GoogleAPIError(resp.status_code, "Unparseable append response: {}".format(exc)) from exc

        logger.debug("Appended entry row %s", appended.updated_range)
        return appended.row

    async def read_cell(self, row: int, column: str) -> Optional[str]:
        a1 = a1_range(self.sheet_name, "{}{}".format(column, row))
        resp = await self.request("GET", self._values_url(a1))
        try:
            return ValueRange.from_dict(resp.json()).first_value
        except (ValueError, AttributeError) as exc:
            raise GoogleAPIError(resp.status_code, "Unparseable cell response: {}".format(exc)) from exc

    async def write_cell(self, row: int, column: str, value: str) -> None:
        a1 = a1_range(self.sheet_name, "{}{}".format(column, row))
        await self.request(
            "PUT",
            self._values_url(a1),
            params={"valueInputOption": "RAW"},
            json={"range": a1, "values": [[value]]},
        )
