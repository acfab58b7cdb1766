"""Google Sheets client helpers with robust A1 range handling.

This module centralises all direct interactions with the Google Sheets API
used by the habit store.  It provides a small surface area that the codec,
provisioner and record store rely on without knowing about HTTP requests or
``googleapiclient`` internals:

* Worksheet titles are always quoted according to the Sheets A1 rules and
  column references are calculated with a dedicated helper, so ranges such as
  ``'Habits'!A2:AW`` are produced in exactly one place.
* Every public method maps onto one REST call (``values.get``,
  ``values.update``, ``values.clear``, ``spreadsheets.batchUpdate``,
  ``spreadsheets.create``).  Higher layers decide how to combine them.
* Failures surface as :class:`~habitstore.errors.BackendError` or
  :class:`~habitstore.errors.BackendUnavailableError` via the shared
  :class:`~habitstore.google_credentials.RequestExecutor`.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, MutableSequence, Optional, Sequence

import httplib2
from googleapiclient.discovery import build

from habitstore.google_credentials import RequestExecutor, build_credentials

logger = logging.getLogger(__name__)

VALUE_INPUT_OPTION = "RAW"


def normalise_title(title: str) -> str:
    """Return a worksheet title quoted according to A1 notation rules."""

    safe = (title or "").strip()
    if not safe:
        raise ValueError("Worksheet title must not be empty")
    safe = safe.replace("'", "''")
    return f"'{safe}'"


def column_letter(index: int) -> str:
    """Return the column letter for a 1-indexed column (1 → ``A``, 27 → ``AA``)."""

    if index < 1:
        raise ValueError("Column index must be >= 1")
    letters: MutableSequence[str] = []
    while index:
        index, remainder = divmod(index - 1, 26)
        letters.append(chr(65 + remainder))
    return "".join(reversed(letters))


def a1_headers_range(title: str, *, columns: int) -> str:
    """Return an A1 range covering the header row for ``title``."""

    return f"{normalise_title(title)}!A1:{column_letter(max(1, columns))}1"


def a1_data_range(title: str, *, columns: int, first_row: int = 2) -> str:
    """Return an open-ended A1 range from ``first_row`` to the last row."""

    return f"{normalise_title(title)}!A{first_row}:{column_letter(max(1, columns))}"


def a1_row_range(title: str, row_number: int, *, columns: int) -> str:
    """Return an A1 range covering sheet row ``row_number`` (1-based)."""

    if row_number < 1:
        raise ValueError("Row index must be >= 1")
    last_column = column_letter(max(1, columns))
    return f"{normalise_title(title)}!A{row_number}:{last_column}{row_number}"


def a1_cell(title: str, row_number: int, column_index: int) -> str:
    """Return the A1 address of one cell; ``column_index`` is 0-based."""

    if row_number < 1:
        raise ValueError("Row index must be >= 1")
    return f"{normalise_title(title)}!{column_letter(column_index + 1)}{row_number}"


def a1_column_range(title: str, column_index: int = 0) -> str:
    """Return a whole-column range such as ``'Habits'!A:A``."""

    letter = column_letter(column_index + 1)
    return f"{normalise_title(title)}!{letter}:{letter}"


class SheetsClient:
    """Concrete helper that speaks to Google Sheets using the REST API."""

    def __init__(
        self,
        access_token: str = "",
        *,
        service=None,
        executor: Optional[RequestExecutor] = None,
    ) -> None:
        if executor is None:
            credentials = build_credentials(access_token) if access_token else None
            executor = RequestExecutor(credentials, authorize=service is None)
        self._executor = executor
        self._service = service

    @property
    def executor(self) -> RequestExecutor:
        return self._executor

    def _spreadsheets(self):
        if self._service is None:
            logger.debug("Building Sheets v4 service")
            self._service = build("sheets", "v4", http=httplib2.Http(), cache_discovery=False)
        return self._service.spreadsheets()

    # ------------------------------------------------------------------
    # Spreadsheet level
    # ------------------------------------------------------------------
    def create_spreadsheet(
        self,
        title: str,
        *,
        tab_title: str,
        rows: int,
        columns: int,
    ) -> Dict[str, Any]:
        body = {
            "properties": {"title": title},
            "sheets": [
                {
                    "properties": {
                        "title": tab_title,
                        "gridProperties": {"rowCount": rows, "columnCount": columns},
                    }
                }
            ],
        }
        request = self._spreadsheets().create(
            body=body,
            fields="spreadsheetId,sheets.properties",
        )
        return self._executor.execute(request, "Create spreadsheet")

    def batch_update(self, spreadsheet_id: str, requests: Sequence[Mapping[str, Any]]) -> Dict[str, Any]:
        request = self._spreadsheets().batchUpdate(
            spreadsheetId=spreadsheet_id,
            body={"requests": list(requests)},
        )
        return self._executor.execute(request, "Format spreadsheet")

    # ------------------------------------------------------------------
    # Values
    # ------------------------------------------------------------------
    def get_values(
        self,
        spreadsheet_id: str,
        range_spec: str,
        *,
        render_option: str = "UNFORMATTED_VALUE",
    ) -> List[List[Any]]:
        request = (
            self._spreadsheets()
            .values()
            .get(
                spreadsheetId=spreadsheet_id,
                range=range_spec,
                majorDimension="ROWS",
                valueRenderOption=render_option,
            )
        )
        response = self._executor.execute(request, "Read range")
        values = response.get("values", []) if isinstance(response, dict) else []
        return [list(row) for row in values]

    def update_values(
        self,
        spreadsheet_id: str,
        range_spec: str,
        values: Sequence[Sequence[Any]],
    ) -> Dict[str, Any]:
        request = (
            self._spreadsheets()
            .values()
            .update(
                spreadsheetId=spreadsheet_id,
                range=range_spec,
                valueInputOption=VALUE_INPUT_OPTION,
                body={"values": [list(row) for row in values], "majorDimension": "ROWS"},
            )
        )
        return self._executor.execute(request, "Write range")

    def clear_values(self, spreadsheet_id: str, range_spec: str) -> Dict[str, Any]:
        request = (
            self._spreadsheets()
            .values()
            .clear(spreadsheetId=spreadsheet_id, range=range_spec, body={})
        )
        return self._executor.execute(request, "Clear range")


__all__ = [
    "SheetsClient",
    "VALUE_INPUT_OPTION",
    "a1_cell",
    "a1_column_range",
    "a1_data_range",
    "a1_headers_range",
    "a1_row_range",
    "column_letter",
    "normalise_title",
]
