"""Idempotent creation of the Drive folder and spreadsheet backing the store.

``ensure_*`` calls look for an existing object first and only create one when
nothing matches, so repeated calls converge on the same :class:`StoreHandle`.
Within one process the look-up/create pair is serialised by a lock; two
processes provisioning at the same moment can still each create a folder or
spreadsheet.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List, Optional

from habitstore.drive_api import FOLDER_MIME_TYPE, SPREADSHEET_MIME_TYPE, DriveClient
from habitstore.errors import HabitStoreError
from habitstore.models import StoreHandle
from habitstore.settings import DEFAULT_CONFIG, HEADER_BACKGROUND, HEADER_FOREGROUND, StoreConfig
from habitstore.sheets_client import SheetsClient, a1_headers_range

logger = logging.getLogger(__name__)


class StoreProvisioner:
    """Locate or create the ``HabitTracker`` folder and its tracking spreadsheet."""

    def __init__(
        self,
        drive: DriveClient,
        sheets: SheetsClient,
        config: StoreConfig = DEFAULT_CONFIG,
    ) -> None:
        self._drive = drive
        self._sheets = sheets
        self._config = config
        self._handle: Optional[StoreHandle] = None
        self._lock = threading.Lock()

    @property
    def handle(self) -> Optional[StoreHandle]:
        return self._handle

    def reset(self) -> None:
        """Forget the memoised handle so the next call queries Drive again."""

        self._handle = None

    def update_token(self, access_token: str) -> None:
        self._drive.executor.update_token(access_token)
        if self._sheets.executor is not self._drive.executor:
            self._sheets.executor.update_token(access_token)

    # ------------------------------------------------------------------
    # Folder
    # ------------------------------------------------------------------
    def find_folder(self) -> Optional[Dict[str, Any]]:
        files = self._drive.list_files(name=self._config.folder_name, mime_type=FOLDER_MIME_TYPE)
        logger.debug("Folder lookup for %s returned %d match(es)", self._config.folder_name, len(files))
        return files[0] if files else None

    def ensure_folder(self) -> Dict[str, Any]:
        folder = self.find_folder()
        if folder is not None:
            logger.info("Using existing folder %s (%s)", self._config.folder_name, folder["id"])
            return folder
        folder = self._drive.create_folder(self._config.folder_name)
        logger.info("Created folder %s (%s)", self._config.folder_name, folder["id"])
        return folder

    # ------------------------------------------------------------------
    # Spreadsheet
    # ------------------------------------------------------------------
    def find_sheet(self, folder_id: str) -> Optional[Dict[str, Any]]:
        files = self._drive.list_files(
            name=self._config.sheet_name,
            mime_type=SPREADSHEET_MIME_TYPE,
            parent_id=folder_id,
        )
        return files[0] if files else None

    def ensure_sheet(self, folder_id: str) -> Dict[str, Any]:
        sheet = self.find_sheet(folder_id)
        if sheet is not None:
            logger.info("Using existing spreadsheet %s (%s)", self._config.sheet_name, sheet["id"])
            return sheet
        return self._create_sheet(folder_id)

    def _create_sheet(self, folder_id: str) -> Dict[str, Any]:
        created = self._sheets.create_spreadsheet(
            self._config.sheet_name,
            tab_title=self._config.tab_title,
            rows=self._config.row_count,
            columns=self._config.column_count,
        )
        spreadsheet_id = created.get("spreadsheetId")
        if not spreadsheet_id:
            raise HabitStoreError("Spreadsheet creation returned no spreadsheetId")
        self._drive.move_file(spreadsheet_id, folder_id)
        self._write_headers(spreadsheet_id)
        self._format_header_row(spreadsheet_id, self._first_tab_id(created))
        logger.info("Created spreadsheet %s (%s)", self._config.sheet_name, spreadsheet_id)
        return {
            "id": spreadsheet_id,
            "name": self._config.sheet_name,
            "mimeType": SPREADSHEET_MIME_TYPE,
            "parents": [folder_id],
        }

    @staticmethod
    def _first_tab_id(created: Dict[str, Any]) -> int:
        sheets: List[Dict[str, Any]] = created.get("sheets", []) or []
        if sheets:
            return int(sheets[0].get("properties", {}).get("sheetId", 0) or 0)
        return 0

    def _write_headers(self, spreadsheet_id: str) -> None:
        self._sheets.update_values(
            spreadsheet_id,
            a1_headers_range(self._config.tab_title, columns=self._config.column_count),
            [list(self._config.headers)],
        )

    def _format_header_row(self, spreadsheet_id: str, tab_id: int) -> None:
        requests = [
            {
                "repeatCell": {
                    "range": {
                        "sheetId": tab_id,
                        "startRowIndex": 0,
                        "endRowIndex": 1,
                        "startColumnIndex": 0,
                        "endColumnIndex": self._config.column_count,
                    },
                    "cell": {
                        "userEnteredFormat": {
                            "backgroundColor": HEADER_BACKGROUND,
                            "textFormat": {"foregroundColor": HEADER_FOREGROUND, "bold": True},
                        }
                    },
                    "fields": "userEnteredFormat(backgroundColor,textFormat)",
                }
            },
            {
                "updateSheetProperties": {
                    "properties": {"sheetId": tab_id, "gridProperties": {"frozenRowCount": 1}},
                    "fields": "gridProperties.frozenRowCount",
                }
            },
        ]
        try:
            self._sheets.batch_update(spreadsheet_id, requests)
        except HabitStoreError as exc:
            logger.warning("Header row formatting failed for %s: %s", spreadsheet_id, exc)

    # ------------------------------------------------------------------
    # Handle
    # ------------------------------------------------------------------
    def ensure_store_handle(self) -> StoreHandle:
        """Return the memoised handle, provisioning folder and spreadsheet on first use.

        Concurrent callers in this process wait on a lock so only one of them
        talks to Drive.
        """

        with self._lock:
            if self._handle is not None:
                return self._handle
            folder = self.ensure_folder()
            sheet = self.ensure_sheet(folder["id"])
            self._handle = StoreHandle(folder_id=folder["id"], sheet_id=sheet["id"])
            return self._handle


__all__ = ["StoreProvisioner"]
