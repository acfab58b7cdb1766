from __future__ import annotations

import itertools
import json
import re
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

import httplib2
import pytest
from googleapiclient.errors import HttpError

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from habitstore.cache import HabitCache
from habitstore.codec import RowCodec
from habitstore.coordinator import HabitCoordinator
from habitstore.drive_api import FOLDER_MIME_TYPE, SPREADSHEET_MIME_TYPE, DriveClient
from habitstore.models import BadHabit, GoodHabit, Habit, StoreHandle
from habitstore.provisioner import StoreProvisioner
from habitstore.record_store import HabitRecordStore
from habitstore.settings import DEFAULT_CONFIG
from habitstore.sheets_client import SheetsClient

FIXED_NOW = datetime(2024, 6, 10, 12, 0, tzinfo=timezone.utc)


def make_http_error(status: int, message: str = "", reason: str = "") -> HttpError:
    resp = httplib2.Response({"status": status})
    payload = {"error": {"code": status, "message": message or f"HTTP {status}"}}
    if reason:
        payload["error"]["errors"] = [{"reason": reason, "message": message}]
    return HttpError(resp, json.dumps(payload).encode("utf-8"))


def good_habit(habit_id: str = "h1", **overrides: Any) -> GoodHabit:
    values: Dict[str, Any] = dict(id=habit_id, name=f"Habit {habit_id}", created_date=FIXED_NOW, updated_date=FIXED_NOW)
    values.update(overrides)
    return GoodHabit(**values)


def bad_habit(habit_id: str = "b1", **overrides: Any) -> BadHabit:
    values: Dict[str, Any] = dict(id=habit_id, name=f"Habit {habit_id}", created_date=FIXED_NOW, updated_date=FIXED_NOW)
    values.update(overrides)
    return BadHabit(**values)


# ----------------------------------------------------------------------
# Failure injection
# ----------------------------------------------------------------------
@dataclass
class _Failure:
    operation: str
    error: BaseException
    remaining: Optional[int]
    when: Optional[Callable[[Dict[str, Any]], bool]]


class _FailureMixin:
    def __init__(self) -> None:
        self._failures: List[_Failure] = []
        self.calls: List[tuple[str, Dict[str, Any]]] = []

    def fail(
        self,
        operation: str,
        status: int = 500,
        reason: str = "",
        *,
        times: Optional[int] = None,
        when: Optional[Callable[[Dict[str, Any]], bool]] = None,
    ) -> None:
        """Make ``operation`` answer with an HTTP error ``status``."""

        self.fail_with(operation, make_http_error(status, reason=reason), times=times, when=when)

    def fail_with(
        self,
        operation: str,
        error: BaseException,
        *,
        times: Optional[int] = None,
        when: Optional[Callable[[Dict[str, Any]], bool]] = None,
    ) -> None:
        self._failures.append(_Failure(operation, error, times, when))

    def clear_failures(self) -> None:
        self._failures.clear()

    def _record(self, operation: str, kwargs: Dict[str, Any]) -> None:
        self.calls.append((operation, kwargs))
        for failure in self._failures:
            if failure.operation != operation:
                continue
            if failure.when is not None and not failure.when(kwargs):
                continue
            if failure.remaining is not None:
                if failure.remaining <= 0:
                    continue
                failure.remaining -= 1
            raise failure.error

    def count(self, operation: str) -> int:
        return sum(1 for name, _ in self.calls if name == operation)


class _FakeRequest:
    def __init__(self, service: _FailureMixin, operation: str, kwargs: Dict[str, Any], callback) -> None:
        self._service = service
        self._operation = operation
        self._kwargs = kwargs
        self._callback = callback

    def execute(self, http=None):
        self._service._record(self._operation, self._kwargs)
        return self._callback()


# ----------------------------------------------------------------------
# Drive v3
# ----------------------------------------------------------------------
_NAME_RE = re.compile(r"name = '((?:[^'\\]|\\.)*)'")
_MIME_RE = re.compile(r"mimeType = '([^']*)'")
_PARENT_RE = re.compile(r"'((?:[^'\\]|\\.)*)' in parents")


def _unescape(value: str) -> str:
    return re.sub(r"\\(.)", r"\1", value)


class _FakeFiles:
    def __init__(self, service: "FakeDriveService") -> None:
        self._service = service

    def list(self, q: str, spaces: str, fields: str, pageToken: Optional[str] = None):  # noqa: N803 - API compatibility
        kwargs = dict(q=q, spaces=spaces, fields=fields, pageToken=pageToken)
        return _FakeRequest(self._service, "files.list", kwargs, lambda: self._service._list(q, pageToken))

    def create(self, body: Dict[str, Any], fields: str):
        return _FakeRequest(self._service, "files.create", dict(body=body), lambda: self._service._create(body))

    def get(self, fileId: str, fields: str):  # noqa: N803 - API compatibility
        return _FakeRequest(self._service, "files.get", dict(fileId=fileId), lambda: dict(self._service.files_by_id[fileId]))

    def update(self, fileId: str, addParents: str, removeParents: Optional[str], fields: str):  # noqa: N803
        kwargs = dict(fileId=fileId, addParents=addParents, removeParents=removeParents)
        return _FakeRequest(
            self._service,
            "files.update",
            kwargs,
            lambda: self._service._move(fileId, addParents, removeParents),
        )


class FakeDriveService(_FailureMixin):
    def __init__(self, page_size: int = 100) -> None:
        super().__init__()
        self.files_by_id: Dict[str, Dict[str, Any]] = {}
        self.page_size = page_size
        self._ids = itertools.count(1)

    def files(self) -> _FakeFiles:  # noqa: D401 - API compatibility
        return _FakeFiles(self)

    def add_file(self, name: str, mime_type: str, parents: Sequence[str] = ("root",), file_id: str = "") -> Dict[str, Any]:
        file_id = file_id or f"file-{next(self._ids)}"
        entry = {"id": file_id, "name": name, "mimeType": mime_type, "parents": list(parents), "trashed": False}
        self.files_by_id[file_id] = entry
        return dict(entry)

    def _list(self, query: str, page_token: Optional[str]) -> Dict[str, Any]:
        name = _NAME_RE.search(query)
        mime = _MIME_RE.search(query)
        parent = _PARENT_RE.search(query)
        matches = [
            dict(entry)
            for entry in self.files_by_id.values()
            if not entry["trashed"]
            and (name is None or entry["name"] == _unescape(name.group(1)))
            and (mime is None or entry["mimeType"] == mime.group(1))
            and (parent is None or _unescape(parent.group(1)) in entry["parents"])
        ]
        start = int(page_token or 0)
        page = matches[start : start + self.page_size]
        response: Dict[str, Any] = {"files": page}
        if start + self.page_size < len(matches):
            response["nextPageToken"] = str(start + self.page_size)
        return response

    def _create(self, body: Dict[str, Any]) -> Dict[str, Any]:
        return self.add_file(body["name"], body["mimeType"], body.get("parents") or ["root"])

    def _move(self, file_id: str, add: str, remove: Optional[str]) -> Dict[str, Any]:
        entry = self.files_by_id[file_id]
        removed = set((remove or "").split(",")) if remove else set()
        parents = [parent for parent in entry["parents"] if parent not in removed]
        parents.append(add)
        entry["parents"] = parents
        return {"id": file_id, "parents": list(parents)}


# ----------------------------------------------------------------------
# Sheets v4
# ----------------------------------------------------------------------
_RANGE_RE = re.compile(
    r"^(?:(?P<sheet>'(?:[^']|'')*'|[^!]+)!)?(?P<c1>[A-Z]+)(?P<r1>\d*)(?::(?P<c2>[A-Z]+)(?P<r2>\d*))?$"
)


def _column_index(letters: str) -> int:
    value = 0
    for char in letters:
        value = value * 26 + (ord(char) - 64)
    return value - 1


def _is_empty(cell: Any) -> bool:
    return cell is None or cell == ""


@dataclass
class _Range:
    tab: str
    first_row: int
    last_row: Optional[int]
    first_col: int
    last_col: int


class FakeSpreadsheet:
    def __init__(self, spreadsheet_id: str, title: str, tab_title: str) -> None:
        self.id = spreadsheet_id
        self.title = title
        self.tabs: Dict[str, List[List[Any]]] = {tab_title: []}
        self.batch_requests: List[Dict[str, Any]] = []

    @property
    def rows(self) -> List[List[Any]]:
        return next(iter(self.tabs.values()))


class _FakeValues:
    def __init__(self, service: "FakeSheetsService") -> None:
        self._service = service

    def get(self, spreadsheetId: str, range: str, majorDimension: str = "ROWS", valueRenderOption: str = ""):  # noqa: N803,A002
        kwargs = dict(spreadsheetId=spreadsheetId, range=range, valueRenderOption=valueRenderOption)
        return _FakeRequest(self._service, "values.get", kwargs, lambda: self._service._get(spreadsheetId, range))

    def update(self, spreadsheetId: str, range: str, valueInputOption: str, body: Dict[str, Any]):  # noqa: N803,A002
        kwargs = dict(spreadsheetId=spreadsheetId, range=range, body=body)
        return _FakeRequest(
            self._service,
            "values.update",
            kwargs,
            lambda: self._service._update(spreadsheetId, range, body.get("values", [])),
        )

    def clear(self, spreadsheetId: str, range: str, body: Dict[str, Any]):  # noqa: N803,A002
        kwargs = dict(spreadsheetId=spreadsheetId, range=range)
        return _FakeRequest(self._service, "values.clear", kwargs, lambda: self._service._clear(spreadsheetId, range))


class _FakeSpreadsheets:
    def __init__(self, service: "FakeSheetsService") -> None:
        self._service = service

    def values(self) -> _FakeValues:  # noqa: D401 - API compatibility
        return _FakeValues(self._service)

    def create(self, body: Dict[str, Any], fields: str):
        return _FakeRequest(self._service, "create", dict(body=body), lambda: self._service._create(body))

    def batchUpdate(self, spreadsheetId: str, body: Dict[str, Any]):  # noqa: N802,N803 - API compatibility
        kwargs = dict(spreadsheetId=spreadsheetId, body=body)
        return _FakeRequest(
            self._service,
            "batchUpdate",
            kwargs,
            lambda: self._service._batch_update(spreadsheetId, body),
        )


class FakeSheetsService(_FailureMixin):
    """In-memory spreadsheets; new spreadsheets are registered with ``drive`` under ``root``."""

    def __init__(self, drive: Optional[FakeDriveService] = None) -> None:
        super().__init__()
        self.drive = drive
        self.spreadsheets_by_id: Dict[str, FakeSpreadsheet] = {}
        self._ids = itertools.count(1)

    def spreadsheets(self) -> _FakeSpreadsheets:  # noqa: D401 - API compatibility
        return _FakeSpreadsheets(self)

    def add_spreadsheet(self, title: str, tab_title: str = DEFAULT_CONFIG.tab_title, spreadsheet_id: str = "") -> FakeSpreadsheet:
        spreadsheet_id = spreadsheet_id or f"sheet-{next(self._ids)}"
        spreadsheet = FakeSpreadsheet(spreadsheet_id, title, tab_title)
        self.spreadsheets_by_id[spreadsheet_id] = spreadsheet
        return spreadsheet

    def rows(self, spreadsheet_id: str) -> List[List[Any]]:
        return self.spreadsheets_by_id[spreadsheet_id].rows

    # Internal helpers -------------------------------------------------
    def _grid(self, spreadsheet_id: str, parsed: _Range) -> List[List[Any]]:
        spreadsheet = self.spreadsheets_by_id.get(spreadsheet_id)
        if spreadsheet is None:
            raise make_http_error(404, "Requested entity was not found.")
        if parsed.tab not in spreadsheet.tabs:
            raise make_http_error(400, f"Unable to parse range: {parsed.tab}")
        return spreadsheet.tabs[parsed.tab]

    @staticmethod
    def _parse(range_spec: str) -> _Range:
        match = _RANGE_RE.match(range_spec)
        if not match:
            raise make_http_error(400, f"Unable to parse range: {range_spec}")
        sheet = match.group("sheet") or ""
        if sheet.startswith("'") and sheet.endswith("'"):
            sheet = sheet[1:-1].replace("''", "'")
        first_col = _column_index(match.group("c1"))
        last_col = _column_index(match.group("c2")) if match.group("c2") else first_col
        first_row = int(match.group("r1") or 1)
        if match.group("c2") is None:
            last_row: Optional[int] = first_row
        else:
            last_row = int(match.group("r2")) if match.group("r2") else None
        return _Range(sheet, first_row, last_row, first_col, last_col)

    def _create(self, body: Dict[str, Any]) -> Dict[str, Any]:
        title = body["properties"]["title"]
        tab_title = body["sheets"][0]["properties"]["title"]
        if self.drive is not None:
            entry = self.drive.add_file(title, SPREADSHEET_MIME_TYPE)
            spreadsheet = self.add_spreadsheet(title, tab_title, spreadsheet_id=entry["id"])
        else:
            spreadsheet = self.add_spreadsheet(title, tab_title)
        return {
            "spreadsheetId": spreadsheet.id,
            "sheets": [{"properties": {"sheetId": 0, "title": tab_title}}],
        }

    def _batch_update(self, spreadsheet_id: str, body: Dict[str, Any]) -> Dict[str, Any]:
        self.spreadsheets_by_id[spreadsheet_id].batch_requests.extend(body.get("requests", []))
        return {"spreadsheetId": spreadsheet_id, "replies": [{} for _ in body.get("requests", [])]}

    def _get(self, spreadsheet_id: str, range_spec: str) -> Dict[str, Any]:
        parsed = self._parse(range_spec)
        grid = self._grid(spreadsheet_id, parsed)
        last_row = parsed.last_row if parsed.last_row is not None else len(grid)
        values: List[List[Any]] = []
        for row in grid[parsed.first_row - 1 : last_row]:
            cells = list(row[parsed.first_col : parsed.last_col + 1])
            while cells and _is_empty(cells[-1]):
                cells.pop()
            values.append(cells)
        while values and not values[-1]:
            values.pop()
        response: Dict[str, Any] = {"range": range_spec, "majorDimension": "ROWS"}
        if values:
            response["values"] = values
        return response

    def _update(self, spreadsheet_id: str, range_spec: str, values: Sequence[Sequence[Any]]) -> Dict[str, Any]:
        parsed = self._parse(range_spec)
        grid = self._grid(spreadsheet_id, parsed)
        for offset, row_values in enumerate(values):
            row_index = parsed.first_row - 1 + offset
            while len(grid) <= row_index:
                grid.append([])
            row = grid[row_index]
            needed = parsed.first_col + len(row_values)
            if len(row) < needed:
                row.extend([""] * (needed - len(row)))
            for column, value in enumerate(row_values):
                row[parsed.first_col + column] = value
        return {"updatedRange": range_spec, "updatedRows": len(values)}

    def _clear(self, spreadsheet_id: str, range_spec: str) -> Dict[str, Any]:
        parsed = self._parse(range_spec)
        grid = self._grid(spreadsheet_id, parsed)
        last_row = parsed.last_row if parsed.last_row is not None else len(grid)
        for row in grid[parsed.first_row - 1 : last_row]:
            for column in range(parsed.first_col, min(parsed.last_col + 1, len(row))):
                row[column] = ""
        return {"clearedRange": range_spec}


# ----------------------------------------------------------------------
# Fixtures
# ----------------------------------------------------------------------
@pytest.fixture
def drive_service() -> FakeDriveService:
    return FakeDriveService()


@pytest.fixture
def sheets_service(drive_service: FakeDriveService) -> FakeSheetsService:
    return FakeSheetsService(drive_service)


@pytest.fixture
def drive(drive_service: FakeDriveService) -> DriveClient:
    return DriveClient(service=drive_service)


@pytest.fixture
def sheets(sheets_service: FakeSheetsService) -> SheetsClient:
    return SheetsClient(service=sheets_service)


@pytest.fixture
def provisioner(drive: DriveClient, sheets: SheetsClient) -> StoreProvisioner:
    return StoreProvisioner(drive, sheets)


@pytest.fixture
def store(sheets: SheetsClient) -> HabitRecordStore:
    return HabitRecordStore(sheets)


@pytest.fixture
def seed_store(drive_service: FakeDriveService, sheets_service: FakeSheetsService):
    """Create the folder and a spreadsheet holding ``records`` (``None`` = blank row)."""

    def _seed(records: Sequence[Optional[Habit]] = ()) -> StoreHandle:
        folder = drive_service.add_file(DEFAULT_CONFIG.folder_name, FOLDER_MIME_TYPE)
        entry = drive_service.add_file(DEFAULT_CONFIG.sheet_name, SPREADSHEET_MIME_TYPE, parents=[folder["id"]])
        spreadsheet = sheets_service.add_spreadsheet(DEFAULT_CONFIG.sheet_name, spreadsheet_id=entry["id"])
        codec = RowCodec()
        spreadsheet.rows.append(list(DEFAULT_CONFIG.headers))
        for record in records:
            spreadsheet.rows.append([] if record is None else codec.encode(record))
        return StoreHandle(folder_id=folder["id"], sheet_id=entry["id"])

    return _seed


@pytest.fixture
def make_coordinator(store: HabitRecordStore, provisioner: StoreProvisioner):
    def _make(habits: Sequence[Habit] = (), *, today: int = 10, auth=None) -> HabitCoordinator:
        return HabitCoordinator(
            store,
            provisioner,
            auth=auth,
            cache=HabitCache(habits),
            today=lambda: today,
            clock=lambda: FIXED_NOW,
        )

    return _make
