"""Row-oriented CRUD for habit records stored in the ``Habits`` worksheet.

The worksheet has no native transactions or keys.  A record's address is the
position of its row: data row ``r`` (0-based) lives on sheet row ``r + 2``
because row 1 holds the headers.  Deleting clears the row in place, leaving a
tombstone, so later rows never move.  Looking a record up means reading the
whole table and scanning it, which is what :meth:`HabitRecordStore.find_row`
does; it is the only place that turns an id into a row position.

``write`` without a row index and ``delete``/``update_cell`` are read-then-act
sequences.  Two writers mutating the same sheet at the same time can lose an
update; callers are expected to serialise mutations per id.
"""

from __future__ import annotations

import logging
from typing import Any, Iterator, List, Optional, Tuple

from habitstore.codec import RowCodec
from habitstore.errors import ColumnNotFoundError, HabitNotFoundError
from habitstore.models import Habit, StoreHandle
from habitstore.settings import DEFAULT_CONFIG, StoreConfig
from habitstore.sheets_client import (
    SheetsClient,
    a1_cell,
    a1_column_range,
    a1_data_range,
    a1_row_range,
)

logger = logging.getLogger(__name__)

HEADER_ROWS = 1


def sheet_row_number(row_index: int) -> int:
    """Return the 1-based sheet row for 0-based data row ``row_index``."""

    if row_index < 0:
        raise ValueError("Row index must be >= 0")
    return row_index + HEADER_ROWS + 1


class HabitRecordStore:
    """Read and write habit rows through a :class:`SheetsClient`."""

    def __init__(
        self,
        sheets: SheetsClient,
        config: StoreConfig = DEFAULT_CONFIG,
        codec: Optional[RowCodec] = None,
    ) -> None:
        self._sheets = sheets
        self._config = config
        self._codec = codec or RowCodec(config)

    @property
    def codec(self) -> RowCodec:
        return self._codec

    def update_token(self, access_token: str) -> None:
        self._sheets.executor.update_token(access_token)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def _fetch_rows(self, handle: StoreHandle) -> List[List[Any]]:
        range_spec = a1_data_range(self._config.tab_title, columns=self._config.column_count)
        return self._sheets.get_values(handle.sheet_id, range_spec)

    def read_rows(self, handle: StoreHandle) -> Iterator[Tuple[int, Habit]]:
        """Yield ``(row_index, record)`` for every live row, skipping tombstones."""

        for row_index, row in enumerate(self._fetch_rows(handle)):
            record = self._codec.decode(row)
            if record is not None:
                yield row_index, record

    def read_all(self, handle: StoreHandle) -> List[Habit]:
        records = [record for _, record in self.read_rows(handle)]
        logger.info("Read %d habit(s) from spreadsheet %s", len(records), handle.sheet_id)
        return records

    def find_row(self, handle: StoreHandle, habit_id: str) -> Optional[int]:
        """Return the data row index holding ``habit_id`` or ``None``."""

        for row_index, record in self.read_rows(handle):
            if record.id == habit_id:
                return row_index
        return None

    def _require_row(self, handle: StoreHandle, habit_id: str) -> int:
        row_index = self.find_row(handle, habit_id)
        if row_index is None:
            raise HabitNotFoundError(habit_id)
        return row_index

    def _next_empty_row(self, handle: StoreHandle) -> int:
        """Return the sheet row just past the current length of the id column."""

        values = self._sheets.get_values(handle.sheet_id, a1_column_range(self._config.tab_title, 0))
        return max(len(values), HEADER_ROWS) + 1

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def write(self, handle: StoreHandle, record: Habit, row_index: Optional[int] = None) -> int:
        """Write ``record`` and return the sheet row number that was written.

        With ``row_index`` the row is overwritten in place; without it the
        record is appended after the last non-empty id cell.
        """

        row = self._codec.encode(record)
        if row_index is not None:
            row_number = sheet_row_number(row_index)
            logger.info("Updating habit %s on row %d", record.id, row_number)
        else:
            row_number = self._next_empty_row(handle)
            logger.info("Appending habit %s on row %d", record.id, row_number)
        range_spec = a1_row_range(self._config.tab_title, row_number, columns=self._config.column_count)
        self._sheets.update_values(handle.sheet_id, range_spec, [row])
        return row_number

    def delete(self, handle: StoreHandle, habit_id: str) -> bool:
        """Tombstone the row holding ``habit_id``; returns ``False`` when absent."""

        row_index = self.find_row(handle, habit_id)
        if row_index is None:
            logger.warning("Habit %s not found for deletion", habit_id)
            return False
        row_number = sheet_row_number(row_index)
        range_spec = a1_row_range(self._config.tab_title, row_number, columns=self._config.column_count)
        self._sheets.clear_values(handle.sheet_id, range_spec)
        logger.info("Cleared row %d for habit %s", row_number, habit_id)
        return True

    def update_cell(self, handle: StoreHandle, habit_id: str, column_name: str, value: Any) -> None:
        column_index = self._config.column_index(column_name)
        if column_index is None:
            raise ColumnNotFoundError(column_name)
        row_number = sheet_row_number(self._require_row(handle, habit_id))
        range_spec = a1_cell(self._config.tab_title, row_number, column_index)
        self._sheets.update_values(handle.sheet_id, range_spec, [[value]])
        logger.info("Updated %s for habit %s", column_name, habit_id)


__all__ = ["HEADER_ROWS", "HabitRecordStore", "sheet_row_number"]
