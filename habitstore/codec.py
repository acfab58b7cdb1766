"""Fixed-width row encoding for habit records.

Every habit occupies one 49 cell row of the ``Habits`` worksheet.  Cells are
positional, so the column numbers below must stay in sync with
:data:`habitstore.settings.HABIT_HEADERS`.  Decoding is forgiving: numbers that
cannot be parsed become ``0``, JSON lists that cannot be parsed become ``[]``
and an unknown type string decodes as a good habit.  A row whose id cell is
blank is a tombstone and decodes to ``None``.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, List, Optional, Sequence

from habitstore.models import BadHabit, GoodHabit, Habit, HabitType, utcnow
from habitstore.settings import DEFAULT_CONFIG, TRACKING_DAYS, StoreConfig

logger = logging.getLogger(__name__)

ROW_WIDTH = 49

COL_ID = 0
COL_NAME = 1
COL_DESCRIPTION = 2
COL_TYPE = 3
COL_DIFFICULTY = 4
COL_GOAL = 5
COL_LIMIT = 6
COL_CURRENT_STREAK = 7
COL_FIRST_DAY = 8
COL_CREATED = COL_FIRST_DAY + TRACKING_DAYS
COL_COLOR = 40
COL_LONGEST_STREAK = 41
COL_CATEGORY = 42
COL_TAGS = 43
COL_ARCHIVED = 44
COL_QUANTIFIABLE = 45
COL_UNIT = 46
COL_START_TIME = 47
COL_SUBTASKS = 48

TRUE_TEXT = "TRUE"
FALSE_TEXT = "FALSE"
_TRUE_VALUES = {"true", "1", "yes", "y"}


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _text(value: Any, default: str = "") -> str:
    # Whitespace is data here; only a missing cell takes the default.
    if value is None or value == "":
        return default
    return str(value)


def _number(value: Any) -> float:
    if _is_blank(value) or isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return value
    try:
        parsed = float(str(value).strip())
    except ValueError:
        return 0
    return int(parsed) if parsed.is_integer() else parsed


def _integer(value: Any) -> int:
    return int(_number(value))


def _flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return _text(value).strip().lower() in _TRUE_VALUES


def _flag_text(value: bool) -> str:
    return TRUE_TEXT if value else FALSE_TEXT


def safe_json_list(value: Any) -> List[str]:
    """Parse a JSON array cell, returning ``[]`` for anything unusable."""

    if isinstance(value, list):
        return [str(item) for item in value]
    if not isinstance(value, str) or not value.strip():
        return []
    try:
        parsed = json.loads(value)
    except (TypeError, ValueError):
        return []
    if not isinstance(parsed, list):
        return []
    return [str(item) for item in parsed]


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    text = _text(value).strip()
    if not text:
        return utcnow()
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return utcnow()
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _habit_type(value: Any) -> HabitType:
    try:
        return HabitType(_text(value).strip().lower())
    except ValueError:
        logger.debug("Unknown habit type %r, decoding as good", value)
        return HabitType.GOOD


class RowCodec:
    """Encode habits to sheet rows and decode them back."""

    def __init__(self, config: StoreConfig = DEFAULT_CONFIG) -> None:
        if config.column_count != ROW_WIDTH:
            raise ValueError(f"Habit rows need {ROW_WIDTH} columns, header list has {config.column_count}")
        self.config = config

    @property
    def width(self) -> int:
        return ROW_WIDTH

    def encode(self, record: Habit) -> List[Any]:
        row: List[Any] = [""] * ROW_WIDTH
        row[COL_ID] = record.id
        row[COL_NAME] = record.name
        row[COL_DESCRIPTION] = record.description or ""
        row[COL_TYPE] = record.habit_type.value
        row[COL_DIFFICULTY] = record.difficulty_level
        row[COL_CURRENT_STREAK] = record.current_streak
        for offset, value in enumerate(record.daily_tracking[:TRACKING_DAYS]):
            row[COL_FIRST_DAY + offset] = "" if value is None else value
        row[COL_CREATED] = record.created_date.isoformat()
        row[COL_COLOR] = record.color_code
        row[COL_LONGEST_STREAK] = record.longest_streak
        row[COL_CATEGORY] = record.category
        row[COL_TAGS] = json.dumps(list(record.tags), ensure_ascii=False)
        row[COL_ARCHIVED] = _flag_text(record.is_archived)

        if isinstance(record, GoodHabit):
            row[COL_GOAL] = record.goal
            row[COL_QUANTIFIABLE] = _flag_text(record.is_quantifiable)
            row[COL_UNIT] = record.unit
            row[COL_START_TIME] = record.start_time
            row[COL_SUBTASKS] = json.dumps(list(record.subtasks), ensure_ascii=False)
        else:
            row[COL_LIMIT] = record.limit
        return row

    def decode(self, row: Optional[Sequence[Any]]) -> Optional[Habit]:
        if not row or _is_blank(row[0]):
            return None
        cells = list(row[:ROW_WIDTH]) + [""] * max(0, ROW_WIDTH - len(row))

        tracking: List[Optional[float]] = []
        for offset in range(TRACKING_DAYS):
            cell = cells[COL_FIRST_DAY + offset]
            tracking.append(None if _is_blank(cell) else _number(cell))

        common = dict(
            id=_text(cells[COL_ID]).strip(),
            name=_text(cells[COL_NAME]),
            description=_text(cells[COL_DESCRIPTION]),
            difficulty_level=_integer(cells[COL_DIFFICULTY]),
            category=_text(cells[COL_CATEGORY], self.config.default_category),
            color_code=_text(cells[COL_COLOR], self.config.default_color),
            tags=safe_json_list(cells[COL_TAGS]),
            is_archived=_flag(cells[COL_ARCHIVED]),
            created_date=_parse_timestamp(cells[COL_CREATED]),
            updated_date=utcnow(),
            current_streak=max(0, _integer(cells[COL_CURRENT_STREAK])),
            longest_streak=max(0, _integer(cells[COL_LONGEST_STREAK])),
            daily_tracking=tracking,
        )

        if _habit_type(cells[COL_TYPE]) is HabitType.BAD:
            return BadHabit(limit=_number(cells[COL_LIMIT]), **common)
        return GoodHabit(
            goal=_number(cells[COL_GOAL]),
            is_quantifiable=_flag(cells[COL_QUANTIFIABLE]),
            unit=_text(cells[COL_UNIT]),
            start_time=_text(cells[COL_START_TIME]),
            subtasks=safe_json_list(cells[COL_SUBTASKS]),
            **common,
        )


__all__ = [
    "COL_ARCHIVED",
    "COL_FIRST_DAY",
    "COL_ID",
    "ROW_WIDTH",
    "RowCodec",
    "safe_json_list",
]
