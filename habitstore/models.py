"""Data model for habit records and operation results."""
from __future__ import annotations

import random
import string
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import ClassVar, Generic, List, Optional, TypeVar, Union

from habitstore.settings import DEFAULT_CATEGORY, DEFAULT_COLOR, TRACKING_DAYS


class HabitType(Enum):
    GOOD = "good"
    BAD = "bad"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def empty_tracking() -> List[Optional[float]]:
    return [None] * TRACKING_DAYS


_ID_ALPHABET = string.digits + string.ascii_lowercase


def generate_habit_id() -> str:
    """Return a new client-side id such as ``habit_1718000000000_k3j9x0a2b``."""

    suffix = "".join(random.choice(_ID_ALPHABET) for _ in range(9))
    return f"habit_{int(time.time() * 1000)}_{suffix}"


@dataclass
class _HabitBase:
    id: str
    name: str
    description: str = ""
    difficulty_level: int = 3
    category: str = DEFAULT_CATEGORY
    color_code: str = DEFAULT_COLOR
    tags: List[str] = field(default_factory=list)
    is_archived: bool = False
    created_date: datetime = field(default_factory=utcnow)
    updated_date: datetime = field(default_factory=utcnow)
    current_streak: int = 0
    longest_streak: int = 0
    daily_tracking: List[Optional[float]] = field(default_factory=empty_tracking)

    def __post_init__(self) -> None:
        tracking = list(self.daily_tracking)[:TRACKING_DAYS]
        tracking.extend([None] * (TRACKING_DAYS - len(tracking)))
        self.daily_tracking = tracking
        if not self.category:
            self.category = DEFAULT_CATEGORY
        if not self.color_code:
            self.color_code = DEFAULT_COLOR


@dataclass
class GoodHabit(_HabitBase):
    """A habit to build: a day counts when the logged value reaches ``goal``."""

    habit_type: ClassVar[HabitType] = HabitType.GOOD

    goal: float = 1
    is_quantifiable: bool = False
    unit: str = ""
    start_time: str = ""
    subtasks: List[str] = field(default_factory=list)


@dataclass
class BadHabit(_HabitBase):
    """A habit to break: a day counts when the logged value stays within ``limit``."""

    habit_type: ClassVar[HabitType] = HabitType.BAD

    limit: float = 1


Habit = Union[GoodHabit, BadHabit]


@dataclass
class HabitForm:
    """Caller supplied values for a new habit."""

    name: str
    habit_type: HabitType = HabitType.GOOD
    description: str = ""
    difficulty_level: int = 3
    goal: float = 1
    limit: float = 1
    category: str = DEFAULT_CATEGORY
    color_code: str = DEFAULT_COLOR
    tags: List[str] = field(default_factory=list)
    is_quantifiable: bool = False
    unit: str = ""
    start_time: str = ""
    subtasks: List[str] = field(default_factory=list)

    def build(self, habit_id: Optional[str] = None, *, now: Optional[datetime] = None) -> Habit:
        created = now or utcnow()
        common = dict(
            id=habit_id or generate_habit_id(),
            name=self.name.strip(),
            description=self.description,
            difficulty_level=self.difficulty_level,
            category=self.category or DEFAULT_CATEGORY,
            color_code=self.color_code or DEFAULT_COLOR,
            tags=list(self.tags),
            created_date=created,
            updated_date=created,
        )
        if self.habit_type is HabitType.BAD:
            return BadHabit(limit=self.limit, **common)
        return GoodHabit(
            goal=self.goal,
            is_quantifiable=self.is_quantifiable,
            unit=self.unit,
            start_time=self.start_time,
            subtasks=list(self.subtasks),
            **common,
        )


@dataclass(frozen=True)
class StoreHandle:
    """Identifiers of the Drive folder and spreadsheet backing the store."""

    folder_id: str
    sheet_id: str


T = TypeVar("T")


@dataclass
class OperationResult(Generic[T]):
    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    needs_auth: bool = False
    category: Optional[str] = None
    retry: bool = False

    @classmethod
    def ok(cls, data: Optional[T] = None) -> "OperationResult[T]":
        return cls(success=True, data=data)


@dataclass
class BatchResult:
    successful: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)
    needs_auth: bool = False

    def failed_ids(self) -> List[str]:
        """Return the ids of the failed items, recovered from ``errors``."""

        return [entry.split(": ", 1)[0] for entry in self.errors]


@dataclass
class SyncChanges:
    added: int = 0
    updated: int = 0
    deleted: int = 0


@dataclass
class SyncResult:
    success: bool
    habits_count: int
    last_sync: datetime
    changes: SyncChanges = field(default_factory=SyncChanges)
    error: Optional[str] = None
    needs_auth: bool = False
    category: Optional[str] = None
    retry: bool = False


__all__ = [
    "BadHabit",
    "BatchResult",
    "GoodHabit",
    "Habit",
    "HabitForm",
    "HabitType",
    "OperationResult",
    "StoreHandle",
    "SyncChanges",
    "SyncResult",
    "empty_tracking",
    "generate_habit_id",
    "utcnow",
]
