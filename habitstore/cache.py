"""Thread-safe in-memory list of habits used for optimistic updates."""
from __future__ import annotations

import copy
import threading
from dataclasses import dataclass
from typing import Iterable, List, Optional

from habitstore.models import Habit


@dataclass(frozen=True)
class Snapshot:
    """Pre-mutation state of one habit: its list position and a deep copy.

    ``record`` is ``None`` when the habit was not cached, in which case
    restoring removes whatever the mutation inserted.
    """

    habit_id: str
    position: Optional[int]
    record: Optional[Habit]


class HabitCache:
    def __init__(self, habits: Iterable[Habit] = ()) -> None:
        self._habits: List[Habit] = [copy.deepcopy(habit) for habit in habits]
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._habits)

    def _position(self, habit_id: str) -> Optional[int]:
        for position, habit in enumerate(self._habits):
            if habit.id == habit_id:
                return position
        return None

    def all(self) -> List[Habit]:
        """Return deep copies so callers cannot mutate cached records."""

        with self._lock:
            return copy.deepcopy(self._habits)

    def get(self, habit_id: str) -> Optional[Habit]:
        with self._lock:
            position = self._position(habit_id)
            return None if position is None else copy.deepcopy(self._habits[position])

    def replace_all(self, habits: Iterable[Habit]) -> None:
        fresh = [copy.deepcopy(habit) for habit in habits]
        with self._lock:
            self._habits = fresh

    def snapshot(self, habit_id: str) -> Snapshot:
        with self._lock:
            position = self._position(habit_id)
            record = None if position is None else copy.deepcopy(self._habits[position])
            return Snapshot(habit_id=habit_id, position=position, record=record)

    def put(self, habit: Habit) -> None:
        """Replace the cached habit with the same id, or append a new one."""

        stored = copy.deepcopy(habit)
        with self._lock:
            position = self._position(habit.id)
            if position is None:
                self._habits.append(stored)
            else:
                self._habits[position] = stored

    def remove(self, habit_id: str) -> None:
        with self._lock:
            position = self._position(habit_id)
            if position is not None:
                del self._habits[position]

    def restore(self, snapshot: Snapshot) -> None:
        """Put the cache entry for ``snapshot.habit_id`` back as it was."""

        with self._lock:
            position = self._position(snapshot.habit_id)
            if position is not None:
                del self._habits[position]
            if snapshot.record is None:
                return
            target = snapshot.position if snapshot.position is not None else len(self._habits)
            self._habits.insert(min(target, len(self._habits)), copy.deepcopy(snapshot.record))


__all__ = ["HabitCache", "Snapshot"]
