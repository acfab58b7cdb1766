"""Run archive/delete over many habits at once and aggregate the outcome."""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Sequence

from habitstore.coordinator import HabitCoordinator
from habitstore.errors import describe_error
from habitstore.models import BatchResult, OperationResult

logger = logging.getLogger(__name__)


class BatchExecutor:
    """Fan a single-habit operation out over a list of ids.

    Every id runs concurrently through the coordinator, so each one gets its
    own optimistic update and rollback.  Failures never stop the other ids;
    they are collected into ``BatchResult.errors`` as ``"<id>: <message>"`` in
    input order.
    """

    def __init__(self, coordinator: HabitCoordinator) -> None:
        self.coordinator = coordinator

    def _run(self, label: str, habit_ids: Sequence[str], operation: Callable[[str], OperationResult]) -> BatchResult:
        ids: List[str] = list(habit_ids)
        result = BatchResult()
        if not ids:
            return result

        with ThreadPoolExecutor(max_workers=len(ids), thread_name_prefix="habit-batch") as pool:
            futures = [pool.submit(operation, habit_id) for habit_id in ids]

        for habit_id, future in zip(ids, futures):
            try:
                outcome = future.result()
            except Exception as exc:
                logger.exception("%s crashed for %s", label, habit_id)
                result.failed += 1
                result.errors.append(f"{habit_id}: {describe_error(exc)}")
                continue
            if outcome.success:
                result.successful += 1
                continue
            result.failed += 1
            result.errors.append(f"{habit_id}: {outcome.error}")
            if outcome.needs_auth:
                result.needs_auth = True

        logger.info(
            "%s finished: %d succeeded, %d failed",
            label,
            result.successful,
            result.failed,
        )
        return result

    def batch_archive(self, habit_ids: Sequence[str], archive: bool = True) -> BatchResult:
        label = "Batch archive" if archive else "Batch unarchive"
        return self._run(label, habit_ids, lambda habit_id: self.coordinator.archive_habit(habit_id, archive))

    def batch_delete(self, habit_ids: Sequence[str]) -> BatchResult:
        return self._run("Batch delete", habit_ids, self.coordinator.delete_habit)


__all__ = ["BatchExecutor"]
