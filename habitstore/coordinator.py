"""Optimistic habit operations: update the cache first, persist, roll back on failure.

Every mutating call goes through :meth:`HabitCoordinator._mutate`:

1. snapshot the affected habit in the cache,
2. apply the change to the cache,
3. make sure the Drive folder and spreadsheet exist,
4. write or tombstone the row,
5. return ``OperationResult(success=True, data=...)``.

If anything in steps 2-4 fails the snapshot is restored before the error is
classified, so the cache and the spreadsheet are either both updated or both
left untouched.  Interrupts such as ``KeyboardInterrupt`` restore the snapshot
as well and are then re-raised.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Callable, Dict, List, Optional

from habitstore.auth import AuthCollaborator, StaticTokenAuth
from habitstore.cache import HabitCache
from habitstore.drive_api import DriveClient
from habitstore.errors import (
    ErrorCategory,
    HabitNotFoundError,
    HabitStoreError,
    HabitValidationError,
    classify_error,
    describe_error,
)
from habitstore.google_credentials import RequestExecutor, build_credentials
from habitstore.models import (
    Habit,
    HabitForm,
    HabitType,
    OperationResult,
    StoreHandle,
    SyncChanges,
    SyncResult,
    utcnow,
)
from habitstore.provisioner import StoreProvisioner
from habitstore.record_store import HabitRecordStore
from habitstore.settings import DEFAULT_CONFIG, TRACKING_DAYS, StoreConfig
from habitstore.sheets_client import SheetsClient
from habitstore.streaks import current_day_of_month, with_recomputed_streaks

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 100
MAX_TAGS = 10
MAX_SUBTASKS = 5
MIN_DIFFICULTY = 1
MAX_DIFFICULTY = 5

Persist = Callable[[StoreHandle, Optional[Habit]], None]


def validate_form(form: HabitForm) -> None:
    """Raise :class:`HabitValidationError` when ``form`` cannot become a habit."""

    name = (form.name or "").strip()
    if not name:
        raise HabitValidationError("Habit name is required")
    if len(name) > MAX_NAME_LENGTH:
        raise HabitValidationError(f"Habit name must be at most {MAX_NAME_LENGTH} characters")
    if not MIN_DIFFICULTY <= form.difficulty_level <= MAX_DIFFICULTY:
        raise HabitValidationError(f"Difficulty must be between {MIN_DIFFICULTY} and {MAX_DIFFICULTY}")
    if form.goal < 0:
        raise HabitValidationError("Goal must not be negative")
    if form.limit < 0:
        raise HabitValidationError("Limit must not be negative")
    if len(form.tags) > MAX_TAGS:
        raise HabitValidationError(f"A habit can have at most {MAX_TAGS} tags")
    if len(form.subtasks) > MAX_SUBTASKS:
        raise HabitValidationError(f"A habit can have at most {MAX_SUBTASKS} subtasks")


def _same_content(left: Habit, right: Habit) -> bool:
    return replace(left, updated_date=right.updated_date) == right


class HabitCoordinator:
    """Keep an in-memory habit list in step with the backing spreadsheet."""

    def __init__(
        self,
        store: HabitRecordStore,
        provisioner: StoreProvisioner,
        *,
        auth: Optional[AuthCollaborator] = None,
        cache: Optional[HabitCache] = None,
        today: Callable[[], int] = current_day_of_month,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._provisioner = provisioner
        self._auth = auth if auth is not None else StaticTokenAuth()
        self._cache = cache if cache is not None else HabitCache()
        self._today = today
        self._clock = clock

    @classmethod
    def from_token(
        cls,
        access_token: str,
        config: StoreConfig = DEFAULT_CONFIG,
        *,
        auth: Optional[AuthCollaborator] = None,
    ) -> "HabitCoordinator":
        """Build a coordinator talking to the live Google APIs with ``access_token``."""

        credentials = build_credentials(access_token) if access_token else None
        executor = RequestExecutor(credentials)
        drive = DriveClient(executor=executor)
        sheets = SheetsClient(executor=executor)
        return cls(
            HabitRecordStore(sheets, config),
            StoreProvisioner(drive, sheets, config),
            auth=auth,
        )

    # ------------------------------------------------------------------
    # Cache views
    # ------------------------------------------------------------------
    @property
    def habits(self) -> List[Habit]:
        return self._cache.all()

    @property
    def active_habits(self) -> List[Habit]:
        return [habit for habit in self._cache.all() if not habit.is_archived]

    @property
    def archived_habits(self) -> List[Habit]:
        return [habit for habit in self._cache.all() if habit.is_archived]

    def get_habit(self, habit_id: str) -> Optional[Habit]:
        return self._cache.get(habit_id)

    def habits_by_category(self, category: str) -> List[Habit]:
        return [habit for habit in self._cache.all() if habit.category == category]

    def habits_by_type(self, habit_type: HabitType) -> List[Habit]:
        return [habit for habit in self._cache.all() if habit.habit_type is habit_type]

    def update_token(self, access_token: str) -> None:
        self._store.update_token(access_token)
        self._provisioner.update_token(access_token)

    # ------------------------------------------------------------------
    # Error handling
    # ------------------------------------------------------------------
    def _recover(self, error: BaseException) -> tuple[bool, List[str]]:
        try:
            diagnostic = self._auth.diagnose(error)
            if diagnostic.is_healthy or not diagnostic.critical_issues():
                return False, list(diagnostic.recommendations)
            recovered = bool(self._auth.attempt_auto_recovery(diagnostic))
        except Exception:
            logger.exception("Authentication diagnosis failed")
            return False, []
        return recovered, list(diagnostic.recommendations)

    def _failure(self, label: str, error: BaseException) -> OperationResult:
        category = classify_error(error)
        message = describe_error(error, category)
        if category in (ErrorCategory.VALIDATION, ErrorCategory.NOT_FOUND):
            logger.warning("%s rejected: %s", label, message)
        else:
            logger.error("%s failed: %s", label, error)

        needs_auth = False
        retry = False
        if category is ErrorCategory.AUTHENTICATION:
            recovered, recommendations = self._recover(error)
            if recovered:
                logger.info("%s: authentication recovered, the operation can be retried", label)
                retry = True
            else:
                needs_auth = True
                if recommendations:
                    message = f"{message} ({'; '.join(recommendations)})"
        return OperationResult(
            success=False,
            error=message,
            needs_auth=needs_auth,
            category=category.value,
            retry=retry,
        )

    def _mutate(
        self,
        label: str,
        habit_id: str,
        change: Callable[[], Optional[Habit]],
        persist: Persist,
    ) -> OperationResult:
        snapshot = self._cache.snapshot(habit_id)
        try:
            record = change()
            handle = self._provisioner.ensure_store_handle()
            persist(handle, record)
        except BaseException as exc:
            self._cache.restore(snapshot)
            if not isinstance(exc, Exception):
                raise
            return self._failure(label, exc)
        logger.info("%s succeeded for %s", label, habit_id)
        return OperationResult.ok(record)

    def _write_existing(self, handle: StoreHandle, record: Optional[Habit]) -> None:
        if record is None:
            raise HabitStoreError("No habit to write")
        row_index = self._store.find_row(handle, record.id)
        if row_index is None:
            raise HabitNotFoundError(record.id)
        self._store.write(handle, record, row_index)

    def _cached_or_failure(self, label: str, habit_id: str) -> tuple[Optional[Habit], Optional[OperationResult]]:
        current = self._cache.get(habit_id)
        if current is None:
            return None, self._failure(label, HabitNotFoundError(habit_id))
        return current, None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def create_habit(self, form: HabitForm) -> OperationResult:
        label = "Create Habit"
        try:
            validate_form(form)
        except HabitValidationError as exc:
            return self._failure(label, exc)
        record = form.build(now=self._clock())

        def change() -> Habit:
            self._cache.put(record)
            return record

        return self._mutate(label, record.id, change, lambda handle, rec: self._store.write(handle, rec))

    def update_habit(self, record: Habit) -> OperationResult:
        """Replace a habit's editable fields.

        Tracking values, streak counters and the creation date are kept from
        the cached copy; they only change through :meth:`update_daily_habit`.
        """

        label = "Update Habit"
        current, failure = self._cached_or_failure(label, record.id)
        if failure is not None:
            return failure

        def change() -> Habit:
            updated = replace(
                record,
                daily_tracking=list(current.daily_tracking),
                current_streak=current.current_streak,
                longest_streak=current.longest_streak,
                created_date=current.created_date,
                updated_date=self._clock(),
            )
            self._cache.put(updated)
            return updated

        return self._mutate(label, record.id, change, self._write_existing)

    def archive_habit(self, habit_id: str, archive: bool = True) -> OperationResult:
        label = "Archive Habit" if archive else "Unarchive Habit"
        current, failure = self._cached_or_failure(label, habit_id)
        if failure is not None:
            return failure

        def change() -> Habit:
            updated = replace(current, is_archived=archive, updated_date=self._clock())
            self._cache.put(updated)
            return updated

        return self._mutate(label, habit_id, change, self._write_existing)

    def delete_habit(self, habit_id: str) -> OperationResult:
        label = "Delete Habit"
        _, failure = self._cached_or_failure(label, habit_id)
        if failure is not None:
            return failure

        def change() -> None:
            self._cache.remove(habit_id)
            return None

        return self._mutate(label, habit_id, change, lambda handle, _: self._store.delete(handle, habit_id))

    def update_daily_habit(self, habit_id: str, day: int, value: Optional[float]) -> OperationResult:
        """Log ``value`` for ``day`` (1-31), recompute streaks and persist the row.

        ``value=None`` clears the day.
        """

        label = "Update Daily Habit"
        if isinstance(day, bool) or not isinstance(day, int) or not 1 <= day <= TRACKING_DAYS:
            return self._failure(label, HabitValidationError(f"Day must be between 1 and {TRACKING_DAYS}"))
        current, failure = self._cached_or_failure(label, habit_id)
        if failure is not None:
            return failure

        def change() -> Habit:
            tracking = list(current.daily_tracking)
            tracking[day - 1] = value
            updated = replace(current, daily_tracking=tracking, updated_date=self._clock())
            updated = with_recomputed_streaks(updated, self._today())
            self._cache.put(updated)
            return updated

        return self._mutate(label, habit_id, change, self._write_existing)

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------
    def load_habits(self) -> OperationResult:
        result = self.sync_habits()
        if not result.success:
            return OperationResult(
                success=False,
                error=result.error,
                needs_auth=result.needs_auth,
                category=result.category,
                retry=result.retry,
            )
        return OperationResult.ok(self._cache.all())

    def sync_habits(self) -> SyncResult:
        """Replace the cache with the spreadsheet contents and report the differences."""

        previous: Dict[str, Habit] = {habit.id: habit for habit in self._cache.all()}
        try:
            handle = self._provisioner.ensure_store_handle()
            remote = self._store.read_all(handle)
        except Exception as exc:
            failure = self._failure("Sync Habits", exc)
            return SyncResult(
                success=False,
                habits_count=len(previous),
                last_sync=self._clock(),
                error=failure.error,
                needs_auth=failure.needs_auth,
                category=failure.category,
                retry=failure.retry,
            )

        remote_ids = {habit.id for habit in remote}
        changes = SyncChanges(
            added=sum(1 for habit in remote if habit.id not in previous),
            updated=sum(
                1
                for habit in remote
                if habit.id in previous and not _same_content(previous[habit.id], habit)
            ),
            deleted=sum(1 for habit_id in previous if habit_id not in remote_ids),
        )
        self._cache.replace_all(remote)
        logger.info(
            "Sync finished: %d habit(s), %d added, %d updated, %d deleted",
            len(remote),
            changes.added,
            changes.updated,
            changes.deleted,
        )
        return SyncResult(
            success=True,
            habits_count=len(remote),
            last_sync=self._clock(),
            changes=changes,
        )


__all__ = ["HabitCoordinator", "validate_form"]
