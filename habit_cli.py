"""Command line helper for the Google Sheets habit store."""

from __future__ import annotations

import argparse
import logging
import os
import sys

from habitstore import logging_config, settings
from habitstore.batch import BatchExecutor
from habitstore.coordinator import HabitCoordinator
from habitstore.errors import HabitStoreError
from habitstore.models import BatchResult, GoodHabit, HabitForm, HabitType, OperationResult


def build_coordinator(args: argparse.Namespace) -> HabitCoordinator:
    token = args.token or settings.access_token_from_env()
    config = settings.load_config(args.config)
    return HabitCoordinator.from_token(token, config)


def _open(args: argparse.Namespace) -> HabitCoordinator | None:
    try:
        coordinator = build_coordinator(args)
    except HabitStoreError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return None

    result = coordinator.sync_habits()
    if not result.success:
        print(f"Error: {result.error}", file=sys.stderr)
        if result.needs_auth:
            print("Provide a fresh token with --token or HABITSTORE_ACCESS_TOKEN.", file=sys.stderr)
        return None
    return coordinator


def _report(result: OperationResult) -> int:
    if result.success:
        return 0
    print(f"Error: {result.error}", file=sys.stderr)
    if result.needs_auth:
        print("Provide a fresh token with --token or HABITSTORE_ACCESS_TOKEN.", file=sys.stderr)
    return 1


def _report_batch(action: str, result: BatchResult) -> int:
    print(f"{action}: {result.successful} succeeded, {result.failed} failed")
    for entry in result.errors:
        print(f"  {entry}", file=sys.stderr)
    return 0 if result.failed == 0 else 1


def command_list(args: argparse.Namespace) -> int:
    coordinator = _open(args)
    if coordinator is None:
        return 1

    habits = coordinator.archived_habits if args.archived else coordinator.active_habits
    if not habits:
        print("No habits found.")
        return 0
    for habit in habits:
        if isinstance(habit, GoodHabit):
            target = f"goal {habit.goal:g}{' ' + habit.unit if habit.unit else ''}"
        else:
            target = f"limit {habit.limit:g}"
        print(
            f"{habit.id}  {habit.name}  [{habit.habit_type.value}, {target}]  "
            f"streak {habit.current_streak} (best {habit.longest_streak})"
        )
    return 0


def command_add(args: argparse.Namespace) -> int:
    coordinator = _open(args)
    if coordinator is None:
        return 1

    form = HabitForm(
        name=args.name,
        habit_type=HabitType.BAD if args.bad else HabitType.GOOD,
        description=args.description,
        goal=args.goal,
        limit=args.limit,
        category=args.category,
        tags=list(args.tag or []),
    )
    result = coordinator.create_habit(form)
    if result.success:
        print(f"Created habit {result.data.id}")
    return _report(result)


def command_track(args: argparse.Namespace) -> int:
    coordinator = _open(args)
    if coordinator is None:
        return 1

    value = None if args.clear else args.value
    if value is None and not args.clear:
        print("Error: a value or --clear is required", file=sys.stderr)
        return 1
    result = coordinator.update_daily_habit(args.habit_id, args.day, value)
    if result.success:
        habit = result.data
        print(f"Day {args.day} updated; current streak {habit.current_streak} (best {habit.longest_streak})")
    return _report(result)


def command_archive(args: argparse.Namespace) -> int:
    coordinator = _open(args)
    if coordinator is None:
        return 1

    result = BatchExecutor(coordinator).batch_archive(args.habit_ids, archive=not args.restore)
    return _report_batch("Restored" if args.restore else "Archived", result)


def command_delete(args: argparse.Namespace) -> int:
    coordinator = _open(args)
    if coordinator is None:
        return 1

    result = BatchExecutor(coordinator).batch_delete(args.habit_ids)
    return _report_batch("Deleted", result)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Habit tracker backed by Google Sheets")
    parser.add_argument("--token", default="", help="OAuth access token (defaults to HABITSTORE_ACCESS_TOKEN)")
    parser.add_argument("--config", default=settings.DEFAULT_SETTINGS_PATH, help="Path to the settings JSON file")
    parser.add_argument(
        "--log-level",
        default=os.getenv("HABITSTORE_LOG_LEVEL", "INFO"),
        help="Log level written to habitstore.log",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    list_parser = subparsers.add_parser("list", help="List habits")
    list_parser.add_argument("--archived", action="store_true", help="Show archived habits instead of active ones")
    list_parser.set_defaults(func=command_list)

    add_parser = subparsers.add_parser("add", help="Create a habit")
    add_parser.add_argument("name")
    add_parser.add_argument("--bad", action="store_true", help="Create a habit to break instead of one to build")
    add_parser.add_argument("--description", default="")
    add_parser.add_argument("--goal", type=float, default=1, help="Daily goal for a good habit")
    add_parser.add_argument("--limit", type=float, default=1, help="Daily limit for a bad habit")
    add_parser.add_argument("--category", default=settings.DEFAULT_CATEGORY)
    add_parser.add_argument("--tag", action="append", help="Tag to attach; repeat for several")
    add_parser.set_defaults(func=command_add)

    track_parser = subparsers.add_parser("track", help="Log a value for one day of the month")
    track_parser.add_argument("habit_id")
    track_parser.add_argument("day", type=int)
    track_parser.add_argument("value", type=float, nargs="?")
    track_parser.add_argument("--clear", action="store_true", help="Clear the day instead of logging a value")
    track_parser.set_defaults(func=command_track)

    archive_parser = subparsers.add_parser("archive", help="Archive one or more habits")
    archive_parser.add_argument("habit_ids", nargs="+")
    archive_parser.add_argument("--restore", action="store_true", help="Unarchive instead")
    archive_parser.set_defaults(func=command_archive)

    delete_parser = subparsers.add_parser("delete", help="Delete one or more habits")
    delete_parser.add_argument("habit_ids", nargs="+")
    delete_parser.set_defaults(func=command_delete)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging_config.configure_logging(logging_config.level_from_name(args.log_level, logging.INFO))
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
