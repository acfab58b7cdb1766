"""Configuration helpers for the habit store."""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Optional, Tuple

from habitstore import app_paths


logger = logging.getLogger(__name__)


DEFAULT_SETTINGS_PATH = str(app_paths.APP_DIR / "settings.json")

DEFAULT_FOLDER_NAME = os.getenv("HABITSTORE_FOLDER_NAME", "HabitTracker")
DEFAULT_SHEET_NAME = os.getenv("HABITSTORE_SHEET_NAME", "Daily Habits Tracker")
DEFAULT_TAB_TITLE = "Habits"
DEFAULT_ROW_COUNT = 1000
DEFAULT_COLOR = "#3b82f6"
DEFAULT_CATEGORY = "other"

TRACKING_DAYS = 31

HABIT_HEADERS: Tuple[str, ...] = (
    "ID",
    "Name",
    "Description",
    "Type",
    "Difficulty",
    "Goal",
    "Limit",
    "Current Streak",
    *(f"Day {day}" for day in range(1, TRACKING_DAYS + 1)),
    "Created Date",
    "Color Code",
    "Longest Streak",
    "Category",
    "Tags",
    "Is Archived",
    "Is Quantifiable",
    "Unit",
    "Start Time",
    "Subtasks",
)

# Header row styling: blue background with bold white text.
HEADER_BACKGROUND = {"red": 0.2, "green": 0.6, "blue": 0.9}
HEADER_FOREGROUND = {"red": 1.0, "green": 1.0, "blue": 1.0}


def access_token_from_env() -> str:
    return os.getenv("HABITSTORE_ACCESS_TOKEN", "")


@dataclass(frozen=True)
class StoreConfig:
    """Immutable schema and naming constants shared by codec, provisioner and store."""

    folder_name: str = DEFAULT_FOLDER_NAME
    sheet_name: str = DEFAULT_SHEET_NAME
    tab_title: str = DEFAULT_TAB_TITLE
    headers: Tuple[str, ...] = field(default=HABIT_HEADERS)
    row_count: int = DEFAULT_ROW_COUNT
    default_color: str = DEFAULT_COLOR
    default_category: str = DEFAULT_CATEGORY

    @property
    def column_count(self) -> int:
        return len(self.headers)

    def column_index(self, column_name: str) -> Optional[int]:
        """Return the 0-based position of ``column_name`` or ``None``."""

        try:
            return self.headers.index(column_name)
        except ValueError:
            return None

    def to_json(self) -> Dict[str, object]:
        return {
            "folder_name": self.folder_name,
            "sheet_name": self.sheet_name,
            "tab_title": self.tab_title,
            "row_count": self.row_count,
            "default_color": self.default_color,
            "default_category": self.default_category,
        }


DEFAULT_CONFIG = StoreConfig()

_STRING_KEYS = ("folder_name", "sheet_name", "tab_title", "default_color", "default_category")


def _read_settings_file(path: str) -> Mapping[str, Any]:
    if not os.path.exists(path):
        return {}
    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = json.load(handle)
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Settings file %s could not be read: %s", path, exc)
        return {}
    if not isinstance(data, Mapping):
        logger.warning("Settings file %s does not contain a JSON object", path)
        return {}
    section = data.get("habit_store", data)
    return section if isinstance(section, Mapping) else {}


def load_config(path: str = DEFAULT_SETTINGS_PATH) -> StoreConfig:
    """Return a :class:`StoreConfig` merged with values from ``path``.

    Unknown keys are ignored and blank values keep the defaults, so a partial
    settings file only overrides what it names.
    """

    payload = _read_settings_file(path)
    overrides: Dict[str, Any] = {}
    for key in _STRING_KEYS:
        value = payload.get(key)
        if isinstance(value, str) and value.strip():
            overrides[key] = value.strip()
    row_count = payload.get("row_count")
    if row_count not in (None, ""):
        try:
            overrides["row_count"] = max(1, int(row_count))
        except (TypeError, ValueError):
            logger.warning("Ignoring invalid row_count %r in %s", row_count, path)
    return replace(DEFAULT_CONFIG, **overrides)


def save_config(config: StoreConfig, path: str = DEFAULT_SETTINGS_PATH) -> None:
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(path, "w", encoding="utf-8") as handle:
        json.dump({"habit_store": config.to_json()}, handle, indent=2)


__all__ = [
    "DEFAULT_CONFIG",
    "HABIT_HEADERS",
    "StoreConfig",
    "TRACKING_DAYS",
    "access_token_from_env",
    "load_config",
    "save_config",
]
