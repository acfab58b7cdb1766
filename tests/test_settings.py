from __future__ import annotations

import json
import logging
from pathlib import Path

from habitstore import logging_config, settings
from habitstore.settings import DEFAULT_CONFIG, HABIT_HEADERS, StoreConfig, load_config, save_config


def test_header_row_has_forty_nine_fixed_columns() -> None:
    assert len(HABIT_HEADERS) == 49
    assert DEFAULT_CONFIG.column_index("ID") == 0
    assert DEFAULT_CONFIG.column_index("Day 1") == 8
    assert DEFAULT_CONFIG.column_index("Day 31") == 38
    assert DEFAULT_CONFIG.column_index("Created Date") == 39
    assert DEFAULT_CONFIG.column_index("Subtasks") == 48
    assert DEFAULT_CONFIG.column_index("Mood") is None


def test_missing_settings_file_gives_defaults(tmp_path: Path) -> None:
    assert load_config(str(tmp_path / "missing.json")) == DEFAULT_CONFIG


def test_partial_settings_override_only_named_values(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"habit_store": {"folder_name": "Team Habits", "sheet_name": " "}}), encoding="utf-8")

    config = load_config(str(path))

    assert config.folder_name == "Team Habits"
    assert config.sheet_name == DEFAULT_CONFIG.sheet_name
    assert config.headers == HABIT_HEADERS


def test_malformed_settings_are_ignored(tmp_path: Path, caplog) -> None:
    path = tmp_path / "settings.json"
    path.write_text("{not json", encoding="utf-8")

    with caplog.at_level(logging.WARNING):
        config = load_config(str(path))

    assert config == DEFAULT_CONFIG
    assert "could not be read" in caplog.text


def test_invalid_row_count_is_ignored(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"row_count": "many", "tab_title": "Tracker"}), encoding="utf-8")

    config = load_config(str(path))

    assert config.row_count == DEFAULT_CONFIG.row_count
    assert config.tab_title == "Tracker"


def test_save_then_load(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "settings.json"
    config = StoreConfig(folder_name="Elsewhere", row_count=250)

    save_config(config, str(path))

    assert load_config(str(path)) == config


def test_access_token_comes_from_the_environment(monkeypatch) -> None:
    monkeypatch.setenv("HABITSTORE_ACCESS_TOKEN", "env-token")

    assert settings.access_token_from_env() == "env-token"


def test_level_from_name() -> None:
    assert logging_config.level_from_name("debug") == logging.DEBUG
    assert logging_config.level_from_name("nonsense", logging.WARNING) == logging.WARNING
    assert logging_config.level_from_name(None) == logging.INFO


def test_configure_logging_adds_one_file_handler(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(logging_config, "_LOG_PATH", None)
    target = tmp_path / "habitstore.log"
    root = logging.getLogger()
    try:
        first = logging_config.configure_logging(log_path=target)
        second = logging_config.configure_logging()

        handlers = [
            handler
            for handler in root.handlers
            if isinstance(handler, logging.FileHandler) and handler.baseFilename == str(target)
        ]
        assert len(handlers) == 1
        assert first == second == target
    finally:
        for handler in list(root.handlers):
            if isinstance(handler, logging.FileHandler) and handler.baseFilename == str(target):
                root.removeHandler(handler)
                handler.close()
