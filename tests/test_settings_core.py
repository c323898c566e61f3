from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from mental_math_trainer.difficulty import Difficulty, Mode
from mental_math_trainer.session import SessionConfig
from mental_math_trainer.settings import DB_PATH_ENV, SETTINGS_PATH_ENV, Settings, SettingsError


def _write(path: Path, payload: object) -> Path:
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def test_missing_file_gives_defaults(tmp_path: Path) -> None:
    s = Settings.load(tmp_path / "nope.json")
    assert s.default_mode is Mode.ADD
    assert s.default_difficulty is Difficulty.EASY
    assert s.default_duration_s == 30
    assert s.feedback_delay_s == 0.05
    assert s.player == ""


def test_load_reads_values(tmp_path: Path) -> None:
    path = _write(
        tmp_path / "s.json",
        {
            "default_mode": "mixed",
            "default_difficulty": "hard",
            "default_duration_s": 60,
            "feedback_delay_s": 0,
            "db_path": str(tmp_path / "db.sqlite3"),
            "player": " ana ",
            "log_level": "debug",
        },
    )
    s = Settings.load(path)

    assert s.session_config() == SessionConfig(mode=Mode.MIXED, difficulty=Difficulty.HARD, duration=60)
    assert s.feedback_delay_s == 0.0
    assert s.db_path == tmp_path / "db.sqlite3"
    assert s.player == "ana"
    assert s.log_level == "DEBUG"


@pytest.mark.parametrize(
    "payload",
    [
        {"default_mode": "divide"},
        {"default_difficulty": "brutal"},
        {"default_duration_s": 45},
        {"feedback_delay_s": -1},
        {"feedback_delay_s": "fast"},
        {"log_level": "LOUD"},
    ],
)
def test_invalid_values_raise_settings_error(tmp_path: Path, payload: dict) -> None:
    with pytest.raises(SettingsError):
        Settings.load(_write(tmp_path / "s.json", payload))


def test_malformed_file_raises_settings_error(tmp_path: Path) -> None:
    bad = tmp_path / "s.json"
    bad.write_text("{not json", encoding="utf-8")
    with pytest.raises(SettingsError):
        Settings.load(bad)
    with pytest.raises(SettingsError):
        Settings.load(_write(tmp_path / "list.json", [1, 2]))


def test_unknown_keys_are_logged_and_ignored(tmp_path: Path, caplog) -> None:
    s = Settings.load(_write(tmp_path / "s.json", {"colour": "blue"}))
    assert s.default_mode is Mode.ADD
    assert any("colour" in r.getMessage() and r.levelno == logging.WARNING for r in caplog.records)


def test_save_then_load(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "s.json"
    original = Settings(
        default_mode=Mode.SUBTRACT,
        default_duration_s=15,
        db_path=tmp_path / "h.sqlite3",
        player="ben",
    )
    original.save(path)

    assert Settings.load(path) == original
    assert not path.with_suffix(".json.tmp").exists()


def test_environment_overrides_paths(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(SETTINGS_PATH_ENV, str(tmp_path / "custom.json"))
    monkeypatch.setenv(DB_PATH_ENV, str(tmp_path / "custom.sqlite3"))

    assert Settings.default_path() == tmp_path / "custom.json"
    assert Settings().db_path == tmp_path / "custom.sqlite3"
