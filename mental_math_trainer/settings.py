from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, replace
from pathlib import Path
from typing import Any

from .difficulty import Difficulty, Mode
from .session import DEFAULT_FEEDBACK_DELAY_S, DURATION_CHOICES_S, SessionConfig

logger = logging.getLogger(__name__)

SETTINGS_PATH_ENV = "MENTAL_MATH_SETTINGS_PATH"
DB_PATH_ENV = "MENTAL_MATH_DB_PATH"

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class SettingsError(ValueError):
    """Raised when the settings file holds a value the trainer cannot use."""


def _default_db_path() -> Path:
    explicit = os.environ.get(DB_PATH_ENV)
    if explicit:
        return Path(explicit).expanduser()
    return Path.home() / ".mental_math_trainer.sqlite3"


@dataclass(frozen=True, slots=True)
class Settings:
    default_mode: Mode = Mode.ADD
    default_difficulty: Difficulty = Difficulty.EASY
    default_duration_s: int = 30
    feedback_delay_s: float = DEFAULT_FEEDBACK_DELAY_S
    db_path: Path = field(default_factory=_default_db_path)
    player: str = ""  # empty = guest, sessions are not saved
    log_level: str = "WARNING"

    @classmethod
    def default_path(cls) -> Path:
        explicit = os.environ.get(SETTINGS_PATH_ENV)
        if explicit:
            return Path(explicit).expanduser()
        return Path.home() / ".mental_math_trainer.json"

    @classmethod
    def load(cls, path: Path | None = None) -> "Settings":
        """Read settings from JSON; a missing file gives the defaults."""

        p = cls.default_path() if path is None else path
        if not p.exists():
            return cls()
        try:
            payload = json.loads(p.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise SettingsError(f"cannot read settings file {p}: {exc}") from exc
        if not isinstance(payload, dict):
            raise SettingsError(f"settings file {p} must hold a JSON object")
        return cls.from_dict(payload)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Settings":
        unknown = sorted(set(data) - {f for f in cls.__dataclass_fields__})
        if unknown:
            logger.warning("Ignoring unknown settings keys: %s", ", ".join(unknown))

        out = cls()
        try:
            if "default_mode" in data:
                out = replace(out, default_mode=Mode(data["default_mode"]))
            if "default_difficulty" in data:
                out = replace(out, default_difficulty=Difficulty(data["default_difficulty"]))
        except ValueError as exc:
            raise SettingsError(str(exc)) from exc

        if "default_duration_s" in data:
            duration = data["default_duration_s"]
            if duration not in DURATION_CHOICES_S:
                choices = ", ".join(str(d) for d in DURATION_CHOICES_S)
                raise SettingsError(f"default_duration_s must be one of {choices}, got {duration!r}")
            out = replace(out, default_duration_s=int(duration))
        if "feedback_delay_s" in data:
            delay = data["feedback_delay_s"]
            if not isinstance(delay, (int, float)) or isinstance(delay, bool) or not (0.0 <= delay <= 5.0):
                raise SettingsError(f"feedback_delay_s must be a number in [0, 5], got {delay!r}")
            out = replace(out, feedback_delay_s=float(delay))
        if data.get("db_path"):
            out = replace(out, db_path=Path(str(data["db_path"])).expanduser())
        if "player" in data:
            out = replace(out, player=str(data["player"] or "").strip())
        if "log_level" in data:
            level = str(data["log_level"]).upper()
            if level not in _LOG_LEVELS:
                raise SettingsError(f"log_level must be one of {', '.join(_LOG_LEVELS)}, got {level!r}")
            out = replace(out, log_level=level)
        return out

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["default_mode"] = self.default_mode.value
        data["default_difficulty"] = self.default_difficulty.value
        data["db_path"] = str(self.db_path)
        return data

    def save(self, path: Path | None = None) -> None:
        p = self.default_path() if path is None else path
        p.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = p.with_suffix(f"{p.suffix}.tmp")
        tmp_path.write_text(json.dumps(self.to_dict(), indent=2), encoding="utf-8")
        tmp_path.replace(p)

    def session_config(self) -> SessionConfig:
        return SessionConfig(
            mode=self.default_mode,
            difficulty=self.default_difficulty,
            duration=self.default_duration_s,
        )


def configure_logging(level: str = "WARNING") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
