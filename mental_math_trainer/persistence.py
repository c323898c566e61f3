from __future__ import annotations

import logging
import sqlite3
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path

from .difficulty import Difficulty, Mode
from .results import SessionSummary, round_half_up

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
NOT_AUTHENTICATED = "Not authenticated"


class TimeWindow(StrEnum):
    LAST_7_DAYS = "7days"
    LAST_30_DAYS = "30days"
    ALL = "all"

    @property
    def days(self) -> int | None:
        if self is TimeWindow.LAST_7_DAYS:
            return 7
        if self is TimeWindow.LAST_30_DAYS:
            return 30
        return None


@dataclass(frozen=True, slots=True)
class PersistResult:
    success: bool
    error: str | None = None


@dataclass(frozen=True, slots=True)
class HistoryFilter:
    window: TimeWindow = TimeWindow.ALL
    difficulty: Difficulty | None = None
    mode: Mode | None = None
    limit: int | None = None


@dataclass(frozen=True, slots=True)
class SessionRecord:
    id: int
    player: str
    created_at_utc: str
    summary: SessionSummary


@dataclass(frozen=True, slots=True)
class HistoryResult:
    sessions: list[SessionRecord] = field(default_factory=list)
    error: str | None = None


@dataclass(frozen=True, slots=True)
class StatsResult:
    total_sessions: int = 0
    average_accuracy: float = 0.0
    average_ppm: float = 0.0
    error: str | None = None


def open_db(path: Path) -> sqlite3.Connection:
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(path)
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    _migrate(conn)
    return conn


def _utc_iso(ts: float) -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(ts))


def _migrate(conn: sqlite3.Connection) -> None:
    row = conn.execute("PRAGMA user_version;").fetchone()
    ver = int(row[0]) if row else 0
    if ver >= SCHEMA_VERSION:
        return

    with conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS session (
                id INTEGER PRIMARY KEY,
                player TEXT NOT NULL,
                mode TEXT NOT NULL,
                difficulty TEXT NOT NULL,
                duration_s INTEGER NOT NULL,
                correct INTEGER NOT NULL,
                total INTEGER NOT NULL,
                accuracy REAL NOT NULL,
                ppm REAL NOT NULL,
                skipped INTEGER NOT NULL,
                created_at_utc TEXT NOT NULL
            );
            """
        )
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_session_player_created ON session(player, created_at_utc);"
        )
        conn.execute(f"PRAGMA user_version={SCHEMA_VERSION};")


class SessionStore:
    """SQLite-backed history of finished sessions for one player.

    A store without a player is a guest store: saves and reads report
    ``"Not authenticated"`` instead of touching the database. No method
    raises on database trouble; failures come back in the result's
    ``error`` field. A connection is opened per call, so the store may be
    used from a worker thread.
    """

    def __init__(self, db_path: Path, *, player: str | None, now: Callable[[], float] = time.time) -> None:
        self._db_path = Path(db_path)
        self._player = (player or "").strip() or None
        self._now = now

    @property
    def db_path(self) -> Path:
        return self._db_path

    @property
    def player(self) -> str | None:
        return self._player

    @property
    def authenticated(self) -> bool:
        return self._player is not None

    def persist_session(self, summary: SessionSummary) -> PersistResult:
        if self._player is None:
            logger.info("Guest session not saved (%s, %s)", summary.mode.value, summary.difficulty.value)
            return PersistResult(success=False, error=NOT_AUTHENTICATED)
        try:
            conn = open_db(self._db_path)
            try:
                with conn:
                    conn.execute(
                        """
                        INSERT INTO session(
                            player, mode, difficulty, duration_s, correct, total,
                            accuracy, ppm, skipped, created_at_utc
                        )
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                        """,
                        (
                            self._player,
                            summary.mode.value,
                            summary.difficulty.value,
                            int(summary.duration),
                            int(summary.correct),
                            int(summary.total),
                            float(summary.accuracy),
                            float(summary.ppm),
                            1 if summary.skipped else 0,
                            _utc_iso(self._now()),
                        ),
                    )
            finally:
                conn.close()
        except (sqlite3.Error, OSError) as exc:
            logger.warning("Failed to save session to %s: %s", self._db_path, exc)
            return PersistResult(success=False, error=str(exc))
        return PersistResult(success=True)

    def load_history(self, history_filter: HistoryFilter | None = None) -> HistoryResult:
        """Return the player's sessions, newest first."""

        f = history_filter or HistoryFilter()
        if self._player is None:
            return HistoryResult(sessions=[], error=NOT_AUTHENTICATED)

        clauses = ["player = ?"]
        params: list[object] = [self._player]
        days = f.window.days
        if days is not None:
            clauses.append("created_at_utc >= ?")
            params.append(_utc_iso(self._now() - days * 86400.0))
        if f.difficulty is not None:
            clauses.append("difficulty = ?")
            params.append(f.difficulty.value)
        if f.mode is not None:
            clauses.append("mode = ?")
            params.append(f.mode.value)
        sql = (
            "SELECT id, player, mode, difficulty, duration_s, correct, total, accuracy, ppm, skipped, created_at_utc "
            f"FROM session WHERE {' AND '.join(clauses)} ORDER BY created_at_utc DESC, id DESC"
        )
        if f.limit is not None:
            sql += " LIMIT ?"
            params.append(max(0, int(f.limit)))

        try:
            conn = open_db(self._db_path)
            try:
                rows = conn.execute(sql, params).fetchall()
            finally:
                conn.close()
        except (sqlite3.Error, OSError) as exc:
            logger.warning("Failed to load session history from %s: %s", self._db_path, exc)
            return HistoryResult(sessions=[], error=str(exc))

        return HistoryResult(sessions=[_record_from_row(r) for r in rows])

    def load_stats(self) -> StatsResult:
        if self._player is None:
            return StatsResult(error=NOT_AUTHENTICATED)
        try:
            conn = open_db(self._db_path)
            try:
                row = conn.execute(
                    "SELECT COUNT(*), AVG(accuracy), AVG(ppm) FROM session WHERE player = ?",
                    (self._player,),
                ).fetchone()
            finally:
                conn.close()
        except (sqlite3.Error, OSError) as exc:
            logger.warning("Failed to load session stats from %s: %s", self._db_path, exc)
            return StatsResult(error=str(exc))

        count = int(row[0]) if row else 0
        if count == 0:
            return StatsResult()
        return StatsResult(
            total_sessions=count,
            average_accuracy=round_half_up(float(row[1])),
            average_ppm=round_half_up(float(row[2])),
        )


def _record_from_row(row: tuple) -> SessionRecord:
    (row_id, player, mode, difficulty, duration_s, correct, total, accuracy, ppm, skipped, created) = row
    return SessionRecord(
        id=int(row_id),
        player=str(player),
        created_at_utc=str(created),
        summary=SessionSummary(
            mode=Mode(mode),
            difficulty=Difficulty(difficulty),
            duration=int(duration_s),
            correct=int(correct),
            total=int(total),
            accuracy=float(accuracy),
            ppm=float(ppm),
            skipped=bool(skipped),
        ),
    )
