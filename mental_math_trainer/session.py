"""Timed session state machine.

    IDLE -> RUNNING -> FINISHED -> IDLE
              |
              +-- cancel --> IDLE

``SessionController`` owns the only mutable session state. Everything that
changes it goes through one of the transition methods below; an event that
is not valid for the current state is ignored without raising, so the UI can
forward key presses blindly.

Time is driven by an injected ``Scheduler``: a 1 Hz repeating task exists
only while RUNNING, and the short post-answer feedback delay is a one-shot
task. Both are cancelled on every exit from RUNNING. Saves handed to an
executor are collected by a short polling task, so their results are only
ever recorded from ``Scheduler.pump`` on the caller's thread.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from concurrent.futures import Executor, Future
from dataclasses import dataclass, replace
from enum import StrEnum

from .clock import Scheduler, TaskHandle
from .difficulty import Difficulty, Mode
from .persistence import PersistResult
from .problems import Problem, ProblemGenerator
from .results import SessionSummary, build_session_summary, compute_accuracy, compute_ppm

logger = logging.getLogger(__name__)

DURATION_CHOICES_S: tuple[int, ...] = (15, 30, 60)
DEFAULT_FEEDBACK_DELAY_S = 0.05
TICK_INTERVAL_S = 1.0
PERSIST_POLL_INTERVAL_S = 0.05


class GameState(StrEnum):
    IDLE = "idle"
    RUNNING = "running"
    FINISHED = "finished"


class Feedback(StrEnum):
    NONE = "none"
    CORRECT = "correct"
    INCORRECT = "incorrect"


@dataclass(frozen=True, slots=True)
class SessionConfig:
    mode: Mode = Mode.ADD
    difficulty: Difficulty = Difficulty.EASY
    duration: int = 30


@dataclass(slots=True)
class SessionState:
    game_state: GameState
    time_left: int
    current_problem: Problem | None = None
    current_input: str = ""
    correct_count: int = 0
    total_count: int = 0
    skipped: bool = False
    feedback: Feedback = Feedback.NONE


@dataclass(frozen=True, slots=True)
class SessionSnapshot:
    """View model for the UI (pure data)."""

    config: SessionConfig
    game_state: GameState
    time_left: int
    prompt: str
    current_input: str
    correct: int
    total: int
    accuracy: float
    ppm: float
    feedback: Feedback
    input_locked: bool
    skipped: bool


PersistFn = Callable[[SessionSummary], PersistResult]


def _try_parse_int(text: str) -> int | None:
    s = text.strip()
    if not s:
        return None
    try:
        return int(s)
    except ValueError:
        return None


class SessionController:
    def __init__(
        self,
        *,
        generator: ProblemGenerator,
        scheduler: Scheduler,
        config: SessionConfig | None = None,
        persist: PersistFn | None = None,
        persist_executor: Executor | None = None,
        on_persist_result: Callable[[PersistResult], None] | None = None,
        feedback_delay_s: float = DEFAULT_FEEDBACK_DELAY_S,
    ) -> None:
        if feedback_delay_s < 0:
            raise ValueError("feedback_delay_s must be >= 0")
        cfg = config or SessionConfig()
        _check_duration(cfg.duration)

        self._generator = generator
        self._scheduler = scheduler
        self._config = cfg
        self._persist = persist
        self._persist_executor = persist_executor
        self._on_persist_result = on_persist_result
        self._feedback_delay_s = float(feedback_delay_s)

        self._state = SessionState(game_state=GameState.IDLE, time_left=cfg.duration)
        self._timer: TaskHandle | None = None
        self._pending_advance: TaskHandle | None = None
        self._summary: SessionSummary | None = None

        # Incremented per start_test so a slow save from an earlier run cannot
        # overwrite the result slot of the current one.
        self._run_id = 0
        self._persist_calls = 0
        self._last_persist_result: PersistResult | None = None
        # Saves in flight on the executor, collected from the scheduler thread.
        self._pending_saves: list[tuple[int, Future[PersistResult]]] = []
        self._save_poll: TaskHandle | None = None

    # -- read side ----------------------------------------------------------

    @property
    def config(self) -> SessionConfig:
        return self._config

    @property
    def game_state(self) -> GameState:
        return self._state.game_state

    @property
    def time_left(self) -> int:
        return self._state.time_left

    @property
    def current_problem(self) -> Problem | None:
        return self._state.current_problem

    @property
    def current_input(self) -> str:
        return self._state.current_input

    @property
    def correct_count(self) -> int:
        return self._state.correct_count

    @property
    def total_count(self) -> int:
        return self._state.total_count

    @property
    def skipped(self) -> bool:
        return self._state.skipped

    @property
    def feedback(self) -> Feedback:
        return self._state.feedback

    @property
    def input_locked(self) -> bool:
        """True while the feedback delay is running and input is ignored."""
        return self._pending_advance is not None

    @property
    def timer_active(self) -> bool:
        return self._timer is not None and self._timer.active

    @property
    def persist_calls(self) -> int:
        return self._persist_calls

    @property
    def last_persist_result(self) -> PersistResult | None:
        return self._last_persist_result

    def elapsed_s(self) -> int:
        return max(0, self._config.duration - self._state.time_left)

    def accuracy(self) -> float:
        return compute_accuracy(self._state.correct_count, self._state.total_count)

    def ppm(self) -> float:
        return compute_ppm(self._state.total_count, self.elapsed_s())

    def summary(self) -> SessionSummary | None:
        """Summary of the last finished session, or None outside FINISHED."""
        return self._summary

    def snapshot(self) -> SessionSnapshot:
        s = self._state
        return SessionSnapshot(
            config=self._config,
            game_state=s.game_state,
            time_left=s.time_left,
            prompt="" if s.current_problem is None else s.current_problem.prompt,
            current_input=s.current_input,
            correct=s.correct_count,
            total=s.total_count,
            accuracy=self.accuracy(),
            ppm=self.ppm(),
            feedback=s.feedback,
            input_locked=self.input_locked,
            skipped=s.skipped,
        )

    # -- configuration (IDLE only) ------------------------------------------

    def set_mode(self, mode: Mode) -> None:
        if self._state.game_state is not GameState.IDLE:
            return
        self._config = replace(self._config, mode=Mode(mode))

    def set_difficulty(self, difficulty: Difficulty) -> None:
        if self._state.game_state is not GameState.IDLE:
            return
        self._config = replace(self._config, difficulty=Difficulty(difficulty))

    def set_duration(self, duration: int) -> None:
        if self._state.game_state is not GameState.IDLE:
            return
        _check_duration(duration)
        self._config = replace(self._config, duration=int(duration))
        self._state.time_left = int(duration)

    # -- transitions ----------------------------------------------------------

    def start_test(self) -> None:
        if self._state.game_state is not GameState.IDLE:
            return
        self._run_id += 1
        self._summary = None
        self._last_persist_result = None
        self._state = SessionState(
            game_state=GameState.RUNNING,
            time_left=self._config.duration,
            current_problem=self._next_problem(),
        )
        self._timer = self._scheduler.call_every(TICK_INTERVAL_S, self.tick)
        logger.debug(
            "Session started: mode=%s difficulty=%s duration=%ss",
            self._config.mode.value,
            self._config.difficulty.value,
            self._config.duration,
        )

    def tick(self) -> None:
        """One second of session time. Reaching zero finishes the session."""

        if self._state.game_state is not GameState.RUNNING:
            return
        if self._state.time_left <= 1:
            self._state.time_left = 0
            self._finish(skipped=False)
        else:
            self._state.time_left -= 1

    def submit_answer(self, raw: str) -> bool:
        """Update the typed answer; returns True if it was scored.

        The input counts as a finished answer once it is at least as long as
        the expected answer's decimal form and parses as an integer.
        """

        s = self._state
        if s.game_state is not GameState.RUNNING or self._pending_advance is not None:
            return False
        if s.current_problem is None:
            return False

        s.current_input = raw
        if len(raw) < s.current_problem.answer_length:
            return False
        value = _try_parse_int(raw)
        if value is None:
            return False

        s.total_count += 1
        if value == s.current_problem.answer:
            s.correct_count += 1
            s.feedback = Feedback.CORRECT
        else:
            s.feedback = Feedback.INCORRECT

        if self._feedback_delay_s > 0:
            self._pending_advance = self._scheduler.call_later(self._feedback_delay_s, self._advance)
        else:
            self._advance()
        return True

    def skip(self) -> None:
        s = self._state
        if s.game_state is not GameState.RUNNING or self._pending_advance is not None:
            return
        s.total_count += 1
        s.current_input = ""
        s.feedback = Feedback.NONE
        s.current_problem = self._next_problem()

    def force_finish(self) -> None:
        if self._state.game_state is not GameState.RUNNING:
            return
        self._finish(skipped=True)

    def cancel(self) -> None:
        if self._state.game_state is not GameState.RUNNING:
            return
        self._stop_tasks()
        self._reset_to_idle()
        logger.debug("Session cancelled")

    def restart(self) -> None:
        if self._state.game_state is not GameState.FINISHED:
            return
        self._reset_to_idle()

    # -- internals --------------------------------------------------------------

    def _next_problem(self) -> Problem:
        return self._generator.generate(self._config.mode, self._config.difficulty)

    def _advance(self) -> None:
        self._pending_advance = None
        s = self._state
        if s.game_state is not GameState.RUNNING:
            return
        s.feedback = Feedback.NONE
        s.current_input = ""
        s.current_problem = self._next_problem()

    def _stop_tasks(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._pending_advance is not None:
            self._pending_advance.cancel()
            self._pending_advance = None

    def _reset_to_idle(self) -> None:
        self._state = SessionState(game_state=GameState.IDLE, time_left=self._config.duration)
        self._summary = None

    def _finish(self, *, skipped: bool) -> None:
        self._stop_tasks()
        s = self._state
        s.game_state = GameState.FINISHED
        s.skipped = skipped
        s.feedback = Feedback.NONE
        s.current_input = ""
        self._summary = build_session_summary(
            mode=self._config.mode,
            difficulty=self._config.difficulty,
            duration=self._config.duration,
            time_left=s.time_left,
            correct=s.correct_count,
            total=s.total_count,
            skipped=skipped,
        )
        logger.debug(
            "Session finished: %d/%d correct, skipped=%s", s.correct_count, s.total_count, skipped
        )
        if self._summary.total > 0:
            self._dispatch_persist(self._summary)

    def _dispatch_persist(self, summary: SessionSummary) -> None:
        if self._persist is None:
            return
        self._persist_calls += 1
        run_id = self._run_id
        if self._persist_executor is None:
            self._record_persist_result(run_id, self._call_persist(summary))
            return
        future = self._persist_executor.submit(self._call_persist, summary)
        self._pending_saves.append((run_id, future))
        if self._save_poll is None:
            self._save_poll = self._scheduler.call_every(PERSIST_POLL_INTERVAL_S, self._collect_saves)

    def _collect_saves(self) -> None:
        """Record finished executor saves; runs from ``Scheduler.pump``."""

        still_pending: list[tuple[int, Future[PersistResult]]] = []
        for run_id, future in self._pending_saves:
            if not future.done():
                still_pending.append((run_id, future))
            elif future.cancelled():
                logger.warning("Session save was cancelled before it ran")
            else:
                self._record_persist_result(run_id, future.result())
        self._pending_saves = still_pending
        if not still_pending and self._save_poll is not None:
            self._save_poll.cancel()
            self._save_poll = None

    def _call_persist(self, summary: SessionSummary) -> PersistResult:
        if self._persist is None:
            raise RuntimeError("no persistence function configured")
        try:
            return self._persist(summary)
        except Exception as exc:
            logger.exception("Session persistence raised")
            return PersistResult(success=False, error=str(exc) or type(exc).__name__)

    def _record_persist_result(self, run_id: int, result: PersistResult) -> None:
        if run_id != self._run_id:
            return
        self._last_persist_result = result
        if self._on_persist_result is not None:
            self._on_persist_result(result)


def _check_duration(duration: int) -> None:
    if int(duration) <= 0:
        raise ValueError("duration must be > 0 seconds")
