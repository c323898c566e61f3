from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from .difficulty import Difficulty, Mode


@dataclass(frozen=True, slots=True)
class SessionSummary:
    """Persistable summary of a finished timed session.

    ``accuracy`` is a percentage and ``ppm`` is problems per minute of
    elapsed time, both rounded to one decimal. ``skipped`` marks a session
    that was finished early rather than run to time.
    """

    mode: Mode
    difficulty: Difficulty
    duration: int
    correct: int
    total: int
    accuracy: float
    ppm: float
    skipped: bool = False

    @property
    def incorrect(self) -> int:
        return self.total - self.correct


def round_half_up(value: float) -> float:
    """Round to one decimal, ties away from zero (1.25 -> 1.3), unlike ``round``.

    Works on the exact binary value of ``value``, so 0.35 (stored just below
    the tie) still rounds to 0.3.
    """
    return float(Decimal(value).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def compute_accuracy(correct: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return round_half_up(correct / total * 100.0)


def compute_ppm(total: int, elapsed_s: float) -> float:
    if elapsed_s <= 0:
        return 0.0
    return round_half_up(total / elapsed_s * 60.0)


def build_session_summary(
    *,
    mode: Mode,
    difficulty: Difficulty,
    duration: int,
    time_left: int,
    correct: int,
    total: int,
    skipped: bool,
) -> SessionSummary:
    """Build a SessionSummary from the tallies of a finished session."""

    elapsed_s = max(0, int(duration) - int(time_left))
    return SessionSummary(
        mode=mode,
        difficulty=difficulty,
        duration=int(duration),
        correct=int(correct),
        total=int(total),
        accuracy=compute_accuracy(correct, total),
        ppm=compute_ppm(total, elapsed_s),
        skipped=bool(skipped),
    )
