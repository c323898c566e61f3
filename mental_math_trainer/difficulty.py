"""Static operand rules for each difficulty tier and operator mode.

The table is read once at startup and never mutated. Every range is an
inclusive ``(min, max)`` pair with ``min <= max``; the problem generator
relies on that precondition rather than checking it per draw, so
:func:`validate_difficulty_configs` must be run before the first session.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from types import MappingProxyType
from typing import Mapping

# Upper bound on rejection-sampling rounds for a constrained addition draw.
MAX_ADDITION_DRAWS = 1000
# At this acceptance rate, exhausting MAX_ADDITION_DRAWS has probability < 1e-22.
MIN_ADDITION_ACCEPTANCE = 0.05


class Mode(StrEnum):
    ADD = "add"
    SUBTRACT = "subtract"
    MULTIPLY = "multiply"
    MIXED = "mixed"


CONCRETE_MODES: tuple[Mode, ...] = (Mode.ADD, Mode.SUBTRACT, Mode.MULTIPLY)


class Difficulty(StrEnum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class DifficultyConfigError(ValueError):
    """Raised when the operand table cannot produce valid problems."""


@dataclass(frozen=True, slots=True)
class OperandRules:
    left_range: tuple[int, int]
    right_range: tuple[int, int]
    max_sum: int | None = None  # addition only
    allow_negative: bool = False  # subtraction only


@dataclass(frozen=True, slots=True)
class DifficultyConfig:
    add: OperandRules
    subtract: OperandRules
    multiply: OperandRules

    def rules_for(self, mode: Mode) -> OperandRules:
        if mode is Mode.ADD:
            return self.add
        if mode is Mode.SUBTRACT:
            return self.subtract
        if mode is Mode.MULTIPLY:
            return self.multiply
        raise KeyError(f"no operand rules for meta-mode {mode.value!r}")


DIFFICULTY_CONFIGS: Mapping[Difficulty, DifficultyConfig] = MappingProxyType(
    {
        Difficulty.EASY: DifficultyConfig(
            add=OperandRules(left_range=(1, 10), right_range=(1, 10), max_sum=20),
            subtract=OperandRules(left_range=(1, 10), right_range=(1, 10)),
            multiply=OperandRules(left_range=(1, 9), right_range=(1, 9)),
        ),
        Difficulty.MEDIUM: DifficultyConfig(
            add=OperandRules(left_range=(10, 50), right_range=(10, 50)),
            subtract=OperandRules(left_range=(10, 50), right_range=(10, 50)),
            # 2-digit x 1-digit
            multiply=OperandRules(left_range=(10, 99), right_range=(1, 9)),
        ),
        Difficulty.HARD: DifficultyConfig(
            add=OperandRules(left_range=(50, 999), right_range=(50, 999)),
            subtract=OperandRules(left_range=(10, 999), right_range=(10, 999)),
            multiply=OperandRules(left_range=(10, 99), right_range=(10, 99)),
        ),
    }
)


def addition_acceptance_ratio(rules: OperandRules) -> float:
    """Fraction of (left, right) pairs whose sum stays within ``max_sum``."""

    l_lo, l_hi = rules.left_range
    r_lo, r_hi = rules.right_range
    if rules.max_sum is None:
        return 1.0
    accepted = 0
    for left in range(l_lo, l_hi + 1):
        top = min(r_hi, rules.max_sum - left)
        if top >= r_lo:
            accepted += top - r_lo + 1
    total = (l_hi - l_lo + 1) * (r_hi - r_lo + 1)
    return accepted / total


def validate_difficulty_configs(configs: Mapping[Difficulty, DifficultyConfig] = DIFFICULTY_CONFIGS) -> None:
    """Reject tables the generator cannot serve.

    Checks every tier is present, every range is ordered, and any ``max_sum``
    is reachable by the smallest pair of operands.
    """

    missing = [d.value for d in Difficulty if d not in configs]
    if missing:
        raise DifficultyConfigError(f"missing difficulty tiers: {', '.join(missing)}")

    for difficulty, config in configs.items():
        for mode in CONCRETE_MODES:
            rules = config.rules_for(mode)
            where = f"{difficulty.value}/{mode.value}"
            for side, (lo, hi) in (("left", rules.left_range), ("right", rules.right_range)):
                if lo > hi:
                    raise DifficultyConfigError(f"{where}: {side} range min {lo} > max {hi}")
            if rules.max_sum is not None:
                if mode is not Mode.ADD:
                    raise DifficultyConfigError(f"{where}: max_sum only applies to addition")
                smallest = rules.left_range[0] + rules.right_range[0]
                if smallest > rules.max_sum:
                    raise DifficultyConfigError(
                        f"{where}: max_sum {rules.max_sum} is below the smallest possible sum {smallest}"
                    )
                ratio = addition_acceptance_ratio(rules)
                if ratio < MIN_ADDITION_ACCEPTANCE:
                    raise DifficultyConfigError(
                        f"{where}: only {ratio:.4f} of operand pairs satisfy max_sum {rules.max_sum}"
                    )
            if rules.allow_negative and mode is not Mode.SUBTRACT:
                raise DifficultyConfigError(f"{where}: allow_negative only applies to subtraction")
