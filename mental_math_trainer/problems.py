from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Mapping

from .difficulty import (
    CONCRETE_MODES,
    DIFFICULTY_CONFIGS,
    MAX_ADDITION_DRAWS,
    Difficulty,
    DifficultyConfig,
    DifficultyConfigError,
    Mode,
    OperandRules,
)

OPERATOR_SYMBOLS: Mapping[Mode, str] = {
    Mode.ADD: "+",
    Mode.SUBTRACT: "-",
    Mode.MULTIPLY: "×",
}


@dataclass(frozen=True, slots=True)
class Problem:
    left: int
    right: int
    operator: str  # "+", "-" or "×"
    answer: int

    @property
    def prompt(self) -> str:
        return f"{self.left} {self.operator} {self.right}"

    @property
    def answer_length(self) -> int:
        """Number of characters a typed answer needs before it is auto-submitted."""
        return len(str(self.answer))


class ProblemGenerator:
    """Builds arithmetic problems from the difficulty table.

    Stateless apart from the injected RNG: the same seed and the same sequence
    of ``generate`` calls give the same problems. Ranges in ``configs`` must
    satisfy ``min <= max``; see ``validate_difficulty_configs``.
    """

    def __init__(
        self,
        rng: random.Random,
        *,
        configs: Mapping[Difficulty, DifficultyConfig] = DIFFICULTY_CONFIGS,
    ) -> None:
        self._rng = rng
        self._configs = configs

    def generate(self, mode: Mode, difficulty: Difficulty) -> Problem:
        mode = Mode(mode)
        difficulty = Difficulty(difficulty)
        if mode is Mode.MIXED:
            mode = self._rng.choice(CONCRETE_MODES)
        rules = self._configs[difficulty].rules_for(mode)

        if mode is Mode.ADD:
            left, right = self._draw_addition(rules)
            answer = left + right
        elif mode is Mode.SUBTRACT:
            left, right = self._draw(rules)
            if not rules.allow_negative and left < right:
                left, right = right, left
            answer = left - right
        else:
            left, right = self._draw(rules)
            answer = left * right

        return Problem(left=left, right=right, operator=OPERATOR_SYMBOLS[mode], answer=answer)

    def _draw(self, rules: OperandRules) -> tuple[int, int]:
        left = self._rng.randint(*rules.left_range)
        right = self._rng.randint(*rules.right_range)
        return left, right

    def _draw_addition(self, rules: OperandRules) -> tuple[int, int]:
        for _ in range(MAX_ADDITION_DRAWS):
            left, right = self._draw(rules)
            if rules.max_sum is None or left + right <= rules.max_sum:
                return left, right
        raise DifficultyConfigError(
            f"no addition pair within max_sum {rules.max_sum} after {MAX_ADDITION_DRAWS} draws"
        )
