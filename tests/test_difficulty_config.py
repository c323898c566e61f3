from __future__ import annotations

import pytest

from mental_math_trainer.difficulty import (
    DIFFICULTY_CONFIGS,
    Difficulty,
    DifficultyConfig,
    DifficultyConfigError,
    OperandRules,
    addition_acceptance_ratio,
    validate_difficulty_configs,
)


def _with_add(rules: OperandRules) -> dict[Difficulty, DifficultyConfig]:
    base = DIFFICULTY_CONFIGS[Difficulty.EASY]
    cfg = DifficultyConfig(add=rules, subtract=base.subtract, multiply=base.multiply)
    return {d: cfg for d in Difficulty}


def test_shipped_table_is_valid() -> None:
    validate_difficulty_configs()


def test_shipped_subtraction_disallows_negatives() -> None:
    for config in DIFFICULTY_CONFIGS.values():
        assert config.subtract.allow_negative is False


def test_easy_addition_always_accepts_first_draw() -> None:
    assert addition_acceptance_ratio(DIFFICULTY_CONFIGS[Difficulty.EASY].add) == 1.0


def test_inverted_range_is_rejected() -> None:
    with pytest.raises(DifficultyConfigError, match="min 9 > max 1"):
        validate_difficulty_configs(_with_add(OperandRules(left_range=(9, 1), right_range=(1, 9))))


def test_unreachable_max_sum_is_rejected() -> None:
    rules = OperandRules(left_range=(50, 60), right_range=(50, 60), max_sum=40)
    with pytest.raises(DifficultyConfigError, match="smallest possible sum 100"):
        validate_difficulty_configs(_with_add(rules))


def test_rarely_satisfied_max_sum_is_rejected() -> None:
    # Only 45 of a million pairs sum to 10 or less.
    rules = OperandRules(left_range=(1, 1000), right_range=(1, 1000), max_sum=10)
    assert addition_acceptance_ratio(rules) < 0.001
    with pytest.raises(DifficultyConfigError, match="satisfy max_sum"):
        validate_difficulty_configs(_with_add(rules))


def test_missing_tier_is_rejected() -> None:
    partial = {Difficulty.EASY: DIFFICULTY_CONFIGS[Difficulty.EASY]}
    with pytest.raises(DifficultyConfigError, match="medium, hard"):
        validate_difficulty_configs(partial)


def test_max_sum_on_multiplication_is_rejected() -> None:
    base = DIFFICULTY_CONFIGS[Difficulty.EASY]
    bad = DifficultyConfig(
        add=base.add,
        subtract=base.subtract,
        multiply=OperandRules(left_range=(1, 9), right_range=(1, 9), max_sum=50),
    )
    with pytest.raises(DifficultyConfigError, match="only applies to addition"):
        validate_difficulty_configs({d: bad for d in Difficulty})
