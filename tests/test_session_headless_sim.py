from __future__ import annotations

import random
from dataclasses import dataclass

from mental_math_trainer.clock import ClockScheduler
from mental_math_trainer.difficulty import Difficulty, Mode
from mental_math_trainer.persistence import PersistResult
from mental_math_trainer.problems import ProblemGenerator
from mental_math_trainer.results import SessionSummary, compute_accuracy, compute_ppm
from mental_math_trainer.session import GameState, SessionConfig, SessionController


@dataclass
class FakeClock:
    t: float = 0.0

    def now(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += dt


def test_headless_scripted_run_types_answers_digit_by_digit() -> None:
    seed = 555
    clock = FakeClock()
    sched = ClockScheduler(clock)
    saved: list[SessionSummary] = []

    def persist(summary: SessionSummary) -> PersistResult:
        saved.append(summary)
        return PersistResult(success=True)

    engine = SessionController(
        generator=ProblemGenerator(random.Random(seed)),
        scheduler=sched,
        config=SessionConfig(mode=Mode.MIXED, difficulty=Difficulty.MEDIUM, duration=15),
        persist=persist,
        feedback_delay_s=0.25,
    )
    engine.start_test()

    prompts: list[str] = []
    wrong_every = 4
    while engine.game_state is GameState.RUNNING:
        p = engine.current_problem
        assert p is not None
        prompts.append(p.prompt)
        answer = str(p.answer)
        if len(prompts) % wrong_every == 0:
            # Same digit count as the real answer, so it submits on the last digit.
            answer = str(p.answer - 1 if p.answer % 10 == 9 else p.answer + 1)
        for ch in answer:
            if engine.game_state is not GameState.RUNNING:
                break
            engine.submit_answer(engine.current_input + ch)
            clock.advance(0.25)
            sched.pump()
        # Let the feedback delay (and any ticks) run out before the next problem.
        clock.advance(0.25)
        sched.pump()

    assert engine.time_left == 0
    s = engine.summary()
    assert s is not None
    assert s.mode is Mode.MIXED
    assert s.total > 0
    assert s.correct < s.total
    assert s.accuracy == compute_accuracy(s.correct, s.total)
    assert s.ppm == compute_ppm(s.total, 15)
    assert saved == [s]

    # Same seed replays the same problem stream.
    mirror = ProblemGenerator(random.Random(seed))
    expected = [mirror.generate(Mode.MIXED, Difficulty.MEDIUM).prompt for _ in prompts]
    assert prompts == expected


def test_headless_skip_and_finish_shortcuts() -> None:
    clock = FakeClock()
    sched = ClockScheduler(clock)
    saved: list[SessionSummary] = []

    engine = SessionController(
        generator=ProblemGenerator(random.Random(9)),
        scheduler=sched,
        config=SessionConfig(mode=Mode.MULTIPLY, difficulty=Difficulty.EASY, duration=60),
        persist=lambda s: saved.append(s) or PersistResult(success=True),
        feedback_delay_s=0.0,
    )
    engine.start_test()

    for _ in range(4):
        clock.advance(1.0)
        sched.pump()
        engine.skip()
    p = engine.current_problem
    assert p is not None
    engine.submit_answer(str(p.answer))
    engine.force_finish()

    s = engine.summary()
    assert s is not None
    assert (s.correct, s.total) == (1, 5)
    assert s.accuracy == 20.0
    assert s.ppm == 75.0
    assert s.skipped is True
    assert saved == [s]
