from __future__ import annotations

import os
from pathlib import Path


def test_ui_smoke_start_skip_finish_and_open_history(tmp_path: Path) -> None:
    # Headless SDL for CI.
    os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
    os.environ.setdefault("SDL_AUDIODRIVER", "dummy")

    import pygame

    from mental_math_trainer.app import run
    from mental_math_trainer.persistence import SessionStore
    from mental_math_trainer.settings import Settings

    db = tmp_path / "history.sqlite3"
    settings = Settings(db_path=db, player="tester")

    def key(k: int, unicode: str = "") -> None:
        pygame.event.post(pygame.event.Event(pygame.KEYDOWN, {"key": k, "unicode": unicode}))

    def inject(frame: int) -> None:
        # Setup -> start -> skip one problem -> finish early -> history -> back
        if frame == 1:
            key(pygame.K_RIGHT)
        elif frame == 2:
            key(pygame.K_RETURN)
        elif frame == 3:
            key(pygame.K_TAB)
        elif frame == 4:
            key(pygame.K_f, "f")
        elif frame == 6:
            key(pygame.K_h, "h")
        elif frame == 7:
            key(pygame.K_ESCAPE)

    assert run(max_frames=10, event_injector=inject, settings=settings) == 0

    history = SessionStore(db, player="tester").load_history()
    assert history.error is None
    assert len(history.sessions) == 1
    saved = history.sessions[0].summary
    assert saved.mode.value == "subtract"
    assert (saved.correct, saved.total) == (0, 1)
    assert saved.skipped is True


def test_ui_smoke_number_keys_pick_setup_options(tmp_path: Path) -> None:
    os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
    os.environ.setdefault("SDL_AUDIODRIVER", "dummy")

    import pygame

    from mental_math_trainer.app import run
    from mental_math_trainer.persistence import SessionStore
    from mental_math_trainer.settings import Settings

    db = tmp_path / "history.sqlite3"
    settings = Settings(db_path=db, player="tester")

    script = {
        1: (pygame.K_3, "3"),  # mode row: multiplication
        2: (pygame.K_DOWN, ""),
        3: (pygame.K_3, "3"),  # difficulty row: hard
        4: (pygame.K_DOWN, ""),
        5: (pygame.K_1, "1"),  # duration row: 15 s
        6: (pygame.K_9, "9"),  # out of range, ignored
        7: (pygame.K_RETURN, ""),
        8: (pygame.K_TAB, ""),
        9: (pygame.K_f, "f"),
    }

    def inject(frame: int) -> None:
        if frame in script:
            k, uni = script[frame]
            pygame.event.post(pygame.event.Event(pygame.KEYDOWN, {"key": k, "unicode": uni}))

    assert run(max_frames=12, event_injector=inject, settings=settings) == 0

    history = SessionStore(db, player="tester").load_history()
    assert len(history.sessions) == 1
    saved = history.sessions[0].summary
    assert saved.mode.value == "multiply"
    assert saved.difficulty.value == "hard"
    assert saved.duration == 15
