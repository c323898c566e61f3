"""Pygame UI shell for the Mental Math Trainer.

Screens:
- Trainer: setup (mode / difficulty / duration), the timed run, results
- History: saved sessions with overall stats and filters

Deterministic timing/scoring/RNG/state lives in mental_math_trainer/* (core modules).
"""

from __future__ import annotations

import random
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from typing import Protocol

import pygame

from .clock import ClockScheduler, RealClock
from .difficulty import Difficulty, Mode, validate_difficulty_configs
from .persistence import NOT_AUTHENTICATED, HistoryFilter, PersistResult, SessionStore, TimeWindow
from .problems import ProblemGenerator
from .session import DURATION_CHOICES_S, Feedback, GameState, SessionController
from .settings import Settings, configure_logging


class Screen(Protocol):
    def handle_event(self, event: pygame.event.Event) -> None: ...
    def update(self) -> None: ...
    def render(self, surface: pygame.Surface) -> None: ...


WINDOW_SIZE = (960, 540)
TARGET_FPS = 60

BG = (50, 52, 55)
TEXT_MAIN = (209, 208, 197)
TEXT_MUTED = (161, 163, 164)
TEXT_DIM = (100, 102, 105)
TEXT_ERROR = (202, 71, 84)
SELECTED_BG = (70, 72, 76)

MODE_LABELS: dict[Mode, str] = {
    Mode.ADD: "+ addition",
    Mode.SUBTRACT: "- subtraction",
    Mode.MULTIPLY: "× multiplication",
    Mode.MIXED: "mixed",
}

DIGIT_KEYS = {getattr(pygame, f"K_{d}"): str(d) for d in range(10)} | {
    getattr(pygame, f"K_KP{d}"): str(d) for d in range(10)
}


class App:
    def __init__(self, surface: pygame.Surface, font: pygame.font.Font) -> None:
        self._surface = surface
        self._font = font
        self._screens: list[Screen] = []
        self._running = True

    @property
    def running(self) -> bool:
        return self._running

    @property
    def font(self) -> pygame.font.Font:
        return self._font

    def push(self, screen: Screen) -> None:
        self._screens.append(screen)

    def pop(self) -> None:
        # Never pop the last/root screen; root handles its own quit/back behavior.
        if len(self._screens) > 1:
            self._screens.pop()

    def quit(self) -> None:
        self._running = False

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.QUIT:
            self.quit()
            return
        if not self._screens:
            return
        self._screens[-1].handle_event(event)

    def update(self) -> None:
        # Every screen is updated so a running session keeps time under the history screen.
        for screen in self._screens:
            screen.update()

    def render(self) -> None:
        if not self._screens:
            return
        self._screens[-1].render(self._surface)


def _cycle(options: tuple, current: object, delta: int) -> object:
    idx = options.index(current)
    return options[(idx + delta) % len(options)]


def describe_persist_result(result: PersistResult | None, *, saving: bool) -> tuple[str, tuple[int, int, int]]:
    if result is None:
        return ("saving..." if saving else "", TEXT_DIM)
    if result.success:
        return ("session saved", TEXT_MUTED)
    if result.error == NOT_AUTHENTICATED:
        return ("guest mode: set a player name in settings to keep history", TEXT_DIM)
    return (f"save failed: {result.error}", TEXT_ERROR)


class TrainerScreen:
    """Setup, timed run and results for one SessionController."""

    _SETUP_ROWS = ("mode", "difficulty", "duration")

    def __init__(
        self,
        app: App,
        *,
        controller: SessionController,
        scheduler: ClockScheduler,
        open_history: Callable[[], None],
        saving_enabled: bool,
    ) -> None:
        self._app = app
        self._controller = controller
        self._scheduler = scheduler
        self._open_history = open_history
        self._saving_enabled = saving_enabled
        self._row = 0

        self._title_font = pygame.font.Font(None, 56)
        self._item_font = pygame.font.Font(None, 34)
        self._hint_font = pygame.font.Font(None, 22)
        self._timer_font = pygame.font.Font(None, 44)
        self._problem_font = pygame.font.Font(None, 120)
        self._input_font = pygame.font.Font(None, 80)
        self._stat_font = pygame.font.Font(None, 96)

    # -- events -----------------------------------------------------------------

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type != pygame.KEYDOWN:
            return
        state = self._controller.game_state
        if state is GameState.IDLE:
            self._handle_setup_key(event.key)
        elif state is GameState.RUNNING:
            self._handle_running_key(event.key, event.unicode)
        else:
            self._handle_results_key(event.key)

    def _handle_setup_key(self, key: int) -> None:
        c = self._controller
        row = self._SETUP_ROWS[self._row]
        if key in (pygame.K_UP, pygame.K_w):
            self._row = (self._row - 1) % len(self._SETUP_ROWS)
        elif key in (pygame.K_DOWN, pygame.K_s):
            self._row = (self._row + 1) % len(self._SETUP_ROWS)
        elif key in (pygame.K_LEFT, pygame.K_RIGHT, pygame.K_a, pygame.K_d):
            delta = -1 if key in (pygame.K_LEFT, pygame.K_a) else 1
            options = self._row_options(row)
            current = self._row_value(row)
            if current not in options:
                current = options[0]
            self._set_row_value(row, _cycle(options, current, delta))
        elif key in DIGIT_KEYS:
            # 1..N picks the Nth option of the selected row.
            options = self._row_options(row)
            idx = int(DIGIT_KEYS[key]) - 1
            if 0 <= idx < len(options):
                self._set_row_value(row, options[idx])
        elif key in (pygame.K_RETURN, pygame.K_KP_ENTER, pygame.K_SPACE):
            c.start_test()
        elif key == pygame.K_h:
            self._open_history()
        elif key == pygame.K_ESCAPE:
            self._app.quit()

    def _row_options(self, row: str) -> tuple:
        if row == "mode":
            return tuple(Mode)
        if row == "difficulty":
            return tuple(Difficulty)
        return DURATION_CHOICES_S

    def _row_value(self, row: str) -> object:
        cfg = self._controller.config
        if row == "mode":
            return cfg.mode
        if row == "difficulty":
            return cfg.difficulty
        return cfg.duration

    def _set_row_value(self, row: str, value: object) -> None:
        c = self._controller
        if row == "mode":
            c.set_mode(value)
        elif row == "difficulty":
            c.set_difficulty(value)
        else:
            c.set_duration(value)

    def _handle_running_key(self, key: int, unicode: str) -> None:
        c = self._controller
        if key == pygame.K_ESCAPE:
            c.cancel()
        elif key == pygame.K_TAB:
            c.skip()
        elif key == pygame.K_f:
            c.force_finish()
        elif key == pygame.K_BACKSPACE:
            if not c.input_locked:
                c.submit_answer(c.current_input[:-1])
        elif key in DIGIT_KEYS:
            c.submit_answer(c.current_input + DIGIT_KEYS[key])
        elif unicode and unicode.isdigit():
            c.submit_answer(c.current_input + unicode)

    def _handle_results_key(self, key: int) -> None:
        if key in (pygame.K_RETURN, pygame.K_KP_ENTER, pygame.K_SPACE):
            self._controller.restart()
        elif key == pygame.K_h:
            self._open_history()
        elif key == pygame.K_ESCAPE:
            self._app.quit()

    def update(self) -> None:
        self._scheduler.pump()

    # -- rendering ----------------------------------------------------------------

    def render(self, surface: pygame.Surface) -> None:
        surface.fill(BG)
        state = self._controller.game_state
        if state is GameState.IDLE:
            self._render_setup(surface)
        elif state is GameState.RUNNING:
            self._render_running(surface)
        else:
            self._render_results(surface)

    def _blit_center(self, surface: pygame.Surface, font: pygame.font.Font, text: str, color, y: int) -> None:
        img = font.render(text, True, color)
        surface.blit(img, img.get_rect(center=(surface.get_width() // 2, y)))

    def _render_setup(self, surface: pygame.Surface) -> None:
        w, h = surface.get_size()
        cfg = self._controller.config
        self._blit_center(surface, self._title_font, "mental math trainer", TEXT_MAIN, h // 6)

        values = (MODE_LABELS[cfg.mode], cfg.difficulty.value, f"{cfg.duration} s")
        y = h // 3
        for idx, (label, value) in enumerate(zip(self._SETUP_ROWS, values)):
            row = pygame.Rect(w // 2 - 260, y, 520, 52)
            if idx == self._row:
                pygame.draw.rect(surface, SELECTED_BG, row, border_radius=8)
            name = self._item_font.render(label, True, TEXT_MUTED)
            val = self._item_font.render(f"< {value} >", True, TEXT_MAIN)
            surface.blit(name, (row.x + 16, row.centery - name.get_height() // 2))
            surface.blit(val, val.get_rect(midright=(row.right - 16, row.centery)))
            y += 64

        self._blit_center(
            surface,
            self._hint_font,
            "Up/Down: choose  |  Left/Right or 1-4: change  |  Enter/Space: start  |  H: history  |  Esc: quit",
            TEXT_MUTED,
            h - 40,
        )

    def _render_running(self, surface: pygame.Surface) -> None:
        h = surface.get_height()
        snap = self._controller.snapshot()

        timer_color = TEXT_ERROR if snap.time_left <= 5 else TEXT_DIM
        self._blit_center(surface, self._timer_font, str(snap.time_left), timer_color, h // 8)
        self._blit_center(surface, self._problem_font, snap.prompt, TEXT_MAIN, h // 3)

        input_color = TEXT_ERROR if snap.feedback is Feedback.INCORRECT else TEXT_MAIN
        self._blit_center(surface, self._input_font, snap.current_input or "_", input_color, h // 2 + 30)

        wrong = snap.total - snap.correct
        stats = f"{snap.correct} correct    {wrong} wrong    {snap.total} total"
        self._blit_center(surface, self._hint_font, stats, TEXT_MUTED, h * 3 // 4)
        self._blit_center(
            surface, self._hint_font, "Tab: skip problem  |  F: finish test  |  Esc: exit", TEXT_DIM, h - 40
        )

    def _render_results(self, surface: pygame.Surface) -> None:
        w, h = surface.get_size()
        summary = self._controller.summary()
        if summary is None:
            return
        self._blit_center(surface, self._title_font, "test complete", TEXT_MAIN, h // 8)

        left = self._stat_font.render(f"{summary.accuracy:.1f}%", True, TEXT_MUTED)
        right = self._stat_font.render(f"{summary.ppm:.1f}", True, TEXT_MUTED)
        surface.blit(left, left.get_rect(center=(w // 3, h // 3)))
        surface.blit(right, right.get_rect(center=(w * 2 // 3, h // 3)))
        for text, x in (("accuracy", w // 3), ("ppm", w * 2 // 3)):
            img = self._hint_font.render(text, True, TEXT_DIM)
            surface.blit(img, img.get_rect(center=(x, h // 3 + 56)))

        y = h // 2 + 30
        for label, value in (
            ("problems", summary.total),
            ("correct", summary.correct),
            ("incorrect", summary.incorrect),
        ):
            name = self._item_font.render(label, True, TEXT_DIM)
            val = self._item_font.render(str(value), True, TEXT_MUTED)
            surface.blit(name, (w // 2 - 160, y))
            surface.blit(val, val.get_rect(topright=(w // 2 + 160, y)))
            y += 36

        status, color = describe_persist_result(
            self._controller.last_persist_result,
            saving=self._saving_enabled and summary.total > 0,
        )
        if status:
            self._blit_center(surface, self._hint_font, status, color, h - 70)
        self._blit_center(
            surface, self._hint_font, "Enter/Space: restart  |  H: history  |  Esc: quit", TEXT_DIM, h - 40
        )


class HistoryScreen:
    def __init__(self, app: App, *, store: SessionStore, max_rows: int = 10) -> None:
        self._app = app
        self._store = store
        self._max_rows = max_rows
        self._window = TimeWindow.ALL
        self._difficulty: Difficulty | None = None
        self._font = pygame.font.Font(None, 28)
        self._title_font = pygame.font.Font(None, 42)
        self._hint_font = pygame.font.Font(None, 22)
        self.reload()

    def reload(self) -> None:
        self._stats = self._store.load_stats()
        self._history = self._store.load_history(
            HistoryFilter(window=self._window, difficulty=self._difficulty, limit=self._max_rows)
        )

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type != pygame.KEYDOWN:
            return
        if event.key in (pygame.K_ESCAPE, pygame.K_BACKSPACE, pygame.K_h):
            self._app.pop()
        elif event.key == pygame.K_t:
            self._window = _cycle(tuple(TimeWindow), self._window, 1)
            self.reload()
        elif event.key == pygame.K_d:
            options = (None, *Difficulty)
            self._difficulty = _cycle(options, self._difficulty, 1)
            self.reload()

    def update(self) -> None:
        return

    def render(self, surface: pygame.Surface) -> None:
        w, h = surface.get_size()
        surface.fill(BG)
        title = self._title_font.render("session history", True, TEXT_MAIN)
        surface.blit(title, title.get_rect(center=(w // 2, 40)))

        error = self._stats.error or self._history.error
        if error == NOT_AUTHENTICATED:
            msg = self._font.render("Set a player name in settings to view your session history", True, TEXT_DIM)
            surface.blit(msg, msg.get_rect(center=(w // 2, h // 2)))
        elif error:
            msg = self._font.render(f"Error loading history: {error}", True, TEXT_ERROR)
            surface.blit(msg, msg.get_rect(center=(w // 2, h // 2)))
        else:
            stats = (
                f"sessions {self._stats.total_sessions}    "
                f"avg accuracy {self._stats.average_accuracy:.1f}%    "
                f"avg ppm {self._stats.average_ppm:.1f}"
            )
            img = self._font.render(stats, True, TEXT_MUTED)
            surface.blit(img, img.get_rect(center=(w // 2, 90)))

            difficulty = "all" if self._difficulty is None else self._difficulty.value
            filt = self._hint_font.render(
                f"time: {self._window.value}    difficulty: {difficulty}", True, TEXT_DIM
            )
            surface.blit(filt, filt.get_rect(center=(w // 2, 124)))

            y = 150
            if not self._history.sessions:
                msg = self._font.render("No sessions yet. Complete a test to see your history!", True, TEXT_DIM)
                surface.blit(msg, msg.get_rect(center=(w // 2, h // 2)))
            for record in self._history.sessions:
                s = record.summary
                line = (
                    f"{record.created_at_utc[:16].replace('T', ' ')}  {s.mode.value:<8} {s.difficulty.value:<6} "
                    f"{s.duration:>2}s  {s.correct}/{s.total}  {s.accuracy:.1f}%  {s.ppm:.1f} ppm"
                    + ("  (ended early)" if s.skipped else "")
                )
                img = self._font.render(line, True, TEXT_MUTED)
                surface.blit(img, (40, y))
                y += 32

        foot = self._hint_font.render("T: time filter  |  D: difficulty filter  |  Esc: back", True, TEXT_DIM)
        surface.blit(foot, foot.get_rect(midbottom=(w // 2, h - 14)))


def _new_seed() -> int:
    return random.SystemRandom().randint(1, 2**31 - 1)


def run(
    *,
    max_frames: int | None = None,
    event_injector: Callable[[int], None] | None = None,
    settings: Settings | None = None,
) -> int:
    if settings is None:
        settings = Settings.load()
    configure_logging(settings.log_level)
    validate_difficulty_configs()

    pygame.init()
    pygame.display.set_caption("Mental Math Trainer")
    surface = pygame.display.set_mode(WINDOW_SIZE, pygame.RESIZABLE)

    font = pygame.font.Font(None, 36)
    frame_clock = pygame.time.Clock()

    app = App(surface=surface, font=font)

    store = SessionStore(settings.db_path, player=settings.player)
    scheduler = ClockScheduler(RealClock())
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="mental-math-persist")
    controller = SessionController(
        generator=ProblemGenerator(random.Random(_new_seed())),
        scheduler=scheduler,
        config=settings.session_config(),
        persist=store.persist_session,
        persist_executor=executor,
        feedback_delay_s=settings.feedback_delay_s,
    )

    def open_history() -> None:
        app.push(HistoryScreen(app, store=store))

    app.push(
        TrainerScreen(
            app,
            controller=controller,
            scheduler=scheduler,
            open_history=open_history,
            saving_enabled=store.authenticated,
        )
    )

    frame = 0
    try:
        while app.running:
            if event_injector is not None:
                event_injector(frame)

            for event in pygame.event.get():
                app.handle_event(event)

            app.update()
            app.render()

            pygame.display.flip()

            frame += 1
            if max_frames is not None and frame >= max_frames:
                break

            frame_clock.tick(TARGET_FPS)
    finally:
        controller.cancel()
        executor.shutdown(wait=True)
        pygame.quit()

    return 0
