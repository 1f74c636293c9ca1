"""Shared mutable state behind a progress bar, and the background ticker."""

from __future__ import annotations

import contextlib
import copy
import threading
import time
import weakref
from typing import Callable, TypeVar

from progresskit.state import (
    DEFAULT_TAB_WIDTH,
    AtomicPosition,
    FinishKind,
    ProgressFinish,
    ProgressState,
    Reset,
    Status,
    TabExpandedString,
)
from progresskit.style import ProgressStyle
from progresskit.terminal import ProgressDrawTarget

R = TypeVar("R")


def _split_lines(text: str) -> list[str]:
    if not text:
        return []
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


class BarState:
    """Everything a progress bar needs to render itself.

    ``lock`` guards the state; callers that share a BarState between
    threads hold it around every method call. Times are integer
    nanoseconds from a monotonic clock.
    """

    def __init__(
        self,
        length: int | None,
        draw_target: ProgressDrawTarget,
        pos: AtomicPosition,
    ) -> None:
        self.lock = threading.RLock()
        self.draw_target = draw_target
        self.on_finish = ProgressFinish()
        self.style = ProgressStyle.default_bar()
        self.state = ProgressState(length, pos)
        self.tab_width = DEFAULT_TAB_WIDTH

    def _expand(self, text: str) -> TabExpandedString:
        return TabExpandedString(text, self.tab_width)

    def finish_using_style(self, now: int, finish: ProgressFinish) -> None:
        """Finish the bar the way ``finish`` describes, then draw it."""
        state = self.state
        state.status = Status.DONE_VISIBLE
        kind = finish.kind
        if kind in (FinishKind.AND_LEAVE, FinishKind.WITH_MESSAGE, FinishKind.AND_CLEAR):
            length = state.len()
            if length is not None:
                state.set_pos(length)
        if kind in (FinishKind.WITH_MESSAGE, FinishKind.ABANDON_WITH_MESSAGE):
            state.message = self._expand(finish.message or "")
        if kind is FinishKind.AND_CLEAR:
            state.status = Status.DONE_HIDDEN

        with contextlib.suppress(OSError):
            self.draw(True, now)

    def reset(self, now: int, mode: Reset) -> None:
        """Reset the ETA, the elapsed time, or everything."""
        if mode in (Reset.ETA, Reset.ALL):
            self.state.est.reset(now)
        if mode in (Reset.ELAPSED, Reset.ALL):
            self.state.started = now
        if mode is Reset.ALL:
            self.state.atomic_pos.reset(now)
            self.state.status = Status.IN_PROGRESS
            for tracker in self.style.format_map.values():
                tracker.reset(self.state, now)
            with contextlib.suppress(OSError):
                self.draw(False, now)

    def update(self, now: int, func: Callable[[ProgressState], object], tick: bool) -> None:
        """Let ``func`` change the progress state, then tick if asked to."""
        func(self.state)
        if tick:
            self.tick(now)

    def set_length(self, now: int, length: int) -> None:
        """Set the length and redraw."""
        self.state.set_len(length)
        self.update_estimate_and_draw(now)

    def inc_length(self, now: int, delta: int) -> None:
        """Grow the length by ``delta`` if the bar has one, and redraw."""
        length = self.state.len()
        if length is not None:
            self.state.set_len(length + delta)
        self.update_estimate_and_draw(now)

    def set_tab_width(self, tab_width: int) -> None:
        """Expand tabs in message, prefix and template to ``tab_width`` spaces."""
        self.tab_width = tab_width
        self.state.message.set_tab_width(tab_width)
        self.state.prefix.set_tab_width(tab_width)
        self.style.set_tab_width(tab_width)

    def set_style(self, style: ProgressStyle) -> None:
        """Use a copy of ``style``, adjusted to this bar's tab width."""
        self.style = copy.copy(style)
        self.style.set_tab_width(self.tab_width)

    def tick(self, now: int) -> None:
        """Advance the spinner and redraw."""
        self.state.tick += 1
        self.update_estimate_and_draw(now)

    def update_estimate_and_draw(self, now: int) -> None:
        """Record the current position for the ETA, redraw and notify trackers."""
        self.state.est.record(self.state.pos(), now)
        with contextlib.suppress(OSError):
            self.draw(False, now)
        for tracker in self.style.format_map.values():
            tracker.tick(self.state, now)

    def _bar_lines(self, width: int) -> list[str]:
        if self.state.status is Status.DONE_HIDDEN:
            return []
        return self.style.format_state(self.state, width)

    def println(self, now: int, msg: str) -> None:
        """Print ``msg`` above the bar and redraw the bar below it."""
        width = self.draw_target.width()
        self.draw_target.println(_split_lines(msg), self._bar_lines(width), now)

    def suspend(self, now: int, func: Callable[[], R]) -> R:
        """Clear the bar, run ``func``, then draw the bar again."""
        self.draw_target.clear(now)
        try:
            return func()
        finally:
            with contextlib.suppress(OSError):
                self.draw(True, time.monotonic_ns())

    def draw(self, force_draw: bool, now: int) -> None:
        """Render the bar to its draw target; finished bars always draw."""
        force_draw = force_draw or self.state.is_finished()
        width = self.draw_target.width()
        self.draw_target.draw(self._bar_lines(width), force_draw, now)


class Ticker:
    """Background thread that ticks a bar at a steady interval.

    The thread holds only a weak reference to the bar state and ends when
    the state is gone, the bar has finished, or :meth:`stop` is called.
    """

    def __init__(self, interval: float, bar_state: BarState) -> None:
        if interval <= 0:
            raise ValueError("ticker interval must be positive")
        self._interval = interval
        self._stopping = threading.Event()
        self._state_ref = weakref.ref(bar_state)
        self._thread = threading.Thread(target=self._run, name="progress-ticker", daemon=True)
        self._thread.start()

    def _tick_once(self) -> bool:
        bar_state = self._state_ref()
        if bar_state is None:
            return False
        with bar_state.lock:
            if bar_state.state.is_finished():
                return False
            bar_state.state.tick += 1
            with contextlib.suppress(OSError):
                bar_state.draw(False, time.monotonic_ns())
        return True

    def _run(self) -> None:
        while self._tick_once():
            if self._stopping.wait(self._interval):
                break

    def stop(self) -> None:
        """Ask the thread to stop and wait for it to end.

        Must not be called while holding the bar state's lock from another
        thread than the one that owns it.
        """
        self._stopping.set()
        if self._thread is not threading.current_thread():
            self._thread.join()

    def is_running(self) -> bool:
        """Whether the ticking thread is still alive."""
        return self._thread.is_alive()