"""Progress bars and spinners, and the wrappers that drive them."""

from __future__ import annotations

import contextlib
import threading
import time
import weakref
from typing import IO, Any, Callable, Generic, Iterable, Iterator, TypeVar

from progresskit.bar_state import BarState, Ticker
from progresskit.state import AtomicPosition, ProgressFinish, ProgressState, Reset, TabExpandedString
from progresskit.style import ProgressStyle
from progresskit.terminal import ProgressDrawTarget

T = TypeVar("T")
R = TypeVar("R")

_NANOS_PER_SEC = 1_000_000_000


def _now() -> int:
    return time.monotonic_ns()


class _TickerSlot:
    """Holds the background ticker of a bar, if one is running."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._ticker: Ticker | None = None

    def is_empty(self) -> bool:
        with self._lock:
            return self._ticker is None

    def replace(self, factory: Callable[[], Ticker] | None) -> None:
        """Stop the current ticker and install the one ``factory`` builds."""
        with self._lock:
            old, self._ticker = self._ticker, None
            if old is not None:
                old.stop()
            if factory is not None:
                self._ticker = factory()


class _Shared:
    """The state every handle on one progress bar shares."""

    __slots__ = ("bar_state", "pos", "ticker", "__weakref__")

    def __init__(self, bar_state: BarState, pos: AtomicPosition, ticker: _TickerSlot) -> None:
        self.bar_state = bar_state
        self.pos = pos
        self.ticker = ticker


def _release(bar_state: BarState, ticker: _TickerSlot) -> None:
    """Stop ticking and finish the bar once no handle refers to it."""
    ticker.replace(None)
    with bar_state.lock:
        if not bar_state.state.is_finished():
            bar_state.finish_using_style(_now(), bar_state.on_finish)


class ProgressBar:
    """A progress bar or spinner.

    Copies made with :func:`copy.copy` share the same state. When the last
    handle on a bar goes away, the bar is finished with the behaviour set by
    :meth:`with_finish` unless it already has been. Durations are in seconds.
    """

    def __init__(
        self, length: int | None = None, draw_target: ProgressDrawTarget | None = None
    ) -> None:
        if draw_target is None:
            draw_target = ProgressDrawTarget.stderr()
        pos = AtomicPosition()
        shared = _Shared(BarState(length, draw_target, pos), pos, _TickerSlot())
        weakref.finalize(shared, _release, shared.bar_state, shared.ticker)
        self._shared = shared

    @classmethod
    def _from_shared(cls, shared: _Shared) -> ProgressBar:
        bar = object.__new__(cls)
        bar._shared = shared
        return bar

    @classmethod
    def new_spinner(cls) -> ProgressBar:
        """A spinner drawing to stderr with the default spinner style."""
        bar = cls(None, ProgressDrawTarget.stderr())
        bar.set_style(ProgressStyle.default_spinner())
        return bar

    @classmethod
    def hidden(cls) -> ProgressBar:
        """A bar with no length that never renders."""
        return cls(None, ProgressDrawTarget.hidden())

    def __copy__(self) -> ProgressBar:
        return self._from_shared(self._shared)

    def __repr__(self) -> str:
        return "ProgressBar()"

    @contextlib.contextmanager
    def _locked(self) -> Iterator[BarState]:
        bar_state = self._shared.bar_state
        with bar_state.lock:
            yield bar_state

    def style(self) -> ProgressStyle:
        """A copy of the current style."""
        import copy

        with self._locked() as bar:
            return copy.copy(bar.style)

    def with_style(self, style: ProgressStyle) -> ProgressBar:
        """Set the style and return this bar."""
        self.set_style(style)
        return self

    def with_tab_width(self, tab_width: int) -> ProgressBar:
        """Set the tab width and return this bar."""
        with self._locked() as bar:
            bar.set_tab_width(tab_width)
        return self

    def with_prefix(self, prefix: str) -> ProgressBar:
        """Set the prefix without redrawing and return this bar."""
        with self._locked() as bar:
            bar.state.prefix = TabExpandedString(prefix, bar.tab_width)
        return self

    def with_message(self, message: str) -> ProgressBar:
        """Set the message without redrawing and return this bar."""
        with self._locked() as bar:
            bar.state.message = TabExpandedString(message, bar.tab_width)
        return self

    def with_position(self, pos: int) -> ProgressBar:
        """Set the position without redrawing and return this bar."""
        with self._locked() as bar:
            bar.state.set_pos(pos)
        return self

    def with_elapsed(self, elapsed: float) -> ProgressBar:
        """Pretend the bar started ``elapsed`` seconds ago and return it."""
        with self._locked() as bar:
            bar.state.started = _now() - int(elapsed * _NANOS_PER_SEC)
        return self

    def with_finish(self, finish: ProgressFinish) -> ProgressBar:
        """Set what happens when the bar completes unfinished, and return it."""
        with self._locked() as bar:
            bar.on_finish = finish
        return self

    def set_style(self, style: ProgressStyle) -> None:
        """Replace the style without redrawing."""
        with self._locked() as bar:
            bar.set_style(style)

    def set_tab_width(self, tab_width: int) -> None:
        """Expand tabs to ``tab_width`` spaces and redraw."""
        with self._locked() as bar:
            bar.set_tab_width(tab_width)
            bar.draw(True, _now())

    def enable_steady_tick(self, interval: float) -> None:
        """Tick the bar from a background thread every ``interval`` seconds.

        While steady ticking is on, :meth:`tick` has no effect. A zero or
        negative interval does nothing.
        """
        if interval <= 0:
            return
        bar_state = self._shared.bar_state
        self._shared.ticker.replace(lambda: Ticker(interval, bar_state))

    def disable_steady_tick(self) -> None:
        """Stop the background ticking thread."""
        self._shared.ticker.replace(None)

    def tick(self) -> None:
        """Advance the spinner and redraw."""
        self._tick_inner(_now())

    def _tick_inner(self, now: int) -> None:
        if self._shared.ticker.is_empty():
            with self._locked() as bar:
                bar.tick(now)

    def inc(self, delta: int = 1) -> None:
        """Advance the position by ``delta``."""
        pos = self._shared.pos
        pos.inc(delta)
        now = _now()
        if pos.allow(now):
            self._tick_inner(now)

    def is_hidden(self) -> bool:
        """Whether the bar draws to a hidden target."""
        with self._locked() as bar:
            return bar.draw_target.is_hidden()

    def is_finished(self) -> bool:
        """Whether the bar has finished."""
        with self._locked() as bar:
            return bar.state.is_finished()

    def println(self, msg: str) -> None:
        """Print a line above the bar; does nothing when the bar is hidden."""
        with self._locked() as bar:
            bar.println(_now(), msg)

    def update(self, func: Callable[[ProgressState], Any]) -> None:
        """Let ``func`` change the progress state, then tick."""
        tick = self._shared.ticker.is_empty()
        with self._locked() as bar:
            bar.update(_now(), func, tick)

    def set_position(self, pos: int) -> None:
        """Set the position."""
        position = self._shared.pos
        position.set(pos)
        now = _now()
        if position.allow(now):
            self._tick_inner(now)

    def set_length(self, length: int) -> None:
        """Set the length."""
        with self._locked() as bar:
            bar.set_length(_now(), length)

    def inc_length(self, delta: int) -> None:
        """Grow the length by ``delta``; unbounded bars stay unbounded."""
        with self._locked() as bar:
            bar.inc_length(_now(), delta)

    def set_prefix(self, prefix: str) -> None:
        """Set the text shown by the ``{prefix}`` key."""
        with self._locked() as bar:
            bar.state.prefix = TabExpandedString(prefix, bar.tab_width)
            bar.update_estimate_and_draw(_now())

    def set_message(self, message: str) -> None:
        """Set the text shown by the ``{msg}`` key."""
        with self._locked() as bar:
            bar.state.message = TabExpandedString(message, bar.tab_width)
            bar.update_estimate_and_draw(_now())

    def downgrade(self) -> WeakProgressBar:
        """A weak reference to this bar."""
        return WeakProgressBar(weakref.ref(self._shared))

    def reset_eta(self) -> None:
        """Restart the ETA estimate."""
        with self._locked() as bar:
            bar.reset(_now(), Reset.ETA)

    def reset_elapsed(self) -> None:
        """Restart the elapsed time."""
        with self._locked() as bar:
            bar.reset(_now(), Reset.ELAPSED)

    def reset(self) -> None:
        """Reset position, timing and finish status."""
        with self._locked() as bar:
            bar.reset(_now(), Reset.ALL)

    def _finish(self, finish: ProgressFinish) -> None:
        with self._locked() as bar:
            bar.finish_using_style(_now(), finish)

    def finish(self) -> None:
        """Finish and leave the current message."""
        self._finish(ProgressFinish.and_leave())

    def finish_with_message(self, message: str) -> None:
        """Finish and set a message."""
        self._finish(ProgressFinish.with_message(message))

    def finish_and_clear(self) -> None:
        """Finish and clear the bar completely."""
        self._finish(ProgressFinish.and_clear())

    def abandon(self) -> None:
        """Finish, leaving the current message and progress."""
        self._finish(ProgressFinish.abandon())

    def abandon_with_message(self, message: str) -> None:
        """Finish with a message, leaving the current progress."""
        self._finish(ProgressFinish.abandon_with_message(message))

    def finish_using_style(self) -> None:
        """Finish the way :meth:`with_finish` set."""
        with self._locked() as bar:
            bar.finish_using_style(_now(), bar.on_finish)

    def set_draw_target(self, target: ProgressDrawTarget) -> None:
        """Draw to ``target`` from now on, leaving earlier output in place."""
        with self._locked() as bar:
            bar.draw_target.disconnect(_now())
            bar.draw_target = target

    def suspend(self, func: Callable[[], R]) -> R:
        """Hide the bar, run ``func`` and draw the bar again; returns its result."""
        with self._locked() as bar:
            return bar.suspend(_now(), func)

    def wrap_iter(self, iterable: Iterable[T]) -> ProgressBarIter[T]:
        """Iterate over ``iterable``, advancing the bar by one per item."""
        return ProgressBarIter(self, iterable)

    def wrap_read(self, reader: IO[Any]) -> ProgressBarIter[Any]:
        """Wrap a readable stream, advancing the bar by the amount read."""
        return ProgressBarIter(self, reader)

    def wrap_write(self, writer: IO[Any]) -> ProgressBarIter[Any]:
        """Wrap a writable stream, advancing the bar by the amount written."""
        return ProgressBarIter(self, writer)

    def position(self) -> int:
        """Current position."""
        with self._locked() as bar:
            return bar.state.pos()

    def length(self) -> int | None:
        """Current length, or None for an unbounded bar."""
        with self._locked() as bar:
            return bar.state.len()

    def eta(self) -> float:
        """Estimated remaining seconds."""
        with self._locked() as bar:
            return bar.state.eta()

    def per_sec(self) -> float:
        """Steps per second."""
        with self._locked() as bar:
            return bar.state.per_sec()

    def duration(self) -> float:
        """Expected total seconds."""
        with self._locked() as bar:
            return bar.state.duration()

    def elapsed(self) -> float:
        """Seconds since the bar started."""
        with self._locked() as bar:
            return bar.state.elapsed()

    def message(self) -> str:
        """Current message with tabs expanded."""
        with self._locked() as bar:
            return bar.state.message.expanded()

    def prefix(self) -> str:
        """Current prefix with tabs expanded."""
        with self._locked() as bar:
            return bar.state.prefix.expanded()

    def close(self) -> None:
        """Stop steady ticking and finish as configured unless already finished."""
        _release(self._shared.bar_state, self._shared.ticker)

    def __enter__(self) -> ProgressBar:
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        self.close()


class WeakProgressBar:
    """A weak reference to a progress bar."""

    def __init__(self, reference: weakref.ReferenceType[_Shared] | None = None) -> None:
        self._reference = reference

    def upgrade(self) -> ProgressBar | None:
        """The bar, or None if every handle on it is gone."""
        if self._reference is None:
            return None
        shared = self._reference()
        if shared is None:
            return None
        return ProgressBar._from_shared(shared)


class ProgressBarIter(Generic[T]):
    """An iterable or stream whose consumption advances a progress bar.

    Iterating advances the bar by one per item and finishes it, as set by
    :meth:`ProgressBar.with_finish`, once the items run out. Reading and
    writing advance it by the number of bytes or characters moved.
    """

    def __init__(self, progress: ProgressBar, inner: Any) -> None:
        self.progress = progress
        self.inner = inner
        self._iterator: Iterator[T] | None = None

    def __iter__(self) -> ProgressBarIter[T]:
        return self

    def __next__(self) -> T:
        if self._iterator is None:
            self._iterator = iter(self.inner)
        try:
            item = next(self._iterator)
        except StopIteration:
            if not self.progress.is_finished():
                self.progress.finish_using_style()
            raise
        self.progress.inc(1)
        return item

    def read(self, size: int = -1) -> Any:
        """Read from the wrapped stream."""
        data = self.inner.read(size)
        self.progress.inc(len(data))
        return data

    def write(self, data: Any) -> int | None:
        """Write to the wrapped stream."""
        written = self.inner.write(data)
        self.progress.inc(len(data) if written is None else written)
        return written

    def flush(self) -> None:
        """Flush the wrapped stream."""
        self.inner.flush()