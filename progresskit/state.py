"""Progress state: position, length, timing estimates and finish behaviour."""

from __future__ import annotations

import enum
import math
import threading
import time
from dataclasses import dataclass

INTERVAL = 1_000_000
"""Nanoseconds needed to earn one unit of redraw capacity."""

MAX_BURST = 10
"""Largest number of redraws allowed in a quick burst."""

DEFAULT_TAB_WIDTH = 8

_NANOS_PER_SEC = 1_000_000_000


class Status(enum.Enum):
    """Lifecycle of a progress bar."""

    IN_PROGRESS = enum.auto()
    DONE_VISIBLE = enum.auto()
    DONE_HIDDEN = enum.auto()


class Reset(enum.Enum):
    """What part of a bar's state a reset affects."""

    ETA = enum.auto()
    ELAPSED = enum.auto()
    ALL = enum.auto()


def _expand_tabs(text: str, tab_width: int) -> str:
    return text.replace("\t", " " * tab_width)


class TabExpandedString:
    """A string whose tabs are shown as a fixed number of spaces."""

    __slots__ = ("original", "tab_width", "_expanded")

    def __init__(self, text: str = "", tab_width: int = DEFAULT_TAB_WIDTH) -> None:
        self.original = text
        self.tab_width = tab_width
        self._expanded = _expand_tabs(text, tab_width)

    def expanded(self) -> str:
        """Return the text with every tab replaced by spaces."""
        return self._expanded

    def set_tab_width(self, tab_width: int) -> None:
        """Re-expand the original text with a different tab width."""
        if tab_width != self.tab_width:
            self.tab_width = tab_width
            self._expanded = _expand_tabs(self.original, tab_width)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TabExpandedString):
            return NotImplemented
        return (self.original, self._expanded) == (other.original, other._expanded)

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"TabExpandedString({self.original!r}, tab_width={self.tab_width})"


class Estimator:
    """Rolling estimate of the number of seconds each step takes.

    Times are integer nanoseconds from a monotonic clock.
    """

    CAPACITY = 16

    def __init__(self, now: int) -> None:
        self.steps = [0.0] * self.CAPACITY
        self._pos = 0
        self._full = False
        self.prev: tuple[int, int] = (0, now)

    def record(self, new: int, now: int) -> None:
        """Record that the position reached ``new`` at time ``now``."""
        prev_pos, prev_time = self.prev
        delta = max(new - prev_pos, 0)
        if delta == 0 or now < prev_time:
            return

        elapsed = (now - prev_time) / _NANOS_PER_SEC
        self.steps[self._pos] = elapsed / delta
        self._pos = (self._pos + 1) % self.CAPACITY
        if not self._full and self._pos == 0:
            self._full = True
        self.prev = (new, now)

    def reset(self, now: int) -> None:
        """Discard all samples and restart measuring from position zero."""
        self._pos = 0
        self._full = False
        self.prev = (0, now)

    def seconds_per_step(self) -> float:
        """Average seconds per step over the stored samples; NaN without samples."""
        count = len(self)
        if count == 0:
            return math.nan
        return sum(self.steps[:count]) / count

    def __len__(self) -> int:
        return self.CAPACITY if self._full else self._pos

    def __repr__(self) -> str:
        return f"Estimator(steps={self.steps[:len(self)]!r}, prev={self.prev!r})"


class AtomicPosition:
    """Thread-safe position counter with a token-bucket redraw limiter."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.pos = 0
        self._capacity = MAX_BURST
        self._prev = 0
        self.start = time.monotonic_ns()

    def allow(self, now: int) -> bool:
        """Return whether a redraw is allowed at time ``now`` and consume capacity."""
        if now < self.start:
            return False

        with self._lock:
            elapsed = now - self.start
            diff = max(elapsed - self._prev, 0)
            if self._capacity == 0 and diff < INTERVAL:
                return False

            earned, remainder = divmod(diff, INTERVAL)
            self._capacity = min(MAX_BURST, self._capacity + earned - 1)
            self._prev = elapsed - remainder
            return True

    def reset(self, now: int) -> None:
        """Set the position back to zero and restart the limiter window."""
        self.set(0)
        elapsed_ms = max(now - self.start, 0) // 1_000_000
        with self._lock:
            self._prev = elapsed_ms

    def inc(self, delta: int) -> None:
        """Advance the position by ``delta``."""
        with self._lock:
            self.pos += delta

    def set(self, pos: int) -> None:
        """Set the position to ``pos``."""
        with self._lock:
            self.pos = pos


class ProgressState:
    """The state of a progress bar at a moment in time.

    Durations are reported in seconds as floats.
    """

    def __init__(self, length: int | None, pos: AtomicPosition) -> None:
        now = time.monotonic_ns()
        self.atomic_pos = pos
        self._len = length
        self.tick = 0
        self.started = now
        self.status = Status.IN_PROGRESS
        self.est = Estimator(now)
        self.message = TabExpandedString("")
        self.prefix = TabExpandedString("")

    def is_finished(self) -> bool:
        """Whether the bar has finished, visibly or not."""
        return self.status is not Status.IN_PROGRESS

    def fraction(self) -> float:
        """Completion as a number between 0 and 1."""
        pos = self.pos()
        if self._len is None or self._len == 0:
            pct = 1.0
        elif pos == 0:
            pct = 0.0
        else:
            pct = pos / self._len
        return min(max(pct, 0.0), 1.0)

    def eta(self) -> float:
        """Expected remaining time in seconds."""
        if self.is_finished() or self._len is None:
            return 0.0
        remaining = max(self._len - self.pos(), 0)
        seconds = self.est.seconds_per_step() * remaining
        if math.isnan(seconds) or seconds < 0:
            return 0.0
        return seconds

    def duration(self) -> float:
        """Expected total duration: elapsed time plus the ETA, in seconds."""
        if self._len is None or self.is_finished():
            return 0.0
        return self.elapsed() + self.eta()

    def per_sec(self) -> float:
        """Number of steps per second."""
        if self.status is Status.IN_PROGRESS:
            seconds = self.est.seconds_per_step()
            if math.isnan(seconds):
                return 0.0
            if seconds == 0:
                return math.inf
            return 1.0 / seconds

        total = self._len if self._len is not None else self.pos()
        elapsed = self.elapsed()
        if elapsed == 0:
            return math.nan if total == 0 else math.inf
        return total / elapsed

    def elapsed(self) -> float:
        """Seconds since the bar was started."""
        return max(time.monotonic_ns() - self.started, 0) / _NANOS_PER_SEC

    def pos(self) -> int:
        """Current position."""
        return self.atomic_pos.pos

    def set_pos(self, pos: int) -> None:
        """Set the current position."""
        self.atomic_pos.set(pos)

    def len(self) -> int | None:
        """Current length, or None for an unbounded bar."""
        return self._len

    def set_len(self, length: int) -> None:
        """Set the length."""
        self._len = length


class FinishKind(enum.Enum):
    """The ways a progress bar can be finished."""

    AND_LEAVE = enum.auto()
    WITH_MESSAGE = enum.auto()
    AND_CLEAR = enum.auto()
    ABANDON = enum.auto()
    ABANDON_WITH_MESSAGE = enum.auto()


@dataclass(frozen=True)
class ProgressFinish:
    """Behaviour of a progress bar when it is finished; clears it by default."""

    kind: FinishKind = FinishKind.AND_CLEAR
    message: str | None = None

    @classmethod
    def and_leave(cls) -> ProgressFinish:
        """Finish and leave the current message."""
        return cls(FinishKind.AND_LEAVE)

    @classmethod
    def with_message(cls, message: str) -> ProgressFinish:
        """Finish and set a message."""
        return cls(FinishKind.WITH_MESSAGE, message)

    @classmethod
    def and_clear(cls) -> ProgressFinish:
        """Finish and clear the bar completely."""
        return cls(FinishKind.AND_CLEAR)

    @classmethod
    def abandon(cls) -> ProgressFinish:
        """Finish and leave the current message and progress."""
        return cls(FinishKind.ABANDON)

    @classmethod
    def abandon_with_message(cls, message: str) -> ProgressFinish:
        """Finish, set a message and leave the current progress."""
        return cls(FinishKind.ABANDON_WITH_MESSAGE, message)