"""Terminal abstraction and the draw targets progress bars render to."""

from __future__ import annotations

import abc
import os
import sys
import threading
from typing import Sequence, TextIO

_DEFAULT_WIDTH = 80
_STDERR_REFRESH_RATE = 15
_TERM_LIKE_REFRESH_RATE = 20
_LIMITER_BURST = 20
_NANOS_PER_SEC = 1_000_000_000


class TermLike(abc.ABC):
    """Minimal terminal-like behaviour a draw target needs."""

    @abc.abstractmethod
    def width(self) -> int:
        """Return the terminal width in columns."""

    @abc.abstractmethod
    def move_cursor_up(self, n: int) -> None:
        """Move the cursor up by ``n`` lines."""

    @abc.abstractmethod
    def move_cursor_down(self, n: int) -> None:
        """Move the cursor down by ``n`` lines."""

    @abc.abstractmethod
    def move_cursor_right(self, n: int) -> None:
        """Move the cursor right by ``n`` columns."""

    @abc.abstractmethod
    def move_cursor_left(self, n: int) -> None:
        """Move the cursor left by ``n`` columns."""

    @abc.abstractmethod
    def write_line(self, s: str) -> None:
        """Write a string followed by a newline."""

    @abc.abstractmethod
    def write_str(self, s: str) -> None:
        """Write a string."""

    @abc.abstractmethod
    def clear_line(self) -> None:
        """Clear the current line and move the cursor to its start."""

    @abc.abstractmethod
    def flush(self) -> None:
        """Flush pending output."""


class Term(TermLike):
    """A terminal backed by a text stream, driven with ANSI escape sequences."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream if stream is not None else sys.stderr

    def _is_tty(self) -> bool:
        isatty = getattr(self._stream, "isatty", None)
        return bool(isatty and isatty())

    def width(self) -> int:
        try:
            return os.get_terminal_size(self._stream.fileno()).columns
        except (AttributeError, OSError, ValueError):
            return _DEFAULT_WIDTH

    def _move(self, n: int, code: str) -> None:
        if n > 0:
            self._stream.write(f"\x1b[{n}{code}")

    def move_cursor_up(self, n: int) -> None:
        self._move(n, "A")

    def move_cursor_down(self, n: int) -> None:
        self._move(n, "B")

    def move_cursor_right(self, n: int) -> None:
        self._move(n, "C")

    def move_cursor_left(self, n: int) -> None:
        self._move(n, "D")

    def write_line(self, s: str) -> None:
        self._stream.write(s + "\n")

    def write_str(self, s: str) -> None:
        self._stream.write(s)

    def clear_line(self) -> None:
        self._stream.write("\r\x1b[2K")

    def flush(self) -> None:
        self._stream.flush()


class _RateLimiter:
    """Token bucket allowing short bursts of redraws at a bounded rate."""

    def __init__(self, rate: int) -> None:
        self._interval = _NANOS_PER_SEC // rate
        self._capacity = _LIMITER_BURST
        self._prev: int | None = None

    def allow(self, now: int) -> bool:
        if self._prev is None:
            self._prev = now
        if now < self._prev:
            return False

        elapsed = now - self._prev
        if self._capacity == 0 and elapsed < self._interval:
            return False

        earned, remainder = divmod(elapsed, self._interval)
        self._capacity = min(_LIMITER_BURST, self._capacity + earned - 1)
        self._prev = now - remainder
        return True


class ProgressDrawTarget:
    """Where a progress bar is drawn: a terminal, or nowhere when hidden.

    Times passed to the drawing methods are integer nanoseconds from a
    monotonic clock.
    """

    def __init__(
        self,
        term: TermLike | None,
        refresh_rate: int = _TERM_LIKE_REFRESH_RATE,
        visible: bool = True,
    ) -> None:
        self._term = term
        self._visible = visible and term is not None
        self._limiter = _RateLimiter(refresh_rate)
        self._drawn = 0
        self._lock = threading.RLock()

    @classmethod
    def stderr(cls) -> ProgressDrawTarget:
        """Draw to standard error; hidden when it is not a terminal."""
        term = Term(sys.stderr)
        return cls(term, _STDERR_REFRESH_RATE, visible=term._is_tty())

    @classmethod
    def hidden(cls) -> ProgressDrawTarget:
        """A target that draws nothing."""
        return cls(None)

    @classmethod
    def term_like(cls, term: TermLike) -> ProgressDrawTarget:
        """Draw to any terminal-like object."""
        return cls(term, _TERM_LIKE_REFRESH_RATE)

    def is_hidden(self) -> bool:
        """Whether nothing drawn to this target becomes visible."""
        return not self._visible

    def width(self) -> int:
        """Width of the target in columns; 0 when hidden."""
        if self._term is None:
            return 0
        return self._term.width()

    def _clear_drawn(self) -> None:
        term = self._term
        if self._drawn:
            term.clear_line()
            for _ in range(self._drawn - 1):
                term.move_cursor_up(1)
                term.clear_line()
        self._drawn = 0

    def _write_bar_lines(self, lines: Sequence[str]) -> None:
        if not lines:
            return
        *head, last = lines
        for line in head:
            self._term.write_line(line)
        self._term.write_str(last)
        self._drawn = len(lines)

    def draw(self, lines: Sequence[str], force: bool, now: int) -> None:
        """Replace the previously drawn lines with ``lines``.

        Unless ``force`` is set the redraw may be skipped to respect the
        refresh rate.
        """
        if not self._visible:
            return
        with self._lock:
            if not force and not self._limiter.allow(now):
                return
            self._clear_drawn()
            self._write_bar_lines(lines)
            self._term.flush()

    def println(self, lines: Sequence[str], bar_lines: Sequence[str], now: int) -> None:
        """Print ``lines`` permanently above the bar, then redraw ``bar_lines``."""
        if not self._visible:
            return
        with self._lock:
            self._clear_drawn()
            for line in lines:
                self._term.write_line(line)
            self._write_bar_lines(bar_lines)
            self._term.flush()

    def clear(self, now: int) -> None:
        """Erase whatever the bar last drew."""
        if not self._visible:
            return
        with self._lock:
            self._clear_drawn()
            self._term.flush()

    def disconnect(self, now: int) -> None:
        """Detach from the bar, leaving the lines already drawn in place."""
        with self._lock:
            self._drawn = 0