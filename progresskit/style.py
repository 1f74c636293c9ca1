"""Progress styles: templates, bar characters, spinners and custom keys."""

from __future__ import annotations

import abc
import copy
from dataclasses import dataclass
from typing import Callable, Iterable

from progresskit.state import DEFAULT_TAB_WIDTH, ProgressState
from progresskit.template import (
    Alignment,
    Literal,
    Placeholder,
    Style,
    Template,
    measure_text_width,
    pad_text,
)

_DEFAULT_TICK_CHARS = "⠁⠁⠉⠙⠚⠒⠂⠂⠒⠲⠴⠤⠄⠄⠤⠠⠠⠤⠦⠖⠒⠐⠐⠒⠓⠋⠉⠈⠈ "
_DEFAULT_PROGRESS_CHARS = "█░"
_DEFAULT_BAR_WIDTH = 20
_WIDE_MARKER = "\x00"


class ProgressTracker(abc.ABC):
    """A stateful or stateless formatter for a custom template key.

    Copies of a style hold shallow copies of its trackers.
    """

    def tick(self, state: ProgressState, now: int) -> None:
        """Called whenever the bar ticks."""

    def reset(self, state: ProgressState, now: int) -> None:
        """Called whenever the bar is reset."""

    @abc.abstractmethod
    def write(self, state: ProgressState) -> str:
        """Return the text shown in place of the key."""


class _FunctionTracker(ProgressTracker):
    """A stateless tracker backed by a function of the progress state."""

    def __init__(self, func: Callable[[ProgressState], str]) -> None:
        self._func = func

    def write(self, state: ProgressState) -> str:
        return self._func(state)


def _uniform_width(chars: list[str]) -> int:
    widths = {measure_text_width(c) for c in chars}
    if len(widths) != 1:
        raise ValueError("got passed un-equal width progress characters")
    width = widths.pop()
    if width == 0:
        raise ValueError("progress characters must take up at least one column")
    return width


@dataclass(frozen=True)
class _WideBar:
    alt_style: Style | None

    def expand(self, line: str, style: ProgressStyle, state: ProgressState, width: int) -> str:
        left = max(width - measure_text_width(line.replace(_WIDE_MARKER, "")), 0)
        bar = style.format_bar(state.fraction(), left, self.alt_style)
        return line.replace(_WIDE_MARKER, bar)


@dataclass(frozen=True)
class _WideMessage:
    align: Alignment

    def expand(self, line: str, style: ProgressStyle, state: ProgressState, width: int) -> str:
        left = max(width - measure_text_width(line.replace(_WIDE_MARKER, "")), 0)
        text = pad_text(state.message.expanded(), left, self.align, True)
        if line.endswith(_WIDE_MARKER):
            text = text.rstrip()
        return line.replace(_WIDE_MARKER, text)


class ProgressStyle:
    """How a progress bar or spinner is rendered.

    Builder methods change the style in place and return it, so calls can
    be chained. Template keys without a built-in meaning render as empty
    text unless a tracker is registered for them with :meth:`with_key`.
    """

    def __init__(self, template: Template) -> None:
        self._tick_strings = list(_DEFAULT_TICK_CHARS)
        self._progress_chars = list(_DEFAULT_PROGRESS_CHARS)
        self._char_width = _uniform_width(self._progress_chars)
        self._template = template
        self._tab_width = DEFAULT_TAB_WIDTH
        self.format_map: dict[str, ProgressTracker] = {}

    @classmethod
    def default_bar(cls) -> ProgressStyle:
        """The default style for bars."""
        return cls(Template.parse("{wide_bar} {pos}/{len}"))

    @classmethod
    def default_spinner(cls) -> ProgressStyle:
        """The default style for spinners."""
        return cls(Template.parse("{spinner} {msg}"))

    @classmethod
    def with_template(cls, template: str) -> ProgressStyle:
        """A style using ``template``; raises TemplateError on bad syntax."""
        return cls(Template.parse(template))

    def __copy__(self) -> ProgressStyle:
        clone = object.__new__(type(self))
        clone._tick_strings = list(self._tick_strings)
        clone._progress_chars = list(self._progress_chars)
        clone._char_width = self._char_width
        clone._template = copy.deepcopy(self._template)
        clone._tab_width = self._tab_width
        clone.format_map = {key: copy.copy(t) for key, t in self.format_map.items()}
        return clone

    def set_tab_width(self, tab_width: int) -> None:
        """Expand tabs in the template's literal text to ``tab_width`` spaces."""
        self._tab_width = tab_width
        self._template.set_tab_width(tab_width)

    def tick_chars(self, chars: str) -> ProgressStyle:
        """Use each character of ``chars`` as a spinner frame; the last one marks finish."""
        strings = list(chars)
        if len(strings) < 2:
            raise ValueError("at least 2 tick chars required")
        self._tick_strings = strings
        return self

    def tick_strings(self, strings: Iterable[str]) -> ProgressStyle:
        """Use ``strings`` as spinner frames; the last one marks finish."""
        frames = list(strings)
        if len(frames) < 2:
            raise ValueError("at least 2 tick strings required")
        self._tick_strings = frames
        return self

    def progress_chars(self, chars: str) -> ProgressStyle:
        """Set the bar characters: filled, then optional partial ones, then to do.

        All characters must have the same display width.
        """
        segments = list(chars)
        if len(segments) < 2:
            raise ValueError("at least 2 progress chars required")
        self._char_width = _uniform_width(segments)
        self._progress_chars = segments
        return self

    def with_key(
        self, key: str, tracker: ProgressTracker | Callable[[ProgressState], str]
    ) -> ProgressStyle:
        """Render ``key`` with ``tracker``, or a function of the state returning text."""
        if not isinstance(tracker, ProgressTracker):
            if not callable(tracker):
                raise TypeError("tracker must be a ProgressTracker or a callable")
            tracker = _FunctionTracker(tracker)
        self.format_map[key] = tracker
        return self

    def template(self, text: str) -> ProgressStyle:
        """Replace the template; raises TemplateError on bad syntax."""
        self._template = Template.parse(text, self._tab_width)
        return self

    def get_tick_str(self, idx: int) -> str:
        """The spinner frame for tick number ``idx``."""
        return self._tick_strings[idx % (len(self._tick_strings) - 1)]

    def get_final_tick_str(self) -> str:
        """The spinner frame shown once finished."""
        return self._tick_strings[-1]

    def _current_tick_str(self, state: ProgressState) -> str:
        if state.is_finished():
            return self.get_final_tick_str()
        return self.get_tick_str(state.tick)

    def format_bar(self, fraction: float, width: int, alt_style: Style | None = None) -> str:
        """Render a bar ``width`` columns wide filled to ``fraction``."""
        chars = self._progress_chars
        width //= self._char_width
        fill = fraction * width
        entirely_filled = int(fill)
        head = 1 if fill > 0 and entirely_filled < width else 0

        current = ""
        if head:
            n = max(len(chars) - 2, 0)
            if n <= 1:
                index = 1
            else:
                index = max(n - int((fill - int(fill)) * n), 0)
            current = chars[index]

        rest = chars[-1] * max(width - entirely_filled - head, 0)
        if alt_style is not None:
            rest = alt_style.apply(rest)
        return chars[0] * entirely_filled + current + rest

    def _render_key(
        self, part: Placeholder, state: ProgressState, pos: int, length: int
    ) -> tuple[str, _WideBar | _WideMessage | None]:
        tracker = self.format_map.get(part.key)
        if tracker is not None:
            return tracker.write(state).replace("\t", " " * self._tab_width), None

        key = part.key
        if key == "wide_bar":
            return _WIDE_MARKER, _WideBar(part.alt_style)
        if key == "wide_msg":
            return _WIDE_MARKER, _WideMessage(part.align)
        if key == "bar":
            width = part.width if part.width is not None else _DEFAULT_BAR_WIDTH
            return self.format_bar(state.fraction(), width, part.alt_style), None
        if key == "spinner":
            return self._current_tick_str(state), None
        if key == "msg":
            return state.message.expanded(), None
        if key == "prefix":
            return state.prefix.expanded(), None
        if key == "pos":
            return str(pos), None
        if key == "len":
            return str(length), None
        if key == "percent":
            return f"{state.fraction() * 100:.0f}", None
        return "", None

    def format_state(self, state: ProgressState, target_width: int) -> list[str]:
        """Render ``state`` as lines for a terminal ``target_width`` columns wide."""
        lines: list[str] = []
        current = ""
        wide: _WideBar | _WideMessage | None = None

        def finish_line(line: str) -> str:
            if wide is None:
                return line
            return wide.expand(line, self, state, target_width)

        pos = state.pos()
        length = state.len()
        if length is None:
            length = pos

        for part in self._template.parts:
            if isinstance(part, Placeholder):
                text, element = self._render_key(part, state, pos, length)
                if element is not None:
                    wide = element
                if part.width is not None:
                    text = pad_text(text, part.width, part.align, part.truncate)
                if part.style is not None:
                    text = part.style.apply(text)
                current += text
            elif isinstance(part, Literal):
                current += part.text.expanded()
            else:
                lines.append(finish_line(current))
                current = ""

        if current:
            lines.append(finish_line(current))
        return lines