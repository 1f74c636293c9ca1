"""Template parsing, terminal styles and text measurement for progress styles."""

from __future__ import annotations

import enum
import os
import re
import sys
from dataclasses import dataclass, field

from wcwidth import wcwidth

from progresskit.state import DEFAULT_TAB_WIDTH, TabExpandedString

_ANSI_RE = re.compile(
    r"\x1b\[[0-9;?]*[ -/]*[@-~]"
    r"|\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)"
    r"|\x1b[@-Z\\-_]"
)

_COLORS = {
    "black": 0,
    "red": 1,
    "green": 2,
    "yellow": 3,
    "blue": 4,
    "magenta": 5,
    "cyan": 6,
    "white": 7,
}

_ATTRIBUTES = {
    "bold": 1,
    "dim": 2,
    "italic": 3,
    "underlined": 4,
    "blink": 5,
    "reverse": 7,
    "hidden": 8,
    "strikethrough": 9,
}

_ASCII_WHITESPACE = frozenset(" \t\n\x0c\r")
_ASCII_DIGITS = frozenset("0123456789")
_MAX_WIDTH = 0xFFFF


def measure_text_width(text: str) -> int:
    """Columns ``text`` takes on a terminal, ignoring ANSI escape sequences."""
    plain = _ANSI_RE.sub("", text)
    return sum(max(wcwidth(ch), 0) for ch in plain)


def _colors_enabled_by_default() -> bool:
    force = os.environ.get("CLICOLOR_FORCE")
    if force is not None and force != "0":
        return True
    if "NO_COLOR" in os.environ or os.environ.get("CLICOLOR") == "0":
        return False
    isatty = getattr(sys.stdout, "isatty", None)
    if not (isatty and isatty()):
        return False
    return os.environ.get("TERM") != "dumb"


class Alignment(enum.Enum):
    """Horizontal alignment of a padded placeholder."""

    LEFT = enum.auto()
    CENTER = enum.auto()
    RIGHT = enum.auto()


@dataclass(frozen=True)
class Style:
    """Terminal colours and attributes applied to a piece of text.

    ``force`` overrides whether escape sequences are emitted; when it is
    None they are emitted only if standard output looks like a colour
    terminal.
    """

    fg: int | None = None
    fg_256: bool = False
    fg_bright: bool = False
    bg: int | None = None
    bg_256: bool = False
    bg_bright: bool = False
    attrs: frozenset[int] = field(default_factory=frozenset)
    force: bool | None = None

    @classmethod
    def from_dotted_str(cls, text: str) -> Style:
        """Build a style from dotted names such as ``"red.on_blue.bold"``.

        Unknown names are ignored.
        """
        fg = bg = None
        fg_256 = bg_256 = fg_bright = bg_bright = False
        attrs: set[int] = set()
        for part in text.split("."):
            if part in _COLORS:
                fg, fg_256 = _COLORS[part], False
            elif part.startswith("on_") and part[3:] in _COLORS:
                bg, bg_256 = _COLORS[part[3:]], False
            elif part in _ATTRIBUTES:
                attrs.add(_ATTRIBUTES[part])
            elif part == "bright":
                fg_bright = True
            elif part == "on_bright":
                bg_bright = True
            elif part.startswith("on_") and _is_u8(part[3:]):
                bg, bg_256 = int(part[3:]), True
            elif _is_u8(part):
                fg, fg_256 = int(part), True
        return cls(
            fg=fg,
            fg_256=fg_256,
            fg_bright=fg_bright,
            bg=bg,
            bg_256=bg_256,
            bg_bright=bg_bright,
            attrs=frozenset(attrs),
        )

    def _enabled(self) -> bool:
        if self.force is not None:
            return self.force
        return _colors_enabled_by_default()

    def apply(self, text: str) -> str:
        """Return ``text`` wrapped in this style's escape sequences."""
        if not self._enabled():
            return text
        codes: list[str] = []
        if self.fg is not None:
            if self.fg_256:
                codes.append(f"38;5;{self.fg}")
            elif self.fg_bright:
                codes.append(str(self.fg + 90))
            else:
                codes.append(str(self.fg + 30))
        if self.bg is not None:
            if self.bg_256:
                codes.append(f"48;5;{self.bg}")
            elif self.bg_bright:
                codes.append(str(self.bg + 100))
            else:
                codes.append(str(self.bg + 40))
        codes.extend(str(attr) for attr in sorted(self.attrs))
        if not codes:
            return text
        prefix = "".join(f"\x1b[{code}m" for code in codes)
        return f"{prefix}{text}\x1b[0m"


def _is_u8(text: str) -> bool:
    return bool(text) and all(ch in _ASCII_DIGITS for ch in text) and int(text) <= 255


class _State(enum.Enum):
    LITERAL = "Literal"
    MAYBE_OPEN = "MaybeOpen"
    DOUBLE_CLOSE = "DoubleClose"
    KEY = "Key"
    ALIGN = "Align"
    WIDTH = "Width"
    FIRST_STYLE = "FirstStyle"
    ALT_STYLE = "AltStyle"


class TemplateError(ValueError):
    """Raised when a template string cannot be parsed."""

    def __init__(self, state: _State, next_char: str) -> None:
        self.state = state
        self.next = next_char
        super().__init__(
            f"TemplateError: unexpected character {next_char!r} in state {state.value}"
        )


@dataclass
class Literal:
    """Literal text in a template."""

    text: TabExpandedString


@dataclass
class Placeholder:
    """A ``{key:...}`` placeholder in a template."""

    key: str
    align: Alignment = Alignment.LEFT
    width: int | None = None
    truncate: bool = False
    style: Style | None = None
    alt_style: Style | None = None


@dataclass
class NewLine:
    """A line break in a template."""


TemplatePart = Literal | Placeholder | NewLine


@dataclass
class Template:
    """A parsed progress template."""

    parts: list[TemplatePart] = field(default_factory=list)

    @classmethod
    def parse(cls, text: str, tab_width: int = DEFAULT_TAB_WIDTH) -> Template:
        """Parse a template string, raising TemplateError on bad syntax."""
        return cls(_Parser(tab_width).run(text))

    def set_tab_width(self, tab_width: int) -> None:
        """Re-expand tabs in all literal parts."""
        for part in self.parts:
            if isinstance(part, Literal):
                part.text.set_tab_width(tab_width)


class _Parser:
    def __init__(self, tab_width: int) -> None:
        self.tab_width = tab_width
        self.parts: list[TemplatePart] = []
        self.buf = ""

    def _take(self) -> str:
        taken, self.buf = self.buf, ""
        return taken

    def _literal(self, text: str) -> Literal:
        return Literal(TabExpandedString(text, self.tab_width))

    def _last_placeholder(self) -> Placeholder | None:
        if self.parts and isinstance(self.parts[-1], Placeholder):
            return self.parts[-1]
        return None

    def _step(self, state: _State, c: str) -> tuple[_State, str | None]:
        S = _State
        if state is S.LITERAL:
            if c == "{":
                return S.MAYBE_OPEN, None
            if c == "\n":
                if self.buf:
                    self.parts.append(self._literal(self._take()))
                self.parts.append(NewLine())
                return S.LITERAL, None
            if c == "}":
                return S.DOUBLE_CLOSE, "}"
            return S.LITERAL, c
        if state is S.DOUBLE_CLOSE and c == "}":
            return S.LITERAL, None
        if state is S.MAYBE_OPEN and c == "{":
            return S.LITERAL, "{"
        if state in (S.MAYBE_OPEN, S.KEY) and c in _ASCII_WHITESPACE:
            # Whitespace where a key should be: treat the whole thing as literal.
            self.buf += c
            self.parts.append(self._literal("{" + self._take()))
            return S.LITERAL, None
        if state in (S.MAYBE_OPEN, S.KEY) and c not in "}:":
            return S.KEY, c
        if state is S.KEY:
            return (S.ALIGN, None) if c == ":" else (S.LITERAL, None)
        if state is S.ALIGN:
            if c in "<^>":
                placeholder = self._last_placeholder()
                if placeholder is not None:
                    placeholder.align = {
                        "<": Alignment.LEFT,
                        "^": Alignment.CENTER,
                        ">": Alignment.RIGHT,
                    }[c]
                return S.WIDTH, None
            if c in _ASCII_DIGITS:
                return S.WIDTH, c
        if state in (S.ALIGN, S.WIDTH):
            if c == "!":
                placeholder = self._last_placeholder()
                if placeholder is not None:
                    placeholder.truncate = True
                return S.WIDTH, None
            if state is S.WIDTH and c in _ASCII_DIGITS:
                return S.WIDTH, c
            if c == ".":
                return S.FIRST_STYLE, None
            if c == "}":
                return S.LITERAL, None
        if state is S.FIRST_STYLE:
            if c == "/":
                return S.ALT_STYLE, None
            if c == "}":
                return S.LITERAL, None
            return S.FIRST_STYLE, c
        if state is S.ALT_STYLE:
            return (S.LITERAL, None) if c == "}" else (S.ALT_STYLE, c)
        raise TemplateError(state, c)

    def _transition(self, old: _State, new: _State) -> None:
        S = _State
        if not self.buf:
            return
        if old is S.MAYBE_OPEN and new is S.KEY:
            self.parts.append(self._literal(self._take()))
        elif old is S.KEY and new in (S.ALIGN, S.LITERAL):
            self.parts.append(Placeholder(key=self._take()))
        elif old is S.WIDTH and new in (S.FIRST_STYLE, S.LITERAL):
            placeholder = self._last_placeholder()
            if placeholder is not None:
                width = int(self._take())
                if width > _MAX_WIDTH:
                    raise ValueError(f"placeholder width {width} is too large")
                placeholder.width = width
        elif old is S.FIRST_STYLE and new in (S.ALT_STYLE, S.LITERAL):
            placeholder = self._last_placeholder()
            if placeholder is not None:
                placeholder.style = Style.from_dotted_str(self._take())
        elif old is S.ALT_STYLE and new is S.LITERAL:
            placeholder = self._last_placeholder()
            if placeholder is not None:
                placeholder.alt_style = Style.from_dotted_str(self._take())

    def run(self, text: str) -> list[TemplatePart]:
        state = _State.LITERAL
        for c in text:
            new_state, pushed = self._step(state, c)
            self._transition(state, new_state)
            state = new_state
            if pushed is not None:
                self.buf += pushed
        if state in (_State.LITERAL, _State.DOUBLE_CLOSE) and self.buf:
            self.parts.append(self._literal(self._take()))
        return self.parts


def pad_text(text: str, width: int, align: Alignment, truncate: bool) -> str:
    """Pad ``text`` to ``width`` columns, or cut it down when ``truncate`` is set."""
    cols = measure_text_width(text)
    excess = max(cols - width, 0)
    if excess > 0:
        if not truncate:
            return text
        raw = text.encode("utf-8")
        if align is Alignment.LEFT:
            start, end = 0, len(raw) - excess
        elif align is Alignment.RIGHT:
            start, end = excess, len(raw)
        else:
            start, end = excess // 2, len(raw) - (excess - excess // 2)
        if start > end or end < 0:
            return text
        try:
            return raw[start:end].decode("utf-8")
        except UnicodeDecodeError:
            return text

    diff = max(width - cols, 0)
    if align is Alignment.LEFT:
        left, right = 0, diff
    elif align is Alignment.RIGHT:
        left, right = diff, 0
    else:
        left, right = diff // 2, diff - diff // 2
    return " " * left + text + " " * right