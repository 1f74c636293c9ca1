# progresskit

Progress bars and spinners for the terminal. A bar is drawn from a template
string, keeps a rolling estimate of its rate and remaining time, and can wrap
iterables, readers and writers so progress is counted for you.

## Installation

```
pip install progresskit
```

The only dependency is `wcwidth`, used to measure how many columns text takes.

## A simple bar

```python
from progresskit.progress_bar import ProgressBar

bar = ProgressBar(100)
for _ in range(100):
    bar.inc(1)
bar.finish()
```

`ProgressBar(length)` draws to standard error, and only when standard error is
a terminal; redraws are rate limited. `ProgressBar.hidden()` gives a bar with
no length that tracks its state but never draws.

Used as a context manager, a bar is closed when the block ends: steady
ticking stops and, unless it was already finished, the bar is finished with
its configured finish behaviour. The same happens when the last handle on a
bar is garbage collected.

```python
with ProgressBar(3) as bar:
    for item in bar.wrap_iter(["a", "b", "c"]):
        ...
```

Iterating a wrapped iterable advances the bar by one per item and finishes it
once the items run out.

State can be read back with `position()`, `length()`, `message()`,
`prefix()`, `is_finished()` and `is_hidden()`. `eta()`, `elapsed()` and
`duration()` return seconds as floats, and `per_sec()` steps per second.
`set_position`, `set_length`, `inc_length`, `set_message`, `set_prefix`,
`reset`, `reset_eta` and `reset_elapsed` change it; the `with_*` methods
(`with_message`, `with_prefix`, `with_position`, `with_elapsed`,
`with_style`, `with_tab_width`, `with_finish`) return the bar so calls can be
chained. `copy.copy(bar)` gives another handle on the same bar, and
`bar.downgrade()` a `WeakProgressBar` whose `upgrade()` returns the bar, or
`None` once every handle is gone.

## Spinners

```python
bar = ProgressBar.new_spinner().with_message("working")
bar.enable_steady_tick(0.1)   # ticks every 0.1 s on a background thread
...
bar.finish_with_message("done")
```

While steady ticking is on, `tick()` does nothing; `disable_steady_tick()`
stops the thread.

## Styles and templates

```python
from progresskit.style import ProgressStyle

style = ProgressStyle.with_template(
    "{prefix:>12.cyan.bold} {msg}: {wide_bar} {pos}/{len}"
).progress_chars("#>-")
bar = ProgressBar(10).with_prefix("Downloading").with_message("crate").with_style(style)
```

A placeholder is written `{key:<align><width>.<style>/<alt_style>}`; everything
after the key is optional. Alignment is one of `<`, `^`, `>`, and `!` truncates
text that is wider than the given width. Styles are dotted names such as
`red`, `on_blue`, `bold`, `bright` or a colour number from 0 to 255; the
alternative style colours the unfilled part of a bar. Colours are emitted
only when standard output looks like a colour terminal. Literal braces are
written `{{` and `}}`, and a newline in the template starts a new line. A bad
template raises `progresskit.template.TemplateError`.

The built-in keys are:

- `bar`: a bar of the given width (20 columns by default)
- `wide_bar`: a bar filling the rest of the line
- `spinner`: the current spinner frame
- `msg`, `wide_msg`: the message; `wide_msg` fills or is cut to the rest of the line
- `prefix`: the prefix
- `pos`, `len`: position and length
- `percent`: completion as a whole percentage

Any other key renders as empty text unless a tracker is registered for it:

```python
style = ProgressStyle.with_template("{done} of {len}").with_key(
    "done", lambda state: str(state.pos())
)
```

`with_key` takes a function of the `ProgressState` returning text, or a
`ProgressTracker` subclass whose `write(state)` returns the text and whose
`tick` and `reset` are called when the bar ticks or is reset.
`tick_chars` and `tick_strings` set spinner frames (the last one is shown once
finished), and `progress_chars` sets the filled, partial and empty bar
characters, which must all be equally wide. Tabs in messages, prefixes and
template text are expanded to eight spaces by default; `set_tab_width` changes
that.

## Wrapping streams

```python
import os

with open("work.bin", "rb") as src, open("done.bin", "wb") as dst:
    bar = ProgressBar(os.path.getsize("work.bin"))
    reader = bar.wrap_read(src)
    while chunk := reader.read(65536):
        dst.write(chunk)
```

`wrap_write` does the same for writers, advancing by the amount written.

## Finishing

`finish`, `finish_with_message`, `finish_and_clear`, `abandon` and
`abandon_with_message` end a bar. `with_finish(...)` takes a
`progresskit.state.ProgressFinish` (`and_leave()`, `with_message(text)`,
`and_clear()`, `abandon()`, `abandon_with_message(text)`) choosing what
happens when a bar is closed or runs out unfinished; the default clears it.
`finish_using_style()` applies that behaviour directly.

## Parallel work

```python
from progresskit.parallel import par_progress

results = par_progress([1, 2, 3]).map(lambda x: x * 2)   # [2, 4, 6]
```

`map` runs the function on a thread pool, keeps the item order and advances
the bar once per finished item. `par_progress_count`, `par_progress_with` and
`par_progress_with_style` take an explicit length, bar or style.

## Drawing elsewhere

`progresskit.terminal.ProgressDrawTarget.term_like(term)` draws to any object
implementing the `TermLike` interface; `Term(stream)` drives a text stream with
ANSI escape sequences. `ProgressBar(length, draw_target)` and
`ProgressBar.set_draw_target` choose the target, and `println` and `suspend`
write output above the bar without disturbing it.

## What it does not do

- There is no way to draw several bars together as one group on a terminal;
  each bar draws to its own target.
- There are no keys for human-readable counts, byte sizes, rates, elapsed
  time or ETA in templates; such values can be shown through custom keys.
- There is no command-line program; this is a library only.