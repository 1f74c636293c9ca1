import copy
import io
import shutil
import threading
import time

import pytest

from progresskit.progress_bar import ProgressBar, ProgressBarIter, WeakProgressBar
from progresskit.state import ProgressFinish
from progresskit.style import ProgressStyle
from progresskit.terminal import ProgressDrawTarget, TermLike


class FakeTerm(TermLike):
    """A tiny in-memory terminal that understands cursor movement."""

    def __init__(self, cols: int = 80) -> None:
        self.cols = cols
        self.rows = [""]
        self.row = 0
        self.col = 0

    def _ensure(self) -> None:
        while len(self.rows) <= self.row:
            self.rows.append("")

    def width(self) -> int:
        return self.cols

    def move_cursor_up(self, n: int) -> None:
        self.row = max(self.row - n, 0)

    def move_cursor_down(self, n: int) -> None:
        self.row += n
        self._ensure()

    def move_cursor_right(self, n: int) -> None:
        self.col += n

    def move_cursor_left(self, n: int) -> None:
        self.col = max(self.col - n, 0)

    def write_str(self, s: str) -> None:
        self._ensure()
        line = self.rows[self.row].ljust(self.col)
        self.rows[self.row] = line[: self.col] + s + line[self.col + len(s):]
        self.col += len(s)

    def write_line(self, s: str) -> None:
        self.write_str(s)
        self.row += 1
        self.col = 0
        self._ensure()

    def clear_line(self) -> None:
        self._ensure()
        self.rows[self.row] = ""
        self.col = 0

    def flush(self) -> None:
        pass

    def contents(self) -> str:
        return "\n".join(row.rstrip() for row in self.rows).rstrip("\n")


def _ticker_threads() -> int:
    return sum(1 for t in threading.enumerate() if t.name == "progress-ticker")


@pytest.fixture
def no_color(monkeypatch):
    monkeypatch.delenv("CLICOLOR_FORCE", raising=False)
    monkeypatch.setenv("NO_COLOR", "1")


def _fractions(pb):
    seen = []
    pb.update(lambda state: seen.append(state.fraction()))
    return seen


def test_pbar_zero():
    pb = ProgressBar(0, ProgressDrawTarget.hidden())
    assert _fractions(pb) == [1.0]


def test_pbar_maxu64():
    pb = ProgressBar(2**64 - 1, ProgressDrawTarget.hidden())
    assert _fractions(pb) == [0.0]


def test_pbar_overflow():
    pb = ProgressBar(1)
    pb.set_draw_target(ProgressDrawTarget.hidden())
    pb.inc(2)
    pb.finish()
    assert pb.is_finished()
    assert pb.position() == 1


def test_get_position():
    pb = ProgressBar(1)
    pb.set_draw_target(ProgressDrawTarget.hidden())
    pb.inc(2)
    assert pb.position() == 2


def test_weak_pb():
    pb = ProgressBar(0)
    weak = pb.downgrade()
    assert weak.upgrade() is not None
    assert weak.upgrade().length() == 0
    del pb
    assert weak.upgrade() is None


def test_empty_weak_bar_upgrades_to_none():
    assert WeakProgressBar().upgrade() is None


def test_it_can_wrap_a_reader():
    data = b"I am an implementation of io::Read"
    pb = ProgressBar(len(data))
    reader = pb.wrap_read(io.BytesIO(data))
    out = io.BytesIO()
    shutil.copyfileobj(reader, out)
    assert out.getvalue() == data
    assert pb.position() == len(data)


def test_it_can_wrap_a_writer():
    data = b"implementation of io::Read"
    pb = ProgressBar(len(data))
    writer = pb.wrap_write(io.BytesIO())
    shutil.copyfileobj(io.BytesIO(data), writer)
    assert writer.inner.getvalue() == data
    assert pb.position() == len(data)


def test_wrap_iter_counts_and_finishes():
    pb = ProgressBar(3, ProgressDrawTarget.hidden())
    wrapped = pb.wrap_iter([1, 2, 3])
    assert isinstance(wrapped, ProgressBarIter)
    assert list(wrapped) == [1, 2, 3]
    assert pb.position() == 3
    assert pb.is_finished()


def test_ticker_thread_terminates_on_drop():
    baseline = _ticker_threads()
    pb = ProgressBar.new_spinner()
    weak = pb.downgrade()
    pb.enable_steady_tick(0.05)
    time.sleep(0.25)
    assert _ticker_threads() == baseline + 1
    assert pb.is_finished() is False
    del pb
    assert _ticker_threads() == baseline
    assert weak.upgrade() is None


def test_ticker_thread_terminates_on_drop_2():
    baseline = _ticker_threads()
    pb = ProgressBar.new_spinner()
    weak = pb.downgrade()
    pb.enable_steady_tick(0.05)
    pb2 = copy.copy(pb)
    time.sleep(0.25)
    assert _ticker_threads() == baseline + 1
    del pb
    assert _ticker_threads() == baseline + 1
    assert pb2.is_finished() is False
    del pb2
    assert _ticker_threads() == baseline
    assert weak.upgrade() is None


def test_disable_steady_tick_stops_thread():
    baseline = _ticker_threads()
    pb = ProgressBar.new_spinner()
    pb.enable_steady_tick(0.05)
    assert _ticker_threads() == baseline + 1
    pb.disable_steady_tick()
    assert _ticker_threads() == baseline
    assert pb.is_finished() is False
    pb.finish()
    assert pb.is_finished() is True


def test_zero_interval_starts_no_ticker():
    baseline = _ticker_threads()
    pb = ProgressBar.new_spinner()
    pb.enable_steady_tick(0)
    assert _ticker_threads() == baseline
    pb.finish()
    assert pb.is_finished()


def test_basic_progress_bar():
    term = FakeTerm(80)
    pb = ProgressBar(10, ProgressDrawTarget.term_like(term))
    assert term.contents() == ""

    pb.tick()
    assert term.contents() == "░" * 75 + " 0/10"

    pb.inc(1)
    assert term.contents() == "█" * 7 + "░" * 68 + " 1/10"

    pb.finish()
    assert term.contents() == "█" * 74 + " 10/10"


def test_progress_bar_builder_method_order(no_color):
    term = FakeTerm(80)
    pb = (
        ProgressBar(10, ProgressDrawTarget.term_like(term))
        .with_message("crate")
        .with_prefix("Downloading")
        .with_style(
            ProgressStyle.with_template("{prefix:>12.cyan.bold} {msg}: {wide_bar} {pos}/{len}")
        )
    )
    assert term.contents() == ""
    pb.tick()
    assert term.contents() == " Downloading crate: " + "░" * 55 + " 0/10"


def test_drop_with_and_leave_keeps_finished_bar():
    term = FakeTerm(80)
    pb = ProgressBar(10, ProgressDrawTarget.term_like(term)).with_finish(
        ProgressFinish.and_leave()
    )
    pb.tick()
    assert term.contents() == "░" * 75 + " 0/10"
    del pb
    assert term.contents() == "█" * 74 + " 10/10"


def test_drop_with_default_finish_clears():
    term = FakeTerm(80)
    pb = ProgressBar(10, ProgressDrawTarget.term_like(term))
    pb.tick()
    assert term.contents() == "░" * 75 + " 0/10"
    del pb
    assert term.contents() == ""


def test_ticker_drop_draws_final_frame():
    term = FakeTerm(80)
    spinner = (
        ProgressBar(None, ProgressDrawTarget.term_like(term))
        .with_style(ProgressStyle.default_spinner())
        .with_finish(ProgressFinish.and_leave())
        .with_message("doing stuff 0")
    )
    spinner.enable_steady_tick(0.1)
    del spinner
    assert term.contents() == "  doing stuff 0"


def test_manually_inc_ticker():
    term = FakeTerm(80)
    spinner = (
        ProgressBar(None, ProgressDrawTarget.term_like(term))
        .with_style(ProgressStyle.default_spinner())
        .with_message("msg")
    )
    assert term.contents() == ""
    spinner.inc(1)
    assert term.contents() == "⠁ msg"
    spinner.inc(1)
    assert term.contents() == "⠉ msg"
    spinner.set_message("new message")
    spinner.set_prefix("prefix")
    assert term.contents() == "⠉ new message"


def test_basic_tab_expansion():
    term = FakeTerm(80)
    spinner = (
        ProgressBar(None, ProgressDrawTarget.term_like(term))
        .with_style(ProgressStyle.default_spinner())
        .with_message("Test\t:)")
    )
    spinner.tick()
    assert term.contents() == "⠁ Test        :)"
    spinner.set_tab_width(4)
    assert term.contents() == "⠁ Test    :)"


def test_tab_expansion_in_template():
    term = FakeTerm(80)
    spinner = (
        ProgressBar(None, ProgressDrawTarget.term_like(term))
        .with_message("Test\t:)")
        .with_prefix("Pre\tfix!")
        .with_style(ProgressStyle.with_template("{spinner}{prefix}\t{msg}"))
    )
    spinner.tick()
    assert term.contents() == "⠁Pre        fix!        Test        :)"
    spinner.set_tab_width(4)
    assert term.contents() == "⠁Pre    fix!    Test    :)"
    spinner.set_tab_width(2)
    assert term.contents() == "⠁Pre  fix!  Test  :)"


def test_progress_style_tab_width_unification():
    term = FakeTerm(80)
    style = ProgressStyle.with_template("{msg}\t{msg}")
    spinner = (
        ProgressBar(None, ProgressDrawTarget.term_like(term))
        .with_message("OK")
        .with_tab_width(4)
    )
    spinner.set_style(style)
    spinner.tick()
    assert term.contents() == "OK    OK"


def test_println_prints_above_bar():
    term = FakeTerm(80)
    pb = ProgressBar(10, ProgressDrawTarget.term_like(term))
    pb.tick()
    pb.println("hello")
    assert term.contents() == "hello\n" + "░" * 75 + " 0/10"


def test_suspend_returns_result_and_redraws():
    term = FakeTerm(80)
    pb = ProgressBar(10, ProgressDrawTarget.term_like(term))
    pb.tick()
    seen = []

    def work():
        seen.append(term.contents())
        return 42

    assert pb.suspend(work) == 42
    assert seen == [""]
    assert term.contents() == "░" * 75 + " 0/10"


def test_set_draw_target_hides_further_output():
    term = FakeTerm(80)
    pb = ProgressBar(10, ProgressDrawTarget.term_like(term))
    pb.tick()
    assert not pb.is_hidden()
    pb.set_draw_target(ProgressDrawTarget.hidden())
    assert pb.is_hidden()
    pb.inc(5)
    assert term.contents() == "░" * 75 + " 0/10"


def test_finish_variants():
    pb = ProgressBar(10, ProgressDrawTarget.hidden())
    pb.inc(3)
    pb.abandon()
    assert pb.is_finished()
    assert pb.position() == 3

    pb = ProgressBar(10, ProgressDrawTarget.hidden())
    pb.finish_with_message("done")
    assert pb.message() == "done"
    assert pb.position() == 10

    pb = ProgressBar(10, ProgressDrawTarget.hidden())
    pb.inc(4)
    pb.abandon_with_message("stopped")
    assert pb.message() == "stopped"
    assert pb.position() == 4

    pb = ProgressBar(10, ProgressDrawTarget.hidden())
    pb.finish_and_clear()
    assert pb.position() == 10


def test_finish_using_style_uses_configured_behaviour():
    pb = ProgressBar(10, ProgressDrawTarget.hidden()).with_finish(ProgressFinish.abandon())
    pb.inc(2)
    pb.finish_using_style()
    assert pb.is_finished()
    assert pb.position() == 2


def test_reset_restores_progress():
    pb = ProgressBar(10, ProgressDrawTarget.hidden())
    pb.inc(3)
    pb.finish()
    pb.reset()
    assert not pb.is_finished()
    assert pb.position() == 0


def test_lengths():
    pb = ProgressBar(10, ProgressDrawTarget.hidden())
    pb.set_length(20)
    assert pb.length() == 20
    pb.inc_length(5)
    assert pb.length() == 25

    hidden = ProgressBar.hidden()
    hidden.inc_length(5)
    assert hidden.length() is None


def test_update_changes_state():
    pb = ProgressBar(10, ProgressDrawTarget.hidden())
    pb.update(lambda state: state.set_pos(4))
    assert pb.position() == 4


def test_builder_values():
    pb = (
        ProgressBar(10, ProgressDrawTarget.hidden())
        .with_position(6)
        .with_message("m\tx")
        .with_prefix("p")
        .with_elapsed(5)
    )
    assert pb.position() == 6
    assert pb.message() == "m        x"
    assert pb.prefix() == "p"
    assert pb.elapsed() >= 5


def test_unbounded_bar_has_no_eta():
    pb = ProgressBar.hidden()
    assert pb.eta() == 0.0
    assert pb.duration() == 0.0


def test_context_manager_finishes():
    with ProgressBar(5, ProgressDrawTarget.hidden()) as pb:
        pb.inc(2)
        assert not pb.is_finished()
    assert pb.is_finished()
    assert pb.position() == 5


def test_style_returns_copy():
    pb = ProgressBar(3, ProgressDrawTarget.hidden())
    pb.set_style(ProgressStyle.default_spinner())
    style = pb.style()
    style.tick_chars("ab")
    assert pb.style().get_final_tick_str() == " "