import math
import sys

import pytest

from progresskit.state import (
    INTERVAL,
    MAX_BURST,
    AtomicPosition,
    Estimator,
    FinishKind,
    ProgressFinish,
    ProgressState,
    Status,
    TabExpandedString,
)

SECOND = 1_000_000_000


@pytest.mark.parametrize(
    "items_per_second",
    [
        1,
        1_000,
        1_000_000,
        1_000_000_000,
        1_000_000_001,
        100_000_000_000,
        1_000_000_000_000,
        100_000_000_000_000,
        1_000_000_000_000_000,
    ],
)
def test_time_per_step(items_per_second):
    now = 0
    est = Estimator(now)
    pos = 0
    for _ in range(len(est.steps)):
        pos += items_per_second
        now += SECOND
        est.record(pos, now)

    avg = est.seconds_per_step()
    assert avg > 0.0
    assert math.isfinite(avg)
    expected = 1.0 / items_per_second
    assert abs(avg - expected) < sys.float_info.epsilon


def test_estimator_rewind_position():
    est = Estimator(0)
    est.record(0, 0)
    est.record(1, 0)
    est.record(0, 0)
    assert len(est) == 1
    assert est.prev == (1, 0)


def test_estimator_without_samples_is_nan():
    est = Estimator(0)
    value = est.seconds_per_step()
    assert math.isnan(value) is True
    assert len(est) == 0


def test_estimator_ring_buffer_is_bounded():
    est = Estimator(0)
    for i in range(1, 41):
        est.record(i, i * SECOND)
    assert len(est) == Estimator.CAPACITY


def test_estimator_reset_discards_samples():
    est = Estimator(0)
    est.record(5, SECOND)
    est.reset(2 * SECOND)
    assert len(est) == 0
    assert est.prev == (0, 2 * SECOND)


def test_estimator_ignores_time_going_backwards():
    est = Estimator(10 * SECOND)
    est.record(3, SECOND)
    assert len(est) == 0


def test_atomic_position_large_time_difference():
    position = AtomicPosition()
    later = position.start + INTERVAL * 255
    assert position.allow(later) is True


def test_atomic_position_burst_then_refill():
    position = AtomicPosition()
    now = position.start
    results = [position.allow(now) for _ in range(MAX_BURST + 1)]
    assert results == [True] * MAX_BURST + [False]
    assert position.allow(now + INTERVAL) is True


def test_atomic_position_before_start_is_denied():
    position = AtomicPosition()
    assert position.allow(position.start - 1) is False


def test_atomic_position_inc_set_reset():
    position = AtomicPosition()
    position.inc(3)
    position.inc(4)
    assert position.pos == 7
    position.set(2)
    assert position.pos == 2
    position.reset(position.start)
    assert position.pos == 0


def test_fraction_zero_length():
    state = ProgressState(0, AtomicPosition())
    assert state.fraction() == 1.0


def test_fraction_max_length():
    state = ProgressState(2**64 - 1, AtomicPosition())
    assert state.fraction() == 0.0


def test_fraction_unbounded_and_clamped():
    assert ProgressState(None, AtomicPosition()).fraction() == 1.0
    state = ProgressState(1, AtomicPosition())
    state.set_pos(2)
    assert state.fraction() == 1.0


def test_fraction_halfway():
    state = ProgressState(4, AtomicPosition())
    state.set_pos(2)
    assert state.fraction() == pytest.approx(0.5)


def test_pos_and_len_accessors():
    state = ProgressState(10, AtomicPosition())
    state.set_pos(4)
    state.set_len(12)
    assert state.pos() == 4
    assert state.len() == 12


def test_is_finished_follows_status():
    state = ProgressState(10, AtomicPosition())
    assert state.is_finished() is False
    state.status = Status.DONE_HIDDEN
    assert state.is_finished() is True


def test_eta_and_per_sec_from_estimate():
    state = ProgressState(20, AtomicPosition())
    start = state.est.prev[1]
    state.set_pos(10)
    state.est.record(10, start + SECOND)
    assert state.per_sec() == pytest.approx(10.0)
    assert state.eta() == pytest.approx(1.0)


def test_eta_is_zero_without_length_or_when_finished():
    unbounded = ProgressState(None, AtomicPosition())
    assert unbounded.eta() == 0.0
    assert unbounded.duration() == 0.0
    finished = ProgressState(10, AtomicPosition())
    finished.status = Status.DONE_VISIBLE
    assert finished.eta() == 0.0


def test_per_sec_without_samples_is_zero():
    state = ProgressState(10, AtomicPosition())
    assert state.per_sec() == 0.0


def test_duration_at_least_elapsed():
    state = ProgressState(10, AtomicPosition())
    elapsed = state.elapsed()
    assert state.duration() >= elapsed


def test_tab_expansion():
    text = TabExpandedString("Test\t:)", 8)
    assert text.expanded() == "Test        :)"
    text.set_tab_width(4)
    assert text.expanded() == "Test    :)"
    assert text.original == "Test\t:)"


def test_tab_expanded_string_equality():
    assert TabExpandedString("abc", 4) == TabExpandedString("abc", 8)
    assert not TabExpandedString("a\tb", 4) == TabExpandedString("a\tb", 8)


def test_progress_finish_constructors():
    assert ProgressFinish() == ProgressFinish.and_clear()
    finish = ProgressFinish.with_message("done")
    assert finish.kind is FinishKind.WITH_MESSAGE
    assert finish.message == "done"
    abandoned = ProgressFinish.abandon_with_message("stopped")
    assert (abandoned.kind, abandoned.message) == (
        FinishKind.ABANDON_WITH_MESSAGE,
        "stopped",
    )
    assert ProgressFinish.and_leave().kind is FinishKind.AND_LEAVE
    assert ProgressFinish.abandon().message is None