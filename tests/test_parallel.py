import pytest

from progresskit.parallel import (
    ParallelProgressIter,
    par_progress,
    par_progress_count,
    par_progress_with,
    par_progress_with_style,
)
from progresskit.progress_bar import ProgressBar
from progresskit.style import ProgressStyle
from progresskit.terminal import ProgressDrawTarget


def test_it_can_wrap_a_parallel_iterator():
    v = [1, 2, 3]

    assert par_progress_count(v, 3).map(lambda x: x * 2) == [2, 4, 6]

    pb = ProgressBar(len(v))
    assert par_progress_with(v, pb).map(lambda x: x * 2) == [2, 4, 6]

    style = ProgressStyle.default_bar().template("{wide_bar:.red} {percent}/100%")
    assert par_progress_with_style(v, style).map(lambda x: x * 2) == [2, 4, 6]


def test_map_advances_bar_once_per_item():
    pb = ProgressBar(50, ProgressDrawTarget.hidden())
    result = par_progress_with(range(50), pb).map(lambda x: x + 1, max_workers=4)
    assert result == list(range(1, 51))
    assert pb.position() == 50


def test_par_progress_uses_collection_length():
    wrapped = par_progress(["a", "b", "c", "d"])
    assert isinstance(wrapped, ParallelProgressIter)
    assert wrapped.progress.length() == 4


def test_par_progress_with_style_sets_length():
    wrapped = par_progress_with_style([1, 2], ProgressStyle.default_spinner())
    assert wrapped.progress.length() == 2


def test_iteration_advances_bar():
    pb = ProgressBar(3, ProgressDrawTarget.hidden())
    assert list(par_progress_with("xyz", pb)) == ["x", "y", "z"]
    assert pb.position() == 3


def test_unsized_input_is_rejected():
    with pytest.raises(TypeError):
        par_progress(x for x in range(3))
    with pytest.raises(TypeError):
        par_progress_with_style((x for x in range(3)), ProgressStyle.default_bar())