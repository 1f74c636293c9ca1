"""Progress reporting for work spread over a pool of threads."""

from __future__ import annotations

from collections.abc import Sized
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Generic, Iterable, Iterator, TypeVar

from progresskit.progress_bar import ProgressBar
from progresskit.style import ProgressStyle

T = TypeVar("T")
U = TypeVar("U")


class ParallelProgressIter(Generic[T]):
    """Items whose parallel processing advances a progress bar by one each."""

    def __init__(self, items: Iterable[T], progress: ProgressBar) -> None:
        self.items = items
        self.progress = progress

    def map(self, func: Callable[[T], U], max_workers: int | None = None) -> list[U]:
        """Apply ``func`` to every item on a thread pool; results keep item order."""

        def run(item: T) -> U:
            result = func(item)
            self.progress.inc(1)
            return result

        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            return list(executor.map(run, self.items))

    def __iter__(self) -> Iterator[T]:
        for item in self.items:
            self.progress.inc(1)
            yield item


def par_progress_with(iterable: Iterable[T], progress: ProgressBar) -> ParallelProgressIter[T]:
    """Track ``iterable`` with an existing bar."""
    return ParallelProgressIter(iterable, progress)


def par_progress_count(iterable: Iterable[T], length: int) -> ParallelProgressIter[T]:
    """Track ``iterable`` with a new bar of ``length`` steps."""
    return par_progress_with(iterable, ProgressBar(length))


def _length_of(sequence: Iterable[T]) -> int:
    if not isinstance(sequence, Sized):
        raise TypeError("a sized collection is required to infer the length")
    return len(sequence)


def par_progress(sequence: Iterable[T]) -> ParallelProgressIter[T]:
    """Track a sized collection with a new bar as long as it is."""
    return par_progress_count(sequence, _length_of(sequence))


def par_progress_with_style(
    sequence: Iterable[T], style: ProgressStyle
) -> ParallelProgressIter[T]:
    """Track a sized collection with a new bar using ``style``."""
    bar = ProgressBar(_length_of(sequence)).with_style(style)
    return par_progress_with(sequence, bar)