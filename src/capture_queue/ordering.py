"""Ordering strategies for enumerated timestamps.

Sequential order walks the capture chronologically. Progressive order
bisects the list with a halving stride so that the first results already
sample the whole capture roughly uniformly, which is what an operator
watching partial output wants to see.

Both strategies re-check the source-side group before yielding: a timestamp
must have exactly ``camera_count`` raw files, otherwise it is dropped with a
warning.
"""

import sys
from typing import Iterable, Iterator, List, Set

from .enumerator import SourceIndex


def progressive_indices(n: int) -> Iterator[int]:
    """Yield every index in ``range(n)`` once, in halving-stride order.

    The first pass uses stride ``ceil(n / 2)``; every pass visits
    ``0, stride, 2 * stride, ...`` plus the last index, skipping indices
    already visited, then the stride is halved. The pass at stride 1 is the
    final one.

    >>> list(progressive_indices(5))
    [0, 3, 4, 1, 2]
    >>> list(progressive_indices(8))
    [0, 4, 7, 2, 6, 1, 3, 5]
    """
    if n <= 0:
        return
    visited: Set[int] = set()
    stride = max(1, (n + 1) // 2)
    while True:
        for i in list(range(0, n, stride)) + [n - 1]:
            if i not in visited:
                visited.add(i)
                yield i
        if stride == 1:
            break
        stride = max(1, stride // 2)


def _group_complete(timestamp: str, index: SourceIndex, camera_count: int) -> bool:
    count = index.count(timestamp)
    if count != camera_count:
        print(
            f"  ⚠ Skipping {timestamp}: {count} raw files, expected {camera_count}",
            file=sys.stderr,
        )
        return False
    return True


def sequential_order(
    timestamps: Iterable[str], index: SourceIndex, camera_count: int
) -> Iterator[str]:
    """Yield timestamps as they arrive, dropping incomplete groups.

    The enumerator already produces timestamps in lexicographic order, so
    the stream is passed through lazily and the first job can be dispatched
    before enumeration finishes.
    """
    for timestamp in timestamps:
        if _group_complete(timestamp, index, camera_count):
            yield timestamp


def progressive_order(
    timestamps: Iterable[str], index: SourceIndex, camera_count: int
) -> Iterator[str]:
    """Yield timestamps in progressive (bisection) order.

    The input is snapshotted into a sorted list first; the list itself is
    never modified.
    """
    ordered: List[str] = sorted(timestamps)
    for i in progressive_indices(len(ordered)):
        timestamp = ordered[i]
        if _group_complete(timestamp, index, camera_count):
            yield timestamp


STRATEGIES = {
    "sequential": sequential_order,
    "progressive": progressive_order,
}


def order_timestamps(
    timestamps: Iterable[str], index: SourceIndex, camera_count: int, mode: str = "sequential"
) -> Iterator[str]:
    """Dispatch to the configured ordering strategy."""
    try:
        strategy = STRATEGIES[mode]
    except KeyError:
        raise ValueError(f"Unknown ordering mode: {mode}") from None
    return strategy(timestamps, index, camera_count)
