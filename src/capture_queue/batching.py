"""Batch splitting of ordered work items.

With ``split_at <= camera_count`` every timestamp is its own batch and the
incoming order is preserved exactly. With a larger ``split_at`` batching
degenerates to bulk directory mode: each source directory holding raw files
is one batch, and the batches are sorted numerically by directory.
"""

import re
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, List, Tuple, Union

from .enumerator import SourceIndex
from .models import Batch


@dataclass
class SplitStats:
    """Running totals kept while splitting (diagnostics only)."""

    batches: int = 0
    raw_files: int = 0
    dropped_files: int = 0


def numeric_key(value: Union[str, Path]) -> List[Union[str, int]]:
    """Sort key comparing digit runs as numbers ("dir10" after "dir9")."""
    parts = re.split(r"(\d+)", str(value))
    return [int(p) if p.isdigit() else p for p in parts]


def truncated_count(count: int, unit: int) -> int:
    """Largest multiple of unit not exceeding count."""
    return count - count % unit


def split_timestamps(
    timestamps: Iterable[str], index: SourceIndex, run_id: str, stats: SplitStats
) -> Iterator[Batch]:
    """One single-item batch per timestamp, in incoming order."""
    for timestamp in timestamps:
        raw_count = index.count(timestamp)
        stats.batches += 1
        stats.raw_files += raw_count
        yield Batch(output_id=f"{run_id}_{timestamp}", items=[timestamp], raw_count=raw_count)


def _relative_item(directory: Path, source_root: Path) -> str:
    try:
        rel = directory.relative_to(source_root)
    except ValueError:
        return str(directory)
    return str(rel)


def split_directories(
    index: SourceIndex,
    source_root: Path,
    run_id: str,
    camera_count: int,
    truncate: bool,
    stats: SplitStats,
) -> Iterator[Batch]:
    """Bulk mode: one batch per source directory, numerically sorted.

    With truncate set, each directory's file count is cut to the last full
    multiple of camera_count; a directory left with nothing is skipped.
    """
    planned: List[Tuple[Path, int]] = []
    for directory, count in index.directories().items():
        kept = truncated_count(count, camera_count) if truncate else count
        if kept != count:
            stats.dropped_files += count - kept
            print(
                f"  ⚠ Truncating {directory}: {count} raw files, keeping {kept}",
                file=sys.stderr,
            )
        if kept == 0:
            continue
        planned.append((directory, kept))

    planned.sort(key=lambda entry: numeric_key(entry[0]))

    for n, (directory, kept) in enumerate(planned):
        stats.batches += 1
        stats.raw_files += kept
        yield Batch(
            output_id=f"{run_id}_{n:04d}",
            items=[_relative_item(directory, source_root)],
            raw_count=kept,
        )
