"""Work enumeration: distinct timestamps from the source tree.

The source is either a live scan of the source root or a cached file list.
Raw files are deduplicated by path and grouped by timestamp into a
SourceIndex, built once per run. With completion checking enabled, timestamps
whose artifacts are already in the destination snapshot are filtered out.
"""

import sys
from collections import defaultdict
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Set

from . import scanner
from .completion import DestinationSnapshot, is_complete
from .errors import MalformedNameError
from .models import RawFile, RunContext
from .timestamps import parse_raw_file


class SourceIndex:
    """Deduplicated raw files grouped by timestamp."""

    def __init__(self, raw_files: Iterable[RawFile]):
        self.malformed = 0
        self._by_timestamp: Dict[str, Set[Path]] = defaultdict(set)
        for raw in raw_files:
            self._by_timestamp[raw.timestamp].add(raw.path)

    @classmethod
    def from_paths(cls, paths: Iterable[Path], extension: str = ".jp4") -> "SourceIndex":
        """Parse paths into RawFiles; malformed names are skipped with a warning."""
        extension = extension.lower()
        seen: Set[Path] = set()
        raw_files: List[RawFile] = []
        malformed = 0

        for path in paths:
            if path.suffix.lower() != extension or path in seen:
                continue
            seen.add(path)
            try:
                raw_files.append(parse_raw_file(path))
            except MalformedNameError as e:
                malformed += 1
                print(f"  ⚠ Skipping raw file: {e}", file=sys.stderr)

        index = cls(raw_files)
        index.malformed = malformed
        return index

    def __len__(self) -> int:
        return len(self._by_timestamp)

    def count(self, timestamp: str) -> int:
        """Number of distinct raw files sharing this timestamp."""
        return len(self._by_timestamp.get(timestamp, ()))

    def timestamps(self) -> List[str]:
        """Distinct timestamps in lexicographic (chronological) order."""
        return sorted(self._by_timestamp)

    def directories(self) -> Dict[Path, int]:
        """Raw file counts per containing directory."""
        counts: Dict[Path, int] = defaultdict(int)
        for paths in self._by_timestamp.values():
            for path in paths:
                counts[path.parent] += 1
        return dict(counts)

    @property
    def total_files(self) -> int:
        return sum(len(paths) for paths in self._by_timestamp.values())


class WorkEnumerator:
    """Lazily builds the source index and destination snapshot for one run.

    Both are built at most once and shared: the snapshot is never refreshed
    within a run, so artifacts written by jobs of the current run are not
    seen by later checks.
    """

    def __init__(self, ctx: RunContext):
        self.ctx = ctx
        self._index: Optional[SourceIndex] = None
        self._snapshot: Optional[DestinationSnapshot] = None
        self.skipped_complete = 0

    @property
    def index(self) -> SourceIndex:
        if self._index is None:
            extension = self.ctx.settings.camera.raw_extension
            if self.ctx.file_list is not None:
                paths = scanner.read_file_list(self.ctx.file_list, self.ctx.source_root)
            else:
                paths = scanner.scan_source(self.ctx.source_root, extension)
            self._index = SourceIndex.from_paths(paths, extension)
        return self._index

    @property
    def snapshot(self) -> DestinationSnapshot:
        if self._snapshot is None:
            self._snapshot = DestinationSnapshot.from_tree(self.ctx.destination_root)
        return self._snapshot

    def timestamps(self) -> Iterator[str]:
        """Yield sorted distinct timestamps, minus completed ones if checking.

        Completion checking costs one oracle call per timestamp and is opt-in.
        """
        camera = self.ctx.settings.camera
        check = self.ctx.settings.completion.check
        # Fail before any item is produced if the destination cannot be scanned
        snapshot = self.snapshot if check else None

        for timestamp in self.index.timestamps():
            if check and is_complete(
                timestamp, snapshot, camera.subcamera_count, camera.output_format
            ):
                self.skipped_complete += 1
                continue
            yield timestamp
