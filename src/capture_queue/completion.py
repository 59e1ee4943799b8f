"""Destination snapshot and completion oracle.

The snapshot is taken with a single walk of the destination tree and then
only queried by set membership, so checking thousands of timestamps costs
snapshot size plus one lookup per expected artifact.
"""

import os
from pathlib import Path
from typing import FrozenSet, Iterable, List, Union

from .errors import SnapshotError

EQR_TAG = "EQR"


class DestinationSnapshot:
    """Immutable set of artifact file names found under the destination root."""

    def __init__(self, names: Iterable[str]):
        self._names: FrozenSet[str] = frozenset(names)

    @classmethod
    def from_tree(cls, root: Union[str, Path]) -> "DestinationSnapshot":
        """Walk the destination tree once and record every file name.

        Raises:
            SnapshotError: if the root is missing or cannot be listed
        """
        root = Path(root)
        if not root.is_dir():
            raise SnapshotError(f"Destination directory not found: {root}")

        def _raise(err: OSError):
            raise err

        names = []
        try:
            for _, _, filenames in os.walk(root, onerror=_raise):
                names.extend(filenames)
        except OSError as e:
            raise SnapshotError(f"Cannot scan destination {root}: {e}") from e
        return cls(names)

    def __contains__(self, name: str) -> bool:
        return name in self._names

    def __len__(self) -> int:
        return len(self._names)


def combined_artifact(timestamp: str, sub: int, output_format: str) -> str:
    return f"{timestamp}-{sub:02d}-{EQR_TAG}.{output_format}"


def split_artifacts(timestamp: str, sub: int, output_format: str) -> List[str]:
    return [
        f"{timestamp}-{sub:02d}-{EQR_TAG}-{side}.{output_format}"
        for side in ("LEFT", "RIGHT")
    ]


def is_complete(
    timestamp: str,
    snapshot: DestinationSnapshot,
    subcamera_count: int,
    output_format: str,
) -> bool:
    """True if every sub-unit has a combined artifact or a LEFT/RIGHT pair."""
    for sub in range(subcamera_count):
        if combined_artifact(timestamp, sub, output_format) in snapshot:
            continue
        if all(name in snapshot for name in split_artifacts(timestamp, sub, output_format)):
            continue
        return False
    return True
