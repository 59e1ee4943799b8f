import os
from pathlib import Path
from typing import Iterator, Union


def scan_source(source_root: Union[str, Path], extension: str = ".jp4") -> Iterator[Path]:
    """
    Walk the source tree for raw capture files.

    Args:
        source_root: Directory to scan recursively.
        extension: Dotted extension to accept (case-insensitive).

    Yields:
        Paths in deterministic (sorted directory, then sorted name) order.
    """
    root = Path(source_root)
    if not root.is_dir():
        raise FileNotFoundError(f"Source directory not found: {source_root}")

    extension = extension.lower()
    for dirpath, dirnames, filenames in os.walk(root):
        # Deterministic traversal
        dirnames.sort()
        for name in sorted(filenames):
            if Path(name).suffix.lower() == extension:
                yield Path(dirpath) / name


def read_file_list(list_path: Union[str, Path], source_root: Union[str, Path]) -> Iterator[Path]:
    """
    Read a cached newline-delimited file list instead of scanning.

    Relative entries are resolved against source_root; blank lines are skipped.
    """
    root = Path(source_root)
    with open(list_path, "r") as f:
        for line in f:
            entry = line.strip()
            if not entry:
                continue
            path = Path(entry)
            yield path if path.is_absolute() else root / path
