"""Timestamp extraction from raw capture file names.

Raw files are named ``<seconds>_<microseconds>_<unit>.<ext>``, for example
``1527256815_150165_3.jp4``. The leading ``<seconds>_<microseconds>`` part has
a fixed width and is the grouping key for one acquisition instant.
"""

import re
from pathlib import Path
from typing import Union

from .errors import MalformedNameError
from .models import RawFile

TIMESTAMP_LENGTH = 17

_UNIT_RE = re.compile(r"^_(\d+)(?:\.|$)")


def extract_timestamp(name: str) -> str:
    """Return the fixed-width timestamp prefix of a raw file name.

    Raises:
        MalformedNameError: if the name is shorter than the timestamp width
    """
    if len(name) < TIMESTAMP_LENGTH:
        raise MalformedNameError(
            f"Name too short for a {TIMESTAMP_LENGTH}-character timestamp: {name!r}"
        )
    return name[:TIMESTAMP_LENGTH]


def parse_raw_file(path: Union[str, Path]) -> RawFile:
    """Build a RawFile from a path, extracting timestamp and unit index."""
    path = Path(path)
    timestamp = extract_timestamp(path.name)
    match = _UNIT_RE.match(path.name[TIMESTAMP_LENGTH:])
    if not match:
        raise MalformedNameError(f"No unit index after timestamp: {path.name!r}")
    return RawFile(path=path, timestamp=timestamp, unit=int(match.group(1)))
