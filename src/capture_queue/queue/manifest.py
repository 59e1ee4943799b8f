"""Self-executing, append-only manifest files.

A manifest is a GNU parallel script. Its first line is the invocation
template as a shebang::

    #!/usr/bin/parallel --shebang -r --jobs 4 --joblog logs/run.joblog wrap.sh eqr-process {}

and every following line is one job descriptor, which parallel substitutes
for the ``{}`` placeholder. Executing the file re-runs every listed job;
regenerating a manifest against the current destination tree leaves out
work that has completed since.

Header tokens other than the placeholder are shell-quoted, so paths may
contain whitespace.
"""

import os
import shlex
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from ..errors import ManifestError
from ..models import JobDescriptor
from .backends import DescriptorSink

PLACEHOLDER = "{}"
SHEBANG_FLAG = "--shebang"


@dataclass(frozen=True)
class InvocationTemplate:
    """Command used for every job: ``[wrapper] program {}``."""

    program: str
    wrapper: Optional[str] = None
    parallel_cmd: str = "parallel"
    jobs: Optional[int] = None
    joblog: Optional[Path] = None

    def command(self) -> List[str]:
        return ([self.wrapper] if self.wrapper else []) + [self.program]

    def argv(self, line: str) -> List[str]:
        """Arguments for one job; the whole descriptor line replaces the placeholder."""
        return self.command() + [line]

    def header(self) -> str:
        parts = [self.parallel_cmd, SHEBANG_FLAG, "-r"]
        if self.jobs:
            parts += ["--jobs", str(self.jobs)]
        if self.joblog:
            parts += ["--joblog", str(self.joblog)]
        parts += self.command()
        return "#!" + " ".join(shlex.quote(part) for part in parts) + " " + PLACEHOLDER

    @classmethod
    def from_header(cls, header: str) -> "InvocationTemplate":
        """Parse a header written by header().

        Raises:
            ManifestError: if the line is not a manifest header
        """
        if not header.startswith("#!"):
            raise ManifestError(f"Not a manifest header: {header!r}")
        try:
            tokens = shlex.split(header[2:])
        except ValueError as e:
            raise ManifestError(f"Malformed manifest header: {header!r}") from e
        if len(tokens) < 3 or SHEBANG_FLAG not in tokens or tokens[-1] != PLACEHOLDER:
            raise ManifestError(f"Not a manifest header: {header!r}")

        parallel_cmd = tokens[0]
        jobs = None
        joblog = None
        rest = tokens[tokens.index(SHEBANG_FLAG) + 1 : -1]
        while rest and rest[0].startswith("-"):
            flag = rest.pop(0)
            if flag == "--jobs" and rest:
                jobs = int(rest.pop(0))
            elif flag == "--joblog" and rest:
                joblog = Path(rest.pop(0))

        if len(rest) == 1:
            return cls(program=rest[0], parallel_cmd=parallel_cmd, jobs=jobs, joblog=joblog)
        if len(rest) == 2:
            return cls(
                program=rest[1], wrapper=rest[0], parallel_cmd=parallel_cmd, jobs=jobs, joblog=joblog
            )
        raise ManifestError(f"Cannot find program in manifest header: {header!r}")


class ManifestWriter(DescriptorSink):
    """Append-only manifest writer.

    A new manifest gets the header and the executable bit. An existing one
    (resumed run) must carry the same header; new lines are appended to it.
    Every line is flushed as soon as it is written.
    """

    def __init__(self, path: Path, template: InvocationTemplate):
        self.path = Path(path)
        self.template = template
        self.lines_written = 0
        self.resumed = False
        self._fh = None

    def open(self) -> "ManifestWriter":
        header = self.template.header()
        self.path.parent.mkdir(parents=True, exist_ok=True)

        if self.path.exists() and self.path.stat().st_size > 0:
            with open(self.path, "r") as f:
                existing = f.readline().rstrip("\n")
            if existing != header:
                raise ManifestError(
                    f"Manifest {self.path} was written for a different invocation:\n"
                    f"  found:    {existing}\n  expected: {header}\n"
                    "Start a fresh run (new --run-id) or pass a different --manifest."
                )
            self._fh = open(self.path, "a")
            self.resumed = True
        else:
            self._fh = open(self.path, "w")
            self._fh.write(header + "\n")
            self._fh.flush()

        mode = self.path.stat().st_mode
        os.chmod(self.path, mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return self

    def __enter__(self):
        return self.open()

    def put(self, descriptor: JobDescriptor) -> None:
        if self._fh is None:
            raise RuntimeError("Manifest not open (use with statement)")
        self._fh.write(descriptor.to_line() + "\n")
        self._fh.flush()
        self.lines_written += 1

    def close(self) -> None:
        if self._fh is not None:
            self._fh.close()
            self._fh = None


def read_manifest(path: Path) -> Tuple[InvocationTemplate, List[JobDescriptor]]:
    """Load the template and descriptors of an existing manifest.

    Raises:
        ManifestError: if the file is missing, empty or has malformed lines
    """
    path = Path(path)
    if not path.is_file():
        raise ManifestError(f"Manifest not found: {path}")

    with open(path, "r") as f:
        lines = [line.rstrip("\n") for line in f]
    if not lines:
        raise ManifestError(f"Manifest is empty: {path}")

    template = InvocationTemplate.from_header(lines[0])
    descriptors = []
    for lineno, line in enumerate(lines[1:], start=2):
        if not line.strip():
            continue
        try:
            descriptors.append(JobDescriptor.from_line(line))
        except ValueError as e:
            raise ManifestError(f"{path}:{lineno}: {e}") from e
    return template, descriptors
