"""Subprocess execution of a single job with timeout enforcement.

Each job runs in its own session so that a timeout can take down the whole
process tree (wrapper plus processing program), not only the direct child.
"""

import os
import shlex
import signal
import subprocess
import time
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

# GNU parallel/shell convention for "command not found"
EXIT_NOT_FOUND = 127


class JobErrorType(Enum):
    """Job failure classification."""
    FAILED = "failed"           # Non-zero exit status
    TIMEOUT = "timeout"         # Killed after job_timeout_s
    KILLED = "killed"           # Terminated by a signal from outside
    NOT_FOUND = "not_found"     # Program or wrapper could not be started


@dataclass
class JobRunResult:
    """Result of one job execution, one job log row."""
    seq: int
    command: List[str]
    returncode: int
    start_time: float
    runtime_s: float
    stdout: str = ""
    stderr: str = ""
    error_type: Optional[JobErrorType] = None

    @property
    def success(self) -> bool:
        return self.returncode == 0 and self.error_type is None

    @property
    def exitval(self) -> int:
        return self.returncode if self.returncode >= 0 else 0

    @property
    def signal(self) -> int:
        return -self.returncode if self.returncode < 0 else 0

    def joblog_row(self) -> str:
        """Tab-separated row in GNU parallel --joblog layout."""
        received = len(self.stdout.encode())
        return "\t".join(
            [
                str(self.seq),
                ":",
                f"{self.start_time:.3f}",
                f"{self.runtime_s:8.3f}",
                "0",
                str(received),
                str(self.exitval),
                str(self.signal),
                shlex.join(self.command),
            ]
        )


JOBLOG_HEADER = "\t".join(
    ["Seq", "Host", "Starttime", "JobRuntime", "Send", "Receive", "Exitval", "Signal", "Command"]
)


def _kill_process_tree(process: subprocess.Popen, grace_period_s: float) -> Tuple[str, str]:
    """SIGTERM the job's process group, SIGKILL after the grace period."""
    if os.name == "posix":
        try:
            os.killpg(process.pid, signal.SIGTERM)
        except ProcessLookupError:
            pass
        try:
            return process.communicate(timeout=grace_period_s)
        except subprocess.TimeoutExpired:
            try:
                os.killpg(process.pid, signal.SIGKILL)
            except ProcessLookupError:
                pass
    else:
        process.kill()
    return process.communicate()


def run_job(
    command: List[str],
    seq: int,
    timeout_s: Optional[int] = None,
    kill_grace_period_s: float = 5.0,
) -> JobRunResult:
    """Run one job to completion and classify the outcome.

    Args:
        command: Full argv (wrapper, program, descriptor line)
        seq: 1-based submission sequence number
        timeout_s: Kill the job after this many seconds (None = no limit)
        kill_grace_period_s: Delay between SIGTERM and SIGKILL on timeout

    Returns:
        JobRunResult; never raises for job-level failures
    """
    start_time = time.time()

    try:
        process = subprocess.Popen(
            command,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            stdin=subprocess.DEVNULL,
            text=True,
            start_new_session=(os.name == "posix"),
        )
    except OSError as e:
        return JobRunResult(
            seq=seq,
            command=command,
            returncode=EXIT_NOT_FOUND,
            start_time=start_time,
            runtime_s=time.time() - start_time,
            stderr=str(e),
            error_type=JobErrorType.NOT_FOUND,
        )

    error_type = None
    try:
        stdout, stderr = process.communicate(timeout=timeout_s)
    except subprocess.TimeoutExpired:
        stdout, stderr = _kill_process_tree(process, kill_grace_period_s)
        error_type = JobErrorType.TIMEOUT

    returncode = process.returncode
    if error_type is None and returncode != 0:
        error_type = JobErrorType.KILLED if returncode < 0 else JobErrorType.FAILED

    return JobRunResult(
        seq=seq,
        command=command,
        returncode=returncode,
        start_time=start_time,
        runtime_s=time.time() - start_time,
        stdout=stdout or "",
        stderr=stderr or "",
        error_type=error_type,
    )
