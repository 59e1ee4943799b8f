"""Bounded worker pool for queue mode.

The producer (the generator, running in the caller's thread) puts job
descriptors onto a bounded channel; a fixed number of worker threads take
them off in submission order and each runs one job subprocess at a time.
Generation and execution therefore overlap, and the producer blocks when the
workers fall behind by more than the channel size.

Jobs may finish in any order. Every finished job is appended to the job log
in GNU parallel --joblog layout.
"""

import multiprocessing
import queue
import sys
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from tqdm import tqdm

from ..models import JobDescriptor
from .backends import DescriptorSink
from .manifest import InvocationTemplate
from .runner import JOBLOG_HEADER, JobRunResult, run_job

_STOP = None


class JobLog:
    """Append-only job log shared by all workers."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.Lock()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        is_new = not self.path.exists() or self.path.stat().st_size == 0
        self._fh = open(self.path, "a")
        if is_new:
            self._fh.write(JOBLOG_HEADER + "\n")
            self._fh.flush()

    def record(self, result: JobRunResult) -> None:
        with self._lock:
            self._fh.write(result.joblog_row() + "\n")
            self._fh.flush()

    def close(self) -> None:
        self._fh.close()


class JobWorkerPool(DescriptorSink):
    """Thread pool that runs job descriptors through the processing program.

    Features:
    - Bounded channel between producer and workers (backpressure)
    - Fixed concurrency, one subprocess per worker thread
    - Job log in GNU parallel layout
    - Progress tracking with tqdm
    - Failed jobs are counted and reported, processing continues
    """

    def __init__(
        self,
        template: InvocationTemplate,
        n_workers: Optional[int] = None,
        joblog_path: Optional[Path] = None,
        channel_size: Optional[int] = None,
        timeout_s: Optional[int] = None,
        show_progress: bool = True,
    ):
        """Initialize worker pool.

        Args:
            template: Command template applied to each descriptor line
            n_workers: Number of parallel jobs (default: CPU count)
            joblog_path: Where to append job log rows (None = no job log)
            channel_size: Bounded queue size (default: 2 * n_workers)
            timeout_s: Per-job timeout in seconds
            show_progress: Show a tqdm progress bar
        """
        self.template = template
        self.n_workers = n_workers or multiprocessing.cpu_count()
        self.channel_size = channel_size or 2 * self.n_workers
        self.timeout_s = timeout_s
        self.joblog_path = joblog_path
        self.show_progress = show_progress

        self.stats: Dict[str, int] = {"submitted": 0, "succeeded": 0, "failed": 0}
        self.failures: List[JobRunResult] = []

        self._channel: Optional[queue.Queue] = None
        self._executor: Optional[ThreadPoolExecutor] = None
        self._futures = []
        self._joblog: Optional[JobLog] = None
        self._bar: Optional[tqdm] = None
        self._lock = threading.Lock()

    def __enter__(self):
        """Start worker threads on context entry."""
        self._channel = queue.Queue(maxsize=self.channel_size)
        if self.joblog_path:
            self._joblog = JobLog(self.joblog_path)
        self._bar = tqdm(
            desc="Processing jobs", unit="job", disable=not self.show_progress, file=sys.stdout
        )
        self._executor = ThreadPoolExecutor(
            max_workers=self.n_workers, thread_name_prefix="capture-queue-worker"
        )
        self._futures = [self._executor.submit(self._consume) for _ in range(self.n_workers)]
        return self

    def __exit__(self, *args):
        """Drain the channel and wait for running jobs on context exit."""
        self.close()

    def put(self, descriptor: JobDescriptor) -> None:
        """Submit a descriptor; blocks while the channel is full."""
        if self._channel is None:
            raise RuntimeError("Worker pool not initialized (use with statement)")
        self.stats["submitted"] += 1
        self._channel.put((self.stats["submitted"], descriptor))

    def close(self) -> None:
        if self._executor is None:
            return
        for _ in range(self.n_workers):
            self._channel.put(_STOP)
        for future in self._futures:
            # Re-raises unexpected worker errors
            future.result()
        self._executor.shutdown(wait=True)
        self._executor = None
        self._bar.close()
        if self._joblog:
            self._joblog.close()

    def _consume(self) -> None:
        while True:
            entry: Optional[Tuple[int, JobDescriptor]] = self._channel.get()
            if entry is _STOP:
                return
            seq, descriptor = entry
            result = run_job(self.template.argv(descriptor.to_line()), seq, self.timeout_s)
            self._record(result, descriptor)

    def _record(self, result: JobRunResult, descriptor: JobDescriptor) -> None:
        if self._joblog:
            self._joblog.record(result)
        with self._lock:
            if result.success:
                self.stats["succeeded"] += 1
            else:
                self.stats["failed"] += 1
                self.failures.append(result)
                detail = result.stderr.strip().splitlines()[-1:] or [""]
                tqdm.write(
                    f"  ✗ Job {result.seq} ({descriptor.output_id}) failed: "
                    f"{result.error_type.value}, exit {result.exitval}, "
                    f"signal {result.signal} {detail[0]}",
                    file=sys.stderr,
                )
            self._bar.update(1)
