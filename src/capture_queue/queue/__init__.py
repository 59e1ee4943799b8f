"""Manifest persistence and live worker pool for job descriptors."""

from .backends import DescriptorSink, fan_out
from .manifest import InvocationTemplate, ManifestWriter, read_manifest
from .runner import JobErrorType, JobRunResult, run_job
from .worker import JobLog, JobWorkerPool

__all__ = [
    "DescriptorSink",
    "fan_out",
    "InvocationTemplate",
    "ManifestWriter",
    "read_manifest",
    "JobErrorType",
    "JobRunResult",
    "run_job",
    "JobLog",
    "JobWorkerPool",
]
