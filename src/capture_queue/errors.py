"""Exception hierarchy for capture-queue.

Fatal errors derive from CaptureQueueError and abort the run before (or while)
work items are produced; the CLI maps them to exit code 1. Per-timestamp data
problems are not exceptions: they are reported as warnings and skipped.
"""


class CaptureQueueError(Exception):
    """Base class for fatal capture-queue errors."""


class PreconditionError(CaptureQueueError):
    """A required command, setting or input path is missing or invalid."""


class SnapshotError(CaptureQueueError):
    """The destination snapshot could not be built."""


class ManifestError(CaptureQueueError):
    """A manifest file is unusable (header mismatch, empty, not a manifest)."""


class MalformedNameError(ValueError):
    """A raw file name is too short or lacks a unit index."""
