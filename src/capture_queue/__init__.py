"""capture-queue: resumable scheduling of JP4 to EQR post-processing jobs."""

__version__ = "0.1.0"
