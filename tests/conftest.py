import shutil
import sys
import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest

from capture_queue.models import CaptureSettings, RunContext

T1 = "1527256815_150165"
T2 = "1527256815_350165"
T3 = "1527256815_550165"


def make_capture(directory: Path, timestamps, count: int, ext: str = ".jp4"):
    """Create `count` raw files per timestamp in directory."""
    directory.mkdir(parents=True, exist_ok=True)
    for ts in timestamps:
        for unit in range(count):
            (directory / f"{ts}_{unit}{ext}").touch()


def make_artifacts(directory: Path, timestamp: str, subcamera_count: int, fmt: str = "jpeg"):
    """Create a complete set of combined EQR artifacts for one timestamp."""
    directory.mkdir(parents=True, exist_ok=True)
    for sub in range(subcamera_count):
        (directory / f"{timestamp}-{sub:02d}-EQR.{fmt}").touch()


@pytest.fixture
def workspace():
    """Temporary source/destination/log layout plus a processing config file."""
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        (root / "src").mkdir()
        (root / "dst").mkdir()
        config = root / "eqr.xml"
        config.write_text("<properties/>\n")
        yield root


@pytest.fixture
def make_context(workspace):
    """Factory for a RunContext over the workspace with settings overrides."""

    def _make(run_id="20261018_120000", file_list=None, **sections):
        settings = CaptureSettings.from_dict(
            {
                "camera": {"camera_count": 4, "subcamera_count": 2},
                "batching": {"split_at": 4},
                "dispatch": {"program": "eqr-process"},
                **sections,
            }
        )
        return RunContext(
            source_root=workspace / "src",
            destination_root=workspace / "dst",
            config_path=workspace / "eqr.xml",
            file_list=file_list,
            log_dir=workspace / "logs",
            manifest_path=workspace / "logs" / f"{run_id}.manifest",
            joblog_path=workspace / "logs" / f"{run_id}.joblog",
            run_id=run_id,
            settings=settings,
        )

    return _make


@pytest.fixture
def job_script(workspace):
    """Stand-in processing program: records its argument, fails on 'FAIL'."""
    record = workspace / "processed.txt"
    script = workspace / "job.py"
    script.write_text(
        "import sys\n"
        f"with open({str(record)!r}, 'a') as f:\n"
        "    f.write(sys.argv[1] + '\\n')\n"
        "if 'FAIL' in sys.argv[1]:\n"
        "    sys.stderr.write('boom\\n')\n"
        "    sys.exit(3)\n"
    )
    return script, record


@pytest.fixture
def fake_parallel():
    """Pretend GNU parallel is installed; other lookups are real."""
    real_which = shutil.which

    def _which(cmd, *args, **kwargs):
        if cmd == "parallel":
            return "/usr/bin/parallel"
        return real_which(cmd, *args, **kwargs)

    with patch("capture_queue.pipeline.shutil.which", side_effect=_which):
        yield


@pytest.fixture
def python_wrapper():
    return sys.executable
