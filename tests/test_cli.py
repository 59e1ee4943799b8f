from unittest.mock import patch

import pytest

from capture_queue.cli import main
from capture_queue.models import JobDescriptor
from capture_queue.queue import InvocationTemplate

from conftest import T1, make_capture


def test_cli_help_displays():
    """Test --help works without errors."""
    with patch("sys.argv", ["capture-queue", "--help"]):
        with pytest.raises(SystemExit) as exc_info:
            main()
        assert exc_info.value.code == 0


@pytest.mark.parametrize("command", ["generate", "queue", "replay", "check"])
def test_cli_subcommand_help(command):
    with patch("sys.argv", ["capture-queue", command, "--help"]):
        with pytest.raises(SystemExit) as exc_info:
            main()
        assert exc_info.value.code == 0


def test_cli_no_command_shows_help(capsys):
    with patch("sys.argv", ["capture-queue"]):
        main()
        captured = capsys.readouterr()
        assert "usage:" in captured.out.lower()


def test_cli_check_all_found(capsys):
    with patch("sys.argv", ["capture-queue", "check", "--program", "eqr-process"]):
        with patch("capture_queue.cli.shutil.which", return_value="/usr/bin/x"):
            main()
    assert "not found" not in capsys.readouterr().out.lower()


def test_cli_check_missing_command_exits_1(capsys):
    with patch("sys.argv", ["capture-queue", "check", "--program", "eqr-process"]):
        with patch("capture_queue.cli.shutil.which", return_value=None):
            with pytest.raises(SystemExit) as exc_info:
                main()
    assert exc_info.value.code == 1
    assert "not found" in capsys.readouterr().out.lower()


def test_cli_generate_missing_source_exits_1(capsys):
    """Test precondition failures abort with exit code 1."""
    with patch("sys.argv", ["capture-queue", "generate", "--program", "eqr-process"]):
        with pytest.raises(SystemExit) as exc_info:
            main()
    assert exc_info.value.code == 1
    assert "--source" in capsys.readouterr().err


def test_cli_replay_missing_manifest_exits_1():
    with patch("sys.argv", ["capture-queue", "replay", "/nonexistent/run.manifest"]):
        with pytest.raises(SystemExit) as exc_info:
            main()
    assert exc_info.value.code == 1


def test_cli_queue_runs_jobs(workspace, job_script, python_wrapper):
    script, record = job_script
    make_capture(workspace / "src", [T1], 4)
    argv = [
        "capture-queue",
        "queue",
        "--source", str(workspace / "src"),
        "--destination", str(workspace / "dst"),
        "--config", str(workspace / "eqr.xml"),
        "--log-dir", str(workspace / "logs"),
        "--camera-count", "4",
        "--split-at", "4",
        "--program", str(script),
        "--wrapper", python_wrapper,
        "--jobs", "1",
        "--run-id", "cli",
    ]
    with patch("sys.argv", argv):
        main()
    assert len(record.read_text().splitlines()) == 1
    assert (workspace / "logs" / "cli.manifest").exists()


def test_cli_malformed_argument_exits_1(capsys):
    """Test usage errors use the same exit code as other fatal errors."""
    with patch("sys.argv", ["capture-queue", "generate", "--split-at", "notanint"]):
        with pytest.raises(SystemExit) as exc_info:
            main()
    assert exc_info.value.code == 1
    assert "--split-at" in capsys.readouterr().err


def test_cli_unknown_command_exits_1():
    with patch("sys.argv", ["capture-queue", "nosuchcommand"]):
        with pytest.raises(SystemExit) as exc_info:
            main()
    assert exc_info.value.code == 1


def test_cli_replay_failed_jobs_do_not_change_exit_code(workspace, job_script, python_wrapper):
    """Test failed jobs are reported in the job log, not through the exit code."""
    script, record = job_script
    template = InvocationTemplate(program=str(script), wrapper=python_wrapper)
    lines = [
        JobDescriptor(
            config_path=workspace / "eqr.xml",
            source_root=workspace / "src",
            destination_root=workspace / "dst",
            item=item,
            batch_size=4,
            output_id=f"replay_{item}",
        ).to_line()
        for item in (T1, "FAIL")
    ]
    manifest = workspace / "run.manifest"
    manifest.write_text("\n".join([template.header()] + lines) + "\n")
    joblog = workspace / "run.joblog"

    argv = ["capture-queue", "replay", str(manifest), "--jobs", "1", "--joblog", str(joblog)]
    with patch("sys.argv", argv):
        main()

    assert len(record.read_text().splitlines()) == 2
    assert len(joblog.read_text().splitlines()) == 3
