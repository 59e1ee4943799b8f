from pathlib import Path

import pytest

from capture_queue.config import build_run_context, load_yaml, resolve_settings
from capture_queue.errors import PreconditionError
from capture_queue.models import CaptureSettings


def test_default_settings_load():
    """Test default settings resolve without errors."""
    settings = resolve_settings()
    assert isinstance(settings, CaptureSettings)
    assert settings.camera.camera_count == 8
    assert settings.ordering.mode == "sequential"
    assert settings.completion.check is False


def test_cli_override_camera_counts():
    settings = resolve_settings({"camera_count": 26, "subcamera_count": 9})
    assert settings.camera.camera_count == 26
    assert settings.camera.subcamera_count == 9


def test_cli_override_flags():
    settings = resolve_settings({"truncate": True, "check_complete": True, "order": "progressive"})
    assert settings.batching.truncate is True
    assert settings.completion.check is True
    assert settings.ordering.mode == "progressive"


def test_false_flags_do_not_override(tmp_path):
    """Test an unset CLI switch keeps the settings file value."""
    settings_file = tmp_path / "s.yaml"
    settings_file.write_text("completion:\n  check: true\n")
    settings = resolve_settings({"settings": str(settings_file), "check_complete": False})
    assert settings.completion.check is True


def test_settings_file_layer(tmp_path):
    settings_file = tmp_path / "site.yaml"
    settings_file.write_text("camera:\n  camera_count: 26\n  output_format: tiff\n")
    settings = resolve_settings({"settings": str(settings_file), "format": "png"})
    assert settings.camera.camera_count == 26
    assert settings.camera.output_format == "png"


def test_missing_settings_file_raises():
    with pytest.raises(PreconditionError):
        resolve_settings({"settings": "/nonexistent/settings.yaml"})


def test_invalid_value_raises_precondition_error():
    with pytest.raises(PreconditionError):
        resolve_settings({"camera_count": 0})


def test_invalid_format_raises_precondition_error():
    with pytest.raises(PreconditionError):
        resolve_settings({"format": "bmp"})


def test_missing_yaml_returns_empty_dict():
    assert load_yaml(Path("nonexistent.yaml")) == {}


class TestBuildRunContext:
    def _args(self, workspace, **extra):
        args = {
            "source": str(workspace / "src"),
            "destination": str(workspace / "dst"),
            "config": str(workspace / "eqr.xml"),
            "program": "eqr-process",
            "log_dir": str(workspace / "logs"),
        }
        args.update(extra)
        return args

    def test_fresh_run_paths(self, workspace):
        ctx = build_run_context(self._args(workspace))
        assert ctx.manifest_path == (workspace / "logs").resolve() / f"{ctx.run_id}.manifest"
        assert ctx.joblog_path == (workspace / "logs").resolve() / f"{ctx.run_id}.joblog"
        assert len(ctx.run_id) == len("20261018_120000")

    def test_resume_run_id(self, workspace):
        ctx = build_run_context(self._args(workspace, run_id="20250101_000000"))
        assert ctx.run_id == "20250101_000000"
        assert ctx.manifest_path.name == "20250101_000000.manifest"

    def test_explicit_manifest(self, workspace):
        ctx = build_run_context(self._args(workspace, manifest=str(workspace / "m.sh")))
        assert ctx.manifest_path == (workspace / "m.sh").resolve()

    def test_context_is_frozen(self, workspace):
        ctx = build_run_context(self._args(workspace))
        with pytest.raises(Exception):
            ctx.run_id = "other"

    def test_bulk_mode_flag(self, workspace):
        assert build_run_context(self._args(workspace, split_at=9)).bulk_mode is True
        assert build_run_context(self._args(workspace, split_at=8)).bulk_mode is False

    @pytest.mark.parametrize("missing", ["source", "destination", "config"])
    def test_required_options(self, workspace, missing):
        args = self._args(workspace)
        del args[missing]
        with pytest.raises(PreconditionError):
            build_run_context(args)

    def test_program_required(self, workspace):
        args = self._args(workspace)
        del args["program"]
        with pytest.raises(PreconditionError):
            build_run_context(args)

    def test_missing_source_directory(self, workspace):
        with pytest.raises(PreconditionError):
            build_run_context(self._args(workspace, source=str(workspace / "nope")))

    def test_missing_config_file(self, workspace):
        with pytest.raises(PreconditionError):
            build_run_context(self._args(workspace, config=str(workspace / "nope.xml")))

    def test_missing_file_list(self, workspace):
        with pytest.raises(PreconditionError):
            build_run_context(self._args(workspace, file_list=str(workspace / "files.txt")))
