from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from .errors import PreconditionError
from .models import CaptureSettings, RunContext

DEFAULT_CONFIG_PATH = Path("config/default.yaml")
LOCAL_CONFIG_PATH = Path("config/local.yaml")

RUN_ID_FORMAT = "%Y%m%d_%H%M%S"


def load_yaml(path: Path) -> Dict[str, Any]:
    """Load YAML file, returning empty dict if not found."""
    if not path.exists():
        return {}
    with open(path, "r") as f:
        return yaml.safe_load(f) or {}


def merge_dicts(base: Dict, override: Dict) -> Dict:
    """Recursive merge of two dictionaries."""
    result = base.copy()
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = merge_dicts(result[k], v)
        else:
            result[k] = v
    return result


def resolve_settings(cli_args: Optional[Dict[str, Any]] = None) -> CaptureSettings:
    """
    Resolve settings: Default < Local < --settings file < CLI.

    Raises:
        PreconditionError: if the settings file is missing or validation fails
    """
    cli_args = cli_args or {}

    config_data = load_yaml(DEFAULT_CONFIG_PATH)
    config_data = merge_dicts(config_data, load_yaml(LOCAL_CONFIG_PATH))

    settings_file = cli_args.get("settings")
    if settings_file:
        settings_path = Path(settings_file)
        if not settings_path.is_file():
            raise PreconditionError(f"Settings file not found: {settings_file}")
        config_data = merge_dicts(config_data, load_yaml(settings_path))

    try:
        settings = CaptureSettings.from_dict(config_data)
        return settings.merge_cli_overrides(cli_args)
    except ValidationError as e:
        raise PreconditionError(f"Invalid settings: {e}") from e


def build_run_context(cli_args: Dict[str, Any]) -> RunContext:
    """Resolve the RunContext for one invocation and check its preconditions.

    A run id given on the command line resumes that run (same manifest and job
    log); otherwise a fresh id is derived from the current time.
    """
    settings = resolve_settings(cli_args)

    for key in ("source", "destination", "config"):
        if not cli_args.get(key):
            raise PreconditionError(f"Required option --{key} is not set")
    if not settings.dispatch.program:
        raise PreconditionError(
            "dispatch.program is not set (use --program or the settings file)"
        )

    source_root = Path(cli_args["source"]).resolve()
    if not source_root.is_dir():
        raise PreconditionError(f"Source directory not found: {source_root}")

    config_path = Path(cli_args["config"]).resolve()
    if not config_path.is_file():
        raise PreconditionError(f"Processing config file not found: {config_path}")

    file_list = None
    if cli_args.get("file_list"):
        file_list = Path(cli_args["file_list"]).resolve()
        if not file_list.is_file():
            raise PreconditionError(f"File list not found: {file_list}")

    run_id = cli_args.get("run_id") or datetime.now().strftime(RUN_ID_FORMAT)
    log_dir = Path(cli_args.get("log_dir", "logs")).resolve()
    manifest_path = (
        Path(cli_args["manifest"]).resolve()
        if cli_args.get("manifest")
        else log_dir / f"{run_id}.manifest"
    )

    return RunContext(
        source_root=source_root,
        destination_root=Path(cli_args["destination"]).resolve(),
        config_path=config_path,
        file_list=file_list,
        log_dir=log_dir,
        manifest_path=manifest_path,
        joblog_path=log_dir / f"{run_id}.joblog",
        run_id=run_id,
        settings=settings,
    )
