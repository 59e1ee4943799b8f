"""Pydantic models for settings, work items and job descriptors."""

import shlex
from pathlib import Path
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

OutputFormat = Literal["jpeg", "tiff", "png"]
OrderingMode = Literal["sequential", "progressive"]


class CameraConfig(BaseModel):
    """Capture array geometry and artifact naming."""

    camera_count: int = Field(
        default=8, gt=0, description="Raw files expected per acquisition timestamp"
    )
    subcamera_count: int = Field(
        default=2, gt=0, description="Output sub-units checked for completion per timestamp"
    )
    output_format: OutputFormat = Field(
        default="jpeg", description="Output format tag of EQR artifacts"
    )
    raw_extension: str = Field(default=".jp4", description="Extension of raw capture files")

    @field_validator("raw_extension")
    @classmethod
    def dotted_extension(cls, v: str) -> str:
        """Normalize extension to a lower-case dotted form."""
        v = v.strip().lower()
        if not v:
            raise ValueError("raw_extension must not be empty")
        return v if v.startswith(".") else f".{v}"


class BatchingConfig(BaseModel):
    """Batch splitting parameters."""

    split_at: int = Field(
        default=8,
        gt=0,
        description="Batch size; above camera_count switches to bulk directory mode",
    )
    truncate: bool = Field(
        default=False,
        description="Drop raw files beyond the last full multiple of camera_count",
    )


class OrderingConfig(BaseModel):
    """Work item ordering."""

    mode: OrderingMode = Field(
        default="sequential", description="sequential or progressive (bisection) order"
    )


class CompletionConfig(BaseModel):
    """Destination-side completion checking."""

    check: bool = Field(
        default=False,
        description="Skip timestamps whose EQR artifacts already exist (one check per timestamp)",
    )


class DispatchConfig(BaseModel):
    """External worker pool and processing program."""

    parallel_cmd: str = Field(default="parallel", description="GNU parallel executable")
    program: Optional[str] = Field(
        default=None, description="External per-item processing program (required)"
    )
    wrapper: Optional[str] = Field(
        default=None, description="Logging wrapper that runs the program"
    )
    jobs: Optional[int] = Field(
        default=None, gt=0, description="Maximum concurrent jobs (None = one per CPU)"
    )
    channel_size: Optional[int] = Field(
        default=None, gt=0, description="Bounded queue size in queue mode (None = 2 * jobs)"
    )
    job_timeout_s: Optional[int] = Field(
        default=None, gt=0, description="Kill a job after N seconds (None = no limit)"
    )


class CaptureSettings(BaseModel):
    """Complete settings with validation."""

    camera: CameraConfig = Field(default_factory=CameraConfig)
    batching: BatchingConfig = Field(default_factory=BatchingConfig)
    ordering: OrderingConfig = Field(default_factory=OrderingConfig)
    completion: CompletionConfig = Field(default_factory=CompletionConfig)
    dispatch: DispatchConfig = Field(default_factory=DispatchConfig)

    @classmethod
    def from_dict(cls, data: dict) -> "CaptureSettings":
        """Create settings from nested dict (YAML)."""
        return cls(**data)

    def merge_cli_overrides(self, cli_args: dict) -> "CaptureSettings":
        """Apply CLI overrides and return new settings instance."""
        settings_dict = self.model_dump()

        if "camera_count" in cli_args:
            settings_dict["camera"]["camera_count"] = cli_args["camera_count"]
        if "subcamera_count" in cli_args:
            settings_dict["camera"]["subcamera_count"] = cli_args["subcamera_count"]
        if "format" in cli_args:
            settings_dict["camera"]["output_format"] = cli_args["format"]
        if "split_at" in cli_args:
            settings_dict["batching"]["split_at"] = cli_args["split_at"]
        if cli_args.get("truncate"):
            settings_dict["batching"]["truncate"] = True
        if "order" in cli_args:
            settings_dict["ordering"]["mode"] = cli_args["order"]
        if cli_args.get("check_complete"):
            settings_dict["completion"]["check"] = True
        if "jobs" in cli_args:
            settings_dict["dispatch"]["jobs"] = cli_args["jobs"]
        if "program" in cli_args:
            settings_dict["dispatch"]["program"] = cli_args["program"]
        if "wrapper" in cli_args:
            settings_dict["dispatch"]["wrapper"] = cli_args["wrapper"]
        if "parallel" in cli_args:
            settings_dict["dispatch"]["parallel_cmd"] = cli_args["parallel"]

        return CaptureSettings.from_dict(settings_dict)


class RawFile(BaseModel):
    """One captured raw file, immutable after discovery."""

    model_config = ConfigDict(frozen=True)

    path: Path
    timestamp: str
    unit: int = Field(ge=0, description="Acquisition channel index")


class Batch(BaseModel):
    """Ordered group of work items handed to the dispatcher."""

    model_config = ConfigDict(frozen=True)

    output_id: str = Field(..., description="Run-scoped output identifier")
    items: List[str] = Field(..., min_length=1, description="Timestamps or directories")
    raw_count: int = Field(default=0, ge=0, description="Raw files covered by this batch")


class JobDescriptor(BaseModel):
    """Fully resolved invocation unit for the processing program.

    Rendered as one shell-quoted manifest line:
    ``config source destination item batch_size truncate output_id``.
    """

    model_config = ConfigDict(frozen=True)

    config_path: Path
    source_root: Path
    destination_root: Path
    item: str
    batch_size: int = Field(gt=0)
    truncate: bool = False
    output_id: str

    def to_line(self) -> str:
        return shlex.join(
            [
                str(self.config_path),
                str(self.source_root),
                str(self.destination_root),
                self.item,
                str(self.batch_size),
                "1" if self.truncate else "0",
                self.output_id,
            ]
        )

    @classmethod
    def from_line(cls, line: str) -> "JobDescriptor":
        """Parse a manifest line produced by to_line()."""
        fields = shlex.split(line)
        if len(fields) != 7:
            raise ValueError(f"Expected 7 fields in job line, got {len(fields)}: {line!r}")
        config_path, source, destination, item, batch_size, truncate, output_id = fields
        return cls(
            config_path=Path(config_path),
            source_root=Path(source),
            destination_root=Path(destination),
            item=item,
            batch_size=int(batch_size),
            truncate=truncate == "1",
            output_id=output_id,
        )


class RunContext(BaseModel):
    """Process-wide configuration for one invocation. Never mutated."""

    model_config = ConfigDict(frozen=True)

    source_root: Path
    destination_root: Path
    config_path: Path
    file_list: Optional[Path] = None
    log_dir: Path
    manifest_path: Path
    joblog_path: Path
    run_id: str
    settings: CaptureSettings = Field(default_factory=CaptureSettings)

    @property
    def camera_count(self) -> int:
        return self.settings.camera.camera_count

    @property
    def bulk_mode(self) -> bool:
        """True when batches span whole directories instead of timestamps."""
        return self.settings.batching.split_at > self.settings.camera.camera_count
