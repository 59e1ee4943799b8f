"""Generation pipeline and the two dispatch modes.

Usage:
    # Persist-only: write a self-executing manifest
    pipeline.run_generate({"source": "/data/jp4", "destination": "/data/eqr",
                           "config": "eqr.xml", "program": "eqr-process"})

    # Queue mode: run jobs while the manifest is being generated
    pipeline.run_queue({..., "jobs": 4})

    # Re-run an earlier manifest through the in-process pool
    pipeline.replay_manifest("logs/20261018_101500.manifest")

Every descriptor stream is built by build_descriptors():
scan -> enumerate (optionally minus completed) -> order -> split -> describe.
"""

import shutil
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from . import batching, config as config_lib
from .enumerator import WorkEnumerator
from .errors import PreconditionError
from .models import Batch, JobDescriptor, RunContext
from .ordering import order_timestamps
from .queue import InvocationTemplate, JobWorkerPool, ManifestWriter, fan_out, read_manifest


def resolve_commands(ctx: RunContext, require_parallel: bool) -> Dict[str, Optional[str]]:
    """Locate the external commands, returning absolute paths.

    The program may be a plain file when a wrapper runs it.

    Raises:
        PreconditionError: if a required command is missing
    """
    dispatch = ctx.settings.dispatch

    parallel = shutil.which(dispatch.parallel_cmd)
    if parallel is None:
        if require_parallel:
            raise PreconditionError(f"Required command not found: {dispatch.parallel_cmd}")
        parallel = dispatch.parallel_cmd

    wrapper = None
    if dispatch.wrapper:
        wrapper = shutil.which(dispatch.wrapper)
        if wrapper is None:
            raise PreconditionError(f"Wrapper command not found: {dispatch.wrapper}")

    program = shutil.which(dispatch.program)
    if program is None and wrapper and Path(dispatch.program).is_file():
        program = str(Path(dispatch.program).resolve())
    if program is None:
        raise PreconditionError(f"Processing program not found: {dispatch.program}")

    return {"parallel": parallel, "wrapper": wrapper, "program": program}


def build_template(ctx: RunContext, commands: Dict[str, Optional[str]]) -> InvocationTemplate:
    return InvocationTemplate(
        program=commands["program"],
        wrapper=commands["wrapper"],
        parallel_cmd=commands["parallel"],
        jobs=ctx.settings.dispatch.jobs,
        joblog=ctx.joblog_path,
    )


def plan_batches(
    ctx: RunContext, enumerator: WorkEnumerator, stats: batching.SplitStats
) -> Iterator[Batch]:
    """Ordered batches for this run.

    Bulk directory mode skips per-timestamp enumeration, ordering and
    completion checks entirely.
    """
    if ctx.bulk_mode:
        return batching.split_directories(
            enumerator.index,
            ctx.source_root,
            ctx.run_id,
            ctx.camera_count,
            ctx.settings.batching.truncate,
            stats,
        )

    ordered = order_timestamps(
        enumerator.timestamps(),
        enumerator.index,
        ctx.camera_count,
        ctx.settings.ordering.mode,
    )
    return batching.split_timestamps(ordered, enumerator.index, ctx.run_id, stats)


def describe(ctx: RunContext, batch: Batch) -> JobDescriptor:
    return JobDescriptor(
        config_path=ctx.config_path,
        source_root=ctx.source_root,
        destination_root=ctx.destination_root,
        item=batch.items[0],
        batch_size=ctx.settings.batching.split_at,
        truncate=ctx.settings.batching.truncate,
        output_id=batch.output_id,
    )


def build_descriptors(
    ctx: RunContext,
    enumerator: Optional[WorkEnumerator] = None,
    stats: Optional[batching.SplitStats] = None,
) -> Iterator[JobDescriptor]:
    """Lazily produce job descriptors in emission order."""
    enumerator = enumerator or WorkEnumerator(ctx)
    stats = stats if stats is not None else batching.SplitStats()
    for batch in plan_batches(ctx, enumerator, stats):
        yield describe(ctx, batch)


def _print_run_header(ctx: RunContext, mode: str) -> None:
    print(f"--- Starting capture-queue ({mode}) ---")
    print(f"Run id:       {ctx.run_id}")
    print(f"Source:       {ctx.source_root}")
    print(f"Destination:  {ctx.destination_root}")
    print(f"Manifest:     {ctx.manifest_path}")
    if ctx.bulk_mode:
        print(f"Batching:     bulk directory mode (split_at={ctx.settings.batching.split_at})")
    else:
        print(f"Ordering:     {ctx.settings.ordering.mode}")


def _generation_summary(
    enumerator: WorkEnumerator, stats: batching.SplitStats, written: int, resumed: bool
) -> Dict[str, Any]:
    index = enumerator.index
    return {
        "timestamps": len(index),
        "raw_files": index.total_files,
        "malformed": index.malformed,
        "skipped_complete": enumerator.skipped_complete,
        "batches": stats.batches,
        "dropped_files": stats.dropped_files,
        "written": written,
        "resumed": resumed,
    }


def _print_summary(title: str, rows: List[tuple]) -> None:
    print("\n" + "=" * 60)
    print(title)
    print("=" * 60)
    for label, value in rows:
        print(f"{label + ':':<22}{value}")
    print("=" * 60)


def generate_manifest(ctx: RunContext, template: InvocationTemplate) -> Dict[str, Any]:
    """Persist-only mode: append every descriptor to the manifest."""
    enumerator = WorkEnumerator(ctx)
    stats = batching.SplitStats()

    with ManifestWriter(ctx.manifest_path, template) as manifest:
        written = fan_out(build_descriptors(ctx, enumerator, stats), [manifest])
        resumed = manifest.resumed

    return _generation_summary(enumerator, stats, written, resumed)


def queue_manifest(ctx: RunContext, template: InvocationTemplate) -> Dict[str, Any]:
    """Queue mode: persist each descriptor, then hand it to the worker pool.

    The pool starts consuming as soon as the first descriptor is produced.
    """
    enumerator = WorkEnumerator(ctx)
    stats = batching.SplitStats()
    dispatch = ctx.settings.dispatch

    with ManifestWriter(ctx.manifest_path, template) as manifest:
        pool = JobWorkerPool(
            template,
            n_workers=dispatch.jobs,
            joblog_path=ctx.joblog_path,
            channel_size=dispatch.channel_size,
            timeout_s=dispatch.job_timeout_s,
        )
        with pool:
            written = fan_out(build_descriptors(ctx, enumerator, stats), [manifest, pool])
        resumed = manifest.resumed

    summary = _generation_summary(enumerator, stats, written, resumed)
    summary.update(succeeded=pool.stats["succeeded"], failed=pool.stats["failed"])
    return summary


def run_generate(cli_args: Dict[str, Any]) -> Dict[str, Any]:
    """Entry point for the CLI 'generate' command."""
    ctx = config_lib.build_run_context(cli_args)
    template = build_template(ctx, resolve_commands(ctx, require_parallel=True))

    _print_run_header(ctx, "persist")
    summary = generate_manifest(ctx, template)
    _print_generation(summary)
    print(f"\nManifest written to: {ctx.manifest_path}")
    print("Run it directly to process the queued jobs.")
    return summary


def run_queue(cli_args: Dict[str, Any]) -> Dict[str, Any]:
    """Entry point for the CLI 'queue' command."""
    ctx = config_lib.build_run_context(cli_args)
    template = build_template(ctx, resolve_commands(ctx, require_parallel=False))

    _print_run_header(ctx, "queue")
    summary = queue_manifest(ctx, template)
    _print_generation(summary)
    _print_summary(
        "PROCESSING SUMMARY",
        [("Succeeded", summary["succeeded"]), ("Failed", summary["failed"])],
    )
    print(f"\nJob log: {ctx.joblog_path}")
    return summary


def _print_generation(summary: Dict[str, Any]) -> None:
    _print_summary(
        "GENERATION SUMMARY",
        [
            ("Timestamps found", summary["timestamps"]),
            ("Raw files", summary["raw_files"]),
            ("Malformed names", summary["malformed"]),
            ("Already complete", summary["skipped_complete"]),
            ("Truncated files", summary["dropped_files"]),
            ("Jobs written", summary["written"]),
            ("Resumed manifest", "yes" if summary["resumed"] else "no"),
        ],
    )


def replay_manifest(
    manifest_path: str,
    n_workers: Optional[int] = None,
    joblog_path: Optional[str] = None,
    timeout_s: Optional[int] = None,
) -> Dict[str, int]:
    """Run an existing manifest's jobs through the in-process worker pool.

    Unfinished jobs are simply attempted again; to leave out finished work,
    regenerate the manifest with completion checking instead.
    """
    template, descriptors = read_manifest(Path(manifest_path))
    joblog = Path(joblog_path) if joblog_path else template.joblog

    print(f"Replaying {len(descriptors)} jobs from {manifest_path}...")
    with JobWorkerPool(
        template,
        n_workers=n_workers or template.jobs,
        joblog_path=joblog,
        timeout_s=timeout_s,
    ) as pool:
        fan_out(descriptors, [pool])

    _print_summary(
        "PROCESSING SUMMARY",
        [("Succeeded", pool.stats["succeeded"]), ("Failed", pool.stats["failed"])],
    )
    return dict(pool.stats)
