import argparse
import shutil
import sys

from . import config as config_lib
from . import pipeline
from .errors import CaptureQueueError


class ArgumentParser(argparse.ArgumentParser):
    """Argument parser that exits 1 on usage errors, like every other fatal error."""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def _add_run_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--source", "-s", type=str, help="Source directory with raw JP4 files")
    parser.add_argument("--destination", "-d", type=str, help="Destination directory for EQR output")
    parser.add_argument("--config", "-c", type=str, help="Processing program config file")
    parser.add_argument("--file-list", type=str, help="Cached list of raw files (skips scanning)")
    parser.add_argument("--log-dir", type=str, help="Directory for manifest and job log (default: logs)")
    parser.add_argument("--manifest", "-m", type=str, help="Manifest path (default: <log-dir>/<run-id>.manifest)")
    parser.add_argument("--run-id", type=str, help="Resume the run with this id")
    parser.add_argument("--settings", type=str, help="YAML settings file")

    parser.add_argument("--camera-count", type=int, help="Raw files per timestamp")
    parser.add_argument("--subcamera-count", type=int, help="Output sub-units per timestamp")
    parser.add_argument("--format", choices=["jpeg", "tiff", "png"], help="EQR output format")
    parser.add_argument("--split-at", type=int, help="Batch size; above camera count = bulk mode")
    parser.add_argument("--truncate", action="store_true", help="Drop files beyond the last full camera group")
    parser.add_argument(
        "--order",
        choices=["sequential", "progressive"],
        help="Ordering strategy",
    )
    parser.add_argument(
        "--check-complete",
        action="store_true",
        help="Skip timestamps already processed (slow: one check per timestamp)",
    )

    parser.add_argument("--program", type=str, help="External processing program")
    parser.add_argument("--wrapper", type=str, help="Logging wrapper for the program")
    parser.add_argument("--parallel", type=str, help="GNU parallel executable")
    parser.add_argument("--jobs", "-j", type=int, help="Maximum concurrent jobs")


def main():
    parser = ArgumentParser(
        prog="capture-queue",
        description="Resumable job scheduler for JP4 to EQR post-processing",
    )
    subparsers = parser.add_subparsers(dest="command", help="Subcommands")

    # GENERATE
    generate_parser = subparsers.add_parser(
        "generate", help="Write a self-executing manifest of pending jobs"
    )
    _add_run_options(generate_parser)

    # QUEUE
    queue_parser = subparsers.add_parser(
        "queue", help="Run jobs while generating the manifest (resumable)"
    )
    _add_run_options(queue_parser)

    # REPLAY
    replay_parser = subparsers.add_parser(
        "replay", help="Run the jobs of an existing manifest"
    )
    replay_parser.add_argument("manifest", type=str, help="Manifest file")
    replay_parser.add_argument("--jobs", "-j", type=int, help="Maximum concurrent jobs")
    replay_parser.add_argument("--joblog", type=str, help="Job log path (default: from manifest)")
    replay_parser.add_argument("--timeout", type=int, help="Per-job timeout in seconds")

    # CHECK
    check_parser = subparsers.add_parser("check", help="Verify external commands")
    check_parser.add_argument("--settings", type=str, help="YAML settings file")
    check_parser.add_argument("--program", type=str, help="External processing program")
    check_parser.add_argument("--wrapper", type=str, help="Logging wrapper for the program")
    check_parser.add_argument("--parallel", type=str, help="GNU parallel executable")

    args = parser.parse_args()
    cli_dict = {k: v for k, v in vars(args).items() if v is not None}

    try:
        if args.command == "generate":
            pipeline.run_generate(cli_dict)

        elif args.command == "queue":
            pipeline.run_queue(cli_dict)

        elif args.command == "replay":
            pipeline.replay_manifest(
                args.manifest,
                n_workers=args.jobs,
                joblog_path=args.joblog,
                timeout_s=args.timeout,
            )

        elif args.command == "check":
            _check_commands(cli_dict)

        else:
            parser.print_help()

    except CaptureQueueError as e:
        print(f"❌ {e}", file=sys.stderr)
        sys.exit(1)


def _check_commands(cli_dict: dict) -> None:
    print("Checking dependencies...")
    dispatch = config_lib.resolve_settings(cli_dict).dispatch
    required = [("parallel", dispatch.parallel_cmd), ("program", dispatch.program)]
    if dispatch.wrapper:
        required.append(("wrapper", dispatch.wrapper))

    missing = False
    for label, command in required:
        if command and shutil.which(command):
            print(f"✅ {label}: {command} found.")
        else:
            print(f"❌ {label}: {command or '(not set)'} NOT found in PATH.")
            missing = True
    if missing:
        sys.exit(1)


if __name__ == "__main__":
    main()
