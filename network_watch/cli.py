# Copyright (c) 2025-2026 OptimNow. All Rights Reserved.
# Licensed under the Apache License, Version 2.0.
# See LICENSE file in the project root for full license information.

"""
Command-line entry point for AWS Network Watch.

Usage:
    network-watch scan [--region R] [--profile P] [--vpc-id V]
                       [--output text|dot|json] [--export-json FILE]
                       [--save-state] [--verbose]
    network-watch watch [--file working_state.json] [--interval 30s]
                        [--region R] [--profile P] [--vpc-id V] [--verbose]
"""

import argparse
import asyncio
import logging
import re
import sys
from typing import Optional

from .clients.aws_client import AWSAPIError
from .config import Settings, get_settings
from .container import ServiceContainer
from .models.enums import OutputFormat
from .services.report_service import UnsupportedFormatError
from .services.snapshot_store import SnapshotStoreError, save_snapshot
from .services.watch_service import BaselineUnavailableError

logger = logging.getLogger(__name__)

_DURATION_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h)?\s*$")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def configure_logging(log_level: str) -> None:
    """
    Configure logging for the application.

    Logs go to stderr so that rendered topology on stdout stays clean.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stderr),
        ],
    )

    # boto is very chatty below WARNING
    logging.getLogger("botocore").setLevel(max(numeric_level, logging.WARNING))
    logging.getLogger("boto3").setLevel(max(numeric_level, logging.WARNING))


def parse_interval(value: str) -> float:
    """Parse an interval such as "30", "30s", "1.5m" or "2h" into seconds."""
    match = _DURATION_PATTERN.match(value)
    if not match:
        raise argparse.ArgumentTypeError(f"invalid interval: {value!r} (examples: 30s, 1m, 5m)")
    seconds = float(match.group(1)) * _DURATION_UNITS[match.group(2) or "s"]
    if seconds <= 0:
        raise argparse.ArgumentTypeError(f"interval must be positive: {value!r}")
    return seconds


def _add_scope_arguments(parser: argparse.ArgumentParser, verb: str) -> None:
    parser.add_argument(
        "-r", "--region", help="AWS region (defaults to AWS_REGION or us-east-1)"
    )
    parser.add_argument(
        "-p", "--profile", help="AWS profile (defaults to the default credential chain)"
    )
    parser.add_argument(
        "-v", "--vpc-id", help=f"Specific VPC ID to {verb} (all VPCs if not provided)"
    )
    parser.add_argument("--verbose", action="store_true", help="Enable verbose output")


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the scan and watch commands."""
    parser = argparse.ArgumentParser(
        prog="network-watch",
        description="Map AWS network topology and watch it for drift.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    scan = subparsers.add_parser("scan", help="Scan the network and render its topology")
    _add_scope_arguments(scan, "scan")
    scan.add_argument(
        "-o", "--output",
        default=OutputFormat.TEXT.value,
        help="Output format: text, dot, json",
    )
    scan.add_argument(
        "--export-json", metavar="FILE", help="Export the snapshot to a JSON file"
    )
    scan.add_argument(
        "--save-state",
        action="store_true",
        help="Save the snapshot as the watch baseline (working_state.json)",
    )

    watch = subparsers.add_parser("watch", help="Watch the network for drift from a baseline")
    _add_scope_arguments(watch, "watch")
    watch.add_argument(
        "-f", "--file", help="Baseline snapshot file (default: working_state.json)"
    )
    watch.add_argument(
        "-i", "--interval",
        type=parse_interval,
        help="Scan interval, e.g. 30s, 1m, 5m (default: 30s)",
    )
    return parser


def _effective_settings(args: argparse.Namespace, base: Settings) -> Settings:
    """Apply CLI flag overrides on top of environment settings."""
    overrides: dict = {}
    if args.region:
        overrides["aws_region"] = args.region
    if args.profile:
        overrides["aws_profile"] = args.profile
    if args.verbose:
        overrides["verbose"] = True
    if getattr(args, "file", None):
        overrides["baseline_path"] = args.file
    if getattr(args, "interval", None):
        overrides["watch_interval_seconds"] = args.interval
    return base.model_copy(update=overrides)


async def run_scan(container: ServiceContainer, args: argparse.Namespace) -> int:
    """Scan once, optionally persist the snapshot, and render it."""
    reporter = container.report_service
    scope = container.scope(vpc_id=args.vpc_id)

    # Reject a bad format before spending API calls
    try:
        output_format = OutputFormat(args.output)
    except ValueError:
        logger.error(f"CLI: {UnsupportedFormatError(args.output)}")
        return 2

    if container.settings.verbose:
        reporter.report_message(f"Scanning AWS network infrastructure ({scope.describe()})")

    snapshot = await container.inventory_service.acquire(scope)

    if container.settings.verbose:
        summary = ", ".join(f"{count} {name}" for name, count in snapshot.counts().items())
        reporter.report_message(f"Found {summary}")

    export_path = args.export_json
    if args.save_state and not export_path:
        export_path = container.settings.baseline_path

    if export_path:
        save_snapshot(snapshot, export_path)
        if container.settings.verbose:
            reporter.report_message(f"Working state exported successfully to {export_path}")
        # Export alone suppresses the default text rendering
        if output_format == OutputFormat.TEXT:
            return 0

    reporter.print_topology(snapshot, output_format)
    return 0


async def run_watch(container: ServiceContainer, args: argparse.Namespace) -> int:
    """Watch for drift until interrupted."""
    settings = container.settings
    scope = container.scope(vpc_id=args.vpc_id)
    scheduler = container.create_watch_scheduler(scope)

    if settings.verbose:
        container.report_service.report_message(
            f"Starting watch ({scope.describe()}) every {scheduler.interval_seconds:g}s "
            f"against baseline {settings.baseline_path}"
        )

    try:
        await scheduler.run()
    except BaselineUnavailableError as e:
        logger.error(f"CLI: {e}")
        return 1
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """
    Parse arguments and run the requested command.

    Returns:
        Process exit status
    """
    args = build_parser().parse_args(argv)
    settings = _effective_settings(args, get_settings())
    configure_logging(settings.log_level)

    container = ServiceContainer(settings=settings)
    container.initialize()

    command = run_scan if args.command == "scan" else run_watch
    try:
        return asyncio.run(command(container, args))
    except KeyboardInterrupt:
        return 0
    except (AWSAPIError, SnapshotStoreError, UnsupportedFormatError, OSError) as e:
        logger.error(f"CLI: {args.command} failed: {e}")
        return 1
    finally:
        container.shutdown()


if __name__ == "__main__":
    sys.exit(main())
