# Copyright (c) 2025-2026 OptimNow. All Rights Reserved.
# Licensed under the Apache License, Version 2.0.
# See LICENSE file in the project root for full license information.

"""Stdio MCP server using FastMCP from the mcp Python SDK.

This module creates a standard MCP server that speaks the JSON-RPC
protocol over stdio, so an MCP client can ask for the network topology
and for a drift report against a saved baseline.

It is a thin wrapper: all business logic lives in the service layer.
The ServiceContainer handles initialization and dependency wiring.

Usage::

    # Run directly (stdio transport):
    python -m network_watch.stdio_server

    # Test with MCP Inspector:
    npx @modelcontextprotocol/inspector python -m network_watch.stdio_server
"""

import asyncio
import json
import logging

from mcp.server.fastmcp import FastMCP

from .clients.aws_client import AWSAPIError
from .container import ServiceContainer
from .models.enums import OutputFormat
from .services.report_service import UnsupportedFormatError
from .services.snapshot_store import SnapshotStoreError, load_snapshot, save_snapshot

logger = logging.getLogger(__name__)

# Create the FastMCP server instance
mcp = FastMCP("AWS Network Watch")

# Module-level container (initialized in main)
_container: ServiceContainer | None = None


# ---------------------------------------------------------------------------
# Tool 1: scan_network
# ---------------------------------------------------------------------------
@mcp.tool()
async def scan_network(vpc_id: str | None = None, output_format: str = "text") -> str:
    """Scan the AWS network and return its topology.

    Lists VPCs, subnets (classified public, private or isolated), gateways,
    peering connections, transit gateways, security groups, network ACLs and
    IAM roles in the configured region.

    Args:
        vpc_id: Restrict the scan to one VPC (all VPCs if omitted)
        output_format: "text" (tree), "dot" (Graphviz) or "json" (full snapshot)
    """
    _ensure_initialized()
    try:
        fmt = OutputFormat(output_format)
    except ValueError:
        return json.dumps({"error": str(UnsupportedFormatError(output_format))})

    try:
        snapshot = await _container.inventory_service.acquire(_container.scope(vpc_id=vpc_id))
    except AWSAPIError as e:
        logger.error(f"scan_network failed: {e}")
        return json.dumps({"error": str(e), "error_code": e.error_code})

    return _container.report_service.render_topology(snapshot, fmt)


# ---------------------------------------------------------------------------
# Tool 2: compare_with_baseline
# ---------------------------------------------------------------------------
@mcp.tool()
async def compare_with_baseline(
    baseline_path: str | None = None,
    vpc_id: str | None = None,
) -> str:
    """Compare the live network against a saved baseline snapshot.

    Returns every resource added, removed or modified since the baseline was
    saved, with field-level details for modifications. Timestamps are not
    reported as changes. Resources that could not be read during the live
    scan are listed under skipped_resources; they may appear as removed.

    Args:
        baseline_path: Baseline snapshot file (default: working_state.json)
        vpc_id: Restrict the live scan to one VPC. Should match the scope the
            baseline was saved with, otherwise out-of-scope resources show
            up as removed.
    """
    _ensure_initialized()
    path = baseline_path or _container.settings.baseline_path
    try:
        baseline = load_snapshot(path)
    except SnapshotStoreError as e:
        return json.dumps({"error": str(e), "baseline_path": e.path})

    try:
        current = await _container.inventory_service.acquire(_container.scope(vpc_id=vpc_id))
    except AWSAPIError as e:
        logger.error(f"compare_with_baseline failed: {e}")
        return json.dumps({"error": str(e), "error_code": e.error_code})

    differences = _container.comparator.compare(baseline, current)
    result = {
        "baseline_path": str(path),
        "baseline_scan_time": baseline.scan_time.isoformat(),
        "current_scan_time": current.scan_time.isoformat(),
        "scope": current.scope.describe(),
        "difference_count": len(differences),
        "differences": [d.model_dump(mode="json") for d in differences],
        "skipped_resources": list(_container.inventory_service.last_skipped),
    }
    return json.dumps(result, default=str)


# ---------------------------------------------------------------------------
# Tool 3: save_baseline
# ---------------------------------------------------------------------------
@mcp.tool()
async def save_baseline(path: str | None = None, vpc_id: str | None = None) -> str:
    """Scan the AWS network and save the result as the drift baseline.

    Args:
        path: Destination file (default: working_state.json)
        vpc_id: Restrict the scan to one VPC (all VPCs if omitted)
    """
    _ensure_initialized()
    target = path or _container.settings.baseline_path
    try:
        snapshot = await _container.inventory_service.acquire(_container.scope(vpc_id=vpc_id))
    except AWSAPIError as e:
        logger.error(f"save_baseline failed: {e}")
        return json.dumps({"error": str(e), "error_code": e.error_code})

    written = save_snapshot(snapshot, target)
    return json.dumps(
        {
            "baseline_path": str(written),
            "scan_time": snapshot.scan_time.isoformat(),
            "scope": snapshot.scope.describe(),
            "counts": snapshot.counts(),
        }
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _ensure_initialized() -> None:
    """Raise if the container hasn't been initialized yet."""
    if _container is None or not _container.initialized:
        raise RuntimeError(
            "ServiceContainer not initialized. "
            "Call initialize_container() before using tools."
        )


def initialize_container(container: ServiceContainer | None = None) -> ServiceContainer:
    """Initialize the ServiceContainer for the stdio server."""
    global _container
    _container = container or ServiceContainer()
    if not _container.initialized:
        _container.initialize()
    return _container


def shutdown_container() -> None:
    """Shut down the ServiceContainer."""
    global _container
    if _container:
        _container.shutdown()
        _container = None


def main() -> None:
    """Entry point for the stdio MCP server."""
    import sys

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,  # MCP uses stdout for JSON-RPC; logs go to stderr
    )

    logger.info("Starting AWS Network Watch MCP Server (stdio transport)")

    async def _run() -> None:
        initialize_container()
        try:
            await mcp.run_stdio_async()
        finally:
            shutdown_container()

    asyncio.run(_run())


if __name__ == "__main__":
    main()
