# Copyright (c) 2025-2026 OptimNow. All Rights Reserved.
# Licensed under the Apache License, Version 2.0.
# See LICENSE file in the project root for full license information.

"""Persistence of snapshots as JSON documents."""

import logging
from pathlib import Path

from pydantic import ValidationError

from ..models.snapshot import Snapshot

logger = logging.getLogger(__name__)

DEFAULT_BASELINE_FILE = "working_state.json"


class SnapshotStoreError(Exception):
    """Base error for snapshot persistence failures."""

    def __init__(self, path: str | Path, message: str):
        self.path = str(path)
        super().__init__(message)


class SnapshotNotFoundError(SnapshotStoreError):
    """Raised when the snapshot file does not exist."""

    def __init__(self, path: str | Path):
        super().__init__(
            path,
            f"Snapshot file {path} does not exist. "
            "Run 'network-watch scan --save-state' first to create a baseline",
        )


class MalformedSnapshotError(SnapshotStoreError):
    """Raised when the snapshot file cannot be parsed into a Snapshot."""

    def __init__(self, path: str | Path, reason: str):
        self.reason = reason
        super().__init__(path, f"Failed to parse snapshot from {path}: {reason}")


def save_snapshot(snapshot: Snapshot, path: str | Path) -> Path:
    """
    Write a snapshot to a JSON file, creating parent directories as needed.

    Args:
        snapshot: Snapshot to persist
        path: Destination file

    Returns:
        The path written
    """
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(snapshot.model_dump_json(indent=2), encoding="utf-8")
    logger.info(f"SnapshotStore: saved snapshot ({snapshot.scope.describe()}) to {target}")
    return target


def load_snapshot(path: str | Path) -> Snapshot:
    """
    Load a snapshot previously written by ``save_snapshot``.

    Args:
        path: Snapshot file

    Returns:
        The loaded Snapshot

    Raises:
        SnapshotNotFoundError: If the file does not exist
        MalformedSnapshotError: If the content is not a valid snapshot document
    """
    source = Path(path)
    try:
        data = source.read_text(encoding="utf-8")
    except (FileNotFoundError, NotADirectoryError) as e:
        raise SnapshotNotFoundError(source) from e
    except (OSError, UnicodeDecodeError) as e:
        raise MalformedSnapshotError(source, str(e)) from e

    try:
        snapshot = Snapshot.model_validate_json(data)
    except ValidationError as e:
        raise MalformedSnapshotError(
            source, f"{e.error_count()} validation error(s): {e.errors()[0]['msg']}"
        ) from e

    logger.debug(f"SnapshotStore: loaded snapshot scanned at {snapshot.scan_time.isoformat()}")
    return snapshot
