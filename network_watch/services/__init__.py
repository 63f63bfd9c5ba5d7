"""Service layer for AWS Network Watch."""

from .diff_service import FIELD_SPECS, SnapshotComparator
from .inventory_service import InventoryService
from .report_service import ReportService, UnsupportedFormatError
from .snapshot_store import (
    MalformedSnapshotError,
    SnapshotNotFoundError,
    SnapshotStoreError,
    load_snapshot,
    save_snapshot,
)
from .topology_service import (
    build_association_index,
    build_snapshot,
    derive_subnet_type,
    resolve_route_table,
)
from .watch_service import BaselineUnavailableError, WatchScheduler

__all__ = [
    "FIELD_SPECS",
    "SnapshotComparator",
    "InventoryService",
    "ReportService",
    "UnsupportedFormatError",
    "MalformedSnapshotError",
    "SnapshotNotFoundError",
    "SnapshotStoreError",
    "load_snapshot",
    "save_snapshot",
    "build_association_index",
    "build_snapshot",
    "derive_subnet_type",
    "resolve_route_table",
    "BaselineUnavailableError",
    "WatchScheduler",
]
