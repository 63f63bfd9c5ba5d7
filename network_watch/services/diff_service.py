# Copyright (c) 2025-2026 OptimNow. All Rights Reserved.
# Licensed under the Apache License, Version 2.0.
# See LICENSE file in the project root for full license information.

"""Structural diff engine for network snapshots.

Compares a baseline Snapshot against a current one, collection by collection,
and reports every resource that was added, removed or modified.

Field comparison is driven by explicit per-type field tables rather than by
introspecting the models. Each compared field is declared as one of:

- scalar:    compared by value, reported as ``path: old → new``
- record:    nested model, compared field by field with a dotted path
- container: list-valued, compared as a whole; any change is reported as a
             single ``path: list contents changed`` line (plus a length note)
- mapping:   key/value map, diffed per key

Volatile timestamp fields (scan time, create/update dates) have no entry in
any table and are stripped from container elements before they are compared,
so they never produce a difference.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel

from ..models.difference import Difference
from ..models.enums import DifferenceKind, ResourceType
from ..models.resources import NetworkResource
from ..models.snapshot import COLLECTION_FIELDS, Snapshot

logger = logging.getLogger(__name__)

VOLATILE_FIELDS: frozenset[str] = frozenset(["scan_time", "create_date", "update_date"])


class FieldKind(str, Enum):
    """How a field is compared."""

    SCALAR = "scalar"
    RECORD = "record"
    CONTAINER = "container"
    MAPPING = "mapping"


@dataclass(frozen=True)
class FieldSpec:
    """Comparison rule for one model field."""

    name: str
    kind: FieldKind
    fields: tuple["FieldSpec", ...] = ()


def scalar(*names: str) -> tuple[FieldSpec, ...]:
    return tuple(FieldSpec(name, FieldKind.SCALAR) for name in names)


def container(*names: str) -> tuple[FieldSpec, ...]:
    return tuple(FieldSpec(name, FieldKind.CONTAINER) for name in names)


def mapping(*names: str) -> tuple[FieldSpec, ...]:
    return tuple(FieldSpec(name, FieldKind.MAPPING) for name in names)


def record(name: str, fields: tuple[FieldSpec, ...]) -> tuple[FieldSpec, ...]:
    return (FieldSpec(name, FieldKind.RECORD, fields),)


_COMMON = scalar("name") + mapping("tags")

FIELD_SPECS: dict[ResourceType, tuple[FieldSpec, ...]] = {
    ResourceType.VPC: _COMMON
    + scalar("cidr_block", "state", "is_default", "dhcp_options_id")
    + container("subnets", "security_groups", "internet_gateways", "nat_gateways", "network_acls"),
    ResourceType.SUBNET: _COMMON
    + scalar(
        "vpc_id",
        "cidr_block",
        "availability_zone",
        "state",
        "map_public_ip",
        "route_table_id",
        "network_acl_id",
        "subnet_type",
    ),
    ResourceType.SECURITY_GROUP: _COMMON
    + scalar("description", "vpc_id")
    + container("ingress_rules", "egress_rules"),
    ResourceType.NETWORK_ACL: _COMMON
    + scalar("vpc_id", "is_default")
    + container("entries", "associations"),
    ResourceType.ROUTE_TABLE: _COMMON
    + scalar("vpc_id", "is_main")
    + container("routes", "associations"),
    ResourceType.PEERING_CONNECTION: _COMMON
    + scalar("requester_vpc_id", "accepter_vpc_id", "status"),
    ResourceType.TRANSIT_GATEWAY: _COMMON
    + scalar("state")
    + record(
        "options",
        scalar(
            "amazon_side_asn",
            "auto_accept_shared_attachments",
            "default_route_table_association",
            "default_route_table_propagation",
            "dns_support",
        ),
    )
    + container("attachments"),
    ResourceType.INTERNET_GATEWAY: _COMMON + scalar("vpc_id", "state"),
    ResourceType.NAT_GATEWAY: _COMMON
    + scalar("vpc_id", "subnet_id", "state", "public_ip", "private_ip", "connectivity_type"),
    ResourceType.IAM_ROLE: _COMMON
    + scalar("path", "arn", "description", "assume_role_policy_document", "max_session_duration")
    + container("attached_policies", "inline_policies"),
}


def _format_value(value: Any) -> str:
    if isinstance(value, Enum):
        return str(value.value)
    if value == "":
        return '""'
    return str(value)


def _normalize(value: Any) -> Any:
    """Reduce a value to plain data with volatile model fields removed."""
    if isinstance(value, BaseModel):
        return {
            name: _normalize(getattr(value, name))
            for name in type(value).model_fields
            if name not in VOLATILE_FIELDS
        }
    if isinstance(value, (list, tuple)):
        return [_normalize(item) for item in value]
    if isinstance(value, Mapping):
        return {key: _normalize(item) for key, item in value.items()}
    return value


def _join(path: str, name: str) -> str:
    return f"{path}.{name}" if path else name


class SnapshotComparator:
    """
    Compares two snapshots and reports their structural differences.

    The result is deterministic: collections are visited in a fixed order,
    and within a collection additions come first, then removals, then
    modifications, each sorted by resource ID. Comparing a snapshot with
    itself yields no differences.
    """

    def compare(self, baseline: Snapshot, current: Snapshot) -> list[Difference]:
        """
        Compare a baseline snapshot with a current snapshot.

        Args:
            baseline: The reference snapshot
            current: The freshly acquired snapshot

        Returns:
            Ordered list of Difference objects (empty when nothing changed)
        """
        differences: list[Difference] = []
        for resource_type in COLLECTION_FIELDS:
            differences.extend(
                self.compare_collection(
                    resource_type,
                    baseline.collection(resource_type),
                    current.collection(resource_type),
                )
            )

        logger.debug(f"Comparator: {len(differences)} differences found")
        return differences

    def compare_collection(
        self,
        resource_type: ResourceType,
        baseline: tuple[NetworkResource, ...],
        current: tuple[NetworkResource, ...],
    ) -> list[Difference]:
        """Compare two collections of the same resource type."""
        baseline_by_id = {resource.id: resource for resource in baseline}
        current_by_id = {resource.id: resource for resource in current}
        label = resource_type.value.lower()

        added = [
            Difference(
                kind=DifferenceKind.ADDED,
                resource_type=resource_type,
                resource_id=resource_id,
                summary=f"new {label} created",
            )
            for resource_id in sorted(current_by_id.keys() - baseline_by_id.keys())
        ]
        removed = [
            Difference(
                kind=DifferenceKind.REMOVED,
                resource_type=resource_type,
                resource_id=resource_id,
                summary=f"{label} was deleted",
            )
            for resource_id in sorted(baseline_by_id.keys() - current_by_id.keys())
        ]

        modified = []
        for resource_id in sorted(baseline_by_id.keys() & current_by_id.keys()):
            details = self.compare_resources(
                resource_type, baseline_by_id[resource_id], current_by_id[resource_id]
            )
            if details:
                modified.append(
                    Difference(
                        kind=DifferenceKind.MODIFIED,
                        resource_type=resource_type,
                        resource_id=resource_id,
                        summary=f"{label} configuration changed",
                        details=tuple(details),
                    )
                )

        return added + removed + modified

    def compare_resources(
        self,
        resource_type: ResourceType,
        baseline: NetworkResource,
        current: NetworkResource,
    ) -> list[str]:
        """
        Compare two versions of one resource.

        Returns:
            Detail lines for every differing field, in field-table order
        """
        return self._compare_fields(FIELD_SPECS[resource_type], baseline, current, "")

    def _compare_fields(
        self,
        specs: tuple[FieldSpec, ...],
        baseline: BaseModel,
        current: BaseModel,
        path: str,
    ) -> list[str]:
        details: list[str] = []
        for spec in specs:
            old = getattr(baseline, spec.name)
            new = getattr(current, spec.name)
            field_path = _join(path, spec.name)

            if spec.kind is FieldKind.RECORD and isinstance(old, BaseModel) and isinstance(new, BaseModel):
                details.extend(self._compare_fields(spec.fields, old, new, field_path))
            elif spec.kind is FieldKind.CONTAINER:
                details.extend(self._compare_containers(old, new, field_path))
            elif spec.kind is FieldKind.MAPPING:
                details.extend(self._compare_mappings(old, new, field_path))
            elif _normalize(old) != _normalize(new):
                details.append(f"{field_path}: {_format_value(old)} → {_format_value(new)}")
        return details

    def _compare_containers(self, old: tuple, new: tuple, path: str) -> list[str]:
        details: list[str] = []
        if len(old) != len(new):
            details.append(f"{path}: length changed from {len(old)} to {len(new)}")
        if len(old) != len(new) or _normalize(old) != _normalize(new):
            details.append(f"{path}: list contents changed")
        return details

    def _compare_mappings(self, old: Mapping, new: Mapping, path: str) -> list[str]:
        details: list[str] = []
        for key in sorted(old.keys() - new.keys()):
            details.append(f"{path}[{key}]: key removed")
        for key in sorted(new):
            if key not in old:
                details.append(f"{path}[{key}]: key added with value {_format_value(new[key])}")
            elif _normalize(old[key]) != _normalize(new[key]):
                details.append(
                    f"{path}[{key}]: {_format_value(old[key])} → {_format_value(new[key])}"
                )
        return details
