# Copyright (c) 2025-2026 OptimNow. All Rights Reserved.
# Licensed under the Apache License, Version 2.0.
# See LICENSE file in the project root for full license information.

"""Snapshot data model: a point-in-time view of a network scope."""

from collections import Counter
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .enums import ResourceType
from .resources import (
    VPC,
    IAMRole,
    InternetGateway,
    NatGateway,
    NetworkAcl,
    NetworkResource,
    PeeringConnection,
    RouteTable,
    SecurityGroup,
    Subnet,
    TransitGateway,
)

# Snapshot attribute holding each resource collection, in comparison order
COLLECTION_FIELDS: dict[ResourceType, str] = {
    ResourceType.VPC: "vpcs",
    ResourceType.SUBNET: "subnets",
    ResourceType.SECURITY_GROUP: "security_groups",
    ResourceType.NETWORK_ACL: "network_acls",
    ResourceType.ROUTE_TABLE: "route_tables",
    ResourceType.PEERING_CONNECTION: "peering_connections",
    ResourceType.TRANSIT_GATEWAY: "transit_gateways",
    ResourceType.INTERNET_GATEWAY: "internet_gateways",
    ResourceType.NAT_GATEWAY: "nat_gateways",
    ResourceType.IAM_ROLE: "iam_roles",
}


class ScanScope(BaseModel):
    """The region and optional single-VPC filter bounding a scan."""

    model_config = ConfigDict(frozen=True)

    region: str = Field(..., min_length=1, description="AWS region code")
    vpc_id: str | None = Field(None, description="Restrict the scan to this VPC")

    def describe(self) -> str:
        if self.vpc_id:
            return f"{self.region} ({self.vpc_id})"
        return self.region


class Snapshot(BaseModel):
    """Immutable aggregate of every resource collection for one scope.

    Snapshots are built once by ``build_snapshot`` after all derived fields
    are known and are never mutated afterwards. Identifiers are unique within
    each collection; a document that violates this fails validation.
    """

    model_config = ConfigDict(frozen=True)

    scan_time: datetime = Field(..., description="When the inventory was acquired")
    scope: ScanScope = Field(..., description="Region and optional VPC filter")
    vpcs: tuple[VPC, ...] = ()
    subnets: tuple[Subnet, ...] = ()
    security_groups: tuple[SecurityGroup, ...] = ()
    network_acls: tuple[NetworkAcl, ...] = ()
    route_tables: tuple[RouteTable, ...] = ()
    peering_connections: tuple[PeeringConnection, ...] = ()
    transit_gateways: tuple[TransitGateway, ...] = ()
    internet_gateways: tuple[InternetGateway, ...] = ()
    nat_gateways: tuple[NatGateway, ...] = ()
    iam_roles: tuple[IAMRole, ...] = ()

    @model_validator(mode="after")
    def validate_unique_ids(self) -> "Snapshot":
        """Reject collections that contain the same identifier twice."""
        for resource_type, attr in COLLECTION_FIELDS.items():
            counts = Counter(resource.id for resource in getattr(self, attr))
            duplicates = sorted(rid for rid, count in counts.items() if count > 1)
            if duplicates:
                raise ValueError(
                    f"Duplicate {resource_type.value} identifiers: {', '.join(duplicates)}"
                )
        return self

    def collection(self, resource_type: ResourceType) -> tuple[NetworkResource, ...]:
        """Return the collection holding resources of the given type."""
        return getattr(self, COLLECTION_FIELDS[resource_type])

    def counts(self) -> dict[str, int]:
        """Number of resources per collection, keyed by resource type name."""
        return {
            resource_type.value: len(getattr(self, attr))
            for resource_type, attr in COLLECTION_FIELDS.items()
        }
