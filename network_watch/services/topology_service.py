# Copyright (c) 2025-2026 OptimNow. All Rights Reserved.
# Licensed under the Apache License, Version 2.0.
# See LICENSE file in the project root for full license information.

"""Topology derivation and snapshot construction.

Turns raw resource collections into a frozen Snapshot:

1. Each subnet is linked to its effective route table (explicit association,
   else the main route table of its VPC) and network ACL.
2. Each subnet is classified public / private / isolated from that route
   table's routes and the snapshot's internet gateways.
3. Each VPC gets the identifiers of the resources that reference it.

All functions here are pure and total: every input maps to a defined output,
so there is no error channel.
"""

import logging
from collections import defaultdict
from collections.abc import Iterable, Sequence
from datetime import datetime

from pydantic import BaseModel, Field

from ..models.enums import SubnetType
from ..models.resources import (
    VPC,
    IAMRole,
    InternetGateway,
    NatGateway,
    NetworkAcl,
    PeeringConnection,
    Route,
    RouteTable,
    SecurityGroup,
    Subnet,
    TransitGateway,
)
from ..models.snapshot import ScanScope, Snapshot

logger = logging.getLogger(__name__)

DEFAULT_ROUTE_CIDR = "0.0.0.0/0"
NAT_GATEWAY_PREFIX = "nat-"


class VpcAssociations(BaseModel):
    """Identifiers of the resources that reference one VPC."""

    subnets: list[str] = Field(default_factory=list)
    security_groups: list[str] = Field(default_factory=list)
    internet_gateways: list[str] = Field(default_factory=list)
    nat_gateways: list[str] = Field(default_factory=list)
    network_acls: list[str] = Field(default_factory=list)


def _is_internet_gateway_route(route: Route, internet_gateway_ids: set[str]) -> bool:
    return route.destination_cidr == DEFAULT_ROUTE_CIDR and route.gateway_id in internet_gateway_ids


def _is_nat_route(route: Route) -> bool:
    target = route.nat_gateway_id or route.gateway_id
    return route.destination_cidr == DEFAULT_ROUTE_CIDR and target.startswith(NAT_GATEWAY_PREFIX)


def derive_subnet_type(
    route_table: RouteTable | None,
    internet_gateways: Iterable[InternetGateway],
) -> SubnetType:
    """
    Classify a subnet from its route table and the known internet gateways.

    A default route (0.0.0.0/0) through one of the internet gateways makes the
    subnet public. Otherwise a default route through a NAT gateway makes it
    private. Anything else, including having no route table at all, is
    isolated. The order of routes in the table does not matter.

    Args:
        route_table: The subnet's effective route table, or None
        internet_gateways: Internet gateways of the snapshot

    Returns:
        The subnet's reachability class
    """
    if route_table is None:
        return SubnetType.ISOLATED

    internet_gateway_ids = {igw.id for igw in internet_gateways}
    has_igw_route = False
    has_nat_route = False

    for route in route_table.routes:
        if _is_internet_gateway_route(route, internet_gateway_ids):
            has_igw_route = True
        elif _is_nat_route(route):
            has_nat_route = True

    if has_igw_route:
        return SubnetType.PUBLIC
    if has_nat_route:
        return SubnetType.PRIVATE
    return SubnetType.ISOLATED


def resolve_route_table(subnet: Subnet, route_tables: Sequence[RouteTable]) -> RouteTable | None:
    """Return the subnet's explicitly associated route table, else its VPC's main table."""
    for route_table in route_tables:
        if subnet.id in route_table.associations:
            return route_table

    for route_table in route_tables:
        if route_table.vpc_id == subnet.vpc_id and route_table.is_main:
            return route_table

    return None


def resolve_network_acl(subnet: Subnet, network_acls: Sequence[NetworkAcl]) -> NetworkAcl | None:
    """Return the subnet's associated network ACL, else its VPC's default ACL."""
    for network_acl in network_acls:
        if subnet.id in network_acl.associations:
            return network_acl

    for network_acl in network_acls:
        if network_acl.vpc_id == subnet.vpc_id and network_acl.is_default:
            return network_acl

    return None


def build_association_index(
    vpcs: Sequence[VPC],
    subnets: Sequence[Subnet] = (),
    internet_gateways: Sequence[InternetGateway] = (),
    nat_gateways: Sequence[NatGateway] = (),
    security_groups: Sequence[SecurityGroup] = (),
    network_acls: Sequence[NetworkAcl] = (),
) -> dict[str, VpcAssociations]:
    """
    Group resource identifiers by the VPC they reference.

    The index is computed from scratch; any association lists already present
    on the VPC models are ignored. Resources referencing a VPC that is not in
    ``vpcs`` are left out. Identifier lists are sorted.

    Returns:
        Mapping of VPC ID to its VpcAssociations
    """
    grouped: dict[str, dict[str, list[str]]] = defaultdict(lambda: defaultdict(list))
    known_vpcs = {vpc.id for vpc in vpcs}

    members: list[tuple[str, Sequence]] = [
        ("subnets", subnets),
        ("internet_gateways", internet_gateways),
        ("nat_gateways", nat_gateways),
        ("security_groups", security_groups),
        ("network_acls", network_acls),
    ]
    for field_name, resources in members:
        for resource in resources:
            if resource.vpc_id in known_vpcs:
                grouped[resource.vpc_id][field_name].append(resource.id)

    return {
        vpc.id: VpcAssociations(
            **{field: sorted(ids) for field, ids in grouped.get(vpc.id, {}).items()}
        )
        for vpc in vpcs
    }


def build_snapshot(
    scope: ScanScope,
    scan_time: datetime,
    *,
    vpcs: Sequence[VPC] = (),
    subnets: Sequence[Subnet] = (),
    security_groups: Sequence[SecurityGroup] = (),
    network_acls: Sequence[NetworkAcl] = (),
    route_tables: Sequence[RouteTable] = (),
    peering_connections: Sequence[PeeringConnection] = (),
    transit_gateways: Sequence[TransitGateway] = (),
    internet_gateways: Sequence[InternetGateway] = (),
    nat_gateways: Sequence[NatGateway] = (),
    iam_roles: Sequence[IAMRole] = (),
) -> Snapshot:
    """
    Derive topology facts from raw collections and freeze them into a Snapshot.

    Input models are never modified; derived values are applied to copies.

    Args:
        scope: Region and optional VPC filter the collections were acquired for
        scan_time: When the collections were acquired
        vpcs, subnets, ...: Raw resource collections

    Returns:
        The constructed Snapshot
    """
    derived_subnets = []
    for subnet in subnets:
        route_table = resolve_route_table(subnet, route_tables)
        network_acl = resolve_network_acl(subnet, network_acls)
        derived_subnets.append(
            subnet.model_copy(
                update={
                    "route_table_id": route_table.id if route_table else "",
                    "network_acl_id": network_acl.id if network_acl else "",
                    "subnet_type": derive_subnet_type(route_table, internet_gateways),
                }
            )
        )

    index = build_association_index(
        vpcs,
        subnets=subnets,
        internet_gateways=internet_gateways,
        nat_gateways=nat_gateways,
        security_groups=security_groups,
        network_acls=network_acls,
    )
    derived_vpcs = [
        vpc.model_copy(
            update={
                field: tuple(ids) for field, ids in index[vpc.id].model_dump().items()
            }
        )
        for vpc in vpcs
    ]

    snapshot = Snapshot(
        scan_time=scan_time,
        scope=scope,
        vpcs=tuple(derived_vpcs),
        subnets=tuple(derived_subnets),
        security_groups=tuple(security_groups),
        network_acls=tuple(network_acls),
        route_tables=tuple(route_tables),
        peering_connections=tuple(peering_connections),
        transit_gateways=tuple(transit_gateways),
        internet_gateways=tuple(internet_gateways),
        nat_gateways=tuple(nat_gateways),
        iam_roles=tuple(iam_roles),
    )
    logger.debug(f"Topology: built snapshot for {scope.describe()}: {snapshot.counts()}")
    return snapshot
