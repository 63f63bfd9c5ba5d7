# Copyright (c) 2025-2026 OptimNow. All Rights Reserved.
# Licensed under the Apache License, Version 2.0.
# See LICENSE file in the project root for full license information.

"""Inventory acquisition: raw EC2/IAM listings to a Snapshot.

VPCs are listed first because their IDs scope every other EC2 call. The
remaining collections do not depend on each other and are fetched
concurrently, bounded by a semaphore. Once everything is in, the topology
service derives subnet classes and VPC associations and freezes the Snapshot.
"""

import asyncio
import json
import logging
import time
from collections.abc import Awaitable
from datetime import datetime, timezone
from typing import Any
from urllib.parse import unquote

from ..clients.aws_client import AWSAPIError, AWSClient
from ..clients.regional_client_factory import RegionalClientFactory
from ..models.enums import ResourceType
from ..models.resources import (
    VPC,
    IAMInlinePolicy,
    IAMPolicy,
    IAMRole,
    InternetGateway,
    NatGateway,
    NetworkAcl,
    NetworkAclEntry,
    NetworkAclIcmpType,
    NetworkAclPortRange,
    PeeringConnection,
    Route,
    RouteTable,
    SecurityGroup,
    SecurityGroupRule,
    Subnet,
    TransitGateway,
    TransitGatewayAttachment,
    TransitGatewayOptions,
)
from ..models.snapshot import ScanScope, Snapshot
from .topology_service import build_snapshot

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENCY = 4


def _tags(raw: dict[str, Any]) -> dict[str, str]:
    return AWSClient.extract_tags(raw.get("Tags"))


def _policy_document(document: Any) -> str:
    """Normalize a policy document to a JSON string.

    boto3 usually returns documents already decoded into dicts; older paths
    may hand back the URL-encoded JSON string.
    """
    if not document:
        return ""
    if isinstance(document, str):
        return unquote(document)
    return json.dumps(document, sort_keys=True)


def _to_vpc(raw: dict[str, Any]) -> VPC:
    tags = _tags(raw)
    return VPC(
        id=raw["VpcId"],
        name=tags.get("Name", ""),
        tags=tags,
        cidr_block=raw.get("CidrBlock", ""),
        state=raw.get("State", ""),
        is_default=bool(raw.get("IsDefault", False)),
        dhcp_options_id=raw.get("DhcpOptionsId", ""),
    )


def _to_subnet(raw: dict[str, Any]) -> Subnet:
    tags = _tags(raw)
    return Subnet(
        id=raw["SubnetId"],
        name=tags.get("Name", ""),
        tags=tags,
        vpc_id=raw.get("VpcId", ""),
        cidr_block=raw.get("CidrBlock", ""),
        availability_zone=raw.get("AvailabilityZone", ""),
        state=raw.get("State", ""),
        map_public_ip=bool(raw.get("MapPublicIpOnLaunch", False)),
    )


def _to_peering_connection(raw: dict[str, Any]) -> PeeringConnection:
    tags = _tags(raw)
    return PeeringConnection(
        id=raw["VpcPeeringConnectionId"],
        name=tags.get("Name", ""),
        tags=tags,
        requester_vpc_id=raw.get("RequesterVpcInfo", {}).get("VpcId", ""),
        accepter_vpc_id=raw.get("AccepterVpcInfo", {}).get("VpcId", ""),
        status=raw.get("Status", {}).get("Code", ""),
    )


def _to_transit_gateway(
    raw: dict[str, Any], attachments: list[dict[str, Any]]
) -> TransitGateway:
    tags = _tags(raw)
    options = raw.get("Options", {})
    return TransitGateway(
        id=raw["TransitGatewayId"],
        name=tags.get("Name", ""),
        tags=tags,
        state=raw.get("State", ""),
        options=TransitGatewayOptions(
            amazon_side_asn=options.get("AmazonSideAsn", 0),
            auto_accept_shared_attachments=options.get("AutoAcceptSharedAttachments", ""),
            default_route_table_association=options.get("DefaultRouteTableAssociation", ""),
            default_route_table_propagation=options.get("DefaultRouteTablePropagation", ""),
            dns_support=options.get("DnsSupport", ""),
        ),
        attachments=tuple(
            TransitGatewayAttachment(
                id=attachment["TransitGatewayAttachmentId"],
                transit_gateway_id=attachment.get("TransitGatewayId", ""),
                resource_id=attachment.get("ResourceId", ""),
                resource_type=attachment.get("ResourceType", ""),
                state=attachment.get("State", ""),
                tags=_tags(attachment),
            )
            for attachment in attachments
        ),
    )


def _to_nat_gateway(raw: dict[str, Any]) -> NatGateway:
    tags = _tags(raw)
    public_ip = ""
    private_ip = ""
    for address in raw.get("NatGatewayAddresses", []):
        public_ip = address.get("PublicIp", public_ip)
        private_ip = address.get("PrivateIp", private_ip)
    return NatGateway(
        id=raw["NatGatewayId"],
        name=tags.get("Name", ""),
        tags=tags,
        vpc_id=raw.get("VpcId", ""),
        subnet_id=raw.get("SubnetId", ""),
        state=raw.get("State", ""),
        public_ip=public_ip,
        private_ip=private_ip,
        connectivity_type=raw.get("ConnectivityType", ""),
    )


def _to_route(raw: dict[str, Any]) -> Route:
    return Route(
        destination_cidr=raw.get("DestinationCidrBlock", ""),
        gateway_id=raw.get("GatewayId", ""),
        nat_gateway_id=raw.get("NatGatewayId", ""),
        instance_id=raw.get("InstanceId", ""),
        network_interface_id=raw.get("NetworkInterfaceId", ""),
        vpc_peering_id=raw.get("VpcPeeringConnectionId", ""),
        transit_gateway_id=raw.get("TransitGatewayId", ""),
        state=raw.get("State", ""),
        origin=raw.get("Origin", ""),
    )


def _to_route_table(raw: dict[str, Any]) -> RouteTable:
    tags = _tags(raw)
    associations = raw.get("Associations", [])
    return RouteTable(
        id=raw["RouteTableId"],
        name=tags.get("Name", ""),
        tags=tags,
        vpc_id=raw.get("VpcId", ""),
        is_main=any(assoc.get("Main", False) for assoc in associations),
        routes=tuple(_to_route(route) for route in raw.get("Routes", [])),
        associations=tuple(assoc["SubnetId"] for assoc in associations if assoc.get("SubnetId")),
    )


def _to_security_group_rule(raw: dict[str, Any]) -> SecurityGroupRule:
    referenced_group_id = ""
    referenced_group_owner_id = ""
    description = ""
    for pair in raw.get("UserIdGroupPairs", []):
        referenced_group_id = pair.get("GroupId", referenced_group_id)
        referenced_group_owner_id = pair.get("UserId", referenced_group_owner_id)
        description = pair.get("Description", description)

    return SecurityGroupRule(
        ip_protocol=raw.get("IpProtocol", ""),
        from_port=raw.get("FromPort", 0),
        to_port=raw.get("ToPort", 0),
        cidr_blocks=tuple(r["CidrIp"] for r in raw.get("IpRanges", []) if r.get("CidrIp")),
        ipv6_cidr_blocks=tuple(
            r["CidrIpv6"] for r in raw.get("Ipv6Ranges", []) if r.get("CidrIpv6")
        ),
        prefix_list_ids=tuple(
            p["PrefixListId"] for p in raw.get("PrefixListIds", []) if p.get("PrefixListId")
        ),
        referenced_group_id=referenced_group_id,
        referenced_group_owner_id=referenced_group_owner_id,
        description=description,
    )


def _to_security_group(raw: dict[str, Any]) -> SecurityGroup:
    return SecurityGroup(
        id=raw["GroupId"],
        name=raw.get("GroupName", ""),
        tags=_tags(raw),
        description=raw.get("Description", ""),
        vpc_id=raw.get("VpcId", ""),
        ingress_rules=tuple(_to_security_group_rule(r) for r in raw.get("IpPermissions", [])),
        egress_rules=tuple(
            _to_security_group_rule(r) for r in raw.get("IpPermissionsEgress", [])
        ),
    )


def _to_network_acl_entry(raw: dict[str, Any]) -> NetworkAclEntry:
    port_range = raw.get("PortRange")
    icmp_type = raw.get("IcmpTypeCode")
    return NetworkAclEntry(
        rule_number=raw.get("RuleNumber", 0),
        protocol=raw.get("Protocol", ""),
        rule_action=raw.get("RuleAction", ""),
        cidr_block=raw.get("CidrBlock", ""),
        ipv6_cidr_block=raw.get("Ipv6CidrBlock", ""),
        port_range=(
            NetworkAclPortRange(
                from_port=port_range.get("From", 0), to_port=port_range.get("To", 0)
            )
            if port_range
            else None
        ),
        icmp_type=(
            NetworkAclIcmpType(type=icmp_type.get("Type", 0), code=icmp_type.get("Code", 0))
            if icmp_type
            else None
        ),
        egress=bool(raw.get("Egress", False)),
    )


def _to_network_acl(raw: dict[str, Any]) -> NetworkAcl:
    tags = _tags(raw)
    return NetworkAcl(
        id=raw["NetworkAclId"],
        name=tags.get("Name", ""),
        tags=tags,
        vpc_id=raw.get("VpcId", ""),
        is_default=bool(raw.get("IsDefault", False)),
        entries=tuple(_to_network_acl_entry(entry) for entry in raw.get("Entries", [])),
        associations=tuple(
            assoc["SubnetId"] for assoc in raw.get("Associations", []) if assoc.get("SubnetId")
        ),
    )


class InventoryService:
    """
    Acquires a complete Snapshot of one scope from the EC2 and IAM APIs.

    Usage::

        inventory = InventoryService(RegionalClientFactory(default_region="eu-west-1"))
        snapshot = await inventory.acquire(ScanScope(region="eu-west-1"))
    """

    def __init__(
        self,
        client_factory: RegionalClientFactory,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        verbose: bool = False,
    ):
        """
        Initialize the inventory service.

        Args:
            client_factory: Source of per-region AWSClient instances
            max_concurrency: Upper bound on concurrent collection fetches
            verbose: Log per-collection counts and timings at INFO level
        """
        self._client_factory = client_factory
        self._max_concurrency = max(1, max_concurrency)
        self._verbose = verbose
        self.last_timings: dict[str, float] = {}
        self.last_skipped: list[str] = []

    async def acquire(self, scope: ScanScope) -> Snapshot:
        """
        Acquire every collection for the scope and build a Snapshot.

        Args:
            scope: Region and optional VPC filter

        Returns:
            Frozen Snapshot with derived topology

        Raises:
            AWSAPIError: If any collection cannot be listed
        """
        scan_time = datetime.now(timezone.utc)
        client = self._client_factory.get_client(scope.region)
        timings: dict[str, float] = {}
        skipped: list[str] = []

        vpcs = await self._timed("vpcs", timings, self._fetch_vpcs(client, scope.vpc_id))
        vpc_ids = [vpc.id for vpc in vpcs]

        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def bounded(label: str, fetch: Awaitable[list]) -> list:
            async with semaphore:
                return await self._timed(label, timings, fetch)

        labels = [
            "subnets",
            "peering_connections",
            "transit_gateways",
            "internet_gateways",
            "nat_gateways",
            "route_tables",
            "security_groups",
            "network_acls",
            "iam_roles",
        ]
        fetches = [
            self._fetch_subnets(client, vpc_ids),
            self._fetch_peering_connections(client, vpc_ids),
            self._fetch_transit_gateways(client, skipped),
            self._fetch_internet_gateways(client, vpc_ids),
            self._fetch_nat_gateways(client, vpc_ids),
            self._fetch_route_tables(client, vpc_ids),
            self._fetch_security_groups(client, vpc_ids),
            self._fetch_network_acls(client, vpc_ids),
            self._fetch_iam_roles(client, skipped),
        ]
        results = await asyncio.gather(
            *(bounded(label, fetch) for label, fetch in zip(labels, fetches)),
            return_exceptions=True,
        )

        collections: dict[str, list] = {}
        for label, result in zip(labels, results):
            if isinstance(result, BaseException):
                logger.error(f"Inventory: failed to scan {label}: {result}")
                if isinstance(result, AWSAPIError):
                    raise result
                raise AWSAPIError(f"Failed to scan {label}: {result}") from result
            collections[label] = result

        self.last_timings = timings
        self.last_skipped = sorted(skipped)
        return build_snapshot(scope, scan_time, vpcs=vpcs, **collections)

    async def _timed(self, label: str, timings: dict[str, float], fetch: Awaitable[list]) -> list:
        start = time.monotonic()
        items = await fetch
        elapsed = time.monotonic() - start
        timings[label] = elapsed
        message = f"Inventory: scanned {len(items)} {label.replace('_', ' ')} in {elapsed:.2f}s"
        if self._verbose:
            logger.info(message)
        else:
            logger.debug(message)
        return items

    async def _fetch_vpcs(self, client: AWSClient, vpc_id: str | None) -> list[VPC]:
        return [_to_vpc(raw) for raw in await client.describe_vpcs(vpc_id)]

    async def _fetch_subnets(self, client: AWSClient, vpc_ids: list[str]) -> list[Subnet]:
        if not vpc_ids:
            return []
        return [_to_subnet(raw) for raw in await client.describe_subnets(vpc_ids)]

    async def _fetch_peering_connections(
        self, client: AWSClient, vpc_ids: list[str]
    ) -> list[PeeringConnection]:
        if not vpc_ids:
            return []
        wanted = set(vpc_ids)
        connections = [
            _to_peering_connection(raw)
            for raw in await client.describe_vpc_peering_connections()
        ]
        return [
            connection
            for connection in connections
            if connection.requester_vpc_id in wanted or connection.accepter_vpc_id in wanted
        ]

    async def _fetch_transit_gateways(
        self, client: AWSClient, skipped: list[str]
    ) -> list[TransitGateway]:
        transit_gateways = []
        for raw in await client.describe_transit_gateways():
            transit_gateway_id = raw["TransitGatewayId"]
            try:
                attachments = await client.describe_transit_gateway_attachments(transit_gateway_id)
            except AWSAPIError as e:
                logger.warning(
                    f"Inventory: skipping transit gateway {transit_gateway_id}, "
                    f"attachments unavailable: {e}"
                )
                skipped.append(f"{ResourceType.TRANSIT_GATEWAY.value} {transit_gateway_id}")
                continue
            transit_gateways.append(_to_transit_gateway(raw, attachments))
        return transit_gateways

    async def _fetch_internet_gateways(
        self, client: AWSClient, vpc_ids: list[str]
    ) -> list[InternetGateway]:
        wanted = set(vpc_ids)
        internet_gateways = []
        for raw in await client.describe_internet_gateways():
            tags = _tags(raw)
            for attachment in raw.get("Attachments", []):
                vpc_id = attachment.get("VpcId")
                if vpc_id not in wanted:
                    continue
                internet_gateways.append(
                    InternetGateway(
                        id=raw["InternetGatewayId"],
                        name=tags.get("Name", ""),
                        tags=tags,
                        vpc_id=vpc_id,
                        state=attachment.get("State", ""),
                    )
                )
        return internet_gateways

    async def _fetch_nat_gateways(self, client: AWSClient, vpc_ids: list[str]) -> list[NatGateway]:
        if not vpc_ids:
            return []
        wanted = set(vpc_ids)
        return [
            _to_nat_gateway(raw)
            for raw in await client.describe_nat_gateways()
            if raw.get("VpcId") in wanted
        ]

    async def _fetch_route_tables(self, client: AWSClient, vpc_ids: list[str]) -> list[RouteTable]:
        if not vpc_ids:
            return []
        return [_to_route_table(raw) for raw in await client.describe_route_tables(vpc_ids)]

    async def _fetch_security_groups(
        self, client: AWSClient, vpc_ids: list[str]
    ) -> list[SecurityGroup]:
        if not vpc_ids:
            return []
        return [_to_security_group(raw) for raw in await client.describe_security_groups(vpc_ids)]

    async def _fetch_network_acls(self, client: AWSClient, vpc_ids: list[str]) -> list[NetworkAcl]:
        if not vpc_ids:
            return []
        return [_to_network_acl(raw) for raw in await client.describe_network_acls(vpc_ids)]

    async def _fetch_iam_roles(self, client: AWSClient, skipped: list[str]) -> list[IAMRole]:
        roles = []
        for raw in await client.list_roles():
            role_name = raw["RoleName"]
            try:
                attached = await self._fetch_attached_policies(client, role_name)
                inline = await self._fetch_inline_policies(client, role_name)
            except AWSAPIError as e:
                logger.warning(f"Inventory: skipping IAM role {role_name}, policies unavailable: {e}")
                skipped.append(f"{ResourceType.IAM_ROLE.value} {raw['RoleId']} ({role_name})")
                continue

            roles.append(
                IAMRole(
                    id=raw["RoleId"],
                    name=role_name,
                    tags=_tags(raw),
                    path=raw.get("Path", ""),
                    arn=raw.get("Arn", ""),
                    description=raw.get("Description", ""),
                    create_date=raw.get("CreateDate"),
                    assume_role_policy_document=_policy_document(
                        raw.get("AssumeRolePolicyDocument")
                    ),
                    max_session_duration=raw.get("MaxSessionDuration", 3600),
                    attached_policies=tuple(attached),
                    inline_policies=tuple(inline),
                )
            )
        return roles

    async def _fetch_attached_policies(self, client: AWSClient, role_name: str) -> list[IAMPolicy]:
        policies = []
        for attached in await client.list_attached_role_policies(role_name):
            policy_arn = attached["PolicyArn"]
            try:
                policy = await client.get_policy(policy_arn)
            except AWSAPIError as e:
                logger.debug(f"Inventory: cannot describe policy {policy_arn}: {e}")
                continue

            document = ""
            version_id = policy.get("DefaultVersionId", "")
            if version_id:
                try:
                    version = await client.get_policy_version(policy_arn, version_id)
                    document = _policy_document(version.get("Document"))
                except AWSAPIError as e:
                    logger.debug(f"Inventory: cannot read document of {policy_arn}: {e}")

            policies.append(
                IAMPolicy(
                    arn=policy.get("Arn", policy_arn),
                    policy_name=policy.get("PolicyName", attached.get("PolicyName", "")),
                    policy_id=policy.get("PolicyId", ""),
                    path=policy.get("Path", ""),
                    default_version_id=version_id,
                    attachment_count=policy.get("AttachmentCount", 0),
                    permissions_boundary_usage_count=policy.get(
                        "PermissionsBoundaryUsageCount", 0
                    ),
                    is_attachable=bool(policy.get("IsAttachable", False)),
                    description=policy.get("Description", ""),
                    create_date=policy.get("CreateDate"),
                    update_date=policy.get("UpdateDate"),
                    tags=_tags(policy),
                    policy_document=document,
                )
            )
        return policies

    async def _fetch_inline_policies(
        self, client: AWSClient, role_name: str
    ) -> list[IAMInlinePolicy]:
        policies = []
        for policy_name in await client.list_role_policies(role_name):
            try:
                response = await client.get_role_policy(role_name, policy_name)
            except AWSAPIError as e:
                logger.debug(f"Inventory: cannot read inline policy {policy_name}: {e}")
                continue
            policies.append(
                IAMInlinePolicy(
                    policy_name=policy_name,
                    policy_document=_policy_document(response.get("PolicyDocument")),
                )
            )
        return policies
