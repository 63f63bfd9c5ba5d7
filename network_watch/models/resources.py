# Copyright (c) 2025-2026 OptimNow. All Rights Reserved.
# Licensed under the Apache License, Version 2.0.
# See LICENSE file in the project root for full license information.

"""Network resource data models.

Every resource is an immutable pydantic model identified by a provider
assigned ``id`` that is unique within its own collection. Relationships
between resources are plain identifier strings (``Subnet.vpc_id``,
``RouteTable.associations``) so that the model has no ownership cycles and
serializes directly to JSON.
"""

from collections.abc import Mapping
from datetime import datetime
from types import MappingProxyType
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, PlainSerializer

from .enums import SubnetType

# Read-only view over the validated tags; serialized back to a plain dict
Tags = Annotated[
    Mapping[str, str],
    AfterValidator(MappingProxyType),
    PlainSerializer(dict, return_type=dict[str, str]),
]


class NetworkResource(BaseModel):
    """Fields shared by every resource variant."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Provider-assigned identifier")
    name: str = Field("", description="Display name, usually the Name tag")
    tags: Tags = Field(default_factory=dict, validate_default=True, description="Resource tags")


class VPC(NetworkResource):
    """A VPC and the identifiers of the resources it contains."""

    cidr_block: str = Field("", description="Primary IPv4 CIDR block")
    state: str = Field("", description="VPC state (pending, available)")
    is_default: bool = Field(False, description="Whether this is the default VPC")
    dhcp_options_id: str = Field("", description="Associated DHCP options set")
    subnets: tuple[str, ...] = Field(default=(), description="Subnet IDs in this VPC")
    security_groups: tuple[str, ...] = Field(
        default=(), description="Security group IDs in this VPC"
    )
    internet_gateways: tuple[str, ...] = Field(
        default=(), description="Internet gateway IDs attached to this VPC"
    )
    nat_gateways: tuple[str, ...] = Field(default=(), description="NAT gateway IDs in this VPC")
    network_acls: tuple[str, ...] = Field(default=(), description="Network ACL IDs in this VPC")


class Subnet(NetworkResource):
    """A subnet with its derived reachability class."""

    vpc_id: str = Field("", description="Owning VPC ID")
    cidr_block: str = Field("", description="IPv4 CIDR block")
    availability_zone: str = Field("", description="Availability zone")
    state: str = Field("", description="Subnet state")
    map_public_ip: bool = Field(False, description="Auto-assign public IPv4 on launch")
    route_table_id: str = Field("", description="Effective route table ID")
    network_acl_id: str = Field("", description="Associated network ACL ID")
    subnet_type: SubnetType = Field(SubnetType.ISOLATED, description="Reachability class")


class PeeringConnection(NetworkResource):
    """A VPC peering connection between a requester and an accepter VPC."""

    requester_vpc_id: str = ""
    accepter_vpc_id: str = ""
    status: str = ""


class TransitGatewayAttachment(BaseModel):
    """An attachment of a resource (VPC, VPN, peering) to a transit gateway."""

    model_config = ConfigDict(frozen=True)

    id: str
    transit_gateway_id: str = ""
    resource_id: str = ""
    resource_type: str = ""
    state: str = ""
    tags: Tags = Field(default_factory=dict, validate_default=True)


class TransitGatewayOptions(BaseModel):
    """Routing and DNS options of a transit gateway."""

    model_config = ConfigDict(frozen=True)

    amazon_side_asn: int = 0
    auto_accept_shared_attachments: str = ""
    default_route_table_association: str = ""
    default_route_table_propagation: str = ""
    dns_support: str = ""


class TransitGateway(NetworkResource):
    """A transit gateway with its attachments."""

    state: str = ""
    options: TransitGatewayOptions = Field(default_factory=TransitGatewayOptions)
    attachments: tuple[TransitGatewayAttachment, ...] = ()


class InternetGateway(NetworkResource):
    """An internet gateway attachment to a VPC."""

    vpc_id: str = ""
    state: str = ""


class NatGateway(NetworkResource):
    """A NAT gateway placed in a subnet."""

    vpc_id: str = ""
    subnet_id: str = ""
    state: str = ""
    public_ip: str = ""
    private_ip: str = ""
    connectivity_type: str = ""


class Route(BaseModel):
    """A single route of a route table."""

    model_config = ConfigDict(frozen=True)

    destination_cidr: str = ""
    gateway_id: str = ""
    nat_gateway_id: str = ""
    instance_id: str = ""
    network_interface_id: str = ""
    vpc_peering_id: str = ""
    transit_gateway_id: str = ""
    state: str = ""
    origin: str = ""


class RouteTable(NetworkResource):
    """A route table and the subnets explicitly associated with it."""

    vpc_id: str = ""
    is_main: bool = False
    routes: tuple[Route, ...] = ()
    associations: tuple[str, ...] = Field(default=(), description="Associated subnet IDs")


class SecurityGroupRule(BaseModel):
    """An ingress or egress permission of a security group."""

    model_config = ConfigDict(frozen=True)

    ip_protocol: str = ""
    from_port: int = 0
    to_port: int = 0
    cidr_blocks: tuple[str, ...] = ()
    ipv6_cidr_blocks: tuple[str, ...] = ()
    prefix_list_ids: tuple[str, ...] = ()
    referenced_group_id: str = ""
    referenced_group_owner_id: str = ""
    description: str = ""


class SecurityGroup(NetworkResource):
    """A security group with its rule lists."""

    description: str = ""
    vpc_id: str = ""
    ingress_rules: tuple[SecurityGroupRule, ...] = ()
    egress_rules: tuple[SecurityGroupRule, ...] = ()


class NetworkAclPortRange(BaseModel):
    model_config = ConfigDict(frozen=True)

    from_port: int = 0
    to_port: int = 0


class NetworkAclIcmpType(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: int = 0
    code: int = 0


class NetworkAclEntry(BaseModel):
    """A numbered allow/deny entry of a network ACL."""

    model_config = ConfigDict(frozen=True)

    rule_number: int = 0
    protocol: str = ""
    rule_action: str = ""
    cidr_block: str = ""
    ipv6_cidr_block: str = ""
    port_range: NetworkAclPortRange | None = None
    icmp_type: NetworkAclIcmpType | None = None
    egress: bool = False


class NetworkAcl(NetworkResource):
    """A network ACL and the subnets associated with it."""

    vpc_id: str = ""
    is_default: bool = False
    entries: tuple[NetworkAclEntry, ...] = ()
    associations: tuple[str, ...] = Field(default=(), description="Associated subnet IDs")


class IAMPolicy(BaseModel):
    """A managed policy attached to an IAM role."""

    model_config = ConfigDict(frozen=True)

    arn: str = ""
    policy_name: str = ""
    policy_id: str = ""
    path: str = ""
    default_version_id: str = ""
    attachment_count: int = 0
    permissions_boundary_usage_count: int = 0
    is_attachable: bool = False
    description: str = ""
    create_date: datetime | None = None
    update_date: datetime | None = None
    tags: Tags = Field(default_factory=dict, validate_default=True)
    policy_document: str = ""


class IAMInlinePolicy(BaseModel):
    """An inline policy embedded in an IAM role."""

    model_config = ConfigDict(frozen=True)

    policy_name: str = ""
    policy_document: str = ""


class IAMRole(NetworkResource):
    """An IAM role with its managed and inline policies."""

    path: str = ""
    arn: str = ""
    description: str = ""
    create_date: datetime | None = None
    assume_role_policy_document: str = ""
    max_session_duration: int = 3600
    attached_policies: tuple[IAMPolicy, ...] = ()
    inline_policies: tuple[IAMInlinePolicy, ...] = ()
