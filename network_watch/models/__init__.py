"""Data models for AWS Network Watch."""

from .enums import DifferenceKind, OutputFormat, ResourceType, SubnetType, WatchState
from .resources import (
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
    NetworkResource,
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
from .snapshot import COLLECTION_FIELDS, ScanScope, Snapshot
from .difference import Difference

__all__ = [
    "DifferenceKind",
    "OutputFormat",
    "ResourceType",
    "SubnetType",
    "WatchState",
    "VPC",
    "IAMInlinePolicy",
    "IAMPolicy",
    "IAMRole",
    "InternetGateway",
    "NatGateway",
    "NetworkAcl",
    "NetworkAclEntry",
    "NetworkAclIcmpType",
    "NetworkAclPortRange",
    "NetworkResource",
    "PeeringConnection",
    "Route",
    "RouteTable",
    "SecurityGroup",
    "SecurityGroupRule",
    "Subnet",
    "TransitGateway",
    "TransitGatewayAttachment",
    "TransitGatewayOptions",
    "COLLECTION_FIELDS",
    "ScanScope",
    "Snapshot",
    "Difference",
]
