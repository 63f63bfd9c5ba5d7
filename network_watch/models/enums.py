# Copyright (c) 2025-2026 OptimNow. All Rights Reserved.
# Licensed under the Apache License, Version 2.0.
# See LICENSE file in the project root for full license information.

"""Enumerations for resource types, subnet classes and difference kinds."""

from enum import Enum


class ResourceType(str, Enum):
    """Network resource variants tracked in a snapshot."""

    VPC = "VPC"
    SUBNET = "Subnet"
    SECURITY_GROUP = "SecurityGroup"
    NETWORK_ACL = "NetworkACL"
    ROUTE_TABLE = "RouteTable"
    PEERING_CONNECTION = "PeeringConnection"
    TRANSIT_GATEWAY = "TransitGateway"
    INTERNET_GATEWAY = "InternetGateway"
    NAT_GATEWAY = "NATGateway"
    IAM_ROLE = "IAMRole"


class SubnetType(str, Enum):
    """Reachability class of a subnet, derived from its route table."""

    PUBLIC = "public"
    PRIVATE = "private"
    ISOLATED = "isolated"


class DifferenceKind(str, Enum):
    """Kinds of structural change between two snapshots."""

    ADDED = "added"
    REMOVED = "removed"
    MODIFIED = "modified"


class OutputFormat(str, Enum):
    """Supported topology rendering formats."""

    TEXT = "text"
    DOT = "dot"
    JSON = "json"


class WatchState(str, Enum):
    """Lifecycle states of the watch scheduler."""

    IDLE = "idle"
    SCANNING = "scanning"
    WAITING = "waiting"
    STOPPED = "stopped"
