"""Pytest configuration and shared fixtures."""

import os
from datetime import datetime, timezone

import pytest

from network_watch.models import (
    VPC,
    IAMInlinePolicy,
    IAMPolicy,
    IAMRole,
    InternetGateway,
    NatGateway,
    NetworkAcl,
    NetworkAclEntry,
    NetworkAclPortRange,
    PeeringConnection,
    Route,
    RouteTable,
    ScanScope,
    SecurityGroup,
    SecurityGroupRule,
    Subnet,
    TransitGateway,
    TransitGatewayAttachment,
    TransitGatewayOptions,
)
from network_watch.services.topology_service import build_snapshot


# =============================================================================
# Environment and Configuration Fixtures
# =============================================================================

@pytest.fixture
def aws_credentials(monkeypatch):
    """Point boto3 at fake credentials so moto never reaches real AWS."""
    for key, value in {
        "AWS_ACCESS_KEY_ID": "testing",
        "AWS_SECRET_ACCESS_KEY": "testing",
        "AWS_SECURITY_TOKEN": "testing",
        "AWS_SESSION_TOKEN": "testing",
        "AWS_DEFAULT_REGION": "us-east-1",
    }.items():
        monkeypatch.setenv(key, value)
    monkeypatch.delenv("AWS_PROFILE", raising=False)


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Remove every variable Settings reads and run from an empty directory."""
    for key in list(os.environ):
        if key.startswith(("AWS_", "NETWORK_WATCH_")) or key in ("LOG_LEVEL", "BASELINE_PATH"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


# =============================================================================
# Snapshot Fixtures
# =============================================================================

@pytest.fixture
def scan_time():
    return datetime(2026, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def scope():
    return ScanScope(region="us-east-1")


@pytest.fixture
def raw_collections():
    """Raw collections for one VPC with a public, a private and an isolated subnet."""
    return {
        "vpcs": [
            VPC(
                id="vpc-12345",
                name="main",
                tags={"Name": "main", "Environment": "production"},
                cidr_block="10.0.0.0/16",
                state="available",
                dhcp_options_id="dopt-1",
            )
        ],
        "subnets": [
            Subnet(
                id="subnet-public",
                name="public-a",
                vpc_id="vpc-12345",
                cidr_block="10.0.1.0/24",
                availability_zone="us-east-1a",
                state="available",
                map_public_ip=True,
            ),
            Subnet(
                id="subnet-private",
                vpc_id="vpc-12345",
                cidr_block="10.0.2.0/24",
                availability_zone="us-east-1b",
                state="available",
            ),
            Subnet(
                id="subnet-isolated",
                vpc_id="vpc-12345",
                cidr_block="10.0.3.0/24",
                availability_zone="us-east-1c",
                state="available",
            ),
        ],
        "internet_gateways": [
            InternetGateway(id="igw-1", vpc_id="vpc-12345", state="available")
        ],
        "nat_gateways": [
            NatGateway(
                id="nat-1",
                vpc_id="vpc-12345",
                subnet_id="subnet-public",
                state="available",
                public_ip="54.0.0.1",
                private_ip="10.0.1.10",
                connectivity_type="public",
            )
        ],
        "route_tables": [
            RouteTable(
                id="rtb-public",
                vpc_id="vpc-12345",
                routes=(
                    Route(destination_cidr="10.0.0.0/16", gateway_id="local"),
                    Route(destination_cidr="0.0.0.0/0", gateway_id="igw-1"),
                ),
                associations=("subnet-public",),
            ),
            RouteTable(
                id="rtb-private",
                vpc_id="vpc-12345",
                routes=(
                    Route(destination_cidr="10.0.0.0/16", gateway_id="local"),
                    Route(destination_cidr="0.0.0.0/0", nat_gateway_id="nat-1"),
                ),
                associations=("subnet-private",),
            ),
            RouteTable(
                id="rtb-main",
                vpc_id="vpc-12345",
                is_main=True,
                routes=(Route(destination_cidr="10.0.0.0/16", gateway_id="local"),),
            ),
        ],
        "security_groups": [
            SecurityGroup(
                id="sg-1",
                name="web",
                description="web servers",
                vpc_id="vpc-12345",
                ingress_rules=(
                    SecurityGroupRule(
                        ip_protocol="tcp", from_port=443, to_port=443, cidr_blocks=("0.0.0.0/0",)
                    ),
                ),
                egress_rules=(SecurityGroupRule(ip_protocol="-1", cidr_blocks=("0.0.0.0/0",)),),
            )
        ],
        "network_acls": [
            NetworkAcl(
                id="acl-default",
                vpc_id="vpc-12345",
                is_default=True,
                entries=(
                    NetworkAclEntry(
                        rule_number=100,
                        protocol="6",
                        rule_action="allow",
                        cidr_block="0.0.0.0/0",
                        port_range=NetworkAclPortRange(from_port=443, to_port=443),
                    ),
                ),
            )
        ],
        "peering_connections": [
            PeeringConnection(
                id="pcx-1",
                requester_vpc_id="vpc-12345",
                accepter_vpc_id="vpc-99999",
                status="active",
            )
        ],
        "transit_gateways": [
            TransitGateway(
                id="tgw-1",
                name="core",
                state="available",
                options=TransitGatewayOptions(amazon_side_asn=64512, dns_support="enable"),
                attachments=(
                    TransitGatewayAttachment(
                        id="tgw-attach-1",
                        transit_gateway_id="tgw-1",
                        resource_id="vpc-12345",
                        resource_type="vpc",
                        state="available",
                    ),
                ),
            )
        ],
        "iam_roles": [
            IAMRole(
                id="AROA1",
                name="app-role",
                path="/",
                arn="arn:aws:iam::123456789012:role/app-role",
                create_date=datetime(2025, 6, 1, tzinfo=timezone.utc),
                assume_role_policy_document='{"Version": "2012-10-17"}',
                attached_policies=(
                    IAMPolicy(
                        arn="arn:aws:iam::aws:policy/ReadOnlyAccess",
                        policy_name="ReadOnlyAccess",
                        update_date=datetime(2025, 6, 1, tzinfo=timezone.utc),
                    ),
                ),
                inline_policies=(IAMInlinePolicy(policy_name="inline", policy_document="{}"),),
            )
        ],
    }


@pytest.fixture
def sample_snapshot(scope, scan_time, raw_collections):
    """A fully derived snapshot of the raw collections."""
    return build_snapshot(scope, scan_time, **raw_collections)


# =============================================================================
# Pytest Hooks
# =============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow running"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
    config.addinivalue_line(
        "markers", "property: marks tests as property-based tests"
    )


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "property" in str(item.fspath):
            item.add_marker(pytest.mark.property)
