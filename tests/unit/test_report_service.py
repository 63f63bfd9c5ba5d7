"""Unit tests for topology rendering and drift reporting."""

import io
import json

import pytest
from rich.console import Console

from network_watch.models import (
    VPC,
    Difference,
    DifferenceKind,
    PeeringConnection,
    ResourceType,
    Snapshot,
)
from network_watch.services.report_service import ReportService, UnsupportedFormatError


def _console() -> Console:
    return Console(file=io.StringIO(), width=200, color_system=None)


def _output(service: ReportService) -> str:
    return service.console.file.getvalue()


@pytest.fixture
def reporter():
    return ReportService(console=_console())


@pytest.fixture
def verbose_reporter():
    return ReportService(console=_console(), verbose=True)


@pytest.fixture
def differences():
    return [
        Difference(
            kind=DifferenceKind.ADDED,
            resource_type=ResourceType.VPC,
            resource_id="vpc-67890",
            summary="new vpc created",
        ),
        Difference(
            kind=DifferenceKind.MODIFIED,
            resource_type=ResourceType.SUBNET,
            resource_id="subnet-private",
            summary="subnet configuration changed",
            details=("subnet_type: private → public",),
        ),
    ]


# =============================================================================
# Text tree
# =============================================================================

class TestTextRendering:
    """Tests for the text tree format."""

    def test_header(self, reporter, sample_snapshot):
        lines = reporter.render_topology(sample_snapshot, "text").splitlines()

        assert lines[0] == "AWS Network Infrastructure - Region: us-east-1"
        assert lines[1] == "Scan Time: 2026-01-01 00:00:00"
        assert lines[2] == ""

    def test_vpc_tree(self, reporter, sample_snapshot):
        lines = reporter.render_topology(sample_snapshot, "text").splitlines()

        start = lines.index("VPC: main (10.0.0.0/16)")
        assert lines[start + 1 : start + 7] == [
            "├── Subnet: subnet-isolated (10.0.3.0/24) [Isolated] AZ:us-east-1c",
            "├── Subnet: subnet-private (10.0.2.0/24) [Private] AZ:us-east-1b",
            "├── Subnet: public-a (10.0.1.0/24) [Public] AZ:us-east-1a",
            "├── Internet Gateway: igw-1 [available]",
            "├── NAT Gateway: nat-1 [available] Public:54.0.0.1 Private:10.0.1.10",
            "└── Peering: pcx-1 → vpc-99999 [active]",
        ]

    def test_transit_gateway_names_attached_vpc(self, reporter, sample_snapshot):
        lines = reporter.render_topology(sample_snapshot, "text").splitlines()

        start = lines.index("Transit Gateway: core [available]")
        assert lines[start + 1] == "└── Attachment: main (vpc) [available]"

    def test_summary(self, reporter, sample_snapshot):
        text = reporter.render_topology(sample_snapshot, "text")

        assert text.endswith(
            "Summary:\n"
            "  VPCs: 1\n"
            "  Subnets: 3\n"
            "  Peering Connections: 1\n"
            "  Transit Gateways: 1\n"
            "  Internet Gateways: 1\n"
            "  NAT Gateways: 1\n"
        )

    def test_default_vpc_and_accepter_side_peering(self, reporter, scope, scan_time):
        snapshot = Snapshot(
            scan_time=scan_time,
            scope=scope,
            vpcs=(VPC(id="vpc-a", cidr_block="172.31.0.0/16", is_default=True),),
            peering_connections=(
                PeeringConnection(
                    id="pcx-2", requester_vpc_id="vpc-b", accepter_vpc_id="vpc-a", status="active"
                ),
            ),
        )

        lines = reporter.render_topology(snapshot, "text").splitlines()

        assert "VPC: vpc-a (172.31.0.0/16) [Default]" in lines
        assert "└── Peering: pcx-2 ← vpc-b [active]" in lines

    def test_empty_snapshot(self, reporter, scope, scan_time):
        text = reporter.render_topology(Snapshot(scan_time=scan_time, scope=scope), "text")
        assert "  VPCs: 0" in text
        assert "VPC:" not in text


# =============================================================================
# DOT and JSON
# =============================================================================

class TestGraphAndJsonRendering:
    """Tests for the DOT and JSON formats."""

    def test_dot_graph(self, reporter, sample_snapshot):
        dot = reporter.render_topology(sample_snapshot, "dot")

        assert dot.startswith("digraph AWSNetwork {\n")
        assert dot.rstrip().endswith("}")
        assert '"vpc-12345" -> "subnet-public" [style=dotted, label="contains"];' in dot
        assert '"subnet-public" [label="public-a\\n10.0.1.0/24\\n[Public]", fillcolor=lightgreen];' in dot
        assert '"igw-1" -> "vpc-12345" [label="attached"];' in dot
        assert '"vpc-12345" -> "vpc-99999"' in dot
        assert '"tgw-1" -> "vpc-12345" [label="attached", style=solid, color=purple];' in dot

    def test_json_is_the_snapshot(self, reporter, sample_snapshot):
        document = json.loads(reporter.render_topology(sample_snapshot, "json"))

        assert document["scope"]["region"] == "us-east-1"
        assert [vpc["id"] for vpc in document["vpcs"]] == ["vpc-12345"]
        assert Snapshot.model_validate(document) == sample_snapshot

    def test_unsupported_format(self, reporter, sample_snapshot):
        with pytest.raises(UnsupportedFormatError) as exc_info:
            reporter.render_topology(sample_snapshot, "yaml")

        assert exc_info.value.output_format == "yaml"
        assert str(exc_info.value) == "unsupported output format: yaml"

    def test_print_topology_is_verbatim(self, reporter, sample_snapshot):
        reporter.print_topology(sample_snapshot, "text")
        assert _output(reporter) == reporter.render_topology(sample_snapshot, "text")


# =============================================================================
# Drift reporting
# =============================================================================

class TestDifferenceReporting:
    """Tests for watch cycle output."""

    def test_no_differences(self, reporter):
        reporter.report_differences([], 1.5)
        assert "✓ No differences found - infrastructure state matches baseline" in _output(reporter)

    def test_listing(self, reporter, differences):
        reporter.report_differences(differences, 1.5)

        output = _output(reporter)
        assert "⚠ Found 2 differences:" in output
        assert "+ ADDED VPC: vpc-67890 new vpc created" in output
        assert "~ MODIFIED Subnet: subnet-private subnet configuration changed" in output
        assert "subnet_type: private → public" not in output

    def test_verbose_listing_includes_details_and_timing(self, verbose_reporter, differences):
        verbose_reporter.report_differences(
            differences, 1.5, region="us-east-1", counts={"VPC": 2, "Subnet": 4}
        )

        output = _output(verbose_reporter)
        assert "Scan completed in 1.50s (region: us-east-1)" in output
        assert "VPC: 2, Subnet: 4" in output
        assert "    subnet_type: private → public" in output

    def test_format_differences_markup(self, reporter, differences):
        lines = reporter.format_differences(differences)

        assert lines[0] == "[red]⚠ Found 2 differences:[/red]"
        assert lines[2] == "[red]+ ADDED[/red] [cyan]VPC[/cyan]: [yellow]vpc-67890[/yellow] new vpc created"
        assert lines[-1] == ""

    def test_brackets_in_details_are_printed_literally(self, verbose_reporter):
        difference = Difference(
            kind=DifferenceKind.MODIFIED,
            resource_type=ResourceType.VPC,
            resource_id="vpc-1",
            summary="vpc configuration changed",
            details=("tags[Owner]: key removed",),
        )

        verbose_reporter.report_differences([difference], 0.1)

        assert "tags[Owner]: key removed" in _output(verbose_reporter)

    def test_skipped_resources_are_flagged(self, reporter, differences):
        reporter.report_differences(
            differences, 0.5, skipped=["IAMRole AROA2 (locked)", "TransitGateway tgw-1"]
        )

        output = _output(reporter)
        assert (
            "⚠ 2 resource(s) could not be read this scan and may be reported as removed: "
            "IAMRole AROA2 (locked), TransitGateway tgw-1"
        ) in output
        assert output.index("could not be read") < output.index("Found 2 differences")

    def test_no_skipped_line_when_everything_was_read(self, reporter):
        reporter.report_differences([], 0.5)
        assert "could not be read" not in _output(reporter)

    def test_failure(self, reporter):
        reporter.report_failure(RuntimeError("AWS API error: Throttling"))
        assert "⚠ Scan failed: AWS API error: Throttling" in _output(reporter)

    def test_message(self, reporter):
        reporter.report_message("Found [1] VPC")
        assert "Found [1] VPC" in _output(reporter)
