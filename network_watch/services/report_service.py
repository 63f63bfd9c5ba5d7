# Copyright (c) 2025-2026 OptimNow. All Rights Reserved.
# Licensed under the Apache License, Version 2.0.
# See LICENSE file in the project root for full license information.

"""Report generation service.

Renders Snapshots as a text tree, Graphviz DOT or JSON, and prints
difference listings and cycle failures to a rich console.
"""

import logging
from collections import defaultdict
from collections.abc import Sequence
from datetime import datetime

from rich.console import Console
from rich.markup import escape

from ..models.difference import Difference
from ..models.enums import DifferenceKind, OutputFormat, SubnetType
from ..models.resources import (
    VPC,
    InternetGateway,
    NatGateway,
    PeeringConnection,
    Subnet,
    TransitGateway,
)
from ..models.snapshot import Snapshot

logger = logging.getLogger(__name__)

BRANCH = "├── "
LAST_BRANCH = "└── "

_KIND_LABELS = {
    DifferenceKind.ADDED: "+ ADDED",
    DifferenceKind.REMOVED: "- REMOVED",
    DifferenceKind.MODIFIED: "~ MODIFIED",
}

_SUBNET_COLORS = {
    SubnetType.PUBLIC: "lightgreen",
    SubnetType.PRIVATE: "lightyellow",
    SubnetType.ISOLATED: "lightcoral",
}


class UnsupportedFormatError(ValueError):
    """Raised when a topology rendering format is not supported."""

    def __init__(self, output_format: str):
        self.output_format = output_format
        super().__init__(f"unsupported output format: {output_format}")


def _display_name(resource) -> str:
    return resource.name or resource.id


def _timestamp() -> str:
    return escape(f"[{datetime.now().strftime('%Y-%m-%d %H:%M:%S')}]")


class ReportService:
    """
    Presentation of snapshots and drift reports.

    Holds no state besides the console and the verbosity flag; every
    rendering is a pure function of its inputs.
    """

    def __init__(self, console: Console | None = None, verbose: bool = False):
        """
        Initialize report service.

        Args:
            console: rich Console to print to (stdout by default)
            verbose: Print difference details and per-collection counts
        """
        self.console = console or Console()
        self.verbose = verbose

    # ------------------------------------------------------------------
    # Topology rendering
    # ------------------------------------------------------------------

    def render_topology(self, snapshot: Snapshot, output_format: OutputFormat | str) -> str:
        """
        Render a snapshot in the requested format.

        Args:
            snapshot: Snapshot to render
            output_format: "text", "dot" or "json"

        Returns:
            The rendered document

        Raises:
            UnsupportedFormatError: If the format is not one of the above
        """
        try:
            fmt = OutputFormat(output_format)
        except ValueError as e:
            raise UnsupportedFormatError(str(output_format)) from e

        if fmt == OutputFormat.TEXT:
            return self._render_text(snapshot)
        if fmt == OutputFormat.DOT:
            return self._render_dot(snapshot)
        return snapshot.model_dump_json(indent=2) + "\n"

    def print_topology(self, snapshot: Snapshot, output_format: OutputFormat | str) -> None:
        """Render a snapshot and print it verbatim."""
        rendered = self.render_topology(snapshot, output_format)
        self.console.print(rendered, markup=False, highlight=False, soft_wrap=True, end="")

    def _render_text(self, snapshot: Snapshot) -> str:
        lines = [
            f"AWS Network Infrastructure - Region: {snapshot.scope.region}",
            f"Scan Time: {snapshot.scan_time.strftime('%Y-%m-%d %H:%M:%S')}",
            "",
        ]

        subnets = {subnet.id: subnet for subnet in snapshot.subnets}
        peerings: dict[str, list[PeeringConnection]] = defaultdict(list)
        for peering in snapshot.peering_connections:
            peerings[peering.requester_vpc_id].append(peering)
            if peering.accepter_vpc_id != peering.requester_vpc_id:
                peerings[peering.accepter_vpc_id].append(peering)
        internet_gateways: dict[str, list[InternetGateway]] = defaultdict(list)
        for igw in snapshot.internet_gateways:
            internet_gateways[igw.vpc_id].append(igw)
        nat_gateways: dict[str, list[NatGateway]] = defaultdict(list)
        for nat in snapshot.nat_gateways:
            nat_gateways[nat.vpc_id].append(nat)

        vpcs = sorted(snapshot.vpcs, key=lambda vpc: vpc.id)
        for index, vpc in enumerate(vpcs):
            items = [
                self._subnet_line(subnets[subnet_id])
                for subnet_id in vpc.subnets
                if subnet_id in subnets
            ]
            items += [
                f"Internet Gateway: {_display_name(igw)} [{igw.state}]"
                for igw in internet_gateways[vpc.id]
            ]
            items += [self._nat_line(nat) for nat in nat_gateways[vpc.id]]
            items += [self._peering_line(peering, vpc.id) for peering in peerings[vpc.id]]

            lines.append(self._vpc_line(vpc))
            lines.extend(self._branches(items))
            if index < len(vpcs) - 1:
                lines.append("")

        if snapshot.transit_gateways:
            vpc_names = {vpc.id: _display_name(vpc) for vpc in snapshot.vpcs}
            lines.append("")
            for index, tgw in enumerate(snapshot.transit_gateways):
                lines.extend(self._transit_gateway_lines(tgw, vpc_names))
                if index < len(snapshot.transit_gateways) - 1:
                    lines.append("")

        lines += [
            "",
            "Summary:",
            f"  VPCs: {len(snapshot.vpcs)}",
            f"  Subnets: {len(snapshot.subnets)}",
            f"  Peering Connections: {len(snapshot.peering_connections)}",
            f"  Transit Gateways: {len(snapshot.transit_gateways)}",
            f"  Internet Gateways: {len(snapshot.internet_gateways)}",
            f"  NAT Gateways: {len(snapshot.nat_gateways)}",
        ]
        return "\n".join(lines) + "\n"

    @staticmethod
    def _branches(items: list[str]) -> list[str]:
        return [
            f"{LAST_BRANCH if index == len(items) - 1 else BRANCH}{item}"
            for index, item in enumerate(items)
        ]

    @staticmethod
    def _vpc_line(vpc: VPC) -> str:
        default = " [Default]" if vpc.is_default else ""
        return f"VPC: {_display_name(vpc)} ({vpc.cidr_block}){default}"

    @staticmethod
    def _subnet_line(subnet: Subnet) -> str:
        zone = f" AZ:{subnet.availability_zone}" if subnet.availability_zone else ""
        return (
            f"Subnet: {_display_name(subnet)} ({subnet.cidr_block}) "
            f"[{subnet.subnet_type.value.title()}]{zone}"
        )

    @staticmethod
    def _nat_line(nat: NatGateway) -> str:
        addresses = ""
        if nat.public_ip:
            addresses += f" Public:{nat.public_ip}"
        if nat.private_ip:
            addresses += f" Private:{nat.private_ip}"
        return f"NAT Gateway: {_display_name(nat)} [{nat.state}]{addresses}"

    @staticmethod
    def _peering_line(peering: PeeringConnection, vpc_id: str) -> str:
        if vpc_id == peering.accepter_vpc_id:
            arrow, target = "←", peering.requester_vpc_id
        else:
            arrow, target = "→", peering.accepter_vpc_id
        return f"Peering: {_display_name(peering)} {arrow} {target} [{peering.status}]"

    def _transit_gateway_lines(self, tgw: TransitGateway, vpc_names: dict[str, str]) -> list[str]:
        items = []
        for attachment in tgw.attachments:
            resource_name = attachment.resource_id
            if attachment.resource_type == "vpc":
                resource_name = vpc_names.get(attachment.resource_id, resource_name)
            items.append(
                f"Attachment: {resource_name} ({attachment.resource_type}) [{attachment.state}]"
            )
        return [f"Transit Gateway: {_display_name(tgw)} [{tgw.state}]"] + self._branches(items)

    def _render_dot(self, snapshot: Snapshot) -> str:
        lines = [
            "digraph AWSNetwork {",
            "  rankdir=TB;",
            "  node [shape=box, style=rounded];",
            "  edge [fontsize=10];",
            "",
            '  node [fillcolor=lightblue, style="rounded,filled"];',
            "",
        ]

        for vpc in snapshot.vpcs:
            label = f"{_display_name(vpc)}\\n{vpc.cidr_block}"
            if vpc.is_default:
                label += "\\n[Default]"
            lines.append(f'  "{vpc.id}" [label="{label}", fillcolor=lightcyan];')

        lines += ["", "  // Subnets"]
        for subnet in snapshot.subnets:
            label = (
                f"{_display_name(subnet)}\\n{subnet.cidr_block}"
                f"\\n[{subnet.subnet_type.value.title()}]"
            )
            color = _SUBNET_COLORS[subnet.subnet_type]
            lines.append(f'  "{subnet.id}" [label="{label}", fillcolor={color}];')
            lines.append(f'  "{subnet.vpc_id}" -> "{subnet.id}" [style=dotted, label="contains"];')

        if snapshot.internet_gateways:
            lines += ["", "  // Internet Gateways"]
            for igw in snapshot.internet_gateways:
                lines.append(
                    f'  "{igw.id}" [label="{_display_name(igw)}\\nInternet Gateway", '
                    "fillcolor=orange];"
                )
                lines.append(f'  "{igw.id}" -> "{igw.vpc_id}" [label="attached"];')

        if snapshot.nat_gateways:
            lines += ["", "  // NAT Gateways"]
            for nat in snapshot.nat_gateways:
                label = f"{_display_name(nat)}\\nNAT Gateway"
                if nat.public_ip:
                    label += f"\\n{nat.public_ip}"
                lines.append(f'  "{nat.id}" [label="{label}", fillcolor=gold];')
                lines.append(f'  "{nat.id}" -> "{nat.subnet_id}" [style=dotted, label="in"];')

        if snapshot.peering_connections:
            lines += ["", "  // Peering Connections"]
            for peering in snapshot.peering_connections:
                active = peering.status == "active"
                lines.append(
                    f'  "{peering.requester_vpc_id}" -> "{peering.accepter_vpc_id}" '
                    f'[label="{_display_name(peering)}\\n[{peering.status}]", '
                    f"style={'solid' if active else 'dashed'}, "
                    f"color={'blue' if active else 'gray'}];"
                )

        if snapshot.transit_gateways:
            lines += ["", "  // Transit Gateways"]
            for tgw in snapshot.transit_gateways:
                lines.append(
                    f'  "{tgw.id}" [label="{_display_name(tgw)}\\nTransit Gateway", '
                    "fillcolor=purple, fontcolor=white];"
                )
                for attachment in tgw.attachments:
                    if attachment.resource_type != "vpc":
                        continue
                    style = "solid" if attachment.state == "available" else "dashed"
                    lines.append(
                        f'  "{tgw.id}" -> "{attachment.resource_id}" '
                        f'[label="attached", style={style}, color=purple];'
                    )

        lines.append("}")
        return "\n".join(lines) + "\n"

    # ------------------------------------------------------------------
    # Drift reporting
    # ------------------------------------------------------------------

    def report_differences(
        self,
        differences: Sequence[Difference],
        duration_seconds: float,
        region: str = "",
        counts: dict[str, int] | None = None,
        skipped: Sequence[str] = (),
    ) -> None:
        """
        Print the outcome of one watch cycle.

        Args:
            differences: Ordered differences against the baseline
            duration_seconds: Wall time spent acquiring the snapshot
            region: Region the snapshot was taken in
            counts: Per-collection sizes of the current snapshot (verbose only)
            skipped: Resources left out of the snapshot because they could
                not be read; they may show up as removed
        """
        stamp = _timestamp()
        if self.verbose:
            self.console.print(
                f"\n[dim]{stamp}[/dim] Scan completed in {duration_seconds:.2f}s "
                f"(region: {escape(region)})"
            )
            if counts:
                summary = ", ".join(f"{name}: {count}" for name, count in counts.items())
                self.console.print(f"[dim]{escape(summary)}[/dim]")
        else:
            self.console.print(f"\n[dim]{stamp}[/dim]")

        if skipped:
            self.console.print(
                f"[yellow]⚠ {len(skipped)} resource(s) could not be read this scan "
                f"and may be reported as removed: {escape(', '.join(skipped))}[/yellow]"
            )

        for line in self.format_differences(differences):
            self.console.print(line)

    def format_differences(self, differences: Sequence[Difference]) -> list[str]:
        """Build the rich-markup lines for a difference listing."""
        if not differences:
            return ["[green]✓ No differences found - infrastructure state matches baseline[/green]"]

        lines = [f"[red]⚠ Found {len(differences)} differences:[/red]", ""]
        for difference in differences:
            lines.append(
                f"[red]{_KIND_LABELS[difference.kind]}[/red] "
                f"[cyan]{difference.resource_type.value}[/cyan]: "
                f"[yellow]{escape(difference.resource_id)}[/yellow] {escape(difference.summary)}"
            )
            if self.verbose:
                lines.extend(f"    {escape(detail)}" for detail in difference.details)
        lines.append("")
        return lines

    def report_failure(self, error: BaseException) -> None:
        """Print a warning for a failed watch cycle."""
        stamp = _timestamp()
        self.console.print(
            f"\n[dim]{stamp}[/dim] [yellow]⚠ Scan failed: {escape(str(error))}[/yellow]"
        )

    def report_message(self, message: str) -> None:
        """Print an informational line."""
        self.console.print(escape(message))
