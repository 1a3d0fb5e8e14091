"""radvd configuration rendering."""

from __future__ import annotations

from typing import Iterable, List, Sequence

from vps_netlink.reconciler import V6_PREFIX_LENGTH, InterfaceAssignment

from .base import DownstreamService

RADVD_HEADER = "# Generated by vps-agent, do not edit.\n"


class RadvdService(DownstreamService):
    """Advertise each tenant's /64 on its VLAN interface."""

    name = "radvd"

    def render(self, assignments: Sequence[InterfaceAssignment]) -> str:
        sections = [RADVD_HEADER]
        sections.extend(self._render_interface(a) for a in assignments)
        return "\n".join(sections)

    def _render_interface(self, assignment: InterfaceAssignment) -> str:
        lines = [f"interface {assignment.name}", "{"]
        lines.extend(self._interface_options())
        lines.append(f"    prefix {assignment.tenant.v6_prefix}/{V6_PREFIX_LENGTH}")
        lines.append("    {")
        lines.append("        AdvOnLink on;")
        lines.append("        AdvAutonomous on;")
        lines.append("    };")
        lines.append("};")
        return "\n".join(lines) + "\n"

    def _interface_options(self) -> Iterable[str]:
        return [
            "    AdvSendAdvert on;",
            "    MinRtrAdvInterval 30;",
            "    MaxRtrAdvInterval 100;",
        ]

    def command(self) -> List[str]:
        return [
            str(self._binary),
            "--nodaemon",
            "--logmethod=stderr",
            "-C",
            str(self._config_path),
        ]
