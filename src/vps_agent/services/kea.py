"""Kea DHCPv4 configuration rendering."""

from __future__ import annotations

import json
from typing import Any, Dict, List, Sequence

from vps_netlink.reconciler import P2P_PREFIX_LENGTH, InterfaceAssignment

from .base import DownstreamService

LEASE_LIFETIME = 3600


class KeaService(DownstreamService):
    """Hand the tenant side of every /31 link to the VPS over DHCP."""

    name = "kea"

    def render(self, assignments: Sequence[InterfaceAssignment]) -> str:
        document = {
            "Dhcp4": {
                "interfaces-config": {
                    "interfaces": [a.name for a in assignments],
                },
                "lease-database": {"type": "memfile", "persist": True},
                "valid-lifetime": LEASE_LIFETIME,
                "subnet4": [self._render_subnet(a) for a in assignments],
            }
        }
        return json.dumps(document, indent=2) + "\n"

    def _render_subnet(self, assignment: InterfaceAssignment) -> Dict[str, Any]:
        tenant = assignment.tenant
        peer = tenant.peer_address()
        network = min(tenant.v4_addr, peer)
        return {
            "id": tenant.vlan,
            "subnet": f"{network}/{P2P_PREFIX_LENGTH}",
            "interface": assignment.name,
            "pools": [{"pool": f"{peer} - {peer}"}],
            "option-data": [{"name": "routers", "data": str(tenant.v4_addr)}],
        }

    def command(self) -> List[str]:
        return [str(self._binary), "-c", str(self._config_path)]

    def environment(self) -> Dict[str, str]:
        return {"KEA_PIDFILE_DIR": "/run"}
