"""Per-tenant VLAN provisioning core.

The package reconciles the kernel networking state of a VPS hosting node with
a declarative list of tenants.  Each tenant owns one VLAN sub-interface named
``vps<N>``, a /31 point-to-point address on it, a /32 host route per public
IPv4 address and a /64 IPv6 route.

A reconciliation tick is three steps:

* :func:`~vps_netlink.collector.collect` reads the managed interfaces,
  addresses and routes into a :class:`~vps_netlink.state.State`;
* :func:`~vps_netlink.reconciler.reconcile` diffs that snapshot against the
  tenants and returns an ordered operation list together with the interface
  name assigned to every tenant;
* :func:`~vps_netlink.applier.apply` executes the operations sequentially.

The reconciler is pure so it can be unit tested without netlink access.
"""

from .applier import apply  # noqa: F401
from .collector import collect, resolve_interface_index  # noqa: F401
from .exceptions import (  # noqa: F401
    ConfigInvalid,
    InterfaceNotFound,
    NetlinkFailure,
    VPSNetlinkError,
)
from .reconciler import InterfaceAssignment, Plan, reconcile  # noqa: F401
from .state import Address, Interface, Route, State, TenantSpec  # noqa: F401

__all__ = [
    "Address",
    "ConfigInvalid",
    "Interface",
    "InterfaceAssignment",
    "InterfaceNotFound",
    "NetlinkFailure",
    "Plan",
    "Route",
    "State",
    "TenantSpec",
    "VPSNetlinkError",
    "apply",
    "collect",
    "reconcile",
    "resolve_interface_index",
]
