"""Data structures shared by the collector, reconciler and applier.

The tenant description (:class:`TenantSpec`) is the desired state supplied by
the configuration file.  The remaining classes describe what the kernel
currently holds, restricted to the resources this daemon owns.  A
:class:`State` snapshot lives for a single reconciliation tick and is thrown
away afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from ipaddress import IPv4Address, IPv6Address
from typing import Any, List, Optional, Sequence, Tuple, Union

IPAddress = Union[IPv4Address, IPv6Address]

# A tenant may be given one public address or a list of them.
PublicV4 = Union[IPv4Address, Sequence[IPv4Address]]


@dataclass(frozen=True)
class TenantSpec:
    """Desired network configuration for one VPS.

    Attributes
    ----------
    vlan:
        VLAN id of the tenant link.  Unique across tenants.
    v4_addr:
        Host side of the /31 point-to-point link.
    v4_public:
        Optional public IPv4 address, or sequence of addresses, routed to the
        tenant as /32 host routes.
    v6_prefix:
        Network address of the /64 delegated to the tenant.
    """

    vlan: int
    v4_addr: IPv4Address
    v6_prefix: IPv6Address
    v4_public: Optional[PublicV4] = None

    def public_addresses(self) -> Tuple[IPv4Address, ...]:
        """Return the public addresses as a (possibly empty) tuple."""
        if self.v4_public is None:
            return ()
        if isinstance(self.v4_public, IPv4Address):
            return (self.v4_public,)
        return tuple(self.v4_public)

    def peer_address(self) -> IPv4Address:
        """Return the tenant side of the /31 link."""
        return IPv4Address(int(self.v4_addr) ^ 1)


@dataclass(frozen=True)
class Interface:
    """A managed VLAN sub-interface."""

    index: int
    name: str
    link: int
    vlan: int


@dataclass(frozen=True)
class Address:
    """An address assigned to a managed interface.

    ``handle`` holds whatever the applier needs to delete the address again;
    nothing outside the collector and applier looks inside it.
    """

    interface: int
    address: IPAddress
    prefix_length: int
    handle: Any = field(default=None, repr=False)


@dataclass(frozen=True)
class Route:
    """A route carrying the managed route protocol marker."""

    destination: IPAddress
    destination_prefix_length: int
    interface: int
    handle: Any = field(default=None, repr=False)


@dataclass
class State:
    """Snapshot of the managed kernel resources."""

    interfaces: List[Interface] = field(default_factory=list)
    addresses: List[Address] = field(default_factory=list)
    routes: List[Route] = field(default_factory=list)

    def interface_for_vlan(self, vlan: int) -> Optional[Interface]:
        return next((i for i in self.interfaces if i.vlan == vlan), None)

    def addresses_on(self, index: int) -> List[Address]:
        return [a for a in self.addresses if a.interface == index]

    def routes_via(self, index: int) -> List[Route]:
        return [r for r in self.routes if r.interface == index]

