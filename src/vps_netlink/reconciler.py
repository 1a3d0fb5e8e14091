"""Compute the operations that converge the kernel onto the tenant list.

:func:`reconcile` is a pure function of the collected :class:`State` and the
desired tenants.  The returned operation list is ordered:

1. interface removals,
2. route removals,
3. address removals,
4. every addition, grouped per tenant in input order.

Routes and addresses owned by an interface that is being removed are never
listed; deleting the interface drops them in the kernel.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from ipaddress import IPv4Address, IPv6Address
from typing import Callable, List, Sequence, Set, Union

from .allocator import InterfaceNameAllocator
from .state import Address, Interface, IPAddress, Route, State, TenantSpec

LOG = logging.getLogger(__name__)

P2P_PREFIX_LENGTH = 31
HOST_PREFIX_LENGTH = 32
V6_PREFIX_LENGTH = 64


@dataclass(frozen=True)
class AddInterface:
    name: str
    vlan: int
    link: int

    def describe(self) -> str:
        return f"add interface {self.name} (vlan {self.vlan}, link {self.link})"


@dataclass(frozen=True)
class RemoveInterface:
    index: int
    name: str = ""

    def describe(self) -> str:
        return f"remove interface {self.name or '#' + str(self.index)}"


@dataclass(frozen=True)
class AddAddress:
    interface_name: str
    address: IPAddress
    prefix_length: int

    def describe(self) -> str:
        return f"add address {self.address}/{self.prefix_length} on {self.interface_name}"


@dataclass(frozen=True)
class RemoveAddress:
    address: Address

    def describe(self) -> str:
        return (
            f"remove address {self.address.address}/{self.address.prefix_length}"
            f" from interface #{self.address.interface}"
        )


@dataclass(frozen=True)
class AddRoute:
    interface_name: str
    destination: IPAddress
    destination_prefix_length: int

    def describe(self) -> str:
        return (
            f"add route {self.destination}/{self.destination_prefix_length}"
            f" via {self.interface_name}"
        )


@dataclass(frozen=True)
class RemoveRoute:
    route: Route

    def describe(self) -> str:
        return (
            f"remove route {self.route.destination}/{self.route.destination_prefix_length}"
            f" via interface #{self.route.interface}"
        )


Operation = Union[AddInterface, RemoveInterface, AddAddress, RemoveAddress, AddRoute, RemoveRoute]

REMOVALS = (RemoveInterface, RemoveRoute, RemoveAddress)


@dataclass(frozen=True)
class InterfaceAssignment:
    """The interface name decided for a tenant during this tick."""

    name: str
    tenant: TenantSpec


@dataclass
class Plan:
    operations: List[Operation] = field(default_factory=list)
    assignments: List[InterfaceAssignment] = field(default_factory=list)


def _diff_kept_interface(
    interface: Interface,
    tenant: TenantSpec,
    state: State,
    additions: List[Operation],
    stale_addresses: List[Address],
    kept_routes: List[Route],
) -> None:
    found_v4_addr = False
    for address in state.addresses_on(interface.index):
        if not isinstance(address.address, IPv4Address):
            continue
        if address.address == tenant.v4_addr and address.prefix_length == P2P_PREFIX_LENGTH:
            found_v4_addr = True
        else:
            stale_addresses.append(address)

    if not found_v4_addr:
        additions.append(AddAddress(interface.name, tenant.v4_addr, P2P_PREFIX_LENGTH))

    public = tenant.public_addresses()
    found_v4: List[IPv4Address] = []
    found_v6 = False
    for route in state.routes_via(interface.index):
        if isinstance(route.destination, IPv4Address):
            if route.destination in public and route.destination_prefix_length == HOST_PREFIX_LENGTH:
                kept_routes.append(route)
                found_v4.append(route.destination)
        elif isinstance(route.destination, IPv6Address):
            if route.destination == tenant.v6_prefix and route.destination_prefix_length == V6_PREFIX_LENGTH:
                kept_routes.append(route)
                found_v6 = True

    for address in public:
        if address not in found_v4:
            additions.append(AddRoute(interface.name, address, HOST_PREFIX_LENGTH))

    if not found_v6:
        additions.append(AddRoute(interface.name, tenant.v6_prefix, V6_PREFIX_LENGTH))


def _new_interface(name: str, tenant: TenantSpec, link: int) -> List[Operation]:
    operations: List[Operation] = [
        AddInterface(name=name, vlan=tenant.vlan, link=link),
        AddAddress(name, tenant.v4_addr, P2P_PREFIX_LENGTH),
    ]
    operations.extend(
        AddRoute(name, address, HOST_PREFIX_LENGTH) for address in tenant.public_addresses()
    )
    operations.append(AddRoute(name, tenant.v6_prefix, V6_PREFIX_LENGTH))
    return operations


def reconcile(
    state: State,
    tenants: Sequence[TenantSpec],
    parent_link: str,
    resolve_index: Callable[[str], int],
) -> Plan:
    """Diff ``state`` against ``tenants``.

    ``resolve_index`` maps the parent link name to its kernel index and is
    called once, before anything else; an unknown parent link aborts the
    reconciliation with :class:`~vps_netlink.exceptions.InterfaceNotFound`.
    """
    link = resolve_index(parent_link)
    allocator = InterfaceNameAllocator(state.interfaces)

    plan = Plan()
    additions: List[Operation] = []
    stale_addresses: List[Address] = []
    kept_routes: List[Route] = []
    kept_interfaces: Set[int] = set()

    for tenant in tenants:
        interface = state.interface_for_vlan(tenant.vlan)
        if interface is not None:
            kept_interfaces.add(interface.index)
            plan.assignments.append(InterfaceAssignment(interface.name, tenant))
            _diff_kept_interface(
                interface, tenant, state, additions, stale_addresses, kept_routes
            )
        else:
            name = allocator.allocate()
            LOG.debug("allocated %s for vlan %s", name, tenant.vlan)
            plan.assignments.append(InterfaceAssignment(name, tenant))
            additions.extend(_new_interface(name, tenant, link))

    removed_interfaces: Set[int] = set()
    for interface in state.interfaces:
        if interface.index not in kept_interfaces:
            plan.operations.append(RemoveInterface(interface.index, interface.name))
            removed_interfaces.add(interface.index)

    for route in state.routes:
        if route in kept_routes or route.interface in removed_interfaces:
            continue
        plan.operations.append(RemoveRoute(route))

    plan.operations.extend(RemoveAddress(address) for address in stale_addresses)
    plan.operations.extend(additions)
    return plan
