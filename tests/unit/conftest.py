import socket
from ipaddress import IPv4Address, IPv6Address, ip_address
from typing import Callable, Dict, List, Optional

import pytest
from pyroute2.netlink.exceptions import NetlinkError

from vps_netlink.reconciler import (
    AddAddress,
    AddInterface,
    AddRoute,
    RemoveAddress,
    RemoveInterface,
    RemoveRoute,
)
from vps_netlink.state import Address, Interface, Route, State, TenantSpec

PARENT = "eth0"
PARENT_INDEX = 2
ROUTE_PROTO = 200


class FakeMessage(dict):
    """Mimic the pyroute2 nlmsg API used by the collector."""

    def __init__(self, fields: Dict, attrs: Dict) -> None:
        super().__init__(fields)
        self["attrs"] = list(attrs.items())

    def get_attr(self, name, default=None):
        for key, value in self["attrs"]:
            if key == name:
                return value
        return default


def _family(address: str) -> int:
    return socket.AF_INET if ip_address(address).version == 4 else socket.AF_INET6


class FakeIPRoute:
    """In-memory stand-in for ``pyroute2.IPRoute``.

    Links, addresses and routes are kept as plain dicts.  Deleting a link drops
    its addresses and routes the way the kernel does.  ``fail`` can be set to a
    predicate ``(method, command, kwargs) -> bool`` to inject a NetlinkError.
    """

    def __init__(self) -> None:
        self.links: List[Dict] = [
            {"index": 1, "name": "lo", "kind": None, "vlan": None, "link": 0},
            {"index": PARENT_INDEX, "name": PARENT, "kind": None, "vlan": None, "link": 0},
        ]
        self.addrs: List[Dict] = []
        self.routes: List[Dict] = []
        self.calls: List[tuple] = []
        self.fail: Optional[Callable] = None
        self._next_index = 10

    # -- helpers used by tests ------------------------------------------
    def add_vlan(self, name: str, vlan: int, index: Optional[int] = None, kind: str = "vlan") -> int:
        if index is None:
            index = self._next_index
            self._next_index += 1
        self.links.append(
            {"index": index, "name": name, "kind": kind, "vlan": vlan, "link": PARENT_INDEX}
        )
        return index

    def add_address(self, index: int, address: str, prefixlen: int, scope: int = 0) -> None:
        self.addrs.append(
            {
                "index": index,
                "address": address,
                "prefixlen": prefixlen,
                "scope": scope,
                "family": _family(address),
            }
        )

    def add_route(self, dst: str, dst_len: int, oif: int, proto: int = ROUTE_PROTO) -> None:
        self.routes.append(
            {
                "family": _family(dst),
                "dst": dst,
                "dst_len": dst_len,
                "oif": oif,
                "proto": proto,
                "table": 254,
            }
        )

    def _check(self, method: str, command: str, kwargs: Dict) -> None:
        self.calls.append((method, command, kwargs))
        if self.fail is not None and self.fail(method, command, kwargs):
            raise NetlinkError(17, "File exists")

    # -- pyroute2 API ---------------------------------------------------
    def get_links(self):
        for link in self.links:
            attrs = {"IFLA_IFNAME": link["name"]}
            if link["link"]:
                attrs["IFLA_LINK"] = link["link"]
            if link["kind"]:
                data = FakeMessage({}, {"IFLA_VLAN_ID": link["vlan"]})
                attrs["IFLA_LINKINFO"] = FakeMessage(
                    {}, {"IFLA_INFO_KIND": link["kind"], "IFLA_INFO_DATA": data}
                )
            yield FakeMessage({"index": link["index"]}, attrs)

    def get_addr(self):
        for addr in self.addrs:
            yield FakeMessage(
                {
                    "index": addr["index"],
                    "family": addr["family"],
                    "prefixlen": addr["prefixlen"],
                    "scope": addr["scope"],
                },
                {"IFA_ADDRESS": addr["address"]},
            )

    def get_routes(self, family=None):
        for route in self.routes:
            if family is not None and route["family"] != family:
                continue
            attrs = {"RTA_TABLE": route["table"], "RTA_OIF": route["oif"]}
            if route["dst_len"]:
                attrs["RTA_DST"] = route["dst"]
            yield FakeMessage(
                {
                    "family": route["family"],
                    "dst_len": route["dst_len"],
                    "proto": route["proto"],
                    "table": route["table"],
                },
                attrs,
            )

    def link_lookup(self, ifname):
        return [link["index"] for link in self.links if link["name"] == ifname]

    def link(self, command, **kwargs):
        self._check("link", command, kwargs)
        if command == "add":
            self.add_vlan(kwargs["ifname"], kwargs["vlan_id"])
        elif command == "del":
            index = kwargs["index"]
            self.links = [l for l in self.links if l["index"] != index]
            self.addrs = [a for a in self.addrs if a["index"] != index]
            self.routes = [r for r in self.routes if r["oif"] != index]

    def addr(self, command, **kwargs):
        self._check("addr", command, kwargs)
        if command == "add":
            self.add_address(kwargs["index"], kwargs["address"], kwargs["prefixlen"])
        elif command == "del":
            self.addrs = [
                a
                for a in self.addrs
                if not (
                    a["index"] == kwargs["index"]
                    and a["address"] == kwargs["address"]
                    and a["prefixlen"] == kwargs["prefixlen"]
                )
            ]

    def route(self, command, **kwargs):
        self._check("route", command, kwargs)
        if command == "add":
            self.add_route(kwargs["dst"], kwargs["dst_len"], kwargs["oif"], kwargs["proto"])
        elif command == "del":
            self.routes = [
                r
                for r in self.routes
                if not (
                    r["dst"] == kwargs["dst"]
                    and r["dst_len"] == kwargs["dst_len"]
                    and r["oif"] == kwargs.get("oif")
                )
            ]

    def close(self):
        pass


@pytest.fixture
def ipr() -> FakeIPRoute:
    return FakeIPRoute()


def resolve(name: str) -> int:
    if name != PARENT:
        raise AssertionError(f"unexpected parent lookup for {name}")
    return PARENT_INDEX


def tenant(vlan=4000, v4="100.64.0.0", public=("193.3.165.223",), v6="2a11:f2c0:3::") -> TenantSpec:
    return TenantSpec(
        vlan=vlan,
        v4_addr=IPv4Address(v4),
        v4_public=tuple(IPv4Address(p) for p in public),
        v6_prefix=IPv6Address(v6),
    )


def apply_on_model(state: State, operations) -> State:
    """Apply ``operations`` to a copy of ``state`` the way the kernel would."""
    interfaces = list(state.interfaces)
    addresses = list(state.addresses)
    routes = list(state.routes)
    next_index = max((i.index for i in interfaces), default=100) + 1

    def index_of(name: str) -> int:
        return next(i.index for i in interfaces if i.name == name)

    for op in operations:
        if isinstance(op, AddInterface):
            assert all(i.name != op.name for i in interfaces), f"{op.name} already exists"
            interfaces.append(Interface(next_index, op.name, op.link, op.vlan))
            next_index += 1
        elif isinstance(op, RemoveInterface):
            interfaces = [i for i in interfaces if i.index != op.index]
            addresses = [a for a in addresses if a.interface != op.index]
            routes = [r for r in routes if r.interface != op.index]
        elif isinstance(op, AddAddress):
            index = index_of(op.interface_name)
            addresses.append(
                Address(index, op.address, op.prefix_length, handle=("addr", index, str(op.address)))
            )
        elif isinstance(op, RemoveAddress):
            assert op.address in addresses
            addresses.remove(op.address)
        elif isinstance(op, AddRoute):
            index = index_of(op.interface_name)
            routes.append(
                Route(
                    op.destination,
                    op.destination_prefix_length,
                    index,
                    handle=("route", index, str(op.destination)),
                )
            )
        elif isinstance(op, RemoveRoute):
            assert op.route in routes
            routes.remove(op.route)
    return State(interfaces=interfaces, addresses=addresses, routes=routes)
