import socket
from ipaddress import IPv4Address, IPv6Address

import pytest
from pyroute2.netlink.exceptions import NetlinkError

from conftest import PARENT, PARENT_INDEX, ROUTE_PROTO, FakeMessage
from vps_netlink.collector import collect, resolve_interface_index
from vps_netlink.exceptions import InterfaceNotFound, NetlinkFailure
from vps_netlink.state import Interface

# From /usr/include/linux/socket.h
AF_MPLS = 28


def test_only_managed_vlan_interfaces_are_collected(ipr):
    vps1 = ipr.add_vlan("vps1", 4000)
    ipr.add_vlan("eth0.100", 100)
    ipr.add_vlan("vps9", 0, kind="dummy")

    state = collect(ipr, ROUTE_PROTO)

    assert state.interfaces == [Interface(vps1, "vps1", PARENT_INDEX, 4000)]


def test_only_universe_scope_addresses_are_collected(ipr):
    index = ipr.add_vlan("vps1", 4000)
    ipr.add_address(index, "100.64.0.0", 31)
    ipr.add_address(index, "fe80::1", 64, scope=253)
    ipr.add_address(1, "127.0.0.1", 8, scope=254)

    state = collect(ipr, ROUTE_PROTO)

    assert [(a.interface, a.address, a.prefix_length) for a in state.addresses] == [
        (index, IPv4Address("100.64.0.0"), 31)
    ]
    assert state.addresses[0].handle == {"index": index, "address": "100.64.0.0", "prefixlen": 31}


def test_only_tagged_routes_are_collected(ipr):
    index = ipr.add_vlan("vps1", 4000)
    ipr.add_route("193.3.165.223", 32, index)
    ipr.add_route("2a11:f2c0:3::", 64, index)
    ipr.add_route("10.0.0.0", 8, PARENT_INDEX, proto=4)
    ipr.add_route("0.0.0.0", 0, PARENT_INDEX, proto=3)

    state = collect(ipr, ROUTE_PROTO)

    assert [(r.destination, r.destination_prefix_length, r.interface) for r in state.routes] == [
        (IPv4Address("193.3.165.223"), 32, index),
        (IPv6Address("2a11:f2c0:3::"), 64, index),
    ]
    assert state.routes[0].handle["proto"] == ROUTE_PROTO
    assert state.routes[0].handle["oif"] == index


def test_tagged_default_route_uses_unspecified_destination(ipr):
    ipr.add_route("::", 0, PARENT_INDEX)

    state = collect(ipr, ROUTE_PROTO)

    assert state.routes[0].destination == IPv6Address("::")
    assert state.routes[0].destination_prefix_length == 0



def test_addresses_of_unknown_family_are_skipped(ipr):
    index = ipr.add_vlan("vps1", 4000)
    ipr.add_address(index, "100.64.0.0", 31)
    ipr.addrs.append(
        {
            "index": index,
            "address": "00:11:22:33:44:55",
            "prefixlen": 0,
            "scope": 0,
            "family": socket.AF_UNSPEC,
        }
    )

    state = collect(ipr, ROUTE_PROTO)

    assert [a.address for a in state.addresses] == [IPv4Address("100.64.0.0")]


def test_routes_of_unknown_family_are_skipped(ipr):
    index = ipr.add_vlan("vps1", 4000)
    ipr.add_route("193.3.165.223", 32, index)
    dump = ipr.get_routes

    def dump_with_mpls(family=None):
        yield from dump(family=family)
        yield FakeMessage(
            {"family": AF_MPLS, "dst_len": 20, "proto": ROUTE_PROTO, "table": 254},
            {"RTA_DST": [{"label": 100}], "RTA_OIF": index},
        )

    ipr.get_routes = dump_with_mpls

    state = collect(ipr, ROUTE_PROTO)

    assert [r.destination for r in state.routes] == [IPv4Address("193.3.165.223")]


def test_resolve_interface_index(ipr):
    assert resolve_interface_index(ipr, PARENT) == PARENT_INDEX

    with pytest.raises(InterfaceNotFound):
        resolve_interface_index(ipr, "vps42")


def test_transport_errors_become_netlink_failure(ipr):
    def broken():
        raise NetlinkError(1, "Operation not permitted")

    ipr.get_links = broken

    with pytest.raises(NetlinkFailure):
        collect(ipr, ROUTE_PROTO)
