"""Read the managed part of the kernel networking state.

Only resources matching the ownership filters are returned:

* links of kind ``vlan`` whose name starts with ``vps``;
* addresses with universe scope;
* IPv4/IPv6 routes carrying the configured route protocol marker.

Everything else is invisible to the reconciler and therefore never touched.
"""

from __future__ import annotations

import logging
import socket
from ipaddress import ip_address
from typing import Any, Callable, Dict, Iterable, List, Optional

from pyroute2.netlink.exceptions import NetlinkError

from .allocator import INTERFACE_PREFIX
from .exceptions import InterfaceNotFound, NetlinkFailure
from .state import Address, Interface, Route, State

LOG = logging.getLogger(__name__)

# From /usr/include/linux/rtnetlink.h
RT_SCOPE_UNIVERSE = 0

_UNSPECIFIED = {
    socket.AF_INET: "0.0.0.0",
    socket.AF_INET6: "::",
}


def _query(what: str, call: Callable[..., Iterable[Any]], **kwargs: Any) -> List[Any]:
    try:
        return list(call(**kwargs))
    except (NetlinkError, OSError) as exc:
        raise NetlinkFailure(f"failed to dump {what}: {exc}") from exc


def _vlan_id(msg: Any) -> Optional[int]:
    linkinfo = msg.get_attr("IFLA_LINKINFO")
    if linkinfo is None or linkinfo.get_attr("IFLA_INFO_KIND") != "vlan":
        return None
    data = linkinfo.get_attr("IFLA_INFO_DATA")
    if data is None:
        return None
    return data.get_attr("IFLA_VLAN_ID")


def get_vlan_interfaces(ipr: Any) -> List[Interface]:
    interfaces: List[Interface] = []
    for msg in _query("links", ipr.get_links):
        name = msg.get_attr("IFLA_IFNAME")
        if not name or not name.startswith(INTERFACE_PREFIX):
            continue
        vlan = _vlan_id(msg)
        if vlan is None:
            continue
        interfaces.append(
            Interface(
                index=msg["index"],
                name=name,
                link=msg.get_attr("IFLA_LINK") or 0,
                vlan=vlan,
            )
        )
    return interfaces


def get_addresses(ipr: Any) -> List[Address]:
    addresses: List[Address] = []
    for msg in _query("addresses", ipr.get_addr):
        if msg["scope"] != RT_SCOPE_UNIVERSE:
            continue
        if msg["family"] not in _UNSPECIFIED:
            continue
        value = msg.get_attr("IFA_ADDRESS")
        if value is None:
            continue
        handle: Dict[str, Any] = {
            "index": msg["index"],
            "address": value,
            "prefixlen": msg["prefixlen"],
        }
        addresses.append(
            Address(
                interface=msg["index"],
                address=ip_address(value),
                prefix_length=msg["prefixlen"],
                handle=handle,
            )
        )
    return addresses


def _route_handle(msg: Any, destination: str) -> Dict[str, Any]:
    handle: Dict[str, Any] = {
        "family": msg["family"],
        "dst": destination,
        "dst_len": msg["dst_len"],
        "table": msg.get_attr("RTA_TABLE") or msg["table"],
        "proto": msg["proto"],
    }
    oif = msg.get_attr("RTA_OIF")
    if oif is not None:
        handle["oif"] = oif
    priority = msg.get_attr("RTA_PRIORITY")
    if priority is not None:
        handle["priority"] = priority
    return handle


def get_routes(ipr: Any, route_protocol: int) -> List[Route]:
    managed = []
    for family in (socket.AF_INET, socket.AF_INET6):
        for msg in _query("routes", ipr.get_routes, family=family):
            if msg["proto"] == route_protocol:
                managed.append(msg)

    routes: List[Route] = []
    for msg in managed:
        unspecified = _UNSPECIFIED.get(msg["family"])
        if unspecified is None:
            LOG.debug("skipping route with unknown family %s", msg["family"])
            continue
        destination = msg.get_attr("RTA_DST") or unspecified
        routes.append(
            Route(
                destination=ip_address(destination),
                destination_prefix_length=msg["dst_len"],
                interface=msg.get_attr("RTA_OIF") or 0,
                handle=_route_handle(msg, destination),
            )
        )
    return routes


def resolve_interface_index(ipr: Any, name: str) -> int:
    """Return the kernel index of the link called ``name``."""
    indices = _query("links", ipr.link_lookup, ifname=name)
    if not indices:
        raise InterfaceNotFound(name)
    return indices[0]


def collect(ipr: Any, route_protocol: int) -> State:
    """Build a :class:`State` snapshot of the managed resources."""
    state = State(
        interfaces=get_vlan_interfaces(ipr),
        addresses=get_addresses(ipr),
        routes=get_routes(ipr, route_protocol),
    )
    LOG.debug(
        "collected %d interfaces, %d addresses, %d routes",
        len(state.interfaces),
        len(state.addresses),
        len(state.routes),
    )
    return state
