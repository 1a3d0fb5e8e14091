"""Execute a planned operation list against the kernel."""

from __future__ import annotations

import logging
import socket
from ipaddress import IPv4Address
from typing import Any, Sequence

from pyroute2.netlink.exceptions import NetlinkError

from .collector import resolve_interface_index
from .exceptions import NetlinkFailure
from .reconciler import (
    AddAddress,
    AddInterface,
    AddRoute,
    Operation,
    RemoveAddress,
    RemoveInterface,
    RemoveRoute,
)

LOG = logging.getLogger(__name__)


def _add_route(ipr: Any, operation: AddRoute, route_protocol: int) -> None:
    index = resolve_interface_index(ipr, operation.interface_name)
    family = socket.AF_INET if isinstance(operation.destination, IPv4Address) else socket.AF_INET6
    ipr.route(
        "add",
        family=family,
        dst=str(operation.destination),
        dst_len=operation.destination_prefix_length,
        oif=index,
        proto=route_protocol,
    )


def apply_operation(ipr: Any, operation: Operation, route_protocol: int) -> None:
    if isinstance(operation, AddInterface):
        ipr.link(
            "add",
            ifname=operation.name,
            kind="vlan",
            link=operation.link,
            vlan_id=operation.vlan,
            state="up",
        )
    elif isinstance(operation, RemoveInterface):
        ipr.link("del", index=operation.index)
    elif isinstance(operation, AddAddress):
        # Resolved on every call; a freshly created interface has no index
        # until the kernel assigns one.
        index = resolve_interface_index(ipr, operation.interface_name)
        ipr.addr(
            "add",
            index=index,
            address=str(operation.address),
            prefixlen=operation.prefix_length,
        )
    elif isinstance(operation, RemoveAddress):
        ipr.addr("del", **operation.address.handle)
    elif isinstance(operation, AddRoute):
        _add_route(ipr, operation, route_protocol)
    elif isinstance(operation, RemoveRoute):
        ipr.route("del", **operation.route.handle)
    else:
        raise TypeError(f"Unsupported operation type: {type(operation)!r}")


def apply(ipr: Any, operations: Sequence[Operation], route_protocol: int) -> None:
    """Apply ``operations`` one at a time, in order.

    The first failure aborts the run.  Operations that already succeeded stay
    applied; the next reconciliation recomputes whatever is still missing.
    """
    for operation in operations:
        LOG.info("%s", operation.describe())
        try:
            apply_operation(ipr, operation, route_protocol)
        except (NetlinkError, OSError) as exc:
            raise NetlinkFailure(
                f"{operation.describe()} failed: {exc}", operation=operation
            ) from exc
