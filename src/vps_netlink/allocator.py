"""Interface name allocation for managed VLAN sub-interfaces."""

from __future__ import annotations

from typing import Iterable

from .state import Interface

INTERFACE_PREFIX = "vps"


def interface_number(name: str) -> int:
    """Return ``N`` for a ``vps<N>`` name, or 0 if the suffix is not a number."""
    suffix = name[len(INTERFACE_PREFIX):]
    try:
        return int(suffix, 10)
    except ValueError:
        return 0


class InterfaceNameAllocator:
    """Hand out ``vps<N>`` names that were never seen in the snapshot.

    The counter starts one above the highest suffix currently present and
    only moves forward, so a name freed by removing an interface is never
    handed out again while a higher-numbered interface exists.  The allocator
    is rebuilt from each snapshot; nothing is persisted between ticks.

    Parameters
    ----------
    interfaces:
        Managed interfaces observed in the current snapshot.
    prefix:
        Reserved name prefix.  Defaults to ``vps``.
    """

    def __init__(self, interfaces: Iterable[Interface], prefix: str = INTERFACE_PREFIX) -> None:
        self._prefix = prefix
        self._next_id = max((interface_number(i.name) for i in interfaces), default=0) + 1

    @property
    def next_id(self) -> int:
        return self._next_id

    def allocate(self) -> str:
        name = f"{self._prefix}{self._next_id}"
        self._next_id += 1
        return name
