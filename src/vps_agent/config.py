"""YAML configuration loader for the VPS network agent.

The desired-state document looks like::

    rt_proto: 200
    interface: eth0
    vps:
      - vlan: 4000
        v4_addr: 100.64.0.0
        v4_public: 193.3.165.223
        v6_prefix: "2a11:f2c0:3::"

``v4_public`` may be omitted, a single address or a list.  JSON documents are
accepted as well since they are valid YAML.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from ipaddress import IPv4Address, IPv6Address, IPv6Network
from pathlib import Path
from threading import Lock
from typing import Any, Iterable, List, Optional, Sequence, Set

import yaml

from vps_netlink.exceptions import ConfigInvalid
from vps_netlink.state import PublicV4, TenantSpec

LOG = logging.getLogger(__name__)

MAX_VLAN_ID = 4094
MAX_ROUTE_PROTOCOL = 255


@dataclass(frozen=True)
class AgentConfig:
    route_protocol: int
    interface: str
    tenants: Sequence[TenantSpec] = field(default_factory=tuple)


def _parse_int(value: Any, what: str) -> int:
    # bool is an int subclass; YAML reads "true" as one.
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigInvalid(f"invalid {what} '{value}': expected an integer")
    return value


def _parse_ipv4(value: Any, what: str) -> IPv4Address:
    try:
        return IPv4Address(str(value))
    except ValueError as exc:
        raise ConfigInvalid(f"invalid {what} '{value}': {exc}") from exc


def _parse_v6_prefix(value: Any) -> IPv6Address:
    text = str(value)
    if "/" not in text:
        text = f"{text}/64"
    try:
        network = IPv6Network(text)
    except ValueError as exc:
        raise ConfigInvalid(f"invalid v6_prefix '{value}': {exc}") from exc
    if network.prefixlen != 64:
        raise ConfigInvalid(f"v6_prefix '{value}' must be a /64")
    return network.network_address


def _parse_public(value: Any) -> Optional[PublicV4]:
    if value is None:
        return None
    if isinstance(value, list):
        addresses = [_parse_ipv4(v, "v4_public") for v in value]
        return tuple(dict.fromkeys(addresses))
    return _parse_ipv4(value, "v4_public")


def _parse_tenant(entry: Any) -> TenantSpec:
    if not isinstance(entry, dict):
        raise ConfigInvalid("every 'vps' entry must be a mapping")
    try:
        vlan = _parse_int(entry["vlan"], "vlan")
        v4_addr = entry["v4_addr"]
        v6_prefix = entry["v6_prefix"]
    except KeyError as exc:
        raise ConfigInvalid(f"vps entry missing {exc}") from exc

    if not 1 <= vlan <= MAX_VLAN_ID:
        raise ConfigInvalid(f"vlan {vlan} out of range 1-{MAX_VLAN_ID}")

    return TenantSpec(
        vlan=vlan,
        v4_addr=_parse_ipv4(v4_addr, "v4_addr"),
        v4_public=_parse_public(entry.get("v4_public")),
        v6_prefix=_parse_v6_prefix(v6_prefix),
    )


def _parse_tenants(entries: Iterable[Any]) -> List[TenantSpec]:
    tenants: List[TenantSpec] = []
    seen: Set[int] = set()
    for entry in entries:
        tenant = _parse_tenant(entry)
        if tenant.vlan in seen:
            raise ConfigInvalid(f"duplicate vlan {tenant.vlan}")
        seen.add(tenant.vlan)
        tenants.append(tenant)
    return tenants


def parse_config(data: Any) -> AgentConfig:
    if not isinstance(data, dict):
        raise ConfigInvalid("Agent configuration must be a mapping")

    try:
        route_protocol = _parse_int(data["rt_proto"], "rt_proto")
        interface = str(data["interface"])
    except KeyError as exc:
        raise ConfigInvalid(f"Configuration missing {exc}") from exc

    if not 0 <= route_protocol <= MAX_ROUTE_PROTOCOL:
        raise ConfigInvalid(f"rt_proto {route_protocol} out of range 0-{MAX_ROUTE_PROTOCOL}")

    tenants_section = data.get("vps", [])
    if not isinstance(tenants_section, list):
        raise ConfigInvalid("'vps' section must be a list")

    return AgentConfig(
        route_protocol=route_protocol,
        interface=interface,
        tenants=tuple(_parse_tenants(tenants_section)),
    )


def load_config(path: Path) -> AgentConfig:
    try:
        data = yaml.safe_load(Path(path).read_text())
    except OSError as exc:
        raise ConfigInvalid(f"failed to read config file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigInvalid(f"failed to parse config file {path}: {exc}") from exc
    return parse_config(data)


class ConfigStore:
    """Hold the active configuration and swap it atomically on reload."""

    def __init__(self, path: Path, config: AgentConfig) -> None:
        self._path = Path(path)
        self._config = config
        self._lock = Lock()

    @classmethod
    def from_file(cls, path: Path) -> "ConfigStore":
        return cls(path, load_config(path))

    @property
    def path(self) -> Path:
        return self._path

    def get(self) -> AgentConfig:
        with self._lock:
            return self._config

    def reload(self) -> AgentConfig:
        """Re-read the config file.

        Raises :class:`ConfigInvalid` and keeps the current configuration if
        the file cannot be loaded.
        """
        config = load_config(self._path)
        with self._lock:
            self._config = config
        LOG.info("Config reloaded from %s (%d tenants)", self._path, len(config.tenants))
        return config
