"""Abstract interface for downstream services fed by the reconciler."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Sequence

from vps_netlink.reconciler import InterfaceAssignment


@dataclass
class RenderResult:
    """Result of a configuration rendering operation."""

    config_text: str
    output_path: Path


class DownstreamService(ABC):
    """A daemon whose configuration is generated from the interface list.

    Subclasses render their configuration text from the per-tenant interface
    assignments and describe how to launch the process.  The process is
    expected to re-read its configuration on ``SIGHUP``.
    """

    name: str = ""

    def __init__(self, binary: Path, config_path: Path) -> None:
        self._binary = Path(binary)
        self._config_path = Path(config_path)

    @property
    def config_path(self) -> Path:
        return self._config_path

    @abstractmethod
    def render(self, assignments: Sequence[InterfaceAssignment]) -> str:
        """Return the configuration text for ``assignments``."""

    @abstractmethod
    def command(self) -> List[str]:
        """Return the argv used to launch the service in the foreground."""

    def environment(self) -> Dict[str, str]:
        return {}

    def write(self, assignments: Sequence[InterfaceAssignment]) -> RenderResult:
        body = self.render(assignments)
        self._config_path.parent.mkdir(parents=True, exist_ok=True)
        self._config_path.write_text(body)
        return RenderResult(config_text=body, output_path=self._config_path)
