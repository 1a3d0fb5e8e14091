"""Registry dispatching rendered interface lists to downstream services."""

from __future__ import annotations

import logging
from threading import Event
from typing import Dict, List, Optional, Sequence

from vps_netlink.reconciler import InterfaceAssignment

from .base import DownstreamService, RenderResult
from .supervisor import ProcessSupervisor

LOG = logging.getLogger(__name__)


class ServiceRegistry:
    """Render, supervise and reload the registered downstream services."""

    def __init__(self) -> None:
        self._services: Dict[str, DownstreamService] = {}
        self._supervisors: Dict[str, ProcessSupervisor] = {}

    def register(self, name: str, service: DownstreamService) -> None:
        if name in self._services:
            raise ValueError(f"service '{name}' already registered")
        self._services[name] = service

    def unregister(self, name: str) -> None:
        self._services.pop(name, None)

    @property
    def services(self) -> Dict[str, DownstreamService]:
        return dict(self._services)

    def render(self, assignments: Sequence[InterfaceAssignment]) -> List[RenderResult]:
        results = []
        for name, service in self._services.items():
            result = service.write(assignments)
            LOG.info("Rendered %s config to %s", name, result.output_path)
            results.append(result)
        return results

    def start(self, stop_event: Event, restart_delay: float) -> None:
        for name, service in self._services.items():
            supervisor = ProcessSupervisor(service, restart_delay, stop_event)
            supervisor.start()
            self._supervisors[name] = supervisor

    def reload(self) -> None:
        for supervisor in self._supervisors.values():
            supervisor.send_reload()

    def stop(self) -> None:
        for supervisor in self._supervisors.values():
            supervisor.terminate()

    def join(self, timeout: Optional[float] = None) -> None:
        for name, supervisor in self._supervisors.items():
            supervisor.join(timeout)
            if supervisor.is_alive():
                LOG.warning("Supervisor for %s did not stop in time", name)
