"""Periodic reconciliation of the kernel state."""

from __future__ import annotations

import logging
from functools import partial
from threading import Event, Thread
from typing import Any, Optional

from vps_netlink.applier import apply
from vps_netlink.collector import collect, resolve_interface_index
from vps_netlink.exceptions import NetlinkFailure, VPSNetlinkError
from vps_netlink.reconciler import Plan, reconcile

from .config import AgentConfig, ConfigStore
from .services import ServiceRegistry

LOG = logging.getLogger(__name__)


class ReconcileWorker(Thread):
    """Run collect, reconcile and apply every ``interval`` seconds.

    After a tick that changed something the worker waits ``reload_delay``
    seconds and then asks every downstream service to reload.
    """

    def __init__(
        self,
        ipr: Any,
        config_store: ConfigStore,
        services: ServiceRegistry,
        interval: float,
        reload_delay: float,
        stop_event: Event,
    ) -> None:
        super().__init__(daemon=True, name="reconcile")
        self._ipr = ipr
        self._config_store = config_store
        self._services = services
        self._interval = interval
        self._reload_delay = reload_delay
        self._stop_event = stop_event

    def run(self) -> None:
        while not self._stop_event.wait(self._interval):
            try:
                updated = self.tick()
            except VPSNetlinkError as exc:
                self._log_failure(exc)
                continue
            except Exception:  # pragma: no cover - logged below
                LOG.exception("reconciliation tick encountered an error")
                continue
            if updated and not self._stop_event.wait(self._reload_delay):
                self._services.reload()

    def plan(self, config: Optional[AgentConfig] = None) -> Plan:
        """Collect the kernel state and diff it against ``config``."""
        if config is None:
            config = self._config_store.get()
        state = collect(self._ipr, config.route_protocol)
        return reconcile(
            state,
            config.tenants,
            config.interface,
            partial(resolve_interface_index, self._ipr),
        )

    def tick(self, first: bool = False) -> bool:
        """Reconcile once; return ``True`` if operations were applied or configs rendered.

        The configuration is read once at the start so a concurrent reload
        never changes it halfway through a tick.
        """
        config = self._config_store.get()
        plan = self.plan(config)

        if not plan.operations and not first:
            LOG.debug("kernel state already matches %d tenants", len(config.tenants))
            return False

        LOG.info("Updating interfaces (%d operations)", len(plan.operations))
        apply(self._ipr, plan.operations, config.route_protocol)
        self._services.render(plan.assignments)
        return True

    @staticmethod
    def _log_failure(exc: VPSNetlinkError) -> None:
        if isinstance(exc, NetlinkFailure) and exc.operation is not None:
            LOG.error("Failed to run update at '%s': %s", exc.operation.describe(), exc)
        else:
            LOG.error("Failed to run update: %s", exc)
