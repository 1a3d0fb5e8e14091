"""Entry point for the VPS network agent."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import tempfile
from pathlib import Path
from threading import Event
from typing import List, Optional

from pyroute2 import IPRoute

from vps_netlink.exceptions import ConfigInvalid, VPSNetlinkError

from .config import ConfigStore
from .services import KeaService, RadvdService, ServiceRegistry
from .worker import ReconcileWorker

LOG = logging.getLogger(__name__)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run the VPS network agent")
    parser.add_argument(
        "--config",
        type=Path,
        required=True,
        help="Path to the tenant configuration file (YAML or JSON)",
    )
    parser.add_argument(
        "--radvd",
        type=Path,
        default=Path("/usr/sbin/radvd"),
        help="Path to the radvd binary",
    )
    parser.add_argument(
        "--kea",
        type=Path,
        default=Path("/usr/sbin/kea-dhcp4"),
        help="Path to the kea-dhcp4 binary",
    )
    parser.add_argument(
        "--radvd-config",
        type=Path,
        help="Where to write the generated radvd config (default: temporary file)",
    )
    parser.add_argument(
        "--kea-config",
        type=Path,
        help="Where to write the generated kea config (default: temporary file)",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=5.0,
        help="Seconds between reconciliation ticks",
    )
    parser.add_argument(
        "--reload-delay",
        type=float,
        default=10.0,
        help="Seconds to wait after a change before reloading downstream services",
    )
    parser.add_argument(
        "--restart-delay",
        type=float,
        default=5.0,
        help="Seconds to wait before restarting an exited downstream service",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the planned operations and exit without changing anything",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    return parser


def _temp_config(prefix: str, created: List[Path]) -> Path:
    handle = tempfile.NamedTemporaryFile(prefix=prefix, delete=False)
    handle.close()
    path = Path(handle.name)
    created.append(path)
    return path


def _print_plan(worker: ReconcileWorker) -> int:
    try:
        plan = worker.plan()
    except VPSNetlinkError as exc:
        LOG.error("Failed to compute plan: %s", exc)
        return 1
    for operation in plan.operations:
        print(operation.describe())
    if not plan.operations:
        print("no changes")
    for assignment in plan.assignments:
        print(f"vlan {assignment.tenant.vlan} -> {assignment.name}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    _setup_logging(args.verbose)

    try:
        config_store = ConfigStore.from_file(args.config)
    except ConfigInvalid as exc:
        LOG.error("Unable to load config file: %s", exc)
        return 1
    LOG.info("Config loaded")

    try:
        ipr = IPRoute()
    except OSError as exc:
        LOG.error("Unable to open netlink: %s", exc)
        return 1

    temp_files: List[Path] = []
    stop_event = Event()
    registry = ServiceRegistry()
    registry.register(
        "radvd",
        RadvdService(args.radvd, args.radvd_config or _temp_config("radvd", temp_files)),
    )
    registry.register(
        "kea",
        KeaService(args.kea, args.kea_config or _temp_config("kea", temp_files)),
    )

    worker = ReconcileWorker(
        ipr,
        config_store,
        registry,
        interval=args.interval,
        reload_delay=args.reload_delay,
        stop_event=stop_event,
    )

    try:
        if args.dry_run:
            return _print_plan(worker)
        return _run(args, worker, registry, config_store, stop_event)
    finally:
        ipr.close()
        for path in temp_files:
            path.unlink(missing_ok=True)


def _run(
    args: argparse.Namespace,
    worker: ReconcileWorker,
    registry: ServiceRegistry,
    config_store: ConfigStore,
    stop_event: Event,
) -> int:
    # Nothing to fall back on before the first successful tick.
    try:
        worker.tick(first=True)
    except (VPSNetlinkError, OSError) as exc:
        LOG.error("Failed to run first update: %s", exc)
        return 1

    registry.start(stop_event, args.restart_delay)

    def _reload(signum, frame):  # pragma: no cover - signal handler
        try:
            config_store.reload()
        except ConfigInvalid as exc:
            LOG.error("Config reload failed, keeping previous config: %s", exc)

    def _shutdown(signum, frame):  # pragma: no cover - signal handler
        LOG.info("received signal %s, shutting down", signum)
        stop_event.set()

    signal.signal(signal.SIGHUP, _reload)
    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    worker.start()

    try:
        while not stop_event.is_set():
            stop_event.wait(1.0)
    except KeyboardInterrupt:  # pragma: no cover - fallback if signal not set
        stop_event.set()

    registry.stop()
    registry.join(timeout=args.restart_delay + 5.0)
    worker.join()

    LOG.info("vps agent stopped")
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
