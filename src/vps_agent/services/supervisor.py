"""Keep a downstream service process running."""

from __future__ import annotations

import logging
import os
import signal
import subprocess
from threading import Event, Lock, Thread
from typing import Any, Callable, Optional

from .base import DownstreamService

LOG = logging.getLogger(__name__)


class ProcessSupervisor(Thread):
    """Run ``service`` in the foreground and restart it whenever it exits.

    The process is (re)started ``restart_delay`` seconds after the previous
    run ended or failed to spawn.  There is no retry limit and no backoff.
    """

    def __init__(
        self,
        service: DownstreamService,
        restart_delay: float,
        stop_event: Event,
        popen: Callable[..., Any] = subprocess.Popen,
    ) -> None:
        super().__init__(daemon=True, name=f"supervisor-{service.name}")
        self._service = service
        self._restart_delay = restart_delay
        self._stop_event = stop_event
        self._popen = popen
        self._process: Optional[Any] = None
        self._lock = Lock()

    @property
    def pid(self) -> Optional[int]:
        with self._lock:
            return self._process.pid if self._process is not None else None

    def run(self) -> None:
        while not self._stop_event.wait(self._restart_delay):
            self.run_once()

    def run_once(self) -> Optional[int]:
        """Start the process and block until it exits; return its exit code.

        Returns ``None`` if the process could not be spawned or shutdown was
        already requested.
        """
        name = self._service.name
        env = dict(os.environ)
        env.update(self._service.environment())
        # The stop check and the spawn share the lock with terminate(), so a
        # child started here is always visible to it.
        with self._lock:
            if self._stop_event.is_set():
                return None
            LOG.info("Starting %s", name)
            try:
                process = self._popen(self._service.command(), env=env)
            except OSError as exc:
                LOG.error("Failed to start %s: %s", name, exc)
                return None
            self._process = process
        try:
            code = process.wait()
        finally:
            with self._lock:
                self._process = None

        if code != 0:
            LOG.warning("%s exited with code: %s", name, code)
        return code

    def send_reload(self) -> bool:
        """Ask the running process to reload its configuration via SIGHUP."""
        with self._lock:
            process = self._process
        if process is None:
            LOG.debug("%s is not running, skipping reload", self._service.name)
            return False
        try:
            process.send_signal(signal.SIGHUP)
        except OSError as exc:
            LOG.warning("Failed to reload %s: %s", self._service.name, exc)
            return False
        return True

    def terminate(self) -> None:
        with self._lock:
            process = self._process
        if process is not None:
            LOG.info("Stopping %s", self._service.name)
            try:
                process.terminate()
            except OSError as exc:
                LOG.warning("Failed to stop %s: %s", self._service.name, exc)
