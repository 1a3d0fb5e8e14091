"""Exceptions raised by the reconciliation core and the agent."""

from __future__ import annotations

from typing import Any, Optional


class VPSNetlinkError(Exception):
    """Base class for every error raised by this project."""


class NetlinkFailure(VPSNetlinkError):
    """The kernel rejected or could not complete a netlink request.

    ``operation`` is set when the failure happened while applying a planned
    operation so callers can log what was being attempted.
    """

    def __init__(self, message: str, operation: Optional[Any] = None) -> None:
        super().__init__(message)
        self.operation = operation


class InterfaceNotFound(VPSNetlinkError):
    """No link with the requested name exists."""

    def __init__(self, name: str) -> None:
        super().__init__(f"interface '{name}' not found")
        self.name = name


class ConfigInvalid(VPSNetlinkError):
    """The desired-state document could not be read or validated."""
