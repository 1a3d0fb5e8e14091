"""Downstream services configured from the reconciled interface set."""

from .base import DownstreamService, RenderResult  # noqa: F401
from .kea import KeaService  # noqa: F401
from .radvd import RadvdService  # noqa: F401
from .registry import ServiceRegistry  # noqa: F401
from .supervisor import ProcessSupervisor  # noqa: F401

__all__ = [
    "DownstreamService",
    "KeaService",
    "ProcessSupervisor",
    "RadvdService",
    "RenderResult",
    "ServiceRegistry",
]
