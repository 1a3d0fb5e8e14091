"""VPS network agent runtime helpers."""

from .config import AgentConfig, ConfigStore, load_config  # noqa: F401

__all__ = [
    "AgentConfig",
    "ConfigStore",
    "load_config",
]
