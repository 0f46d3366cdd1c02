"""Adapters for launch scheduler ports and configuration."""

from kiln_launch.adapters.capacity_config import CapacityConfig, load_capacity_config
from kiln_launch.adapters.json_store import JsonFileUnitStore
from kiln_launch.adapters.memory_store import InMemoryUnitStore
from kiln_launch.adapters.resource_status import StaticResourceStatus

__all__ = [
    "CapacityConfig",
    "InMemoryUnitStore",
    "JsonFileUnitStore",
    "StaticResourceStatus",
    "load_capacity_config",
]
