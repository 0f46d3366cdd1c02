"""Ports the launch scheduler depends on."""

from kiln_launch.ports.resource_status import ResourceStatusPort
from kiln_launch.ports.unit_store import UnitPatch, UnitStore, VersionConflict

__all__ = ["ResourceStatusPort", "UnitPatch", "UnitStore", "VersionConflict"]
