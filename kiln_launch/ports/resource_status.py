"""Resource status port: frozen/maintenance flag owned outside the engine."""

from __future__ import annotations

from typing import Protocol


class ResourceStatusPort(Protocol):
    def is_frozen(self, resource_id: str) -> bool:
        """Return True while the resource refuses status transitions."""
