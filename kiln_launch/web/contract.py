"""Web service contract metadata."""

from __future__ import annotations

from dataclasses import dataclass


CONTRACT_VERSION = "1.0.0"


@dataclass(frozen=True, slots=True)
class ServiceMetadata:
    """Identity and capability metadata reported by the HTTP service."""

    name: str = "kiln-launch-http"
    version: str = "1.0.0"
    capabilities: tuple[str, ...] = ("units", "snapshot", "events")
