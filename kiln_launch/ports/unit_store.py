"""Unit store port: CRUD with optimistic concurrency."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from kiln_launch.domain.unit import LaunchUnit, UnitStatus


class VersionConflict(Exception):
    """Conditional update lost: the stored version moved on."""

    def __init__(self, unit_id: str, expected_version: int, actual_version: int) -> None:
        super().__init__(
            f"Unit {unit_id} is at version {actual_version}, expected {expected_version}"
        )
        self.unit_id = unit_id
        self.expected_version = expected_version
        self.actual_version = actual_version


@dataclass(frozen=True, slots=True)
class UnitPatch:
    """Mutable field group of a unit. ``None`` leaves a field unchanged."""

    updated_at: datetime
    status: UnitStatus | None = None
    attributes: dict[str, str] | None = None
    last_transition_key: str | None = None


class UnitStore(Protocol):
    """Port the scheduler reads and writes units through."""

    def create(self, unit: LaunchUnit) -> str:
        """Persist a new unit and return its id."""

    def get(self, unit_id: str) -> LaunchUnit:
        """Return the unit or raise ``NotFound``."""

    def conditional_update(
        self,
        unit_id: str,
        expected_version: int,
        patch: UnitPatch,
    ) -> LaunchUnit:
        """Apply ``patch`` iff the stored version equals ``expected_version``.

        Raises ``VersionConflict`` otherwise and ``NotFound`` for unknown ids.
        Returns the stored unit with its version bumped.
        """

    def query_by_resource(self, resource_id: str) -> list[LaunchUnit]:
        """Return every unit of ``resource_id``, terminal ones included."""
