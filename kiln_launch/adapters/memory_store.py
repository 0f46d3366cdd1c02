"""Thread-safe in-memory unit store with version-checked updates."""

from __future__ import annotations

from dataclasses import replace
from threading import RLock
from typing import Any, Iterable

from kiln_launch.domain.errors import NotFound
from kiln_launch.domain.unit import LaunchUnit
from kiln_launch.ports.unit_store import UnitPatch, VersionConflict


class InMemoryUnitStore:
    """Unit store whose only lock guards its own dict, never caller logic."""

    __slots__ = ("_units", "_lock")

    def __init__(self, units: Iterable[LaunchUnit] = ()) -> None:
        self._units: dict[str, LaunchUnit] = {unit.unit_id: unit for unit in units}
        self._lock = RLock()

    def create(self, unit: LaunchUnit) -> str:
        with self._lock:
            if unit.unit_id in self._units:
                raise ValueError(f"Duplicate unit id: {unit.unit_id}")
            self._commit_unlocked(replace(unit, attributes=dict(unit.attributes)))
            return unit.unit_id

    def get(self, unit_id: str) -> LaunchUnit:
        with self._lock:
            return self._copy(self._require_unlocked(unit_id))

    def conditional_update(
        self,
        unit_id: str,
        expected_version: int,
        patch: UnitPatch,
    ) -> LaunchUnit:
        with self._lock:
            current = self._require_unlocked(unit_id)
            if current.version != expected_version:
                raise VersionConflict(unit_id, expected_version, current.version)

            changes: dict[str, Any] = {
                "updated_at": patch.updated_at,
                "version": current.version + 1,
            }
            if patch.status is not None:
                changes["status"] = patch.status
                changes["last_transition_key"] = patch.last_transition_key
            if patch.attributes is not None:
                changes["attributes"] = dict(patch.attributes)

            updated = replace(current, **changes)
            self._commit_unlocked(updated)
            return self._copy(updated)

    def query_by_resource(self, resource_id: str) -> list[LaunchUnit]:
        with self._lock:
            return [
                self._copy(unit)
                for unit in self._units.values()
                if unit.resource_id == resource_id
            ]

    def __len__(self) -> int:
        with self._lock:
            return len(self._units)

    def _commit_unlocked(self, unit: LaunchUnit) -> None:
        self._units[unit.unit_id] = unit

    def _require_unlocked(self, unit_id: str) -> LaunchUnit:
        unit = self._units.get(unit_id)
        if unit is None:
            raise NotFound(f"Unknown unit id: {unit_id}")
        return unit

    @staticmethod
    def _copy(unit: LaunchUnit) -> LaunchUnit:
        return replace(unit, attributes=dict(unit.attributes))
