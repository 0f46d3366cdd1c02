"""JSON-file unit store: the in-memory store plus atomic persistence."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from kiln_launch.adapters.memory_store import InMemoryUnitStore
from kiln_launch.domain.errors import StoreUnavailable, ValidationError
from kiln_launch.domain.lane import PriorityLane
from kiln_launch.domain.unit import LaunchUnit, UnitStatus

logger = logging.getLogger(__name__)

UNITS_FILENAME = "launch_units.json"


class JsonFileUnitStore(InMemoryUnitStore):
    """Keeps every unit in one JSON file, rewritten on each accepted write.

    A write is staged, flushed to a temp file and moved into place before
    the in-memory view changes, so a failed write leaves both untouched.
    """

    __slots__ = ("_path",)

    def __init__(self, data_dir: str | Path) -> None:
        directory = Path(data_dir).expanduser().resolve()
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StoreUnavailable(f"Cannot create data dir {directory}: {exc}") from exc

        self._path = directory / UNITS_FILENAME
        super().__init__(self._load_units(self._path))
        logger.info("Unit store ready at %s (%d units)", self._path, len(self))

    @property
    def path(self) -> Path:
        return self._path

    def _commit_unlocked(self, unit: LaunchUnit) -> None:
        staged = dict(self._units)
        staged[unit.unit_id] = unit
        payload = [self._serialize_unit(item) for item in staged.values()]
        try:
            self._write_json_atomic(self._path, payload)
        except OSError as exc:
            logger.error("Failed to persist unit %s: %s", unit.unit_id, exc)
            raise StoreUnavailable(f"Unit store write failed: {exc}") from exc
        self._units = staged

    @classmethod
    def _load_units(cls, path: Path) -> list[LaunchUnit]:
        if not path.exists():
            return []
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise StoreUnavailable(f"Cannot read unit store {path}: {exc}") from exc
        if not isinstance(data, list):
            raise StoreUnavailable(f"Unit store {path} does not hold a list")

        units: list[LaunchUnit] = []
        for row in data:
            if not isinstance(row, dict):
                continue
            unit = cls._deserialize_unit(row)
            if unit is None:
                logger.warning("Skipping malformed unit row: %r", row.get("id"))
                continue
            units.append(unit)
        return units

    @staticmethod
    def _serialize_unit(unit: LaunchUnit) -> dict[str, Any]:
        return {
            "id": unit.unit_id,
            "owner_id": unit.owner_id,
            "resource_id": unit.resource_id,
            "quantity": unit.quantity,
            "priority_lane": unit.priority_lane.value,
            "status": unit.status.value,
            "attributes": dict(unit.attributes),
            "created_at": unit.created_at.isoformat(),
            "updated_at": unit.updated_at.isoformat(),
            "version": unit.version,
            "last_transition_key": unit.last_transition_key,
        }

    @classmethod
    def _deserialize_unit(cls, row: dict[str, Any]) -> LaunchUnit | None:
        unit_id = str(row.get("id", "")).strip()
        owner_id = str(row.get("owner_id", "")).strip()
        resource_id = str(row.get("resource_id", "")).strip()
        quantity = row.get("quantity")
        version = row.get("version", 1)
        if not unit_id or not owner_id or not resource_id:
            return None
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            return None
        if not isinstance(version, int) or version < 1:
            return None

        try:
            lane = PriorityLane.from_value(str(row.get("priority_lane", "")))
            status = UnitStatus.from_value(str(row.get("status", "")))
        except ValidationError:
            return None

        created_at = cls._parse_iso_datetime(row.get("created_at"))
        updated_at = cls._parse_iso_datetime(row.get("updated_at"))
        if created_at is None:
            return None

        raw_attributes = row.get("attributes")
        attributes: dict[str, str] = {}
        if isinstance(raw_attributes, dict):
            attributes = {str(key): str(value) for key, value in raw_attributes.items()}

        key = row.get("last_transition_key")
        return LaunchUnit(
            unit_id=unit_id,
            owner_id=owner_id,
            resource_id=resource_id,
            quantity=quantity,
            priority_lane=lane,
            status=status,
            attributes=attributes,
            created_at=created_at,
            updated_at=updated_at or created_at,
            version=version,
            last_transition_key=key if isinstance(key, str) else None,
        )

    @staticmethod
    def _write_json_atomic(path: Path, payload: Any) -> None:
        serialized = json.dumps(payload, indent=2, sort_keys=True)
        temp_path = path.with_suffix(f"{path.suffix}.tmp")
        temp_path.write_text(serialized, encoding="utf-8")
        temp_path.replace(path)

    @staticmethod
    def _parse_iso_datetime(value: object) -> datetime | None:
        if not isinstance(value, str):
            return None
        text = value.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = f"{text[:-1]}+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
