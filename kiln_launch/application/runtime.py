"""Application runtime: the launch scheduler's public operation surface."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Mapping

from kiln_launch.adapters.capacity_config import CapacityConfig, load_capacity_config
from kiln_launch.adapters.resource_status import StaticResourceStatus
from kiln_launch.domain.actor import Actor
from kiln_launch.domain.capacity import CapacityReading, measure_capacity
from kiln_launch.domain.errors import Conflict, NotFound, ResourceFrozen, ValidationError
from kiln_launch.domain.lane import PriorityLane
from kiln_launch.domain.queue import ActiveView, build_active_view
from kiln_launch.domain.transitions import (
    TransitionOutcome,
    TransitionRule,
    authorize_notes_edit,
    authorize_transition,
    available_transitions,
)
from kiln_launch.domain.unit import LaunchUnit, UnitStatus, new_unit_id, utc_now
from kiln_launch.ports.resource_status import ResourceStatusPort
from kiln_launch.ports.unit_store import UnitPatch, UnitStore, VersionConflict

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LaunchSnapshot:
    """Read model for one resource, derived fresh on every call."""

    resource_id: str
    capacity: CapacityReading
    lane_totals: dict[PriorityLane, int]
    queued_total: int

    @property
    def ready_launches(self) -> int:
        return self.capacity.ready_launches

    @property
    def current_partial(self) -> int:
        return self.capacity.current_partial

    @property
    def needed_to_fill(self) -> int:
        return self.capacity.needed_to_fill

    @property
    def loaded_total(self) -> int:
        return self.capacity.loaded_total


class LaunchScheduler:
    """Submit, list, transition and snapshot launch units for kiln resources.

    The scheduler keeps no mutable state between calls. Every write is one
    read followed by one conditional update against the store, and a lost
    race surfaces as ``Conflict`` instead of being retried here.
    """

    __slots__ = ("store", "config", "resource_status", "_now_provider")

    def __init__(
        self,
        store: UnitStore,
        *,
        config: CapacityConfig | None = None,
        resource_status: ResourceStatusPort | None = None,
        env_file: str = ".env",
        now_provider: Callable[[], datetime] | None = None,
    ) -> None:
        if config is None:
            config = load_capacity_config(env_file)

        self.store = store
        self.config = config
        self.resource_status: ResourceStatusPort = resource_status or StaticResourceStatus(
            config.frozen_resources
        )
        self._now_provider = now_provider or utc_now

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------
    def submit(
        self,
        *,
        owner_id: str,
        quantity: int,
        priority_lane: PriorityLane | str = PriorityLane.STANDARD,
        resource_id: str | None = None,
        attributes: Mapping[str, object] | None = None,
    ) -> str:
        """Create a queued unit and return its id."""
        owner = owner_id.strip() if isinstance(owner_id, str) else ""
        if not owner:
            raise ValidationError("owner_id is required")

        resource = self.config.normalize_resource(resource_id)
        if not self.config.is_known(resource):
            raise ValidationError(f"Unknown resource: {resource_id!r}")

        target = self.config.target_for(resource)
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise ValidationError(f"quantity must be an integer, got {quantity!r}")
        if quantity < 1 or quantity > target:
            raise ValidationError(f"quantity must be between 1 and {target}, got {quantity}")

        lane = PriorityLane.from_value(priority_lane)
        now = self._now_provider()
        unit = LaunchUnit(
            unit_id=new_unit_id(),
            owner_id=owner,
            resource_id=resource,
            quantity=quantity,
            priority_lane=lane,
            status=UnitStatus.QUEUED,
            attributes=self._clean_attributes(attributes),
            created_at=now,
            updated_at=now,
        )

        unit_id = self.store.create(unit)
        logger.info(
            "Submitted unit %s: owner=%s resource=%s quantity=%d lane=%s",
            unit_id,
            owner,
            resource,
            quantity,
            lane.value,
        )
        return unit_id

    def transition(
        self,
        unit_id: str,
        target_status: UnitStatus | str,
        actor: Actor,
        *,
        idempotency_key: str | None = None,
    ) -> LaunchUnit:
        """Move one unit along a permitted edge and return the stored result."""
        target = UnitStatus.from_value(target_status)
        unit = self.store.get(unit_id)

        outcome = authorize_transition(unit, target, actor, idempotency_key=idempotency_key)
        if outcome is TransitionOutcome.REPLAY:
            logger.debug("Replayed transition of unit %s to %s", unit_id, target.value)
            return unit

        self._require_not_frozen(unit.resource_id)

        patch = UnitPatch(
            updated_at=self._now_provider(),
            status=target,
            last_transition_key=idempotency_key or None,
        )
        updated = self._conditional_update(unit, patch)
        logger.info(
            "Unit %s: %s -> %s by %s %s",
            unit_id,
            unit.status.value,
            target.value,
            actor.role.value,
            actor.actor_id,
        )
        return updated

    def update_notes(self, unit_id: str, notes: str, actor: Actor) -> LaunchUnit:
        """Replace the free-text notes of a non-terminal unit."""
        unit = self.store.get(unit_id)
        authorize_notes_edit(unit, actor)
        self._require_not_frozen(unit.resource_id)
        if not isinstance(notes, str):
            raise ValidationError(f"notes must be a string, got {notes!r}")

        attributes = dict(unit.attributes)
        text = notes.strip()
        if text:
            attributes["notes"] = text
        else:
            attributes.pop("notes", None)

        patch = UnitPatch(updated_at=self._now_provider(), attributes=attributes)
        updated = self._conditional_update(unit, patch)
        logger.info("Unit %s notes updated by %s %s", unit_id, actor.role.value, actor.actor_id)
        return updated

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def get_unit(self, unit_id: str) -> LaunchUnit:
        return self.store.get(unit_id)

    def list_active(self, resource_id: str | None = None) -> ActiveView:
        resource = self._require_resource(resource_id)
        return build_active_view(resource, self.store.query_by_resource(resource))

    def snapshot(self, resource_id: str | None = None) -> LaunchSnapshot:
        view = self.list_active(resource_id)
        reading = measure_capacity(view.loaded_total, self.config.target_for(view.resource_id))
        return LaunchSnapshot(
            resource_id=view.resource_id,
            capacity=reading,
            lane_totals=view.lane_totals,
            queued_total=view.queued_total,
        )

    def capacity_target(self, resource_id: str | None = None) -> int:
        return self.config.target_for(self._require_resource(resource_id))

    def available_transitions(self, unit: LaunchUnit, actor: Actor) -> list[TransitionRule]:
        if self.resource_status.is_frozen(unit.resource_id):
            return []
        return available_transitions(unit, actor)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _conditional_update(self, unit: LaunchUnit, patch: UnitPatch) -> LaunchUnit:
        try:
            return self.store.conditional_update(unit.unit_id, unit.version, patch)
        except VersionConflict as exc:
            logger.warning("Write conflict on unit %s: %s", unit.unit_id, exc)
            raise Conflict(
                f"Unit {unit.unit_id} changed while this request was in flight; reload and retry"
            ) from exc

    def _require_resource(self, resource_id: str | None) -> str:
        resource = self.config.normalize_resource(resource_id)
        if not self.config.is_known(resource):
            raise NotFound(f"Unknown resource: {resource_id!r}")
        return resource

    def _require_not_frozen(self, resource_id: str) -> None:
        if self.resource_status.is_frozen(resource_id):
            raise ResourceFrozen(f"Resource {resource_id!r} is frozen for maintenance")

    @staticmethod
    def _clean_attributes(attributes: Mapping[str, object] | None) -> dict[str, str]:
        if not attributes:
            return {}
        cleaned: dict[str, str] = {}
        for key, value in attributes.items():
            name = str(key).strip()
            if value is None or not name:
                continue
            text = str(value).strip()
            if text:
                cleaned[name] = text
        return cleaned
