"""Web-facing facade: JSON-ready commands, queries and diagnostics."""

from __future__ import annotations

from datetime import datetime, timezone
from threading import RLock
from typing import Any, Callable, Mapping, TypeVar

from kiln_launch.application.runtime import LaunchScheduler, LaunchSnapshot
from kiln_launch.domain.actor import Actor, ActorRole
from kiln_launch.domain.errors import Unauthorized, ValidationError
from kiln_launch.domain.lane import PriorityLane
from kiln_launch.domain.queue import ActiveView, LaneQueue
from kiln_launch.domain.transitions import TRANSITION_RULES
from kiln_launch.domain.unit import LaunchUnit, UnitStatus
from kiln_launch.web.contract import CONTRACT_VERSION, ServiceMetadata
from kiln_launch.web.events import EventHub, LaunchEvent
from kiln_launch.web.scenarios import available_seed_scenarios


T = TypeVar("T")


def format_quantity_label(quantity: int) -> str:
    return f"{quantity} half shelf" if quantity == 1 else f"{quantity} half shelves"


class LaunchWebFacade:
    """Facade that isolates transports from scheduler types."""

    __slots__ = (
        "_scheduler",
        "_event_hub",
        "_lock",
        "_last_successful_command_at",
        "_last_command_error",
    )

    def __init__(self, scheduler: LaunchScheduler, event_hub: EventHub) -> None:
        self._scheduler = scheduler
        self._event_hub = event_hub
        self._lock = RLock()
        self._last_successful_command_at: datetime | None = None
        self._last_command_error: str | None = None

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------
    def submit_unit(
        self,
        *,
        actor: Actor,
        quantity: int,
        priority_lane: str = PriorityLane.STANDARD.value,
        resource_id: str | None = None,
        owner_id: str | None = None,
        attributes: Mapping[str, object] | None = None,
    ) -> dict[str, Any]:
        def _submit() -> dict[str, Any]:
            owner = owner_id or actor.actor_id
            if owner != actor.actor_id and not actor.is_staff:
                raise Unauthorized("Only staff may submit on behalf of another member")
            if not str((attributes or {}).get("clay_body") or "").strip():
                raise ValidationError("Please include the clay body.")
            unit_id = self._scheduler.submit(
                owner_id=owner,
                quantity=quantity,
                priority_lane=priority_lane,
                resource_id=resource_id,
                attributes=attributes,
            )
            unit = self._scheduler.get_unit(unit_id)
            self._event_hub.publish(
                event_type="unit_submitted",
                message=(
                    f"{unit.display_name or 'Member'} queued "
                    f"{format_quantity_label(unit.quantity)} ({unit.priority_lane.label})."
                ),
                resource_id=unit.resource_id,
                unit_id=unit.unit_id,
                source="facade",
            )
            return self._serialize_unit(unit, actor=actor)

        return self._run_command(_submit)

    def transition_unit(
        self,
        *,
        actor: Actor,
        unit_id: str,
        target_status: str,
        idempotency_key: str | None = None,
    ) -> dict[str, Any]:
        def _transition() -> dict[str, Any]:
            before = self._scheduler.get_unit(unit_id)
            unit = self._scheduler.transition(
                unit_id,
                target_status,
                actor,
                idempotency_key=idempotency_key,
            )
            if unit.version != before.version:
                self._event_hub.publish(
                    event_type="unit_transitioned",
                    message=(
                        f"{format_quantity_label(unit.quantity)} moved from "
                        f"{before.status.label.lower()} to {unit.status.label.lower()}."
                    ),
                    resource_id=unit.resource_id,
                    unit_id=unit.unit_id,
                    source="facade",
                )
            return self._serialize_unit(unit, actor=actor)

        return self._run_command(_transition)

    def update_notes(self, *, actor: Actor, unit_id: str, notes: str) -> dict[str, Any]:
        def _update() -> dict[str, Any]:
            unit = self._scheduler.update_notes(unit_id, notes, actor)
            self._event_hub.publish(
                event_type="unit_notes_updated",
                message="Notes updated.",
                resource_id=unit.resource_id,
                unit_id=unit.unit_id,
                source="facade",
            )
            return self._serialize_unit(unit, actor=actor)

        return self._run_command(_update)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def get_unit(self, *, unit_id: str, actor: Actor | None = None) -> dict[str, Any]:
        return self._serialize_unit(self._scheduler.get_unit(unit_id), actor=actor)

    def list_active(
        self,
        *,
        resource_id: str | None = None,
        actor: Actor | None = None,
    ) -> dict[str, Any]:
        view = self._scheduler.list_active(resource_id)
        return self._serialize_active(view, actor=actor)

    def snapshot(self, *, resource_id: str | None = None) -> dict[str, Any]:
        return self._serialize_snapshot(self._scheduler.snapshot(resource_id))

    def list_events(
        self,
        *,
        limit: int = 200,
        resource_id: str | None = None,
    ) -> list[dict[str, Any]]:
        events = self._event_hub.list_recent(limit=limit, resource_id=resource_id)
        return [self._serialize_event(event) for event in events]

    def subscribe_events(
        self,
        *,
        after_event_id: int | None = None,
        resource_id: str | None = None,
    ) -> int:
        return self._event_hub.subscribe(after_event_id=after_event_id, resource_id=resource_id)

    def unsubscribe_events(self, subscriber_id: int) -> None:
        self._event_hub.unsubscribe(subscriber_id)

    def next_event(self, subscriber_id: int, *, timeout_seconds: float | None = None) -> dict[str, Any] | None:
        event = self._event_hub.next_event(subscriber_id, timeout_seconds=timeout_seconds)
        if event is None:
            return None
        return self._serialize_event(event)

    def app_settings(self) -> dict[str, Any]:
        config = self._scheduler.config
        return {
            "default_resource": config.default_resource,
            "resources": [
                {
                    "id": resource_id,
                    "capacity_target": config.target_for(resource_id),
                    "frozen": self._scheduler.resource_status.is_frozen(resource_id),
                }
                for resource_id in config.known_resources
            ],
            "priority_lanes": [{"value": lane.value, "label": lane.label} for lane in PriorityLane],
            "statuses": [{"value": status.value, "label": status.label} for status in UnitStatus],
            "roles": [role.value for role in ActorRole],
            "transitions": [
                {
                    "from": rule.source.value,
                    "to": rule.target.value,
                    "roles": sorted(role.value for role in rule.roles),
                    "owner_allowed": rule.owner_allowed,
                    "action": rule.action,
                }
                for rule in TRANSITION_RULES
            ],
            "seed_scenarios": available_seed_scenarios(),
        }

    def diagnostics(
        self,
        *,
        metadata: ServiceMetadata,
        base_url: str,
        event_stream_status: str,
        event_stream_active_clients: int,
        event_stream_retried_writes: int,
        event_stream_dropped_clients: int,
    ) -> dict[str, Any]:
        with self._lock:
            last_event = self._event_hub.last_event
            last_event_timestamp = self._iso(last_event.timestamp) if last_event else None
            lag_ms = None
            if last_event is not None:
                lag_ms = int((self._wall_now() - last_event.timestamp).total_seconds() * 1000)

            return {
                "service_name": metadata.name,
                "service_version": metadata.version,
                "contract_version": CONTRACT_VERSION,
                "base_url": base_url,
                "event_stream_status": event_stream_status,
                "event_stream_active_clients": event_stream_active_clients,
                "last_event_timestamp": last_event_timestamp,
                "event_lag_ms": lag_ms,
                "last_successful_command_time": self._iso(self._last_successful_command_at),
                "last_command_error": self._last_command_error,
                "dropped_event_count": self._event_hub.dropped_event_count,
                "event_stream_dropped_clients": event_stream_dropped_clients,
                "event_stream_retried_writes": event_stream_retried_writes,
            }

    def metadata(self, *, metadata: ServiceMetadata, base_url: str) -> dict[str, Any]:
        return {
            "name": metadata.name,
            "version": metadata.version,
            "capabilities": list(metadata.capabilities),
            "contract_version": CONTRACT_VERSION,
            "base_url": base_url,
        }

    def publish_info(self, message: str, *, resource_id: str | None = None) -> None:
        self._event_hub.publish(
            event_type="info",
            message=message,
            resource_id=resource_id,
            source="facade",
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _run_command(self, callback: Callable[[], T]) -> T:
        # Bookkeeping only; the command itself runs without this lock held.
        try:
            result = callback()
        except Exception as exc:
            with self._lock:
                self._last_command_error = str(exc)
            raise
        with self._lock:
            self._last_successful_command_at = self._wall_now()
            self._last_command_error = None
        return result

    def _serialize_unit(self, unit: LaunchUnit, *, actor: Actor | None = None) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": unit.unit_id,
            "owner_id": unit.owner_id,
            "resource_id": unit.resource_id,
            "quantity": unit.quantity,
            "quantity_label": format_quantity_label(unit.quantity),
            "priority_lane": unit.priority_lane.value,
            "priority_lane_label": unit.priority_lane.label,
            "status": unit.status.value,
            "status_label": unit.status.label,
            "display_name": unit.display_name or None,
            "notes": unit.notes or None,
            "attributes": dict(unit.attributes),
            "created_at": self._iso(unit.created_at),
            "updated_at": self._iso(unit.updated_at),
            "version": unit.version,
        }
        if actor is not None:
            payload["actions"] = [
                {"target_status": rule.target.value, "label": rule.action}
                for rule in self._scheduler.available_transitions(unit, actor)
            ]
        return payload

    def _serialize_lane(self, queue: LaneQueue, *, actor: Actor | None) -> dict[str, Any]:
        return {
            "lane": queue.lane.value,
            "label": queue.lane.label,
            "total": queue.total,
            "total_label": format_quantity_label(queue.total),
            "count": queue.count,
            "units": [self._serialize_unit(unit, actor=actor) for unit in queue.units],
        }

    def _serialize_active(self, view: ActiveView, *, actor: Actor | None) -> dict[str, Any]:
        return {
            "resource_id": view.resource_id,
            "lanes": [self._serialize_lane(queue, actor=actor) for queue in view.lanes.values()],
            "loaded_units": [self._serialize_unit(unit, actor=actor) for unit in view.loaded_units],
            "fired_units": [self._serialize_unit(unit, actor=actor) for unit in view.fired_units],
            "loaded_total": view.loaded_total,
            "queued_total": view.queued_total,
        }

    @staticmethod
    def _serialize_snapshot(snapshot: LaunchSnapshot) -> dict[str, Any]:
        capacity = snapshot.capacity
        return {
            "resource_id": snapshot.resource_id,
            "capacity_target": capacity.capacity_target,
            "loaded_total": capacity.loaded_total,
            "ready_launches": capacity.ready_launches,
            "current_partial": capacity.current_partial,
            "needed_to_fill": capacity.needed_to_fill,
            "filled_slots": capacity.filled_slots,
            "slots": list(capacity.slots),
            "load_state": capacity.load_state.value,
            "load_state_label": capacity.load_state.label,
            "lane_totals": {lane.value: total for lane, total in snapshot.lane_totals.items()},
            "queued_total": snapshot.queued_total,
        }

    @staticmethod
    def _serialize_event(event: LaunchEvent) -> dict[str, Any]:
        return {
            "event_id": event.event_id,
            "event_type": event.event_type,
            "message": event.message,
            "timestamp": event.timestamp.isoformat(),
            "resource_id": event.resource_id,
            "unit_id": event.unit_id,
            "source": event.source,
        }

    @staticmethod
    def _iso(value: datetime | None) -> str | None:
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat()

    @staticmethod
    def _wall_now() -> datetime:
        return datetime.now(timezone.utc)
