"""Queue classifier: per-lane views over the units of one resource."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from kiln_launch.domain.lane import PriorityLane
from kiln_launch.domain.unit import LaunchUnit, UnitStatus


@dataclass(frozen=True, slots=True)
class LaneQueue:
    """Queued units of one lane in submission order."""

    lane: PriorityLane
    units: tuple[LaunchUnit, ...]

    @property
    def total(self) -> int:
        return sum_quantity(self.units)

    @property
    def count(self) -> int:
        return len(self.units)


@dataclass(frozen=True, slots=True)
class ActiveView:
    """Everything still in flight for a resource, split by status."""

    resource_id: str
    lanes: dict[PriorityLane, LaneQueue]
    loaded_units: tuple[LaunchUnit, ...]
    fired_units: tuple[LaunchUnit, ...]

    @property
    def loaded_total(self) -> int:
        return sum_quantity(self.loaded_units)

    @property
    def queued_total(self) -> int:
        return sum(queue.total for queue in self.lanes.values())

    @property
    def lane_totals(self) -> dict[PriorityLane, int]:
        return {lane: queue.total for lane, queue in self.lanes.items()}


def sum_quantity(units: Iterable[LaunchUnit]) -> int:
    return sum(unit.quantity for unit in units)


def in_submission_order(units: Iterable[LaunchUnit]) -> list[LaunchUnit]:
    # sorted() is stable, so ties on created_at keep store order.
    return sorted(units, key=lambda unit: unit.created_at)


def classify_queue(units: Iterable[LaunchUnit]) -> dict[PriorityLane, LaneQueue]:
    """Partition queued units into lanes. Every lane is present, even if empty."""

    buckets: dict[PriorityLane, list[LaunchUnit]] = {lane: [] for lane in PriorityLane}
    for unit in in_submission_order(units):
        if unit.status is UnitStatus.QUEUED:
            buckets[unit.priority_lane].append(unit)
    return {lane: LaneQueue(lane=lane, units=tuple(items)) for lane, items in buckets.items()}


def build_active_view(resource_id: str, units: Iterable[LaunchUnit]) -> ActiveView:
    scoped = [unit for unit in in_submission_order(units) if unit.resource_id == resource_id]
    return ActiveView(
        resource_id=resource_id,
        lanes=classify_queue(scoped),
        loaded_units=tuple(u for u in scoped if u.status is UnitStatus.LOADED),
        fired_units=tuple(u for u in scoped if u.status is UnitStatus.FIRED),
    )
