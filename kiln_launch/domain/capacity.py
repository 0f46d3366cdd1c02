"""Capacity meter: turns the loaded total into launch-readiness signals."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class LoadState(str, Enum):
    AWAITING = "awaiting"
    LOADING = "loading"
    READY = "ready"

    @property
    def label(self) -> str:
        return {
            LoadState.AWAITING: "Awaiting pieces",
            LoadState.LOADING: "Loading",
            LoadState.READY: "Ready to launch",
        }[self]


@dataclass(frozen=True, slots=True)
class CapacityReading:
    capacity_target: int
    loaded_total: int
    ready_launches: int
    current_partial: int
    needed_to_fill: int
    load_state: LoadState

    @property
    def filled_slots(self) -> int:
        return min(self.current_partial, self.capacity_target)

    @property
    def slots(self) -> tuple[bool, ...]:
        """One flag per capacity unit of the batch being assembled."""
        filled = self.filled_slots
        return tuple(index < filled for index in range(self.capacity_target))


def measure_capacity(loaded_total: int, capacity_target: int) -> CapacityReading:
    """Derive readiness from ``loaded_total``. Pure; nothing is persisted.

    A positive exact multiple of the target reports a full partial rather
    than an empty one: that batch is ready to launch, not empty.
    """

    if capacity_target < 1:
        raise ValueError("capacity_target must be >= 1")
    if loaded_total < 0:
        raise ValueError("loaded_total must be >= 0")

    ready_launches = loaded_total // capacity_target
    remainder = loaded_total % capacity_target
    current_partial = capacity_target if loaded_total > 0 and remainder == 0 else remainder

    if loaded_total == 0:
        load_state = LoadState.AWAITING
    elif remainder == 0:
        load_state = LoadState.READY
    else:
        load_state = LoadState.LOADING

    return CapacityReading(
        capacity_target=capacity_target,
        loaded_total=loaded_total,
        ready_launches=ready_launches,
        current_partial=current_partial,
        needed_to_fill=capacity_target - min(current_partial, capacity_target),
        load_state=load_state,
    )
