"""Domain entities and pure engines for kiln launch scheduling."""

from kiln_launch.domain.actor import Actor, ActorRole
from kiln_launch.domain.capacity import CapacityReading, LoadState, measure_capacity
from kiln_launch.domain.errors import (
    Conflict,
    InvalidTransition,
    NotFound,
    ResourceFrozen,
    SchedulerError,
    StoreUnavailable,
    Unauthorized,
    ValidationError,
)
from kiln_launch.domain.lane import PriorityLane
from kiln_launch.domain.queue import ActiveView, LaneQueue, build_active_view, classify_queue
from kiln_launch.domain.transitions import (
    TRANSITION_RULES,
    TransitionOutcome,
    TransitionRule,
    authorize_transition,
    available_transitions,
)
from kiln_launch.domain.unit import LaunchUnit, UnitStatus

__all__ = [
    "Actor",
    "ActorRole",
    "ActiveView",
    "CapacityReading",
    "Conflict",
    "InvalidTransition",
    "LaneQueue",
    "LaunchUnit",
    "LoadState",
    "NotFound",
    "PriorityLane",
    "ResourceFrozen",
    "SchedulerError",
    "StoreUnavailable",
    "TRANSITION_RULES",
    "TransitionOutcome",
    "TransitionRule",
    "Unauthorized",
    "UnitStatus",
    "ValidationError",
    "authorize_transition",
    "available_transitions",
    "build_active_view",
    "classify_queue",
    "measure_capacity",
]
