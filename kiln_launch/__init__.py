"""Kiln launch scheduler: queue, capacity and lifecycle engine."""

from kiln_launch.application.list_active import ListActive
from kiln_launch.application.runtime import LaunchScheduler, LaunchSnapshot
from kiln_launch.application.submit_unit import SubmitUnit
from kiln_launch.application.take_snapshot import TakeSnapshot
from kiln_launch.application.transition_unit import TransitionUnit
from kiln_launch.application.update_notes import UpdateNotes
from kiln_launch.domain.actor import Actor, ActorRole
from kiln_launch.domain.lane import PriorityLane
from kiln_launch.domain.unit import LaunchUnit, UnitStatus

__all__ = [
    "Actor",
    "ActorRole",
    "LaunchScheduler",
    "LaunchSnapshot",
    "LaunchUnit",
    "ListActive",
    "PriorityLane",
    "SubmitUnit",
    "TakeSnapshot",
    "TransitionUnit",
    "UnitStatus",
    "UpdateNotes",
]
