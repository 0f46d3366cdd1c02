"""Application use cases for the launch scheduler."""

from kiln_launch.application.list_active import ListActive
from kiln_launch.application.runtime import LaunchScheduler, LaunchSnapshot
from kiln_launch.application.submit_unit import SubmitUnit
from kiln_launch.application.take_snapshot import TakeSnapshot
from kiln_launch.application.transition_unit import TransitionUnit
from kiln_launch.application.update_notes import UpdateNotes

__all__ = [
    "LaunchScheduler",
    "LaunchSnapshot",
    "ListActive",
    "SubmitUnit",
    "TakeSnapshot",
    "TransitionUnit",
    "UpdateNotes",
]
