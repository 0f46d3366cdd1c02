"""Use case: edit a unit's notes."""

from __future__ import annotations

from kiln_launch.application.runtime import LaunchScheduler
from kiln_launch.domain.actor import Actor
from kiln_launch.domain.unit import LaunchUnit


class UpdateNotes:
    def __init__(self, scheduler: LaunchScheduler) -> None:
        self._scheduler = scheduler

    def execute(self, unit_id: str, notes: str, actor: Actor) -> LaunchUnit:
        return self._scheduler.update_notes(unit_id, notes, actor)
