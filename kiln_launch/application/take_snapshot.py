"""Use case: capacity snapshot of a resource."""

from __future__ import annotations

from kiln_launch.application.runtime import LaunchScheduler, LaunchSnapshot


class TakeSnapshot:
    def __init__(self, scheduler: LaunchScheduler) -> None:
        self._scheduler = scheduler

    def execute(self, resource_id: str | None = None) -> LaunchSnapshot:
        return self._scheduler.snapshot(resource_id)
