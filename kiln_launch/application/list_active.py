"""Use case: list active units of a resource."""

from __future__ import annotations

from kiln_launch.application.runtime import LaunchScheduler
from kiln_launch.domain.queue import ActiveView


class ListActive:
    def __init__(self, scheduler: LaunchScheduler) -> None:
        self._scheduler = scheduler

    def execute(self, resource_id: str | None = None) -> ActiveView:
        return self._scheduler.list_active(resource_id)
