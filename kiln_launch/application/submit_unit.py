"""Use case: submit a launch unit."""

from __future__ import annotations

from typing import Mapping

from kiln_launch.application.runtime import LaunchScheduler
from kiln_launch.domain.lane import PriorityLane


class SubmitUnit:
    """Application use case for members queueing capacity."""

    def __init__(self, scheduler: LaunchScheduler) -> None:
        self._scheduler = scheduler

    def execute(
        self,
        *,
        owner_id: str,
        quantity: int,
        priority_lane: PriorityLane | str = PriorityLane.STANDARD,
        resource_id: str | None = None,
        attributes: Mapping[str, object] | None = None,
    ) -> str:
        return self._scheduler.submit(
            owner_id=owner_id,
            quantity=quantity,
            priority_lane=priority_lane,
            resource_id=resource_id,
            attributes=attributes,
        )
