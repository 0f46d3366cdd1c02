"""Use case: move a unit along its lifecycle."""

from __future__ import annotations

from kiln_launch.application.runtime import LaunchScheduler
from kiln_launch.domain.actor import Actor
from kiln_launch.domain.unit import LaunchUnit, UnitStatus


class TransitionUnit:
    def __init__(self, scheduler: LaunchScheduler) -> None:
        self._scheduler = scheduler

    def execute(
        self,
        unit_id: str,
        target_status: UnitStatus | str,
        actor: Actor,
        *,
        idempotency_key: str | None = None,
    ) -> LaunchUnit:
        return self._scheduler.transition(
            unit_id,
            target_status,
            actor,
            idempotency_key=idempotency_key,
        )
