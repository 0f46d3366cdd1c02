"""Transition engine: role-gated status edges for launch units.

The rule table below is the whole state machine. Anything not listed is
rejected with ``InvalidTransition``; a listed edge requested by the wrong
role is rejected with ``Unauthorized``. Checks are pure so the caller can
run them against a freshly read unit and then issue one conditional write.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from kiln_launch.domain.actor import Actor, ActorRole
from kiln_launch.domain.errors import InvalidTransition, Unauthorized
from kiln_launch.domain.unit import LaunchUnit, UnitStatus


@dataclass(frozen=True, slots=True)
class TransitionRule:
    source: UnitStatus
    target: UnitStatus
    roles: frozenset[ActorRole]
    owner_allowed: bool = False
    action: str = ""

    def permits(self, actor: Actor, owner_id: str) -> bool:
        if actor.role in self.roles:
            return True
        return self.owner_allowed and actor.owns(owner_id)


_STAFF = frozenset({ActorRole.STAFF})

TRANSITION_RULES: tuple[TransitionRule, ...] = (
    TransitionRule(UnitStatus.QUEUED, UnitStatus.LOADED, _STAFF, action="Load"),
    TransitionRule(UnitStatus.QUEUED, UnitStatus.CANCELLED, _STAFF, owner_allowed=True, action="Cancel"),
    TransitionRule(UnitStatus.LOADED, UnitStatus.FIRED, _STAFF, action="Mark fired"),
    TransitionRule(UnitStatus.LOADED, UnitStatus.QUEUED, _STAFF, action="Unload"),
    TransitionRule(UnitStatus.FIRED, UnitStatus.COMPLETE, _STAFF, action="Complete"),
)

_RULES_BY_EDGE: dict[tuple[UnitStatus, UnitStatus], TransitionRule] = {
    (rule.source, rule.target): rule for rule in TRANSITION_RULES
}


class TransitionOutcome(str, Enum):
    APPLY = "apply"
    REPLAY = "replay"


def rule_for(source: UnitStatus, target: UnitStatus) -> TransitionRule | None:
    return _RULES_BY_EDGE.get((source, target))


def available_transitions(unit: LaunchUnit, actor: Actor) -> list[TransitionRule]:
    """Edges out of the unit's current status that ``actor`` may take."""
    return [
        rule
        for rule in TRANSITION_RULES
        if rule.source is unit.status and rule.permits(actor, unit.owner_id)
    ]


def authorize_transition(
    unit: LaunchUnit,
    target: UnitStatus,
    actor: Actor,
    *,
    idempotency_key: str | None = None,
) -> TransitionOutcome:
    """Decide whether ``actor`` may move ``unit`` to ``target``.

    A request for the status the unit already has is a replay only when it
    carries the idempotency key recorded with the last accepted transition,
    and only for an actor who could have made a transition into that status.
    """

    if target is unit.status:
        if idempotency_key and idempotency_key == unit.last_transition_key:
            if not any(
                rule.target is target and rule.permits(actor, unit.owner_id)
                for rule in TRANSITION_RULES
            ):
                raise Unauthorized(
                    f"{actor.role.value} {actor.actor_id!r} may not move unit {unit.unit_id} "
                    f"to {target.value}"
                )
            return TransitionOutcome.REPLAY
        raise InvalidTransition(
            f"Unit {unit.unit_id} is already {unit.status.value}"
        )

    rule = rule_for(unit.status, target)
    if rule is None:
        raise InvalidTransition(
            f"Cannot move unit {unit.unit_id} from {unit.status.value} to {target.value}"
        )

    if not rule.permits(actor, unit.owner_id):
        raise Unauthorized(
            f"{actor.role.value} {actor.actor_id!r} may not move unit {unit.unit_id} "
            f"from {unit.status.value} to {target.value}"
        )

    return TransitionOutcome.APPLY


def authorize_notes_edit(unit: LaunchUnit, actor: Actor) -> None:
    if unit.is_terminal:
        raise InvalidTransition(
            f"Unit {unit.unit_id} is {unit.status.value}; notes are closed"
        )
    if not (actor.is_staff or actor.owns(unit.owner_id)):
        raise Unauthorized(
            f"{actor.role.value} {actor.actor_id!r} may not edit notes on unit {unit.unit_id}"
        )
