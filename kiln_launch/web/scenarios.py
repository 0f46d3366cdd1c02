"""Seed scenarios for demos and manual testing."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Protocol

from kiln_launch.domain.actor import Actor

SCENARIO_STAFF_ID = "studio-staff"


@dataclass(frozen=True, slots=True)
class ScenarioUnit:
    owner_id: str
    display_name: str
    quantity: int
    priority_lane: str
    clay_body: str
    notes: str = ""
    advance_to: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class ScenarioDefinition:
    key: str
    label: str
    description: str
    units: tuple[ScenarioUnit, ...]


class ScenarioFacade(Protocol):
    def submit_unit(
        self,
        *,
        actor: Actor,
        quantity: int,
        priority_lane: str = ...,
        resource_id: str | None = None,
        owner_id: str | None = None,
        attributes: Mapping[str, object] | None = None,
    ) -> dict[str, Any]:
        ...

    def transition_unit(
        self,
        *,
        actor: Actor,
        unit_id: str,
        target_status: str,
        idempotency_key: str | None = None,
    ) -> dict[str, Any]:
        ...

    def publish_info(self, message: str, *, resource_id: str | None = None) -> None:
        ...


_SCENARIOS: dict[str, ScenarioDefinition] = {
    "empty": ScenarioDefinition(
        key="empty",
        label="Empty",
        description="Start with an empty kiln queue.",
        units=(),
    ),
    "studio_week": ScenarioDefinition(
        key="studio_week",
        label="Studio Week",
        description="A partly loaded kiln, a fired batch and both lanes waiting.",
        units=(
            ScenarioUnit("member-ana", "Ana", 1, "expedited", "B-mix", "Needs it for Saturday market."),
            ScenarioUnit("member-ben", "Ben", 2, "standard", "Standard 240"),
            ScenarioUnit("member-cy", "Cy", 1, "standard", "Speckled buff", advance_to=("loaded",)),
            ScenarioUnit("member-dee", "Dee", 2, "expedited", "Porcelain", advance_to=("loaded",)),
            ScenarioUnit(
                "member-eli",
                "Eli",
                4,
                "standard",
                "Stoneware",
                "Tall pieces, top shelf.",
                advance_to=("loaded", "fired"),
            ),
        ),
    ),
}


def available_seed_scenarios() -> list[dict[str, str]]:
    """Return lightweight scenario metadata for settings UI."""

    return [
        {
            "key": scenario.key,
            "label": scenario.label,
            "description": scenario.description,
        }
        for scenario in _SCENARIOS.values()
    ]


def apply_seed_scenario(facade: ScenarioFacade, scenario_name: str) -> str:
    """Populate the store from a named scenario and return the key used."""

    key = (scenario_name or "empty").strip().lower()
    if key not in _SCENARIOS:
        raise KeyError(f"Unknown seed scenario: {scenario_name!r}")

    scenario = _SCENARIOS[key]
    if not scenario.units:
        facade.publish_info("Started with an empty scenario.")
        return key

    staff = Actor.staff(SCENARIO_STAFF_ID)
    for unit in scenario.units:
        dto = facade.submit_unit(
            actor=Actor.member(unit.owner_id),
            quantity=unit.quantity,
            priority_lane=unit.priority_lane,
            attributes={
                "display_name": unit.display_name,
                "clay_body": unit.clay_body,
                "notes": unit.notes,
            },
        )
        for target in unit.advance_to:
            facade.transition_unit(actor=staff, unit_id=str(dto["id"]), target_status=target)

    facade.publish_info(f"Loaded scenario '{scenario.label}'.")
    return key
