"""LaunchUnit domain entity: one member's slice of kiln capacity."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from kiln_launch.domain.errors import ValidationError
from kiln_launch.domain.lane import PriorityLane


class UnitStatus(str, Enum):
    """Fulfillment lifecycle of a unit."""

    QUEUED = "queued"
    LOADED = "loaded"
    FIRED = "fired"
    COMPLETE = "complete"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (UnitStatus.COMPLETE, UnitStatus.CANCELLED)

    @property
    def is_active(self) -> bool:
        return not self.is_terminal

    @property
    def label(self) -> str:
        return {
            UnitStatus.QUEUED: "Queued",
            UnitStatus.LOADED: "Loaded",
            UnitStatus.FIRED: "Fired",
            UnitStatus.COMPLETE: "Complete",
            UnitStatus.CANCELLED: "Cancelled",
        }[self]

    @classmethod
    def from_value(cls, value: "UnitStatus | str") -> "UnitStatus":
        if isinstance(value, UnitStatus):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValidationError(f"Unknown unit status: {value!r}") from None


def new_unit_id() -> str:
    return uuid4().hex


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class LaunchUnit:
    """Immutable snapshot of one request as last read from the store.

    Owner, resource, quantity and lane never change after creation. Status,
    attributes and timestamps change only through conditional updates, each
    of which bumps ``version``.
    """

    unit_id: str
    owner_id: str
    resource_id: str
    quantity: int
    priority_lane: PriorityLane
    status: UnitStatus = UnitStatus.QUEUED
    attributes: dict[str, str] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    version: int = 1
    last_transition_key: str | None = None

    @property
    def notes(self) -> str:
        return self.attributes.get("notes", "")

    @property
    def display_name(self) -> str:
        return self.attributes.get("display_name", "")

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal
