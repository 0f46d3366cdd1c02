"""Priority lanes a unit is placed into at submission time."""

from __future__ import annotations

from enum import Enum

from kiln_launch.domain.errors import ValidationError


class PriorityLane(str, Enum):
    """Named priority buckets; no dispatch order is implied between them."""

    EXPEDITED = "expedited"
    STANDARD = "standard"

    @property
    def label(self) -> str:
        return {
            PriorityLane.EXPEDITED: "ASAP firing",
            PriorityLane.STANDARD: "Next available",
        }[self]

    @classmethod
    def from_value(cls, value: "PriorityLane | str") -> "PriorityLane":
        if isinstance(value, PriorityLane):
            return value
        if not isinstance(value, str):
            raise ValidationError(f"Unknown priority lane: {value!r}")

        normalized = value.strip().lower()
        aliases = {
            "asap": cls.EXPEDITED,
            "rush": cls.EXPEDITED,
            "next": cls.STANDARD,
            "normal": cls.STANDARD,
            "default": cls.STANDARD,
        }

        if normalized in aliases:
            return aliases[normalized]
        try:
            return cls(normalized)
        except ValueError:
            raise ValidationError(f"Unknown priority lane: {value!r}") from None
