"""Acting identity resolved by the external identity provider."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from kiln_launch.domain.errors import Unauthorized


class ActorRole(str, Enum):
    MEMBER = "member"
    STAFF = "staff"

    @classmethod
    def from_value(cls, value: "ActorRole | str") -> "ActorRole":
        if isinstance(value, ActorRole):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise Unauthorized(f"Unknown actor role: {value!r}") from None


@dataclass(frozen=True, slots=True)
class Actor:
    """Caller identity plus role claim. Trusted as given."""

    actor_id: str
    role: ActorRole

    @classmethod
    def member(cls, actor_id: str) -> "Actor":
        return cls(actor_id=actor_id, role=ActorRole.MEMBER)

    @classmethod
    def staff(cls, actor_id: str) -> "Actor":
        return cls(actor_id=actor_id, role=ActorRole.STAFF)

    @property
    def is_staff(self) -> bool:
        return self.role is ActorRole.STAFF

    def owns(self, owner_id: str) -> bool:
        return bool(self.actor_id) and self.actor_id == owner_id
