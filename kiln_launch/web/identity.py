"""Actor resolution from trusted upstream headers."""

from __future__ import annotations

from typing import Mapping

from kiln_launch.domain.actor import Actor, ActorRole
from kiln_launch.domain.errors import Unauthorized

ACTOR_ID_HEADER = "X-Actor-Id"
ACTOR_ROLE_HEADER = "X-Actor-Role"


def resolve_actor(headers: Mapping[str, str]) -> Actor:
    """Build the acting identity. Authentication happens upstream."""
    actor_id = (headers.get(ACTOR_ID_HEADER) or "").strip()
    if not actor_id:
        raise Unauthorized(f"Missing {ACTOR_ID_HEADER} header")
    role = ActorRole.from_value(headers.get(ACTOR_ROLE_HEADER) or ActorRole.MEMBER.value)
    return Actor(actor_id=actor_id, role=role)
