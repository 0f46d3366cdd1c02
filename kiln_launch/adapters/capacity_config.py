"""Capacity configuration: CAPACITY_TARGET per resource."""

from __future__ import annotations

from dataclasses import dataclass, field

from kiln_launch.adapters.env_file import (
    env_int,
    env_int_mapping,
    env_list,
    env_str,
    parse_env_file,
)


DEFAULT_CAPACITY_TARGET = 4
DEFAULT_RESOURCE_ID = "main"


@dataclass(frozen=True)
class CapacityConfig:
    """Process-wide default target plus optional per-resource overrides."""

    capacity_target: int = DEFAULT_CAPACITY_TARGET
    default_resource: str = DEFAULT_RESOURCE_ID
    resources: tuple[str, ...] = ()
    overrides: dict[str, int] = field(default_factory=dict)
    frozen_resources: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        if self.capacity_target < 1:
            raise ValueError("capacity_target must be >= 1")
        for resource_id, target in self.overrides.items():
            if target < 1:
                raise ValueError(f"capacity override for {resource_id!r} must be >= 1")

    @property
    def known_resources(self) -> tuple[str, ...]:
        ordered = [self.default_resource, *self.resources, *self.overrides]
        return tuple(dict.fromkeys(ordered))

    def is_known(self, resource_id: str) -> bool:
        return resource_id in self.known_resources

    def normalize_resource(self, resource_id: str | None) -> str:
        if resource_id is None:
            return self.default_resource
        return resource_id.strip().lower() or self.default_resource

    def target_for(self, resource_id: str) -> int:
        return self.overrides.get(resource_id, self.capacity_target)


def load_capacity_config(env_file: str = ".env") -> CapacityConfig:
    """Load capacity configuration from env file, with safe fallbacks."""

    env = parse_env_file(env_file)

    return CapacityConfig(
        capacity_target=env_int(
            env,
            key="KILN_CAPACITY_TARGET",
            default=DEFAULT_CAPACITY_TARGET,
            minimum=1,
        ),
        default_resource=env_str(env, "KILN_DEFAULT_RESOURCE", DEFAULT_RESOURCE_ID).lower(),
        resources=env_list(env, "KILN_RESOURCES"),
        overrides=env_int_mapping(env, "KILN_CAPACITY_OVERRIDES", minimum=1),
        frozen_resources=frozenset(env_list(env, "KILN_FROZEN_RESOURCES")),
    )
