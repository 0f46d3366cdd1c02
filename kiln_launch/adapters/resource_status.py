"""In-process frozen/maintenance flags for resources."""

from __future__ import annotations

from threading import Lock
from typing import Iterable


class StaticResourceStatus:
    """Resource status provider backed by a set of frozen resource ids."""

    __slots__ = ("_frozen", "_lock")

    def __init__(self, frozen: Iterable[str] = ()) -> None:
        self._frozen: set[str] = set(frozen)
        self._lock = Lock()

    def is_frozen(self, resource_id: str) -> bool:
        with self._lock:
            return resource_id in self._frozen

    def freeze(self, resource_id: str) -> None:
        with self._lock:
            self._frozen.add(resource_id)

    def thaw(self, resource_id: str) -> None:
        with self._lock:
            self._frozen.discard(resource_id)

    @property
    def frozen_resources(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._frozen)
