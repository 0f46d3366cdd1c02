"""Web host runtime that wires the scheduler core to the HTTP service."""

from __future__ import annotations

import logging

from kiln_launch.adapters.capacity_config import CapacityConfig, load_capacity_config
from kiln_launch.adapters.json_store import JsonFileUnitStore
from kiln_launch.adapters.memory_store import InMemoryUnitStore
from kiln_launch.application.runtime import LaunchScheduler
from kiln_launch.web.config import WebConfig
from kiln_launch.web.events import EventHub
from kiln_launch.web.facade import LaunchWebFacade
from kiln_launch.web.http_service import LaunchHttpService
from kiln_launch.web.scenarios import apply_seed_scenario, available_seed_scenarios

logger = logging.getLogger(__name__)


class WebHost:
    """Bootstraps store, scheduler, facade and the HTTP service."""

    __slots__ = (
        "config",
        "capacity",
        "event_hub",
        "store",
        "scheduler",
        "facade",
        "service",
    )

    def __init__(self, config: WebConfig, capacity: CapacityConfig | None = None) -> None:
        self.config = config
        self.capacity = capacity or load_capacity_config(config.env_file)
        self.event_hub = EventHub()
        self.store: InMemoryUnitStore = (
            InMemoryUnitStore()
            if config.uses_memory_store
            else JsonFileUnitStore(config.data_dir)
        )
        self.scheduler = LaunchScheduler(self.store, config=self.capacity)
        self.facade = LaunchWebFacade(scheduler=self.scheduler, event_hub=self.event_hub)

        if len(self.store) > 0:
            self.facade.publish_info(f"Loaded persisted launch units from '{config.data_dir}'.")
        else:
            try:
                apply_seed_scenario(self.facade, config.seed_scenario)
            except KeyError as exc:
                options = ", ".join(item["key"] for item in available_seed_scenarios())
                raise ValueError(
                    f"Unknown KILN_SCENARIO={config.seed_scenario!r}. Supported scenarios: {options}"
                ) from exc

        self.service = LaunchHttpService(
            facade=self.facade,
            host=config.host,
            port=config.port,
        )
        logger.info(
            "Launch host ready: resources=%s default_target=%d",
            ",".join(self.capacity.known_resources),
            self.capacity.capacity_target,
        )

    def start(self) -> None:
        self.service.serve_forever()

    def stop(self) -> None:
        self.service.stop()
