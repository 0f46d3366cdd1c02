from __future__ import annotations

import json
import tempfile
import threading
import time
import unittest
import urllib.error
import urllib.request
from pathlib import Path
from typing import Any

from kiln_launch.adapters.capacity_config import CapacityConfig
from kiln_launch.adapters.memory_store import InMemoryUnitStore
from kiln_launch.adapters.resource_status import StaticResourceStatus
from kiln_launch.application.runtime import LaunchScheduler
from kiln_launch.domain.actor import Actor, ActorRole
from kiln_launch.domain.errors import (
    Conflict,
    InvalidTransition,
    NotFound,
    ResourceFrozen,
    StoreUnavailable,
    Unauthorized,
    ValidationError,
)
from kiln_launch.web.config import WebConfig, load_web_config
from kiln_launch.web.contract import ServiceMetadata
from kiln_launch.web.events import EventHub
from kiln_launch.web.facade import LaunchWebFacade, format_quantity_label
from kiln_launch.web.host import WebHost
from kiln_launch.web.http_service import LaunchHttpService, http_status_for
from kiln_launch.web.identity import resolve_actor
from kiln_launch.web.scenarios import apply_seed_scenario


STAFF = Actor.staff("staff-1")
CLAY = {"clay_body": "B-mix"}


def _build_facade(status: StaticResourceStatus | None = None) -> tuple[LaunchWebFacade, EventHub]:
    event_hub = EventHub()
    scheduler = LaunchScheduler(
        InMemoryUnitStore(),
        config=CapacityConfig(resources=("raku",), overrides={"raku": 2}),
        resource_status=status,
    )
    return LaunchWebFacade(scheduler, event_hub), event_hub


class WebFacadeTests(unittest.TestCase):
    def setUp(self) -> None:
        self.status = StaticResourceStatus()
        self.facade, self.event_hub = _build_facade(self.status)

    def test_quantity_labels(self) -> None:
        self.assertEqual(format_quantity_label(1), "1 half shelf")
        self.assertEqual(format_quantity_label(3), "3 half shelves")

    def test_submit_returns_serialized_unit_and_publishes_event(self) -> None:
        dto = self.facade.submit_unit(
            actor=Actor.member("alice"),
            quantity=2,
            priority_lane="asap",
            attributes={"display_name": "Alice", "clay_body": "B-mix"},
        )

        self.assertEqual(dto["owner_id"], "alice")
        self.assertEqual(dto["resource_id"], "main")
        self.assertEqual(dto["priority_lane"], "expedited")
        self.assertEqual(dto["priority_lane_label"], "ASAP firing")
        self.assertEqual(dto["quantity_label"], "2 half shelves")
        self.assertEqual(dto["status"], "queued")
        self.assertIsNone(dto["notes"])
        self.assertEqual(dto["actions"], [{"target_status": "cancelled", "label": "Cancel"}])

        events = self.facade.list_events()
        self.assertEqual(events[-1]["event_type"], "unit_submitted")
        self.assertEqual(events[-1]["unit_id"], dto["id"])
        self.assertIn("Alice queued 2 half shelves", events[-1]["message"])

    def test_member_cannot_submit_for_someone_else(self) -> None:
        with self.assertRaises(Unauthorized):
            self.facade.submit_unit(
                actor=Actor.member("alice"),
                quantity=1,
                owner_id="bob",
                attributes=CLAY,
            )

        dto = self.facade.submit_unit(actor=STAFF, quantity=1, owner_id="bob", attributes=CLAY)
        self.assertEqual(dto["owner_id"], "bob")

    def test_submit_requires_clay_body(self) -> None:
        for attributes in (None, {}, {"clay_body": "   "}, {"display_name": "Alice"}):
            with self.subTest(attributes=attributes):
                with self.assertRaises(ValidationError):
                    self.facade.submit_unit(
                        actor=Actor.member("alice"),
                        quantity=1,
                        attributes=attributes,
                    )

        self.assertEqual(self.facade.list_active()["queued_total"], 0)
        self.assertEqual(self.facade.list_events(), [])

    def test_transition_and_snapshot_payloads(self) -> None:
        unit = self.facade.submit_unit(actor=Actor.member("alice"), quantity=3, attributes=CLAY)
        loaded = self.facade.transition_unit(actor=STAFF, unit_id=unit["id"], target_status="loaded")
        self.assertEqual(loaded["status"], "loaded")
        self.assertEqual(loaded["version"], 2)
        self.facade.submit_unit(
            actor=Actor.member("bob"),
            quantity=1,
            priority_lane="expedited",
            attributes=CLAY,
        )

        snapshot = self.facade.snapshot()
        self.assertEqual(snapshot["capacity_target"], 4)
        self.assertEqual(snapshot["loaded_total"], 3)
        self.assertEqual(snapshot["ready_launches"], 0)
        self.assertEqual(snapshot["current_partial"], 3)
        self.assertEqual(snapshot["needed_to_fill"], 1)
        self.assertEqual(snapshot["slots"], [True, True, True, False])
        self.assertEqual(snapshot["load_state"], "loading")
        self.assertEqual(snapshot["lane_totals"], {"expedited": 1, "standard": 0})

        active = self.facade.list_active(actor=STAFF)
        self.assertEqual([lane["lane"] for lane in active["lanes"]], ["expedited", "standard"])
        self.assertEqual(active["loaded_total"], 3)
        self.assertEqual(len(active["loaded_units"]), 1)
        self.assertEqual(
            {action["target_status"] for action in active["loaded_units"][0]["actions"]},
            {"fired", "queued"},
        )

    def test_replayed_transition_publishes_no_event(self) -> None:
        unit = self.facade.submit_unit(actor=Actor.member("alice"), quantity=1, attributes=CLAY)
        self.facade.transition_unit(
            actor=STAFF,
            unit_id=unit["id"],
            target_status="loaded",
            idempotency_key="tap-1",
        )
        count = len(self.facade.list_events())

        replay = self.facade.transition_unit(
            actor=STAFF,
            unit_id=unit["id"],
            target_status="loaded",
            idempotency_key="tap-1",
        )
        self.assertEqual(replay["version"], 2)
        self.assertEqual(len(self.facade.list_events()), count)

    def test_frozen_resource_hides_actions_and_rejects_commands(self) -> None:
        unit = self.facade.submit_unit(actor=Actor.member("alice"), quantity=1, attributes=CLAY)
        self.status.freeze("main")

        self.assertEqual(self.facade.get_unit(unit_id=unit["id"], actor=STAFF)["actions"], [])
        with self.assertRaises(ResourceFrozen):
            self.facade.transition_unit(actor=STAFF, unit_id=unit["id"], target_status="loaded")

        settings = self.facade.app_settings()
        frozen = {item["id"]: item["frozen"] for item in settings["resources"]}
        self.assertEqual(frozen, {"main": True, "raku": False})

    def test_diagnostics_track_last_command_error(self) -> None:
        with self.assertRaises(NotFound):
            self.facade.transition_unit(actor=STAFF, unit_id="missing", target_status="loaded")

        diagnostics = self.facade.diagnostics(
            metadata=ServiceMetadata(),
            base_url="http://127.0.0.1:8780",
            event_stream_status="idle",
            event_stream_active_clients=0,
            event_stream_retried_writes=0,
            event_stream_dropped_clients=0,
        )
        self.assertEqual(diagnostics["service_name"], "kiln-launch-http")
        self.assertIn("missing", diagnostics["last_command_error"])
        self.assertIsNone(diagnostics["last_successful_command_time"])

        self.facade.submit_unit(actor=Actor.member("alice"), quantity=1, attributes=CLAY)
        diagnostics = self.facade.diagnostics(
            metadata=ServiceMetadata(),
            base_url="http://127.0.0.1:8780",
            event_stream_status="idle",
            event_stream_active_clients=0,
            event_stream_retried_writes=0,
            event_stream_dropped_clients=0,
        )
        self.assertIsNone(diagnostics["last_command_error"])
        self.assertIsNotNone(diagnostics["last_successful_command_time"])

    def test_event_subscription_filters_by_resource(self) -> None:
        subscriber_id = self.facade.subscribe_events(resource_id="raku")
        self.facade.submit_unit(actor=Actor.member("alice"), quantity=1, attributes=CLAY)
        raku_unit = self.facade.submit_unit(
            actor=Actor.member("alice"),
            quantity=1,
            resource_id="raku",
            attributes=CLAY,
        )

        event = self.facade.next_event(subscriber_id, timeout_seconds=0.5)
        assert event is not None
        self.assertEqual(event["unit_id"], raku_unit["id"])
        self.assertIsNone(self.facade.next_event(subscriber_id, timeout_seconds=0.05))
        self.facade.unsubscribe_events(subscriber_id)
        self.assertEqual(self.event_hub.subscriber_count, 0)


class ScenarioTests(unittest.TestCase):
    def test_studio_week_builds_a_partial_load(self) -> None:
        facade, _ = _build_facade()
        self.assertEqual(apply_seed_scenario(facade, " Studio_Week "), "studio_week")

        snapshot = facade.snapshot()
        self.assertEqual(snapshot["loaded_total"], 3)
        self.assertEqual(snapshot["needed_to_fill"], 1)
        self.assertEqual(snapshot["lane_totals"], {"expedited": 1, "standard": 2})

        active = facade.list_active()
        self.assertEqual(len(active["fired_units"]), 1)
        self.assertEqual(active["fired_units"][0]["display_name"], "Eli")

    def test_unknown_scenario_raises_key_error(self) -> None:
        facade, _ = _build_facade()
        with self.assertRaises(KeyError):
            apply_seed_scenario(facade, "bisque_rush")


class IdentityAndConfigTests(unittest.TestCase):
    def test_resolve_actor_from_headers(self) -> None:
        actor = resolve_actor({"X-Actor-Id": " staff-9 ", "X-Actor-Role": "STAFF"})
        self.assertEqual(actor, Actor("staff-9", ActorRole.STAFF))
        self.assertEqual(resolve_actor({"X-Actor-Id": "ana"}).role, ActorRole.MEMBER)

        with self.assertRaises(Unauthorized):
            resolve_actor({})
        with self.assertRaises(Unauthorized):
            resolve_actor({"X-Actor-Id": "ana", "X-Actor-Role": "admin"})

    def test_error_status_mapping(self) -> None:
        self.assertEqual(http_status_for(ValidationError("x")), 400)
        self.assertEqual(http_status_for(Unauthorized("x")), 403)
        self.assertEqual(http_status_for(NotFound("x")), 404)
        self.assertEqual(http_status_for(InvalidTransition("x")), 409)
        self.assertEqual(http_status_for(Conflict("x")), 409)
        self.assertEqual(http_status_for(ResourceFrozen("x")), 423)
        self.assertEqual(http_status_for(StoreUnavailable("x")), 503)

    def test_load_web_config(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            env_path = Path(tmp) / ".env"
            env_path.write_text(
                "KILN_HOST=0.0.0.0\nKILN_PORT=notaport\nKILN_DATA_DIR=\nKILN_SCENARIO=studio_week\n"
                "KILN_LOG_LEVEL=debug\n",
                encoding="utf-8",
            )
            config = load_web_config(str(env_path))

        self.assertEqual(config.host, "0.0.0.0")
        self.assertEqual(config.port, 8780)
        self.assertTrue(config.uses_memory_store)
        self.assertEqual(config.seed_scenario, "studio_week")
        self.assertEqual(config.log_level, "DEBUG")

    def test_host_seeds_memory_store(self) -> None:
        config = WebConfig(port=0, data_dir="", seed_scenario="studio_week", env_file="missing.env")
        host = WebHost(config, capacity=CapacityConfig())
        self.assertEqual(len(host.store), 5)
        self.assertEqual(host.facade.snapshot()["loaded_total"], 3)

    def test_host_rejects_unknown_scenario(self) -> None:
        config = WebConfig(port=0, data_dir="", seed_scenario="nope", env_file="missing.env")
        with self.assertRaises(ValueError):
            WebHost(config, capacity=CapacityConfig())

    def test_host_reuses_persisted_units(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            first = WebHost(
                WebConfig(port=0, data_dir=tmp, seed_scenario="studio_week", env_file="missing.env"),
                capacity=CapacityConfig(),
            )
            self.assertEqual(len(first.store), 5)

            second = WebHost(
                WebConfig(port=0, data_dir=tmp, seed_scenario="studio_week", env_file="missing.env"),
                capacity=CapacityConfig(),
            )
            self.assertEqual(len(second.store), 5)
            self.assertEqual(second.facade.list_events()[-1]["event_type"], "info")


class HttpServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.facade, _ = _build_facade()
        self.service = LaunchHttpService(facade=self.facade, host="127.0.0.1", port=0)
        self.thread = threading.Thread(target=self.service.serve_forever, daemon=True)
        self.thread.start()

        deadline = time.monotonic() + 5
        while not self.service.is_running:
            if time.monotonic() > deadline:
                self.fail("HTTP service did not start")
            time.sleep(0.01)

    def tearDown(self) -> None:
        self.service.stop()
        self.thread.join(timeout=5)

    def _request(
        self,
        method: str,
        path: str,
        body: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> tuple[int, Any]:
        data = json.dumps(body).encode("utf-8") if body is not None else None
        request = urllib.request.Request(
            self.service.base_url + path,
            data=data,
            method=method,
            headers={"Content-Type": "application/json", **(headers or {})},
        )
        try:
            with urllib.request.urlopen(request, timeout=5) as response:
                return response.status, json.loads(response.read().decode("utf-8"))
        except urllib.error.HTTPError as exc:
            return exc.code, json.loads(exc.read().decode("utf-8"))

    @staticmethod
    def _as(actor_id: str, role: str = "member") -> dict[str, str]:
        return {"X-Actor-Id": actor_id, "X-Actor-Role": role}

    def test_health_and_meta(self) -> None:
        status, payload = self._request("GET", "/api/health")
        self.assertEqual(status, 200)
        self.assertEqual(payload["status"], "ok")

        status, payload = self._request("GET", "/api/meta")
        self.assertEqual(status, 200)
        self.assertEqual(payload["capabilities"], ["units", "snapshot", "events"])
        self.assertEqual(payload["base_url"], self.service.base_url)

    def test_submit_transition_and_snapshot_over_http(self) -> None:
        status, unit = self._request(
            "POST",
            "/api/units",
            {"quantity": "2", "priority_lane": "next", "clay_body": "B-mix"},
            self._as("alice"),
        )
        self.assertEqual(status, 201)
        self.assertEqual(unit["quantity"], 2)
        self.assertEqual(unit["attributes"], {"clay_body": "B-mix"})

        status, error = self._request(
            "POST",
            f"/api/units/{unit['id']}/transition",
            {"target_status": "loaded"},
            self._as("alice"),
        )
        self.assertEqual(status, 403)
        self.assertEqual(error["error"]["code"], "unauthorized")

        status, loaded = self._request(
            "POST",
            f"/api/units/{unit['id']}/transition",
            {"target_status": "loaded"},
            {**self._as("staff-1", "staff"), "Idempotency-Key": "tap-1"},
        )
        self.assertEqual(status, 200)
        self.assertEqual(loaded["status"], "loaded")

        status, replay = self._request(
            "POST",
            f"/api/units/{unit['id']}/transition",
            {"target_status": "loaded", "idempotency_key": "tap-1"},
            self._as("staff-1", "staff"),
        )
        self.assertEqual(status, 200)
        self.assertEqual(replay["version"], loaded["version"])

        status, snapshot = self._request("GET", "/api/resources/main/snapshot")
        self.assertEqual(status, 200)
        self.assertEqual(snapshot["loaded_total"], 2)
        self.assertEqual(snapshot["needed_to_fill"], 2)

        status, fetched = self._request("GET", f"/api/units/{unit['id']}", headers=self._as("staff-1", "staff"))
        self.assertEqual(status, 200)
        self.assertEqual(
            {action["target_status"] for action in fetched["actions"]},
            {"fired", "queued"},
        )

    def test_error_mapping_over_http(self) -> None:
        status, error = self._request(
            "POST",
            "/api/units",
            {"quantity": 9, "clay_body": "B-mix"},
            self._as("alice"),
        )
        self.assertEqual(status, 400)
        self.assertEqual(error["error"]["code"], "validation_error")

        status, error = self._request("POST", "/api/units", {"quantity": 1})
        self.assertEqual(status, 403)

        status, error = self._request("GET", "/api/units/doesnotexist")
        self.assertEqual(status, 404)
        self.assertEqual(error["error"]["code"], "not_found")

        status, error = self._request("GET", "/api/resources/gas-kiln/active")
        self.assertEqual(status, 404)

        status, unit = self._request(
            "POST", "/api/units", {"quantity": 1, "clay_body": "B-mix"}, self._as("alice")
        )
        self.assertEqual(status, 201)
        status, error = self._request(
            "POST",
            f"/api/units/{unit['id']}/transition",
            {"target_status": "queued"},
            self._as("staff-1", "staff"),
        )
        self.assertEqual(status, 409)
        self.assertEqual(error["error"]["code"], "invalid_transition")
        self.assertFalse(error["error"]["retryable"])

    def test_notes_endpoint(self) -> None:
        _, unit = self._request(
            "POST", "/api/units", {"quantity": 1, "clay_body": "B-mix"}, self._as("alice")
        )

        status, updated = self._request(
            "POST",
            f"/api/units/{unit['id']}/notes",
            {"notes": "  wax resist on the feet "},
            self._as("alice"),
        )
        self.assertEqual(status, 200)
        self.assertEqual(updated["notes"], "wax resist on the feet")

        status, _ = self._request(
            "POST",
            f"/api/units/{unit['id']}/notes",
            {"notes": "hijack"},
            self._as("bob"),
        )
        self.assertEqual(status, 403)

    def test_unknown_endpoint(self) -> None:
        status, error = self._request("GET", "/api/nowhere")
        self.assertEqual(status, 404)
        self.assertEqual(error["error"]["code"], "not_found")


if __name__ == "__main__":
    unittest.main()
