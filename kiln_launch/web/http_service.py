"""HTTP + SSE transport for the launch scheduler."""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from threading import RLock
from typing import Any
from urllib.parse import parse_qs, unquote, urlparse

from kiln_launch.domain.actor import Actor
from kiln_launch.domain.errors import (
    Conflict,
    InvalidTransition,
    NotFound,
    ResourceFrozen,
    SchedulerError,
    StoreUnavailable,
    Unauthorized,
    ValidationError,
)
from kiln_launch.web.contract import ServiceMetadata
from kiln_launch.web.facade import LaunchWebFacade
from kiln_launch.web.identity import ACTOR_ID_HEADER, resolve_actor

logger = logging.getLogger(__name__)

_RESOURCE_VIEW_RE = re.compile(r"^/api/resources/(?P<resource_id>[^/]+)/(?P<view>active|snapshot)$")
_UNIT_RE = re.compile(r"^/api/units/(?P<unit_id>[0-9A-Za-z_-]+)$")
_UNIT_ACTION_RE = re.compile(r"^/api/units/(?P<unit_id>[0-9A-Za-z_-]+)/(?P<action>transition|notes)$")

IDEMPOTENCY_HEADER = "Idempotency-Key"

_HTTP_STATUS_BY_ERROR: tuple[tuple[type[SchedulerError], int], ...] = (
    (ValidationError, 400),
    (Unauthorized, 403),
    (NotFound, 404),
    (InvalidTransition, 409),
    (Conflict, 409),
    (ResourceFrozen, 423),
    (StoreUnavailable, 503),
)


def http_status_for(error: SchedulerError) -> int:
    for error_type, status in _HTTP_STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status
    return 500


class _LaunchThreadingHTTPServer(ThreadingHTTPServer):
    daemon_threads = True
    allow_reuse_address = True


class LaunchHttpService:
    """Owns web transport lifecycle and event-stream counters."""

    __slots__ = (
        "facade",
        "metadata",
        "host",
        "port",
        "_httpd",
        "_running",
        "_lock",
        "_sse_active_clients",
        "_sse_retried_writes",
        "_sse_dropped_clients",
        "_sse_last_error",
    )

    def __init__(
        self,
        *,
        facade: LaunchWebFacade,
        host: str,
        port: int,
        metadata: ServiceMetadata | None = None,
    ) -> None:
        self.facade = facade
        self.metadata = metadata or ServiceMetadata()
        self.host = host
        self.port = port

        self._httpd: _LaunchThreadingHTTPServer | None = None
        self._running = False
        self._lock = RLock()

        self._sse_active_clients = 0
        self._sse_retried_writes = 0
        self._sse_dropped_clients = 0
        self._sse_last_error: str | None = None

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"

    def serve_forever(self) -> None:
        handler = build_request_handler(self)
        httpd = _LaunchThreadingHTTPServer((self.host, self.port), handler)

        with self._lock:
            self._httpd = httpd
            # Port 0 binds an ephemeral port; report the real one.
            self.port = int(httpd.server_address[1])
            self._running = True

        logger.info("Launch scheduler HTTP service listening on %s", self.base_url)
        self.facade.publish_info(f"Launch service ready at {self.base_url}")

        try:
            httpd.serve_forever(poll_interval=0.5)
        finally:
            self.stop()

    def stop(self) -> None:
        with self._lock:
            self._running = False
            httpd, self._httpd = self._httpd, None

        if httpd is not None:
            httpd.shutdown()
            httpd.server_close()
            logger.info("Launch scheduler HTTP service stopped")

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._running

    def diagnostics_payload(self) -> dict[str, Any]:
        with self._lock:
            status = "connected" if self._sse_active_clients > 0 else "idle"
            payload = self.facade.diagnostics(
                metadata=self.metadata,
                base_url=self.base_url,
                event_stream_status=status,
                event_stream_active_clients=self._sse_active_clients,
                event_stream_retried_writes=self._sse_retried_writes,
                event_stream_dropped_clients=self._sse_dropped_clients,
            )
            payload["last_event_stream_error"] = self._sse_last_error
            return payload

    def mark_sse_connected(self) -> None:
        with self._lock:
            self._sse_active_clients += 1

    def mark_sse_disconnected(self) -> None:
        with self._lock:
            self._sse_active_clients = max(0, self._sse_active_clients - 1)

    def mark_sse_retry(self, error: BaseException) -> None:
        with self._lock:
            self._sse_retried_writes += 1
            self._sse_last_error = str(error)

    def mark_sse_drop(self, error: BaseException | None = None) -> None:
        with self._lock:
            self._sse_dropped_clients += 1
            if error is not None:
                self._sse_last_error = str(error)


def build_request_handler(service: LaunchHttpService) -> type[BaseHTTPRequestHandler]:
    """Bind service instance into a request handler class."""

    class LaunchRequestHandler(BaseHTTPRequestHandler):
        server_version = "KilnLaunchHTTP/1.0"

        def do_GET(self) -> None:  # noqa: N802
            parsed = urlparse(self.path)
            path = parsed.path
            query = parse_qs(parsed.query)

            try:
                if path == "/api/health":
                    self._write_json(
                        {
                            "status": "ok",
                            "timestamp": datetime.now(timezone.utc).isoformat(),
                        }
                    )
                    return

                if path == "/api/meta":
                    payload = service.facade.metadata(
                        metadata=service.metadata,
                        base_url=service.base_url,
                    )
                    self._write_json(payload)
                    return

                if path == "/api/settings":
                    self._write_json(service.facade.app_settings())
                    return

                if path == "/api/diagnostics":
                    self._write_json(service.diagnostics_payload())
                    return

                if path == "/api/events":
                    limit = self._parse_optional_int(query, "limit") or 200
                    items = service.facade.list_events(
                        limit=limit,
                        resource_id=self._first(query, "resource"),
                    )
                    self._write_json({"items": items})
                    return

                if path == "/api/events/stream":
                    self._handle_sse(query)
                    return

                view_match = _RESOURCE_VIEW_RE.match(path)
                if view_match:
                    resource_id = unquote(view_match.group("resource_id"))
                    if view_match.group("view") == "active":
                        payload = service.facade.list_active(
                            resource_id=resource_id,
                            actor=self._optional_actor(),
                        )
                    else:
                        payload = service.facade.snapshot(resource_id=resource_id)
                    self._write_json(payload)
                    return

                unit_match = _UNIT_RE.match(path)
                if unit_match:
                    payload = service.facade.get_unit(
                        unit_id=unit_match.group("unit_id"),
                        actor=self._optional_actor(),
                    )
                    self._write_json(payload)
                    return

                self._write_error(404, "not_found", "Unknown endpoint")
            except SchedulerError as exc:
                self._write_scheduler_error(exc)
            except ValueError as exc:
                self._write_error(400, "bad_request", str(exc))
            except Exception as exc:  # pragma: no cover - safety net for manual runs
                logger.exception("Unhandled error on GET %s", path)
                self._write_error(500, "internal_error", f"Internal error: {exc}")

        def do_POST(self) -> None:  # noqa: N802
            parsed = urlparse(self.path)
            path = parsed.path

            try:
                if path == "/api/units":
                    body = self._read_json_body()
                    actor = resolve_actor(self.headers)
                    payload = service.facade.submit_unit(
                        actor=actor,
                        quantity=self._parse_quantity(body.get("quantity")),
                        priority_lane=str(body.get("priority_lane", "standard")),
                        resource_id=self._optional_str(body, "resource_id"),
                        owner_id=self._optional_str(body, "owner_id"),
                        attributes=self._attributes_from_body(body),
                    )
                    self._write_json(payload, status=201)
                    return

                action_match = _UNIT_ACTION_RE.match(path)
                if action_match:
                    body = self._read_json_body()
                    actor = resolve_actor(self.headers)
                    unit_id = action_match.group("unit_id")
                    if action_match.group("action") == "transition":
                        idempotency_key = (
                            self._optional_str(body, "idempotency_key")
                            or self.headers.get(IDEMPOTENCY_HEADER)
                        )
                        payload = service.facade.transition_unit(
                            actor=actor,
                            unit_id=unit_id,
                            target_status=str(body.get("target_status", "")),
                            idempotency_key=idempotency_key or None,
                        )
                    else:
                        payload = service.facade.update_notes(
                            actor=actor,
                            unit_id=unit_id,
                            notes=str(body.get("notes") or ""),
                        )
                    self._write_json(payload)
                    return

                self._write_error(404, "not_found", "Unknown endpoint")
            except SchedulerError as exc:
                self._write_scheduler_error(exc)
            except ValueError as exc:
                self._write_error(400, "bad_request", str(exc))
            except TypeError as exc:
                self._write_error(400, "bad_request", f"Invalid request payload: {exc}")
            except Exception as exc:  # pragma: no cover - safety net for manual runs
                logger.exception("Unhandled error on POST %s", path)
                self._write_error(500, "internal_error", f"Internal error: {exc}")

        def do_OPTIONS(self) -> None:  # noqa: N802
            self.send_response(204)
            self.send_header("Allow", "GET,POST,OPTIONS")
            self.end_headers()

        def log_message(self, format: str, *args: Any) -> None:
            logger.debug("%s - %s", self.address_string(), format % args)

        def _handle_sse(self, query: dict[str, list[str]]) -> None:
            after = self._parse_optional_int(query, "after")
            subscriber_id = service.facade.subscribe_events(
                after_event_id=after,
                resource_id=self._first(query, "resource"),
            )
            service.mark_sse_connected()

            self.send_response(200)
            self.send_header("Content-Type", "text/event-stream")
            self.send_header("Cache-Control", "no-cache")
            self.send_header("Connection", "keep-alive")
            self.end_headers()

            try:
                self._write_sse_chunk(": connected\n\n")
                while service.is_running:
                    payload = service.facade.next_event(
                        subscriber_id,
                        timeout_seconds=15.0,
                    )
                    if payload is None:
                        if not self._write_sse_chunk(": keep-alive\n\n"):
                            break
                        continue

                    event_lines = [
                        f"id: {payload['event_id']}",
                        f"event: {payload['event_type']}",
                        f"data: {json.dumps(payload, separators=(',', ':'))}",
                        "",
                    ]
                    text = "\n".join(event_lines) + "\n"
                    if not self._write_sse_chunk(text):
                        break
            finally:
                service.facade.unsubscribe_events(subscriber_id)
                service.mark_sse_disconnected()

        def _write_sse_chunk(self, text: str) -> bool:
            data = text.encode("utf-8")
            try:
                self.wfile.write(data)
                self.wfile.flush()
                return True
            except (BrokenPipeError, ConnectionResetError) as exc:
                service.mark_sse_drop(exc)
                return False
            except OSError as exc:
                service.mark_sse_retry(exc)
                try:
                    self.wfile.write(data)
                    self.wfile.flush()
                    return True
                except (BrokenPipeError, ConnectionResetError, OSError) as retry_exc:
                    service.mark_sse_drop(retry_exc)
                    return False

        def _optional_actor(self) -> Actor | None:
            if not (self.headers.get(ACTOR_ID_HEADER) or "").strip():
                return None
            return resolve_actor(self.headers)

        def _read_json_body(self) -> dict[str, Any]:
            content_length = int(self.headers.get("Content-Length", "0"))
            if content_length <= 0:
                return {}
            raw = self.rfile.read(content_length)
            if not raw:
                return {}
            data = json.loads(raw.decode("utf-8"))
            if not isinstance(data, dict):
                raise ValueError("JSON body must be an object")
            return data

        @staticmethod
        def _parse_quantity(raw: object) -> Any:
            # Digit strings from form posts become ints; anything else is
            # passed through for the scheduler to reject.
            if isinstance(raw, str) and raw.strip().isdigit():
                return int(raw.strip())
            return raw

        @staticmethod
        def _optional_str(body: dict[str, Any], key: str) -> str | None:
            value = body.get(key)
            if value is None:
                return None
            text = str(value).strip()
            return text or None

        @staticmethod
        def _attributes_from_body(body: dict[str, Any]) -> dict[str, object]:
            attributes: dict[str, object] = {}
            raw = body.get("attributes")
            if isinstance(raw, dict):
                attributes.update(raw)
            for key in ("display_name", "clay_body", "notes"):
                if key in body:
                    attributes[key] = body[key]
            return attributes

        @staticmethod
        def _parse_optional_int(query: dict[str, list[str]], key: str) -> int | None:
            raw = LaunchRequestHandler._first(query, key)
            if raw is None or raw == "":
                return None
            return int(raw)

        @staticmethod
        def _first(query: dict[str, list[str]], key: str) -> str | None:
            values = query.get(key)
            if not values:
                return None
            return values[0]

        def _write_json(self, payload: Any, status: int = 200) -> None:
            encoded = json.dumps(payload).encode("utf-8")
            self.send_response(status)
            self.send_header("Content-Type", "application/json; charset=utf-8")
            self.send_header("Content-Length", str(len(encoded)))
            self.end_headers()
            self.wfile.write(encoded)

        def _write_scheduler_error(self, error: SchedulerError) -> None:
            self._write_error(
                http_status_for(error),
                error.code,
                str(error),
                retryable=error.retryable,
            )

        def _write_error(
            self,
            status: int,
            code: str,
            message: str,
            *,
            retryable: bool = False,
        ) -> None:
            self._write_json(
                {
                    "error": {
                        "status": status,
                        "code": code,
                        "message": message,
                        "retryable": retryable,
                    }
                },
                status=status,
            )

    return LaunchRequestHandler
