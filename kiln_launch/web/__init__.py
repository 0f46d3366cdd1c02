"""HTTP presentation layer for the launch scheduler."""

from kiln_launch.web.config import WebConfig, load_web_config
from kiln_launch.web.events import EventHub, LaunchEvent
from kiln_launch.web.facade import LaunchWebFacade
from kiln_launch.web.http_service import LaunchHttpService

__all__ = [
    "EventHub",
    "LaunchEvent",
    "LaunchHttpService",
    "LaunchWebFacade",
    "WebConfig",
    "load_web_config",
]
