from __future__ import annotations

from .controller import ZoneController, get_controller
from .device import SoundTouchDevice
from .discovery import DiscoveryWindow, mdns_browse, ssdp_search
from .fade import FadePlan, plan_fade
from .mock_device import MockSoundTouchDevice, run_mock_device
from .timing import delay
from .transport import HttpTransport, Transport

__all__ = [
    "DiscoveryWindow",
    "FadePlan",
    "HttpTransport",
    "MockSoundTouchDevice",
    "SoundTouchDevice",
    "Transport",
    "ZoneController",
    "delay",
    "get_controller",
    "mdns_browse",
    "plan_fade",
    "run_mock_device",
    "ssdp_search",
]
