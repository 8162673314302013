"""stzone - discover SoundTouch speakers, group them into a zone and control them together."""

from __future__ import annotations

from importlib.metadata import version

from .config import Settings, get_settings
from .core import HttpTransport, SoundTouchDevice, ZoneController, get_controller
from .errors import (
    CommandFailure,
    InitializationFailure,
    OrchestrationFailure,
    StzoneError,
    TransportError,
)
from .models import DeviceInfo, NetworkInterface, Zone, ZoneMember

__all__ = [
    "CommandFailure",
    "DeviceInfo",
    "HttpTransport",
    "InitializationFailure",
    "NetworkInterface",
    "OrchestrationFailure",
    "Settings",
    "SoundTouchDevice",
    "StzoneError",
    "TransportError",
    "Zone",
    "ZoneController",
    "ZoneMember",
    "__version__",
    "get_controller",
    "get_settings",
]

__version__ = version("stzone")
