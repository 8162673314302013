"""Data models for stzone."""

from stzone.models.device import DeviceInfo, KeyState, NetworkInterface
from stzone.models.zone import Zone, ZoneMember

__all__ = [
    "DeviceInfo",
    "KeyState",
    "NetworkInterface",
    "Zone",
    "ZoneMember",
]
