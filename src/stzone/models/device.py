"""Device models."""

from enum import Enum

from pydantic import BaseModel


class KeyState(str, Enum):
    PRESS = "press"
    RELEASE = "release"


class NetworkInterface(BaseModel):
    """One physical network interface as reported by the device."""

    model_config = {"frozen": True}

    mac_address: str
    ip_address: str


class DeviceInfo(BaseModel):
    """Identity fields from the device info document."""

    model_config = {"frozen": True}

    device_id: str
    name: str
    type: str
    primary: NetworkInterface
    secondary: NetworkInterface
