from __future__ import annotations

from pydantic import BaseModel, Field


class ZoneMember(BaseModel):
    model_config = {"frozen": True}

    mac_address: str
    ip_address: str


class Zone(BaseModel):
    """Master/member topology sent to setZone and addZoneSlave."""

    model_config = {"frozen": True}

    master_mac: str
    sender_ip: str
    members: list[ZoneMember] = Field(default_factory=list)
