from __future__ import annotations

import json
import os
import tomllib
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from .paths import default_config_path, expand_path

CONFIG_ENV_VAR = "STZONE_CONFIG"

MEDIA_RENDERER_TARGET = "urn:schemas-upnp-org:device:MediaRenderer:1"


class DeviceConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    port: int = Field(default=8090, ge=1, le=65535)
    request_timeout: float = Field(default=5.0, gt=0)
    key_delay: float = Field(default=0.2, ge=0)
    sender: str = "Gabbo"


class ZoneConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    master_name: str = "Working"
    fallback_addresses: list[str] = Field(
        default_factory=lambda: ["192.168.0.90", "192.168.0.91", "192.168.0.92"]
    )


class DiscoveryConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    search_target: str = MEDIA_RENDERER_TARGET
    rounds: int = Field(default=3, ge=0, le=20)
    round_timeout: float = Field(default=2.0, ge=0)
    mdns: bool = False
    mdns_timeout: float = Field(default=3.0, gt=0)


class FadeConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    duration: float = Field(default=20.0, ge=0)
    # None applies the computed per-step delta
    step: float | None = Field(default=None, gt=0)


class Settings(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    device: DeviceConfig = Field(default_factory=DeviceConfig)
    zone: ZoneConfig = Field(default_factory=ZoneConfig)
    discovery: DiscoveryConfig = Field(default_factory=DiscoveryConfig)
    fade: FadeConfig = Field(default_factory=FadeConfig)


def resolve_config_path(allow_missing: bool = False) -> tuple[Path, bool]:
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        path = expand_path(env_path)
        if not allow_missing and not path.exists():
            raise FileNotFoundError(f"{CONFIG_ENV_VAR} points to missing file: {path}")
        return path, path.exists()

    path = default_config_path()
    return path, path.exists()


def load_settings(path: Path) -> Settings:
    try:
        with path.open("rb") as handle:
            data = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(f"Invalid TOML in config file: {path}\n{exc}") from exc

    try:
        return Settings.model_validate(data or {})
    except ValidationError as exc:
        raise ValueError(f"Invalid config file: {path}\n{exc}") from exc


@lru_cache
def get_settings() -> Settings:
    path, exists = resolve_config_path(allow_missing=False)
    if exists:
        return load_settings(path)
    return Settings()


def _toml_value(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return json.dumps(value)


def render_settings_toml(settings: Settings) -> str:
    lines = [
        "# stzone configuration",
        "",
        "[device]",
        f"port = {settings.device.port}",
        f"request_timeout = {settings.device.request_timeout}",
        f"key_delay = {settings.device.key_delay}",
        f"sender = {_toml_value(settings.device.sender)}",
        "",
        "[zone]",
        f"master_name = {_toml_value(settings.zone.master_name)}",
        f"fallback_addresses = {_toml_value(settings.zone.fallback_addresses)}",
        "",
        "[discovery]",
        f"search_target = {_toml_value(settings.discovery.search_target)}",
        f"rounds = {settings.discovery.rounds}",
        f"round_timeout = {settings.discovery.round_timeout}",
        f"mdns = {_toml_value(settings.discovery.mdns)}",
        f"mdns_timeout = {settings.discovery.mdns_timeout}",
        "",
        "[fade]",
        f"duration = {settings.fade.duration}",
    ]
    # TOML has no null; an absent key means "computed"
    if settings.fade.step is not None:
        lines.append(f"step = {settings.fade.step}")
    lines.append("")
    return "\n".join(lines)


def write_settings(settings: Settings, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_settings_toml(settings))
