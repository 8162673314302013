from __future__ import annotations

from urllib.parse import urlparse

import pytest

import stzone.core.controller as controller_module
import stzone.core.device as device_module
from stzone.config import get_settings
from stzone.core import get_controller
from stzone.errors import TransportError


def info_xml(
    name: str,
    mac: str,
    ip: str,
    device_id: str | None = None,
    type_: str = "SoundTouch 10",
) -> str:
    return (
        f'<info deviceID="{device_id or mac}">'
        f"<name>{name}</name>"
        f"<type>{type_}</type>"
        f'<networkInfo type="SCM"><macAddress>{mac}</macAddress>'
        f"<ipAddress>{ip}</ipAddress></networkInfo>"
        f'<networkInfo type="SMSC"><macAddress>{mac}FF</macAddress>'
        f"<ipAddress>{ip}</ipAddress></networkInfo>"
        "</info>"
    )


class FakeTransport:
    """In-memory device network; every request is appended to ``events``.

    Hosts without an info document are unreachable; ``failing_hosts`` answer
    ``/info`` but reject every command.
    """

    def __init__(self, events: list[tuple], infos: dict[str, str] | None = None):
        self.events = events
        self.infos = dict(infos or {})
        self.failing_hosts: set[str] = set()

    def add(self, address: str, name: str, mac: str) -> None:
        self.infos[address] = info_xml(name, mac, address)

    async def __aenter__(self) -> FakeTransport:
        return self

    async def __aexit__(self, *exc_info) -> None:
        return None

    async def get(self, url: str) -> str:
        self.events.append(("GET", url))
        host = urlparse(url).hostname
        if host not in self.infos:
            raise TransportError(f"GET {url} failed: connection refused")
        return self.infos[host]

    async def post(self, url: str, body: str) -> str:
        self.events.append(("POST", url, body))
        if urlparse(url).hostname in self.failing_hosts:
            raise TransportError(f"POST {url} failed: connection refused")
        return "<status/>"

    def posts(self, path: str | None = None) -> list[tuple]:
        return [
            event
            for event in self.events
            if event[0] == "POST" and (path is None or event[1].endswith(path))
        ]


@pytest.fixture(autouse=True)
def _isolate_settings_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("STZONE_CONFIG", raising=False)
    get_settings.cache_clear()
    get_controller.cache_clear()
    yield
    get_settings.cache_clear()
    get_controller.cache_clear()


@pytest.fixture
def events() -> list[tuple]:
    return []


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch: pytest.MonkeyPatch, events: list[tuple]):
    async def _delay(seconds, value=None):
        events.append(("SLEEP", seconds))
        return value

    monkeypatch.setattr(device_module, "delay", _delay)
    monkeypatch.setattr(controller_module, "delay", _delay)


@pytest.fixture
def transport(events: list[tuple]) -> FakeTransport:
    return FakeTransport(events)
