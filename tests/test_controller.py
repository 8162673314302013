"""Tests for registration, master election and group commands."""

from __future__ import annotations

import asyncio

import pytest

import stzone.core.controller as controller_module
from stzone.config import DiscoveryConfig, FadeConfig, Settings, ZoneConfig
from stzone.core import ZoneController
from stzone.errors import CommandFailure, InitializationFailure, OrchestrationFailure


def _settings(**overrides) -> Settings:
    values = {
        "zone": ZoneConfig(master_name="Working", fallback_addresses=[]),
        "discovery": DiscoveryConfig(rounds=0),
    }
    values.update(overrides)
    return Settings(**values)


def _register(controller: ZoneController, *addresses: str) -> None:
    async def _run():
        for address in addresses:
            await controller.add_device(address)

    asyncio.run(_run())


@pytest.fixture
def controller(transport) -> ZoneController:
    return ZoneController(transport, _settings())


def test_add_device_registers_once(transport, controller):
    transport.add("10.0.0.1", "Office", "AA")

    first = asyncio.run(controller.add_device("10.0.0.1"))
    second = asyncio.run(controller.add_device("10.0.0.1"))

    assert list(controller.devices) == ["10.0.0.1"]
    assert second is first


def test_concurrent_add_device_for_same_address_registers_once(transport, controller):
    transport.add("10.0.0.1", "Office", "AA")

    async def _run():
        return await asyncio.gather(
            controller.add_device("10.0.0.1"), controller.add_device("10.0.0.1")
        )

    first, second = asyncio.run(_run())

    assert len(controller.devices) == 1
    assert first is second is controller.devices["10.0.0.1"]


def test_unreachable_device_is_skipped(transport, controller, caplog):
    transport.add("10.0.0.1", "Office", "AA")
    _register(controller, "10.0.0.1")

    result = asyncio.run(controller.add_device("10.0.0.99"))

    assert result is None
    assert list(controller.devices) == ["10.0.0.1"]
    assert "add_device(10.0.0.99) failed" in caplog.text


def test_add_device_can_raise_instead(transport, controller):
    with pytest.raises(InitializationFailure):
        asyncio.run(controller.add_device("10.0.0.99", raise_on_failure=True))

    assert controller.devices == {}


def test_first_registered_device_is_master_without_named_device(transport, controller):
    transport.add("10.0.0.1", "Office", "AA")
    transport.add("10.0.0.2", "Kitchen", "BB")

    _register(controller, "10.0.0.1", "10.0.0.2")

    assert controller.master is controller.devices["10.0.0.1"]


@pytest.mark.parametrize(
    "order", [("10.0.0.1", "10.0.0.2", "10.0.0.3"), ("10.0.0.2", "10.0.0.1", "10.0.0.3")]
)
def test_named_master_wins_regardless_of_order(transport, controller, order):
    transport.add("10.0.0.1", "Office", "AA")
    transport.add("10.0.0.2", "Working", "BB")
    transport.add("10.0.0.3", "Kitchen", "CC")

    _register(controller, *order)

    assert controller.master is controller.devices["10.0.0.2"]


def test_master_name_comes_from_settings(transport):
    transport.add("10.0.0.1", "Office", "AA")
    transport.add("10.0.0.2", "Kitchen", "BB")
    controller = ZoneController(
        transport,
        _settings(zone=ZoneConfig(master_name="Kitchen", fallback_addresses=[])),
    )

    _register(controller, "10.0.0.1", "10.0.0.2")

    assert controller.master.name == "Kitchen"


def test_office_and_working_zone(transport, controller):
    transport.add("10.0.0.1", "Office", "AA0001")
    transport.add("10.0.0.2", "Working", "BB0002")
    _register(controller, "10.0.0.1", "10.0.0.2")
    transport.events.clear()

    zone = asyncio.run(controller.group_zone())

    assert controller.master.name == "Working"
    assert zone.master_mac == "BB0002"
    assert zone.sender_ip == "10.0.0.2"
    assert [(m.mac_address, m.ip_address) for m in zone.members] == [
        ("AA0001", "10.0.0.1")
    ]
    payload = (
        '<zone master="BB0002" senderIPAddress="10.0.0.2">'
        '<member ipaddress="10.0.0.1">AA0001</member></zone>'
    )
    assert transport.events == [
        ("POST", "http://10.0.0.2:8090/setZone", payload),
        ("POST", "http://10.0.0.1:8090/addZoneSlave", payload),
    ]


def test_group_zone_members_follow_registry_order(transport, controller):
    transport.add("10.0.0.3", "Kitchen", "CC")
    transport.add("10.0.0.1", "Working", "AA")
    transport.add("10.0.0.2", "Office", "BB")
    _register(controller, "10.0.0.3", "10.0.0.1", "10.0.0.2")
    transport.events.clear()

    zone = asyncio.run(controller.group_zone())

    assert [m.mac_address for m in zone.members] == ["CC", "BB"]
    assert [event[1] for event in transport.events] == [
        "http://10.0.0.1:8090/setZone",
        "http://10.0.0.3:8090/addZoneSlave",
        "http://10.0.0.2:8090/addZoneSlave",
    ]


def test_group_zone_without_devices_fails(controller):
    with pytest.raises(OrchestrationFailure, match="no master"):
        asyncio.run(controller.group_zone())


def test_volume_fan_out_stops_at_first_failure(transport, controller, caplog):
    for n in (1, 2, 3):
        transport.add(f"10.0.0.{n}", f"Speaker {n}", f"MAC{n}")
    _register(controller, "10.0.0.1", "10.0.0.2", "10.0.0.3")
    transport.failing_hosts.add("10.0.0.2")
    transport.events.clear()

    with pytest.raises(CommandFailure) as excinfo:
        asyncio.run(controller.volume(30))

    assert excinfo.value.address == "10.0.0.2"
    assert [event[1] for event in transport.posts()] == [
        "http://10.0.0.1:8090/volume",
        "http://10.0.0.2:8090/volume",
    ]
    errors = [r for r in caplog.records if r.levelname == "ERROR"]
    assert [r.getMessage() for r in errors] == [
        "volume(30) failed: 10.0.0.2: POST http://10.0.0.2:8090/volume failed: "
        "connection refused"
    ]


def test_group_zone_reports_failing_member(transport, controller, caplog):
    transport.add("10.0.0.1", "Working", "AA")
    transport.add("10.0.0.2", "Office", "BB")
    transport.add("10.0.0.3", "Kitchen", "CC")
    _register(controller, "10.0.0.1", "10.0.0.2", "10.0.0.3")
    transport.failing_hosts.add("10.0.0.2")
    transport.events.clear()

    with pytest.raises(CommandFailure):
        asyncio.run(controller.group_zone())

    assert [event[1] for event in transport.posts()] == [
        "http://10.0.0.1:8090/setZone",
        "http://10.0.0.2:8090/addZoneSlave",
    ]
    assert "group_zone() failed: 10.0.0.2" in caplog.text
    assert any(r.levelname == "ERROR" for r in caplog.records)


def test_key_fan_out_finishes_each_device_first(transport, controller):
    transport.add("10.0.0.1", "Office", "AA")
    transport.add("10.0.0.2", "Working", "BB")
    _register(controller, "10.0.0.1", "10.0.0.2")
    transport.events.clear()

    assert asyncio.run(controller.key("PLAY")) == "PLAY"

    hosts_and_states = [
        (event[1].split("/")[2], "press" if 'state="press"' in event[2] else "release")
        for event in transport.posts("/key")
    ]
    assert hosts_and_states == [
        ("10.0.0.1:8090", "press"),
        ("10.0.0.1:8090", "release"),
        ("10.0.0.2:8090", "press"),
        ("10.0.0.2:8090", "release"),
    ]


def test_key_sequence_fans_out_key_by_key(transport, controller):
    transport.add("10.0.0.1", "Office", "AA")
    transport.add("10.0.0.2", "Working", "BB")
    _register(controller, "10.0.0.1", "10.0.0.2")
    transport.events.clear()

    asyncio.run(controller.key_sequence(["POWER", "PRESET_1"]))

    pressed = [
        (event[1].split("/")[2], event[2].split(">")[1].split("<")[0])
        for event in transport.posts("/key")
        if 'state="press"' in event[2]
    ]
    assert pressed == [
        ("10.0.0.1:8090", "POWER"),
        ("10.0.0.2:8090", "POWER"),
        ("10.0.0.1:8090", "PRESET_1"),
        ("10.0.0.2:8090", "PRESET_1"),
    ]


def test_volume_fade_in_keeps_devices_in_lockstep(transport, controller):
    transport.add("10.0.0.1", "Office", "AA")
    transport.add("10.0.0.2", "Working", "BB")
    _register(controller, "10.0.0.1", "10.0.0.2")
    transport.events.clear()

    last = asyncio.run(controller.volume_fade_in(3, start=0, duration=3.0))

    assert last == 2
    steps = [
        (event[1].split("/")[2], event[2]) if event[0] == "POST" else event
        for event in transport.events
    ]
    assert steps == [
        ("10.0.0.1:8090", "<volume>0</volume>"),
        ("10.0.0.2:8090", "<volume>0</volume>"),
        ("SLEEP", 1.0),
        ("10.0.0.1:8090", "<volume>1</volume>"),
        ("10.0.0.2:8090", "<volume>1</volume>"),
        ("SLEEP", 1.0),
        ("10.0.0.1:8090", "<volume>2</volume>"),
        ("10.0.0.2:8090", "<volume>2</volume>"),
        ("SLEEP", 1.0),
    ]


def test_volume_fade_in_uses_configured_defaults(transport):
    transport.add("10.0.0.1", "Office", "AA")
    controller = ZoneController(
        transport, _settings(fade=FadeConfig(duration=8.0, step=2))
    )
    _register(controller, "10.0.0.1")
    transport.events.clear()

    asyncio.run(controller.volume_fade_in(4))

    assert [event[2] for event in transport.posts()] == [
        "<volume>0</volume>",
        "<volume>2</volume>",
        "<volume>4</volume>",
    ]
    sleeps = [event[1] for event in transport.events if event[0] == "SLEEP"]
    assert sleeps == [pytest.approx(8.0 / 3)] * 3


def test_volume_fade_in_same_level_does_nothing(transport, controller):
    transport.add("10.0.0.1", "Office", "AA")
    _register(controller, "10.0.0.1")
    transport.events.clear()

    assert asyncio.run(controller.volume_fade_in(10, start=10)) is None
    assert transport.events == []


def _scripted_search(rounds: list[list[str]], searches: list[tuple]):
    script = iter(rounds)

    async def _search(search_target, on_address, timeout):
        searches.append((search_target, timeout))
        for address in next(script, []):
            on_address(address)

    return _search


def test_detect_combines_fallback_and_ssdp(monkeypatch, transport):
    transport.add("192.168.0.90", "Office", "AA")
    transport.add("192.168.0.95", "Working", "BB")
    transport.add("192.168.0.96", "Kitchen", "CC")
    searches: list[tuple] = []
    monkeypatch.setattr(
        controller_module,
        "ssdp_search",
        _scripted_search(
            [["192.168.0.95"], ["192.168.0.95", "192.168.0.96"], ["192.168.0.90"]],
            searches,
        ),
    )
    settings = Settings(
        zone=ZoneConfig(fallback_addresses=["192.168.0.90", "192.168.0.91"]),
    )
    controller = ZoneController(transport, settings)

    master = asyncio.run(controller.detect())

    assert searches == [("urn:schemas-upnp-org:device:MediaRenderer:1", 2.0)] * 3
    assert list(controller.devices) == ["192.168.0.90", "192.168.0.95", "192.168.0.96"]
    assert master is controller.devices["192.168.0.95"]
    info_queries = [event[1] for event in transport.events if event[0] == "GET"]
    assert info_queries.count("http://192.168.0.95:8090/info") == 1


def test_detect_without_devices_returns_none(monkeypatch, transport):
    monkeypatch.setattr(controller_module, "ssdp_search", _scripted_search([], []))
    controller = ZoneController(
        transport, Settings(zone=ZoneConfig(fallback_addresses=["10.0.0.1"]))
    )

    assert asyncio.run(controller.detect()) is None
    assert controller.devices == {}


def test_detect_promotes_named_master(monkeypatch, transport):
    transport.add("10.0.0.1", "Office", "AA")
    transport.add("10.0.0.2", "Working", "BB")
    monkeypatch.setattr(controller_module, "ssdp_search", _scripted_search([], []))
    controller = ZoneController(transport, _settings())
    _register(controller, "10.0.0.1", "10.0.0.2")
    # simulate a stale election
    controller._master_address = "10.0.0.1"

    master = asyncio.run(controller.detect())

    assert master is controller.devices["10.0.0.2"]


def test_detect_wraps_socket_errors(monkeypatch, transport):
    async def _broken_search(search_target, on_address, timeout):
        raise OSError("Network is unreachable")

    transport.add("10.0.0.1", "Office", "AA")
    monkeypatch.setattr(controller_module, "ssdp_search", _broken_search)
    controller = ZoneController(
        transport, Settings(zone=ZoneConfig(fallback_addresses=["10.0.0.1"]))
    )

    with pytest.raises(OrchestrationFailure, match="Network is unreachable"):
        asyncio.run(controller.detect())

    assert list(controller.devices) == ["10.0.0.1"]


def test_detect_runs_mdns_when_enabled(monkeypatch, transport):
    transport.add("10.0.0.7", "Working", "AA")
    browsed: list[float] = []

    async def _browse(on_address, timeout):
        browsed.append(timeout)
        on_address("10.0.0.7")

    monkeypatch.setattr(controller_module, "ssdp_search", _scripted_search([], []))
    monkeypatch.setattr(controller_module, "mdns_browse", _browse)
    controller = ZoneController(
        transport,
        _settings(discovery=DiscoveryConfig(rounds=1, mdns=True, mdns_timeout=1.5)),
    )

    master = asyncio.run(controller.detect())

    assert browsed == [1.5]
    assert master.address == "10.0.0.7"


def test_detect_keeps_registering_when_one_registration_crashes(
    monkeypatch, transport, caplog
):
    transport.add("10.0.0.1", "Office", "AA")
    transport.add("10.0.0.3", "Working", "CC")
    monkeypatch.setattr(controller_module, "ssdp_search", _scripted_search([], []))
    controller = ZoneController(
        transport,
        Settings(
            zone=ZoneConfig(fallback_addresses=["10.0.0.1", "10.0.0.2", "10.0.0.3"])
        ),
    )
    add_device = controller.add_device

    async def _add_device(address, raise_on_failure=False):
        if address == "10.0.0.2":
            raise RuntimeError("unexpected reply")
        return await add_device(address, raise_on_failure)

    monkeypatch.setattr(controller, "add_device", _add_device)

    master = asyncio.run(controller.detect())

    assert list(controller.devices) == ["10.0.0.1", "10.0.0.3"]
    assert master is controller.devices["10.0.0.3"]
    assert "register(10.0.0.2) failed: unexpected reply" in caplog.text


def test_detect_wraps_unexpected_source_errors(monkeypatch, transport, caplog):
    async def _broken_search(search_target, on_address, timeout):
        raise RuntimeError("bad search target")

    transport.add("10.0.0.1", "Office", "AA")
    monkeypatch.setattr(controller_module, "ssdp_search", _broken_search)
    controller = ZoneController(
        transport, Settings(zone=ZoneConfig(fallback_addresses=["10.0.0.1"]))
    )

    with pytest.raises(OrchestrationFailure, match="bad search target"):
        asyncio.run(controller.detect())

    assert list(controller.devices) == ["10.0.0.1"]
    assert "detect() failed: bad search target" in caplog.text
