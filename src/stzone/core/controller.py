"""Zone controller: device registry, discovery, master election and group commands."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from functools import lru_cache

from stzone.config import Settings, get_settings
from stzone.errors import (
    CommandFailure,
    InitializationFailure,
    OrchestrationFailure,
    report_failure,
)
from stzone.models import NetworkInterface, Zone, ZoneMember

from .device import SoundTouchDevice
from .discovery import DiscoveryWindow, mdns_browse, ssdp_search
from .fade import plan_fade
from .timing import delay
from .transport import HttpTransport, Transport

logger = logging.getLogger(__name__)


class ZoneController:
    """Owns the registered devices and fans commands out over them.

    ``devices`` keeps insertion order, which is the order every group
    command and zone member list follows. The master is stored as an
    address and resolved through ``devices``.
    """

    def __init__(self, transport: Transport, settings: Settings | None = None) -> None:
        self._transport = transport
        self._settings = settings or Settings()
        self.devices: dict[str, SoundTouchDevice] = {}
        self._master_address: str | None = None

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def master_name(self) -> str:
        return self._settings.zone.master_name

    @property
    def master(self) -> SoundTouchDevice | None:
        if self._master_address is None:
            return None
        return self.devices.get(self._master_address)

    def _register(self, device: SoundTouchDevice) -> SoundTouchDevice:
        # checked again here: another registration may have finished while
        # this device was initializing
        existing = self.devices.get(device.address)
        if existing is not None:
            return existing

        self.devices[device.address] = device
        if self._master_address is None or device.name == self.master_name:
            self._master_address = device.address
        logger.info(
            "Registered '%s' (%s) at %s%s",
            device.name,
            device.type,
            device.address,
            " as master" if self._master_address == device.address else "",
        )
        return device

    async def add_device(
        self, address: str, raise_on_failure: bool = False
    ) -> SoundTouchDevice | None:
        """Initialize and register the device at ``address``.

        An unreachable or unparsable device is logged and skipped (None is
        returned) unless ``raise_on_failure`` is set. An address that is
        already registered returns the registered handle.
        """
        existing = self.devices.get(address)
        if existing is not None:
            return existing

        device = SoundTouchDevice(address, self._transport, self._settings.device)
        try:
            await device.init()
        except InitializationFailure as exc:
            report_failure(f"add_device({address})", exc, reraise=raise_on_failure)
            return None
        return self._register(device)

    def _reelect_master(self) -> None:
        master = self.master
        if master is None or master.name == self.master_name:
            return
        for address, device in self.devices.items():
            if device.name == self.master_name:
                logger.info("Promoting '%s' at %s to master", device.name, address)
                self._master_address = address
                return

    async def _search_rounds(self, window: DiscoveryWindow) -> None:
        discovery = self._settings.discovery
        for round_no in range(1, discovery.rounds + 1):
            logger.debug(
                "SSDP search %d/%d for %s",
                round_no,
                discovery.rounds,
                discovery.search_target,
            )
            await ssdp_search(
                discovery.search_target, window.offer, discovery.round_timeout
            )

    async def detect(self) -> SoundTouchDevice | None:
        """Discover devices and return the elected master.

        Fallback addresses and SSDP responders (plus mDNS announcements when
        enabled) are registered as they come in; the call returns once every
        search round has elapsed and every started registration finished.
        A failing discovery source is reported and raised as
        ``OrchestrationFailure`` after the started registrations finished.
        """
        discovery = self._settings.discovery
        window = DiscoveryWindow(self.add_device)
        try:
            for address in self._settings.zone.fallback_addresses:
                window.offer(address)

            sources = [self._search_rounds(window)]
            if discovery.mdns:
                sources.append(mdns_browse(window.offer, discovery.mdns_timeout))
            await asyncio.gather(*sources)
        except Exception as exc:
            report_failure("detect()", exc)
            raise OrchestrationFailure(f"discovery failed: {exc}") from exc
        finally:
            await window.drain()

        self._reelect_master()
        master = self.master
        logger.info(
            "Discovery finished: %d device(s), master %s",
            len(self.devices),
            master.name if master else "none",
        )
        return master

    def _require_master(self) -> tuple[SoundTouchDevice, NetworkInterface]:
        master = self.master
        if master is None or master.primary is None:
            raise OrchestrationFailure("no master device registered")
        return master, master.primary

    def build_zone(self) -> Zone:
        master, primary = self._require_master()

        members = [
            ZoneMember(
                mac_address=device.primary.mac_address,
                ip_address=device.primary.ip_address,
            )
            for device in self.devices.values()
            if device.address != master.address and device.primary is not None
        ]
        return Zone(
            master_mac=primary.mac_address,
            sender_ip=primary.ip_address,
            members=members,
        )

    async def group_zone(self) -> Zone:
        """Send the zone to the master, then to each member one after another."""
        master, _primary = self._require_master()
        zone = self.build_zone()

        try:
            await master.set_zone(zone)
            for device in list(self.devices.values()):
                if device.address != master.address:
                    await device.add_zone_slave(zone)
        except CommandFailure as exc:
            report_failure("group_zone()", exc, reraise=True)
        logger.info(
            "Grouped %d member(s) under '%s'", len(zone.members), master.name
        )
        return zone

    async def key(self, key: str) -> str:
        try:
            for device in list(self.devices.values()):
                await device.key(key)
        except CommandFailure as exc:
            report_failure(f"key({key})", exc, reraise=True)
        return key

    async def key_sequence(self, keys: Iterable[str]) -> str | None:
        last: str | None = None
        for key in keys:
            last = await self.key(key)
        return last

    async def volume(self, level: int) -> int:
        try:
            for device in list(self.devices.values()):
                await device.volume(level)
        except CommandFailure as exc:
            report_failure(f"volume({level})", exc, reraise=True)
        return level

    async def volume_fade_in(
        self,
        target: float,
        start: float = 0,
        duration: float | None = None,
        step: float | None = None,
    ) -> int | None:
        """Ramp every device in lockstep; all devices get a level before the pause."""
        fade = self._settings.fade
        plan = plan_fade(
            target,
            start,
            fade.duration if duration is None else duration,
            fade.step if step is None else step,
        )
        devices = list(self.devices.values())
        last: int | None = None
        try:
            for level in plan.levels:
                for device in devices:
                    await device.volume(level)
                last = level
                await delay(plan.step_duration)
        except CommandFailure as exc:
            report_failure(f"volume_fade_in({target})", exc, reraise=True)
        return last


@lru_cache
def get_controller() -> ZoneController:
    """Process-wide controller built from the loaded settings."""
    settings = get_settings()
    transport = HttpTransport(timeout=settings.device.request_timeout)
    return ZoneController(transport, settings)
