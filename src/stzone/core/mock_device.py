from __future__ import annotations

import asyncio
import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from xml.sax.saxutils import escape, quoteattr

from aiohttp import web

logger = logging.getLogger(__name__)


@dataclass
class MockSoundTouchDevice:
    name: str = "Mock SoundTouch"
    device_id: str = "A0F6FD000001"
    type: str = "SoundTouch 10"
    mac_address: str = "A0F6FD000001"
    secondary_mac_address: str = "A0F6FD000002"
    ip_address: str = "127.0.0.1"
    host: str = "0.0.0.0"
    port: int = 8090

    volume: int = 0
    received: list[tuple[str, str]] = field(default_factory=list)

    _runner: web.AppRunner | None = field(default=None, repr=False)

    def info_xml(self) -> str:
        interfaces = "".join(
            f"<networkInfo type={quoteattr(kind)}>"
            f"<macAddress>{escape(mac)}</macAddress>"
            f"<ipAddress>{escape(self.ip_address)}</ipAddress>"
            "</networkInfo>"
            for kind, mac in (
                ("SCM", self.mac_address),
                ("SMSC", self.secondary_mac_address),
            )
        )
        return (
            f'<?xml version="1.0" encoding="UTF-8" ?>'
            f"<info deviceID={quoteattr(self.device_id)}>"
            f"<name>{escape(self.name)}</name>"
            f"<type>{escape(self.type)}</type>"
            f"{interfaces}"
            "</info>"
        )

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/info", self._handle_info)
        app.router.add_post("/volume", self._handle_volume)
        for path in ("/key", "/setZone", "/addZoneSlave"):
            app.router.add_post(path, self._handle_record)
        return app

    async def start(self) -> None:
        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        logger.info("Mock device '%s' listening on port %d", self.name, self.port)

    async def stop(self) -> None:
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
            logger.info("Mock device '%s' stopped", self.name)

    async def run_forever(self) -> None:
        await self.start()
        try:
            await asyncio.Event().wait()
        finally:
            await self.stop()

    async def _handle_info(self, _request: web.Request) -> web.Response:
        return web.Response(text=self.info_xml(), content_type="application/xml")

    async def _handle_volume(self, request: web.Request) -> web.Response:
        body = await request.text()
        self.received.append((request.path, body))
        try:
            self.volume = int((ET.fromstring(body).text or "").strip())
        except (ET.ParseError, ValueError):
            return web.Response(status=400, text="bad volume")
        logger.info("Volume set to %d", self.volume)
        return web.Response(text="<status>/volume</status>")

    async def _handle_record(self, request: web.Request) -> web.Response:
        body = await request.text()
        self.received.append((request.path, body))
        logger.info("%s %s", request.path, body)
        return web.Response(text=f"<status>{escape(request.path)}</status>")


async def run_mock_device(
    name: str = "Mock SoundTouch",
    port: int = 8090,
    mac_address: str = "A0F6FD000001",
    ip_address: str = "127.0.0.1",
) -> None:
    device = MockSoundTouchDevice(
        name=name, port=port, mac_address=mac_address, ip_address=ip_address
    )
    await device.run_forever()
