from __future__ import annotations

import asyncio
import logging
import math
import threading
from collections.abc import Awaitable, Callable, Mapping
from typing import Any
from urllib.parse import urlparse

from async_upnp_client.search import async_search
from zeroconf import ServiceBrowser, ServiceInfo, ServiceListener, Zeroconf

from stzone.errors import Failure, report_failure

logger = logging.getLogger(__name__)

MDNS_SERVICE_TYPE = "_soundtouch._tcp.local."

AddressCallback = Callable[[str], Any]


def responder_address(headers: Mapping[str, Any]) -> str | None:
    host = headers.get("_host")
    if host:
        return str(host)
    location = headers.get("location") or headers.get("LOCATION")
    if location:
        return urlparse(str(location)).hostname
    return None


async def ssdp_search(
    search_target: str, on_address: AddressCallback, timeout: float
) -> None:
    """Send one SSDP search and report every responder until ``timeout`` runs out."""

    async def _on_response(headers: Mapping[str, Any]) -> None:
        address = responder_address(headers)
        if address is None:
            logger.debug("Ignoring SSDP response without an address: %s", headers)
            return
        logger.debug("SSDP response from %s (st=%s)", address, headers.get("st"))
        on_address(address)

    # MX is an integer number of seconds
    await async_search(
        async_callback=_on_response,
        timeout=max(1, math.ceil(timeout)),
        search_target=search_target,
    )


def _pick_ipv4(info: ServiceInfo) -> str | None:
    for address in info.parsed_addresses():
        if ":" not in address:
            return address
    return None


class SoundTouchListener(ServiceListener):
    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        on_address: AddressCallback,
        info_timeout: float,
    ) -> None:
        self._loop = loop
        self._on_address = on_address
        self._info_timeout_ms = max(int(info_timeout * 1000), 1)
        self._lock = threading.Lock()
        self._reported: set[str] = set()

    def add_service(self, zc: Zeroconf, type_: str, name: str) -> None:
        info = zc.get_service_info(type_, name, timeout=self._info_timeout_ms)
        if not info:
            return
        address = _pick_ipv4(info)
        if address is None:
            return
        with self._lock:
            if address in self._reported:
                return
            self._reported.add(address)
        logger.debug("mDNS announced '%s' at %s", name, address)
        # zeroconf calls listeners from its own thread
        self._loop.call_soon_threadsafe(self._on_address, address)

    def update_service(self, zc: Zeroconf, type_: str, name: str) -> None:
        self.add_service(zc, type_, name)

    def remove_service(self, _zc: Zeroconf, _type_: str, name: str) -> None:
        logger.debug("mDNS service '%s' went away", name)


async def mdns_browse(on_address: AddressCallback, timeout: float) -> None:
    loop = asyncio.get_running_loop()
    zeroconf = Zeroconf()
    listener = SoundTouchListener(loop, on_address, timeout)
    ServiceBrowser(zeroconf, MDNS_SERVICE_TYPE, listener)
    try:
        await asyncio.sleep(timeout)
    finally:
        await asyncio.to_thread(zeroconf.close)


class DiscoveryWindow:
    """Deduplicating collector for the addresses seen during one detect run.

    Every address is handed to ``register`` at most once. ``drain()`` waits
    for all registrations started so far, including ones started while
    draining. A registration that raises is reported and does not stop the
    others.
    """

    def __init__(self, register: Callable[[str], Awaitable[object]]) -> None:
        self._register = register
        self._seen: dict[str, None] = {}
        self._tasks: list[tuple[str, asyncio.Task[object]]] = []

    @property
    def addresses(self) -> list[str]:
        return list(self._seen)

    def offer(self, address: str) -> bool:
        if address in self._seen:
            return False
        self._seen[address] = None
        self._tasks.append((address, asyncio.ensure_future(self._register(address))))
        return True

    async def drain(self) -> list[Failure]:
        failures: list[Failure] = []
        done = 0
        while done < len(self._tasks):
            pending = self._tasks[done:]
            done = len(self._tasks)
            results = await asyncio.gather(
                *(task for _address, task in pending), return_exceptions=True
            )
            for (address, _task), result in zip(pending, results):
                if isinstance(result, BaseException):
                    failures.append(report_failure(f"register({address})", result))
        return failures
