from __future__ import annotations

import logging
from collections.abc import Iterable

from stzone.config import DeviceConfig
from stzone.errors import CommandFailure, InitializationFailure, TransportError
from stzone.models import DeviceInfo, KeyState, NetworkInterface, Zone

from .fade import plan_fade
from .protocol import key_body, parse_info, volume_body, zone_body
from .timing import delay
from .transport import Transport

logger = logging.getLogger(__name__)


class SoundTouchDevice:
    """One speaker reachable over its HTTP control API.

    A handle starts out with just an address. ``init()`` queries ``/info``
    and fills in the identity; until then the handle is not ``valid`` and
    refuses to send commands.
    """

    def __init__(
        self, address: str, transport: Transport, config: DeviceConfig | None = None
    ) -> None:
        self._address = address
        self._transport = transport
        self._config = config or DeviceConfig()
        self.uri: str | None = None
        self.info: DeviceInfo | None = None

    def __repr__(self) -> str:
        name = self.info.name if self.info else "?"
        return f"SoundTouchDevice({self._address!r}, name={name!r})"

    @property
    def address(self) -> str:
        return self._address

    @property
    def valid(self) -> bool:
        return self.info is not None

    @property
    def device_id(self) -> str | None:
        return self.info.device_id if self.info else None

    @property
    def name(self) -> str | None:
        return self.info.name if self.info else None

    @property
    def type(self) -> str | None:
        return self.info.type if self.info else None

    @property
    def primary(self) -> NetworkInterface | None:
        return self.info.primary if self.info else None

    @property
    def secondary(self) -> NetworkInterface | None:
        return self.info.secondary if self.info else None

    async def init(self) -> SoundTouchDevice:
        if self.info is not None:
            return self

        uri = f"http://{self._address}:{self._config.port}"
        try:
            text = await self._transport.get(f"{uri}/info")
        except TransportError as exc:
            raise InitializationFailure(self._address, str(exc)) from exc

        # nothing is stored unless the whole document parsed
        info = parse_info(self._address, text)
        self.uri = uri
        self.info = info
        logger.debug(
            "Initialized '%s' (%s, %s) at %s",
            info.name,
            info.type,
            info.device_id,
            self._address,
        )
        return self

    async def _post(self, path: str, body: str) -> None:
        if self.uri is None:
            raise CommandFailure(self._address, "device is not initialized")
        try:
            await self._transport.post(f"{self.uri}/{path}", body)
        except TransportError as exc:
            raise CommandFailure(self._address, str(exc)) from exc

    async def volume(self, level: int) -> int:
        await self._post("volume", volume_body(level))
        logger.debug("Volume %d on %s", level, self._address)
        return level

    async def volume_fade_in(
        self,
        target: float,
        start: float = 0,
        duration: float = 20.0,
        step: float | None = None,
    ) -> int | None:
        """Ramp the volume from ``start`` towards ``target`` over ``duration`` seconds.

        Returns the last level sent, or None when start and target are equal.
        """
        plan = plan_fade(target, start, duration, step)
        last: int | None = None
        for level in plan.levels:
            last = await self.volume(level)
            await delay(plan.step_duration)
        return last

    async def key(self, key: str) -> str:
        key_delay = self._config.key_delay
        sender = self._config.sender
        await self._post("key", key_body(key, KeyState.PRESS, sender))
        await delay(key_delay)
        await self._post("key", key_body(key, KeyState.RELEASE, sender))
        await delay(key_delay)
        logger.debug("Key %s on %s", key, self._address)
        return key

    async def key_sequence(self, keys: Iterable[str]) -> str | None:
        last: str | None = None
        for key in keys:
            last = await self.key(key)
        return last

    async def set_zone(self, zone: Zone) -> None:
        await self._post("setZone", zone_body(zone))

    async def add_zone_slave(self, zone: Zone) -> None:
        await self._post("addZoneSlave", zone_body(zone))
