from __future__ import annotations

import asyncio
import logging
from types import TracebackType
from typing import Protocol

import aiohttp

from stzone.errors import TransportError

logger = logging.getLogger(__name__)

XML_HEADERS = {"Content-Type": "application/xml"}


class Transport(Protocol):
    async def get(self, url: str) -> str: ...

    async def post(self, url: str, body: str) -> str: ...


class HttpTransport:
    """aiohttp-backed transport; one session shared by every device."""

    def __init__(
        self, timeout: float = 5.0, session: aiohttp.ClientSession | None = None
    ) -> None:
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> HttpTransport:
        self._require_session()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

    def _require_session(self) -> aiohttp.ClientSession:
        # created lazily so a transport also works without "async with"
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self._session

    async def get(self, url: str) -> str:
        return await self._request("GET", url)

    async def post(self, url: str, body: str) -> str:
        return await self._request("POST", url, body)

    async def _request(self, method: str, url: str, body: str | None = None) -> str:
        session = self._require_session()
        logger.debug("%s %s %s", method, url, body or "")
        try:
            async with session.request(
                method,
                url,
                data=body,
                headers=XML_HEADERS if body is not None else None,
            ) as resp:
                resp.raise_for_status()
                return await resp.text()
        except (asyncio.TimeoutError, TimeoutError) as exc:
            raise TransportError(f"{method} {url} timed out") from exc
        except aiohttp.ClientError as exc:
            raise TransportError(f"{method} {url} failed: {exc}") from exc
        except (UnicodeDecodeError, LookupError) as exc:
            raise TransportError(f"{method} {url} sent an undecodable body") from exc
