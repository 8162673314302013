from __future__ import annotations

import asyncio
from typing import TypeVar

T = TypeVar("T")


async def delay(seconds: float, value: T | None = None) -> T | None:
    """Suspend for ``seconds`` and hand ``value`` back."""
    await asyncio.sleep(max(seconds, 0.0))
    return value
