"""Exceptions and the shared failure reporter."""

from __future__ import annotations

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)


class StzoneError(Exception):
    """Base class for all errors raised by this package."""


class TransportError(StzoneError):
    """An HTTP request to a device could not be completed."""


class DeviceError(StzoneError):
    def __init__(self, address: str, message: str) -> None:
        super().__init__(f"{address}: {message}")
        self.address = address


class InitializationFailure(DeviceError):
    """The device info query failed or returned an incomplete document."""


class CommandFailure(DeviceError):
    """A volume, key or zone request was rejected or never arrived."""


class OrchestrationFailure(StzoneError):
    """Discovery or zone setup failed outside of any single device call."""


@dataclass(frozen=True)
class Failure:
    context: str
    error: BaseException

    def __str__(self) -> str:
        return f"{self.context} failed: {self.error}"


def report_failure(context: str, exc: BaseException, reraise: bool = False) -> Failure:
    """Log a failure with its context and return it as a result value.

    With ``reraise`` the exception is raised again after logging, so callers
    on a command chain keep propagating while discovery callers can keep the
    returned ``Failure`` and move on.
    """
    failure = Failure(context, exc)
    if reraise:
        logger.error("%s", failure)
        raise exc
    logger.warning("%s", failure)
    return failure
