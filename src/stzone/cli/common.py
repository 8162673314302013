from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Annotated, TypeVar

import typer

from stzone.config import Settings, get_settings, resolve_config_path
from stzone.core import HttpTransport, ZoneController
from stzone.errors import StzoneError

T = TypeVar("T")

AddressOption = Annotated[
    list[str] | None,
    typer.Option(
        "--address",
        "-a",
        help="Device address to try besides discovery (repeatable, replaces config list)",
    ),
]
RoundsOption = Annotated[
    int | None,
    typer.Option("--rounds", min=0, help="Number of SSDP search rounds"),
]


def load_settings_or_exit() -> Settings:
    try:
        return get_settings()
    except (FileNotFoundError, ValueError) as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(1) from exc


def resolve_config_path_or_exit(allow_missing: bool = False) -> tuple[Path, bool]:
    try:
        return resolve_config_path(allow_missing=allow_missing)
    except FileNotFoundError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(1) from exc


def apply_overrides(
    settings: Settings, addresses: list[str] | None, rounds: int | None
) -> Settings:
    if addresses:
        settings = settings.model_copy(
            update={"zone": settings.zone.model_copy(update={"fallback_addresses": addresses})}
        )
    if rounds is not None:
        settings = settings.model_copy(
            update={"discovery": settings.discovery.model_copy(update={"rounds": rounds})}
        )
    return settings


def build_transport(settings: Settings) -> HttpTransport:
    return HttpTransport(timeout=settings.device.request_timeout)


def run_controller(
    settings: Settings, action: Callable[[ZoneController], Awaitable[T]]
) -> T:
    """Detect devices, run ``action`` on the controller and exit 1 on library errors."""

    async def _run() -> T:
        async with build_transport(settings) as transport:
            controller = ZoneController(transport, settings)
            await controller.detect()
            return await action(controller)

    try:
        return asyncio.run(_run())
    except StzoneError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(1) from exc
