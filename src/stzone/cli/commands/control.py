from __future__ import annotations

from typing import Annotated

import typer
from rich.console import Console

from stzone.cli.common import (
    AddressOption,
    RoundsOption,
    apply_overrides,
    load_settings_or_exit,
    run_controller,
)
from stzone.core import ZoneController
from stzone.models import Zone


def group(addresses: AddressOption = None, rounds: RoundsOption = None) -> None:
    """Discover speakers and join them into one zone under the master."""
    settings = apply_overrides(load_settings_or_exit(), addresses, rounds)

    async def _group(controller: ZoneController) -> Zone:
        return await controller.group_zone()

    zone = run_controller(settings, _group)

    console = Console()
    console.print(
        f"[green]✓[/green] Zone master {zone.master_mac} ({zone.sender_ip}) "
        f"with {len(zone.members)} member(s)"
    )
    for member in zone.members:
        console.print(f"  • {member.mac_address} ({member.ip_address})")


def key(
    keys: Annotated[list[str], typer.Argument(help="Key names, sent in order")],
    addresses: AddressOption = None,
    rounds: RoundsOption = None,
) -> None:
    """Press and release keys on every speaker."""
    settings = apply_overrides(load_settings_or_exit(), addresses, rounds)

    async def _keys(controller: ZoneController) -> int:
        await controller.key_sequence(keys)
        return len(controller.devices)

    count = run_controller(settings, _keys)
    Console().print(f"[green]✓[/green] Sent {' '.join(keys)} to {count} device(s)")


def volume(
    level: Annotated[int, typer.Argument(min=0, max=100, help="Volume level")],
    addresses: AddressOption = None,
    rounds: RoundsOption = None,
) -> None:
    """Set the same volume on every speaker."""
    settings = apply_overrides(load_settings_or_exit(), addresses, rounds)

    async def _volume(controller: ZoneController) -> int:
        await controller.volume(level)
        return len(controller.devices)

    count = run_controller(settings, _volume)
    Console().print(f"[green]✓[/green] Volume {level} on {count} device(s)")


def fade(
    target: Annotated[int, typer.Argument(min=0, max=100, help="Target volume")],
    start: Annotated[int, typer.Option("--start", min=0, max=100)] = 0,
    duration: Annotated[
        float | None, typer.Option("--duration", help="Seconds (config default)")
    ] = None,
    step: Annotated[
        float | None, typer.Option("--step", help="Volume change per step")
    ] = None,
    addresses: AddressOption = None,
    rounds: RoundsOption = None,
) -> None:
    """Ramp the volume on every speaker in lockstep."""
    settings = apply_overrides(load_settings_or_exit(), addresses, rounds)

    async def _fade(controller: ZoneController) -> int | None:
        return await controller.volume_fade_in(target, start, duration, step)

    last = run_controller(settings, _fade)
    if last is None:
        Console().print("Nothing to fade: start equals target")
    else:
        Console().print(f"[green]✓[/green] Faded to {last}")


def register(app: typer.Typer) -> None:
    app.command()(group)
    app.command()(key)
    app.command()(volume)
    app.command()(fade)
