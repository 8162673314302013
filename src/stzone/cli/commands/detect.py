from __future__ import annotations

import logging

import typer
from rich.console import Console
from rich.table import Table

from stzone.cli.common import (
    AddressOption,
    RoundsOption,
    apply_overrides,
    load_settings_or_exit,
    run_controller,
)
from stzone.core import ZoneController

logger = logging.getLogger(__name__)


def render_devices(controller: ZoneController) -> Table:
    master = controller.master
    table = Table()
    table.add_column("Address", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("Type")
    table.add_column("Device ID")
    table.add_column("MAC")
    table.add_column("IP")
    table.add_column("MAC 2")
    table.add_column("IP 2")
    table.add_column("Master", style="yellow")

    for address, device in controller.devices.items():
        primary = device.primary
        secondary = device.secondary
        table.add_row(
            address,
            device.name or "",
            device.type or "",
            device.device_id or "",
            primary.mac_address if primary else "",
            primary.ip_address if primary else "",
            secondary.mac_address if secondary else "",
            secondary.ip_address if secondary else "",
            "✓" if master is not None and master.address == address else "",
        )
    return table


def detect(addresses: AddressOption = None, rounds: RoundsOption = None) -> None:
    """Discover speakers and show which one acts as zone master."""
    console = Console()
    settings = apply_overrides(load_settings_or_exit(), addresses, rounds)

    console.print("Discovering SoundTouch devices...")
    logger.info(
        "Discovery settings: rounds=%d, round_timeout=%.2fs, fallback=%s",
        settings.discovery.rounds,
        settings.discovery.round_timeout,
        ", ".join(settings.zone.fallback_addresses) or "none",
    )

    async def _noop(controller: ZoneController) -> ZoneController:
        return controller

    controller = run_controller(settings, _noop)

    if not controller.devices:
        console.print("No SoundTouch devices found.")
        return

    console.print(render_devices(controller))
    console.print(f"\n[green]Found {len(controller.devices)} device(s)[/green]")


def register(app: typer.Typer) -> None:
    app.command()(detect)
