from __future__ import annotations

import asyncio

import typer
from rich.console import Console

from stzone.core import run_mock_device


def register(app: typer.Typer) -> None:
    @app.command()
    def mock(
        name: str = typer.Option("Mock SoundTouch", "--name", "-n", help="Device name"),
        port: int = typer.Option(8090, "--port", "-p", help="Port to listen on"),
        mac: str = typer.Option("A0F6FD000001", "--mac", help="MAC address to report"),
        ip: str = typer.Option("127.0.0.1", "--ip", help="IP address to report"),
    ) -> None:
        """Run a mock SoundTouch device for development."""
        console = Console()
        console.print(f"Starting mock device '{name}' on port {port}...")
        console.print("Press Ctrl+C to stop.\n")

        try:
            asyncio.run(
                run_mock_device(name=name, port=port, mac_address=mac, ip_address=ip)
            )
        except KeyboardInterrupt:
            console.print("\n[green]Mock device stopped.[/green]")
