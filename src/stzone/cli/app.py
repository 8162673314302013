from __future__ import annotations

from typing import Annotated

import typer

from stzone.utils.logging import setup_logging

from .commands import config as config_cmd
from .commands.control import register as register_control
from .commands.detect import register as register_detect
from .commands.mock import register as register_mock

app = typer.Typer(
    help="stzone - group SoundTouch speakers and control them together",
    no_args_is_help=True,
)

app.add_typer(config_cmd.app, name="config")

register_detect(app)
register_control(app)
register_mock(app)


@app.callback(invoke_without_command=True)
def main(
    version: Annotated[
        bool,
        typer.Option("--version", "-v", help="Show version and exit"),
    ] = False,
) -> None:
    """stzone CLI."""
    setup_logging()

    if version:
        from importlib.metadata import version as get_version

        typer.echo(f"stzone version {get_version('stzone')}")
        raise typer.Exit()
