"""Typer CLI for the P2E Inferno relay.

Provides the schema, withdrawal and notify command groups and `serve` for the
HTTP API.
"""

from __future__ import annotations

import typer
import uvicorn
from rich.console import Console

from inferno import __version__
from inferno.api.app import create_app
from inferno.cli.config import InfernoConfig
from inferno.cli.notify_commands import app as notify_app
from inferno.cli.schema_commands import app as schema_app
from inferno.cli.withdrawal_commands import app as withdrawal_app
from inferno.log import configure_logging


app = typer.Typer(
    name="inferno",
    help="P2E Inferno relay - gasless attestations, quest verification and DG withdrawals",
    add_completion=False,
    rich_markup_mode="rich"
)
console = Console()

app.add_typer(schema_app, name="schema", help="EAS schema registry commands")
app.add_typer(withdrawal_app, name="withdrawal", help="EIP-712 withdrawal signature commands")
app.add_typer(notify_app, name="notify", help="Telegram notification commands")


def version_callback(show_version: bool) -> None:
    """Show version and exit."""
    if show_version:
        console.print(f"Inferno relay version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True
    )
) -> None:
    """P2E Inferno relay CLI."""
    pass


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", "-p", help="Bind port"),
) -> None:
    """Run the HTTP API."""
    config = InfernoConfig()
    configure_logging(config.log_level)
    console.print(f"Starting relay on {host}:{port} (network: {config.blockchain_network})")
    uvicorn.run(create_app(config), host=host, port=port, log_config=None)


if __name__ == "__main__":
    app()
