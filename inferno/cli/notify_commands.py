"""Telegram notification CLI commands."""

from __future__ import annotations

import typer
from rich.console import Console
from sqlmodel import Session

from inferno.cli.config import InfernoConfig
from inferno.db.session import create_db_engine, init_db
from inferno.sdk.telegram import broadcast_telegram_notification, format_notification_message

app = typer.Typer(name="notify", help="Telegram notification commands")
console = Console()


@app.command("format")
def format_command(
    title: str = typer.Argument(..., help="Notification title"),
    message: str = typer.Argument(..., help="Notification body"),
    link: str | None = typer.Option(None, "--link", "-l", help="App path or absolute URL"),
    notification_type: str = typer.Option("", "--type", "-t", help="Notification type, e.g. task_completed"),
) -> None:
    """Print the HTML a notification would be sent as."""
    print(format_notification_message(title, message, link, notification_type, InfernoConfig().app_url))


@app.command("broadcast")
def broadcast_command(
    title: str = typer.Argument(..., help="Notification title"),
    message: str = typer.Argument(..., help="Notification body"),
    link: str | None = typer.Option(None, "--link", "-l", help="App path or absolute URL"),
    notification_type: str = typer.Option("quest_created", "--type", "-t", help="Notification type"),
) -> None:
    """Send a notification to every opted-in Telegram user."""
    config = InfernoConfig()
    if not config.telegram_bot_token:
        console.print("❌ Bot token not configured. Set INFERNO_TELEGRAM_BOT_TOKEN.")
        raise typer.Exit(1)

    engine = create_db_engine(config.database_url)
    init_db(engine)
    with Session(engine) as session:
        summary = broadcast_telegram_notification(session, config, title, message, link, notification_type)
    console.print(f"✅ Broadcast finished: {summary.sent} sent, {summary.failed} failed")
