"""Schema registry CLI commands.

Compute EAS schema UIDs and manage the stored schema catalogue.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table
from sqlmodel import Session

from inferno.cli.config import InfernoConfig
from inferno.contracts.abi import ZERO_ADDRESS
from inferno.db.session import create_db_engine, init_db
from inferno.scripts.deploy_schemas import deploy
from inferno.sdk.hashing import compute_schema_uid
from inferno.sdk.models import SchemaCategory, SchemaRegistration
from inferno.sdk.registry import delete_schema, list_schemas, register_schema, resolve_schema_uid

app = typer.Typer(name="schema", help="EAS schema registry commands")
console = Console()


def _open_session(config: InfernoConfig) -> Session:
    engine = create_db_engine(config.database_url)
    init_db(engine)
    return Session(engine)


@app.command("compute-uid")
def compute_uid_command(
    definition: str = typer.Argument(..., help='Schema definition, e.g. "uint256 score,string note"'),
    resolver: str = typer.Option(ZERO_ADDRESS, "--resolver", help="Resolver contract address"),
    revocable: bool = typer.Option(True, "--revocable/--no-revocable", help="Revocable schema"),
) -> None:
    """Compute the on-chain UID for a schema definition."""
    try:
        uid = compute_schema_uid(definition, resolver, revocable)
    except Exception as e:
        console.print(f"❌ Error computing schema UID: {e}")
        raise typer.Exit(1)
    print(uid)


@app.command("register")
def register_command(
    name: str = typer.Option(..., "--name", "-n", help="Schema name"),
    definition: str = typer.Option(..., "--definition", "-d", help="Schema definition"),
    description: str = typer.Option("", "--description", help="Schema description"),
    category: SchemaCategory = typer.Option(SchemaCategory.ACHIEVEMENT, "--category", "-c", help="Schema category"),
    revocable: bool = typer.Option(False, "--revocable/--no-revocable", help="Revocable schema"),
    key: str | None = typer.Option(None, "--key", "-k", help="Logical schema key"),
    network: str | None = typer.Option(None, "--network", help="Network name"),
    uid: str | None = typer.Option(None, "--uid", help="Schema UID (computed from the definition if omitted)"),
) -> None:
    """Store a schema in the registry."""
    config = InfernoConfig()
    try:
        registration = SchemaRegistration(
            schema_uid=uid or compute_schema_uid(definition, revocable=revocable),
            name=name,
            description=description,
            schema_definition=definition,
            category=category,
            revocable=revocable,
            network=network,
            schema_key=key,
        )
        with _open_session(config) as session:
            schema = register_schema(session, config, registration)
            console.print("✅ Schema registered successfully!")
            console.print(f"Schema UID: [bold]{schema.schema_uid}[/bold]")
            console.print(f"Network: {schema.network}")
    except Exception as e:
        console.print(f"❌ Error registering schema: {e}")
        raise typer.Exit(1)


@app.command("list")
def list_command(
    category: str | None = typer.Option(None, "--category", "-c", help="Filter by category"),
    network: str | None = typer.Option(None, "--network", help="Network name"),
) -> None:
    """List registered schemas."""
    config = InfernoConfig()
    with _open_session(config) as session:
        schemas = list_schemas(session, config, category=category, network=network)

        if not schemas:
            console.print("No schemas registered")
            return

        table = Table(title=f"Schemas on {network or config.blockchain_network}")
        table.add_column("Name")
        table.add_column("Key")
        table.add_column("Category")
        table.add_column("UID")
        for schema in schemas:
            table.add_row(schema.name, schema.schema_key or "-", schema.category, schema.schema_uid)
        console.print(table)


@app.command("delete")
def delete_command(
    schema_uid: str = typer.Argument(..., help="Schema UID"),
    network: str | None = typer.Option(None, "--network", help="Network name"),
) -> None:
    """Delete a schema without attestations."""
    config = InfernoConfig()
    try:
        with _open_session(config) as session:
            deleted = delete_schema(session, config, schema_uid, network)
    except Exception as e:
        console.print(f"❌ Error deleting schema: {e}")
        raise typer.Exit(1)

    if not deleted:
        console.print("❌ Schema not found")
        raise typer.Exit(1)
    console.print("✅ Schema deleted")


@app.command("resolve")
def resolve_command(
    key: str = typer.Argument(..., help="Logical schema key"),
    network: str | None = typer.Option(None, "--network", help="Network name"),
) -> None:
    """Print the current schema UID for a key."""
    config = InfernoConfig()
    with _open_session(config) as session:
        uid = resolve_schema_uid(session, config, key, network)

    if not uid:
        console.print(f"❌ No schema registered for key '{key}'")
        raise typer.Exit(1)
    print(uid)


@app.command("deploy")
def deploy_command(
    network: str | None = typer.Option(None, "--network", help="Network name"),
    output_dir: Path = typer.Option(Path("artifacts"), "--output-dir", "-o", help="Manifest directory"),
) -> None:
    """Register all stored schemas of a network on-chain."""
    try:
        deploy(InfernoConfig(), network=network, output_dir=output_dir)
    except Exception as e:
        console.print(f"❌ Deployment failed: {e}")
        raise typer.Exit(1)
