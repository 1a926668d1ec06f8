"""Schema deployment script.

Registers every stored schema of a network on the EAS schema registry with the
service wallet, replacing placeholder UIDs with the on-chain ones, and writes
a JSON manifest of the deployed UIDs.
"""

from __future__ import annotations

import json
from pathlib import Path

from sqlmodel import Session

from inferno.cli.config import InfernoConfig, create_service_account, create_web3
from inferno.db.session import create_db_engine, init_db
from inferno.sdk.eas import EASClient
from inferno.sdk.networks import resolve_network_config
from inferno.sdk.registry import deploy_schema_onchain, list_schemas


def write_manifest(network: str, uids: dict[str, str], output_dir: Path) -> Path:
    """Write {schema name: uid} for a network."""
    output_dir.mkdir(parents=True, exist_ok=True)
    manifest = output_dir / f"eas_schemas_{network}.json"
    manifest.write_text(json.dumps({"network": network, "schemas": uids}, indent=2, sort_keys=True))
    return manifest


def deploy(
    config: InfernoConfig | None = None,
    network: str | None = None,
    client: EASClient | None = None,
    output_dir: Path | None = None,
) -> dict[str, str]:
    """Deploy all schemas of a network and return {schema name: uid}."""
    config = config or InfernoConfig()
    engine = create_db_engine(config.database_url)
    init_db(engine)

    with Session(engine) as session:
        net = resolve_network_config(session, config, network)
        if client is None:
            client = EASClient(
                create_web3(config, net.chain_id),
                net.eas_contract_address,
                net.schema_registry_address,
            )
            client.set_signer(create_service_account(config))

        schemas = list_schemas(session, config, network=net.name)
        print(f"Deploying {len(schemas)} schema(s) to {net.display_name}")

        uids: dict[str, str] = {}
        for schema in schemas:
            try:
                deployed = deploy_schema_onchain(session, client, schema)
                uids[deployed.name] = deployed.schema_uid
                print(f"✅ {deployed.name}: {deployed.schema_uid}")
            except Exception as e:
                print(f"❌ {schema.name}: {e}")

    manifest = write_manifest(net.name, uids, output_dir or Path.cwd() / "artifacts")
    print(f"📋 Manifest written: {manifest}")
    return uids


if __name__ == "__main__":
    deployed = deploy()
    print(f"Deployed {len(deployed)} schema(s)")
