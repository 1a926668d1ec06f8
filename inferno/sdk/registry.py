"""Attestation schema registry.

Database-backed catalogue of EAS schemas per network, the logical schema keys
they are published under, and on-chain (re)deployment through the service
wallet.
"""

from __future__ import annotations

import logging
from typing import Any

from eth_abi import decode as abi_decode
from sqlmodel import Session, select

from inferno.cli.config import InfernoConfig
from inferno.db.models import Attestation, AttestationSchema, EasSchemaKey, utcnow
from inferno.sdk.eas import EASClient
from inferno.sdk.hashing import is_hex32
from inferno.sdk.models import SchemaCategory, SchemaRegistration
from inferno.sdk.networks import get_default_network_name
from inferno.sdk.validator import is_valid_schema_definition, is_valid_schema_key, parse_schema_definition

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = {"name", "description", "schema_definition", "category", "revocable", "schema_key"}


def _network(config: InfernoConfig, network: str | None) -> str:
    return (network or get_default_network_name(config)).lower()


def register_schema(
    session: Session,
    config: InfernoConfig,
    registration: SchemaRegistration,
) -> AttestationSchema:
    """Validate and store a schema.

    Raises:
        ValueError: If the definition is malformed or the UID already exists on the network
    """
    network = _network(config, registration.network)
    if not is_valid_schema_definition(registration.schema_definition):
        raise ValueError("Invalid schema definition format")
    if registration.schema_key and not is_valid_schema_key(registration.schema_key):
        raise ValueError("Invalid schema key format")
    if get_schema(session, config, registration.schema_uid, network):
        raise ValueError("Schema with this UID already exists")

    schema = AttestationSchema(
        schema_uid=registration.schema_uid,
        name=registration.name,
        description=registration.description,
        schema_definition=registration.schema_definition,
        category=registration.category.value,
        revocable=registration.revocable,
        network=network,
        schema_key=registration.schema_key,
    )
    session.add(schema)
    session.commit()
    session.refresh(schema)
    logger.info("Registered schema %s (%s) on %s", schema.name, schema.schema_uid, network)
    return schema


def list_schemas(
    session: Session,
    config: InfernoConfig,
    category: str | None = None,
    network: str | None = None,
) -> list[AttestationSchema]:
    q = select(AttestationSchema).where(AttestationSchema.network == _network(config, network))
    if category:
        q = q.where(AttestationSchema.category == category)
    return list(session.exec(q.order_by(AttestationSchema.name)).all())


def get_schema(
    session: Session,
    config: InfernoConfig,
    schema_uid: str,
    network: str | None = None,
) -> AttestationSchema | None:
    q = select(AttestationSchema).where(
        AttestationSchema.schema_uid == schema_uid,
        AttestationSchema.network == _network(config, network),
    )
    return session.exec(q).first()


def update_schema(
    session: Session,
    config: InfernoConfig,
    schema_uid: str,
    updates: dict[str, Any],
    network: str | None = None,
) -> AttestationSchema | None:
    """Apply field updates to a schema; None if it does not exist.

    Raises:
        ValueError: If an updated definition, category or key is invalid
    """
    unknown = set(updates) - UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")
    if "schema_definition" in updates and not is_valid_schema_definition(updates["schema_definition"]):
        raise ValueError("Invalid schema definition format")
    if updates.get("category") is not None:
        updates["category"] = SchemaCategory(updates["category"]).value
    if updates.get("schema_key") and not is_valid_schema_key(updates["schema_key"]):
        raise ValueError("Invalid schema key format")

    schema = get_schema(session, config, schema_uid, network)
    if not schema:
        return None
    for field, value in updates.items():
        setattr(schema, field, value)
    schema.updated_at = utcnow()
    session.add(schema)
    session.commit()
    session.refresh(schema)
    return schema


def delete_schema(
    session: Session,
    config: InfernoConfig,
    schema_uid: str,
    network: str | None = None,
) -> bool:
    """Delete a schema; False if it does not exist.

    Raises:
        ValueError: If attestations reference the schema on the same network
    """
    resolved = _network(config, network)
    used = session.exec(
        select(Attestation.id).where(
            Attestation.schema_uid == schema_uid,
            Attestation.network == resolved,
        ).limit(1)
    ).first()
    if used is not None:
        raise ValueError("Cannot delete schema with existing attestations")

    schema = get_schema(session, config, schema_uid, resolved)
    if not schema:
        return False
    session.delete(schema)
    session.commit()
    logger.info("Deleted schema %s on %s", schema_uid, resolved)
    return True


def resolve_schema_uid(
    session: Session,
    config: InfernoConfig,
    schema_key: str,
    network: str | None = None,
) -> str | None:
    """Most recently registered schema UID for a key on a network."""
    q = (
        select(AttestationSchema)
        .where(
            AttestationSchema.schema_key == schema_key,
            AttestationSchema.network == _network(config, network),
        )
        .order_by(AttestationSchema.created_at.desc(), AttestationSchema.id.desc())
    )
    schema = session.exec(q).first()
    if not schema:
        logger.debug("No schema registered for key %s", schema_key)
        return None
    return schema.schema_uid


# ---------- Schema keys ----------
def create_schema_key(
    session: Session,
    key: str,
    label: str,
    description: str | None = None,
) -> EasSchemaKey:
    """Create a schema key.

    Raises:
        ValueError: If the key is malformed or already exists
    """
    if not is_valid_schema_key(key):
        raise ValueError("Schema key must be lowercase snake_case")
    if not label:
        raise ValueError("Label is required")
    if session.get(EasSchemaKey, key):
        raise ValueError("Schema key already exists")

    row = EasSchemaKey(key=key, label=label, description=description)
    session.add(row)
    session.commit()
    session.refresh(row)
    return row


def list_schema_keys(session: Session, include_inactive: bool = False) -> list[EasSchemaKey]:
    q = select(EasSchemaKey)
    if not include_inactive:
        q = q.where(EasSchemaKey.active == True)  # noqa: E712
    return list(session.exec(q.order_by(EasSchemaKey.key)).all())


def deactivate_schema_key(session: Session, key: str) -> EasSchemaKey | None:
    row = session.get(EasSchemaKey, key)
    if not row:
        return None
    row.active = False
    session.add(row)
    session.commit()
    session.refresh(row)
    return row


# ---------- On-chain ----------
def deploy_schema_onchain(
    session: Session,
    client: EASClient,
    schema: AttestationSchema,
) -> AttestationSchema:
    """Register a stored schema on-chain and replace a placeholder UID with the real one.

    Placeholder UIDs (e.g. seeded templates) are swapped for the registry UID;
    a real UID that differs from the on-chain result is also updated.
    """
    uid = client.register_schema(schema.schema_definition, revocable=schema.revocable)
    if schema.schema_uid != uid:
        kind = "UID" if is_hex32(schema.schema_uid) else "placeholder UID"
        logger.info("Replacing %s %s with %s", kind, schema.schema_uid, uid)
        schema.schema_uid = uid
        schema.updated_at = utcnow()
        session.add(schema)
        session.commit()
        session.refresh(schema)
    return schema


def decode_attestation_data(
    session: Session,
    config: InfernoConfig,
    schema_key: str,
    encoded_data: str,
    network: str | None = None,
) -> dict[str, Any] | None:
    """Decode ABI-encoded attestation data with the schema registered for a key.

    Returns None when no schema is registered or the payload does not decode.
    """
    q = (
        select(AttestationSchema)
        .where(
            AttestationSchema.schema_key == schema_key,
            AttestationSchema.network == _network(config, network),
        )
        .order_by(AttestationSchema.created_at.desc(), AttestationSchema.id.desc())
    )
    schema = session.exec(q).first()
    if not schema:
        return None
    try:
        fields = parse_schema_definition(schema.schema_definition)
        values = abi_decode([t for t, _ in fields], bytes.fromhex(encoded_data.removeprefix("0x")))
    except Exception as e:
        logger.warning("Could not decode %s attestation data: %s", schema_key, e)
        return None
    return {name: value for (_, name), value in zip(fields, values)}
