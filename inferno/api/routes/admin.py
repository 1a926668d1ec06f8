"""Admin endpoints for EAS schemas, schema keys and networks."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ValidationError
from sqlmodel import Session

from inferno.api.deps import get_config, get_session, get_web3_factory, require_admin
from inferno.cli.config import InfernoConfig, create_service_account
from inferno.sdk import registry
from inferno.sdk.eas import EASClient
from inferno.sdk.errors import NetworkConfigError
from inferno.sdk.models import SchemaRegistration
from inferno.sdk.networks import get_all_networks, resolve_network_config

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin)])


class SchemaKeyCreate(BaseModel):
    key: str
    label: str = ""
    description: str | None = None


class SchemaUpdate(BaseModel):
    name: str | None = None
    description: str | None = None
    schema_definition: str | None = None
    category: str | None = None
    revocable: bool | None = None
    schema_key: str | None = None


def _status_for(error: ValueError) -> int:
    message = str(error)
    if "already exists" in message or "existing attestations" in message:
        return 409
    return 400


# ---------- Schemas ----------
@router.get("/eas-schemas")
def list_schemas(
    category: str | None = None,
    network: str | None = None,
    session: Session = Depends(get_session),
    config: InfernoConfig = Depends(get_config),
):
    return {"schemas": registry.list_schemas(session, config, category=category, network=network)}


@router.post("/eas-schemas", status_code=201)
def create_schema(
    body: dict[str, Any],
    session: Session = Depends(get_session),
    config: InfernoConfig = Depends(get_config),
):
    try:
        registration = SchemaRegistration.model_validate(body)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid schema: {e.errors()[0]['msg']}")
    try:
        schema = registry.register_schema(session, config, registration)
    except ValueError as e:
        raise HTTPException(status_code=_status_for(e), detail=str(e))
    return {"schema": schema}


@router.get("/eas-schemas/{schema_uid}")
def get_schema(
    schema_uid: str,
    network: str | None = None,
    session: Session = Depends(get_session),
    config: InfernoConfig = Depends(get_config),
):
    schema = registry.get_schema(session, config, schema_uid, network)
    if schema is None:
        raise HTTPException(status_code=404, detail="Schema not found")
    return {"schema": schema}


@router.patch("/eas-schemas/{schema_uid}")
def update_schema(
    schema_uid: str,
    body: SchemaUpdate,
    network: str | None = None,
    session: Session = Depends(get_session),
    config: InfernoConfig = Depends(get_config),
):
    updates = body.model_dump(exclude_none=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No updatable fields provided")
    try:
        schema = registry.update_schema(session, config, schema_uid, updates, network)
    except ValueError as e:
        raise HTTPException(status_code=_status_for(e), detail=str(e))
    if schema is None:
        raise HTTPException(status_code=404, detail="Schema not found")
    return {"schema": schema}


@router.delete("/eas-schemas/{schema_uid}")
def delete_schema(
    schema_uid: str,
    network: str | None = None,
    session: Session = Depends(get_session),
    config: InfernoConfig = Depends(get_config),
):
    try:
        deleted = registry.delete_schema(session, config, schema_uid, network)
    except ValueError as e:
        raise HTTPException(status_code=_status_for(e), detail=str(e))
    if not deleted:
        raise HTTPException(status_code=404, detail="Schema not found")
    return {"success": True}


@router.post("/eas-schemas/{schema_uid}/redeploy")
def redeploy_schema(
    schema_uid: str,
    network: str | None = None,
    session: Session = Depends(get_session),
    config: InfernoConfig = Depends(get_config),
    web3_factory=Depends(get_web3_factory),
):
    """Register a stored schema on-chain, replacing placeholder UIDs."""
    schema = registry.get_schema(session, config, schema_uid, network)
    if schema is None:
        raise HTTPException(status_code=404, detail="Schema not found")

    try:
        net = resolve_network_config(session, config, schema.network)
        rpc_url = net.rpc_url or config.rpc_url_for_chain(net.chain_id)
        if not rpc_url:
            raise ValueError(f"RPC URL not configured for chain {net.chain_id}")
        client = EASClient(web3_factory(rpc_url), net.eas_contract_address, net.schema_registry_address)
        client.set_signer(create_service_account(config))
        schema = registry.deploy_schema_onchain(session, client, schema)
    except (ValueError, NetworkConfigError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error("Schema redeploy failed for %s: %s", schema_uid, e)
        raise HTTPException(status_code=500, detail=f"Schema deployment failed: {e}")
    return {"success": True, "schema": schema}


# ---------- Schema keys ----------
@router.get("/eas-schema-keys")
def list_schema_keys(include_inactive: bool = False, session: Session = Depends(get_session)):
    return {"keys": registry.list_schema_keys(session, include_inactive=include_inactive)}


@router.post("/eas-schema-keys", status_code=201)
def create_schema_key(body: SchemaKeyCreate, session: Session = Depends(get_session)):
    try:
        row = registry.create_schema_key(session, body.key, body.label, body.description)
    except ValueError as e:
        raise HTTPException(status_code=_status_for(e), detail=str(e))
    return {"key": row}


@router.delete("/eas-schema-keys/{key}")
def deactivate_schema_key(key: str, session: Session = Depends(get_session)):
    row = registry.deactivate_schema_key(session, key)
    if row is None:
        raise HTTPException(status_code=404, detail="Schema key not found")
    return {"key": row}


# ---------- Networks ----------
@router.get("/eas-networks")
def list_networks(
    include_disabled: bool = False,
    session: Session = Depends(get_session),
    config: InfernoConfig = Depends(get_config),
):
    try:
        networks = get_all_networks(session, config, include_disabled=include_disabled, bypass_cache=True)
    except NetworkConfigError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return {"networks": [n.model_dump() for n in networks]}
