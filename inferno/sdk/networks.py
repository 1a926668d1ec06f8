"""EAS network configuration backed by the eas_networks table.

Rows are cached for a short TTL. When EAS is enabled a missing network is a
configuration error; the static Base Sepolia fallback only applies when
attestations are disabled.
"""

from __future__ import annotations

import logging
import time

from sqlmodel import Session, select

from inferno.cli.config import InfernoConfig
from inferno.db.models import EasNetwork
from inferno.sdk.errors import NetworkConfigError
from inferno.sdk.models import EasNetworkConfig

logger = logging.getLogger(__name__)

CACHE_TTL_SECONDS = 30.0

_cache: dict[str, object] = {"expires_at": 0.0, "data": None}


def invalidate_network_cache() -> None:
    """Drop cached network rows."""
    _cache["expires_at"] = 0.0
    _cache["data"] = None


def _to_config(row: EasNetwork) -> EasNetworkConfig:
    return EasNetworkConfig(
        name=row.name,
        chain_id=row.chain_id,
        display_name=row.display_name,
        is_testnet=row.is_testnet,
        enabled=row.enabled,
        eas_contract_address=row.eas_contract_address,
        schema_registry_address=row.schema_registry_address,
        eip712_proxy_address=row.eip712_proxy_address,
        eas_scan_base_url=row.eas_scan_base_url,
        explorer_base_url=row.explorer_base_url,
        rpc_url=row.rpc_url,
        source="db",
    )


def _fallback(config: InfernoConfig) -> EasNetworkConfig:
    return EasNetworkConfig(
        name=get_default_network_name(config),
        chain_id=config.chain_id,
        display_name="Base Sepolia (Fallback)",
        is_testnet=True,
        enabled=True,
        eas_contract_address=config.eas_contract_address,
        schema_registry_address=config.schema_registry_address,
        eas_scan_base_url="https://base-sepolia.easscan.org",
        source="static-fallback",
    )


def _load(session: Session, config: InfernoConfig, bypass_cache: bool) -> list[EasNetworkConfig]:
    now = time.monotonic()
    cached = _cache["data"]
    if not bypass_cache and cached is not None and float(_cache["expires_at"]) > now:  # type: ignore[arg-type]
        return cached  # type: ignore[return-value]

    rows = session.exec(select(EasNetwork).order_by(EasNetwork.name)).all()
    if rows:
        data = [_to_config(row) for row in rows]
        _cache["data"] = data
        _cache["expires_at"] = now + CACHE_TTL_SECONDS
        return data

    logger.warning("No networks found in eas_networks table")
    if config.eas_enabled:
        raise NetworkConfigError("Critical: EAS is enabled but no networks were found in the database.")
    return [_fallback(config)]


def get_default_network_name(config: InfernoConfig) -> str:
    return config.blockchain_network.lower()


def get_all_networks(
    session: Session,
    config: InfernoConfig,
    include_disabled: bool = False,
    bypass_cache: bool = False,
) -> list[EasNetworkConfig]:
    """Return configured networks, enabled ones only unless asked otherwise."""
    networks = _load(session, config, bypass_cache)
    if include_disabled:
        return networks
    return [n for n in networks if n.enabled]


def get_network_config(
    session: Session,
    config: InfernoConfig,
    name: str,
    include_disabled: bool = False,
) -> EasNetworkConfig | None:
    for network in get_all_networks(session, config, include_disabled=include_disabled):
        if network.name == name:
            return network
    return None


def get_network_by_chain_id(
    session: Session,
    config: InfernoConfig,
    chain_id: int,
) -> EasNetworkConfig | None:
    """Look up a network by chain id, including disabled ones."""
    for network in get_all_networks(session, config, include_disabled=True):
        if network.chain_id == chain_id:
            return network
    return None


def resolve_network_config(
    session: Session,
    config: InfernoConfig,
    name: str | None = None,
    include_disabled: bool = False,
) -> EasNetworkConfig:
    """Resolve a network by name (case-insensitive), failing fast when missing.

    Raises:
        NetworkConfigError: If no matching network is configured
    """
    target = (name or get_default_network_name(config)).lower()
    networks = get_all_networks(session, config, include_disabled=include_disabled)
    for network in networks:
        if network.name.lower() == target:
            return network

    message = (
        f"Critical: Network configuration for '{target}' not found. "
        "Please ensure this network is enabled in the eas_networks table."
    )
    logger.error("%s Available: %s", message, [n.name for n in networks])
    raise NetworkConfigError(message)


def build_eas_scan_link(
    session: Session,
    config: InfernoConfig,
    uid: str,
    network: str | None = None,
) -> str | None:
    """Link to the attestation on EAS Scan, or None without a scan URL."""
    if not uid:
        return None
    base_url = (resolve_network_config(session, config, network).eas_scan_base_url or "").rstrip("/")
    return f"{base_url}/attestation/view/{uid}" if base_url else None
