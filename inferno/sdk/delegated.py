"""Delegated attestation submission through the service wallet.

The user signs the attestation off-chain and is recorded as the attester;
the service wallet pays gas for `EAS.attestByDelegation`.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from sqlmodel import Session, select
from web3 import Web3

from inferno.cli.config import InfernoConfig, create_service_account
from inferno.db.models import EasNetwork
from inferno.sdk.chain import parse_signature
from inferno.sdk.eas import EASClient
from inferno.sdk.hashing import is_hex, is_hex32
from inferno.sdk.models import DelegatedAttestationParams, GaslessAttestationResult
from inferno.sdk.validator import is_valid_address

logger = logging.getLogger(__name__)

Web3Factory = Callable[[str], Web3]


def _http_web3(rpc_url: str) -> Web3:
    return Web3(Web3.HTTPProvider(rpc_url))


def create_delegated_attestation(
    session: Session,
    config: InfernoConfig,
    params: DelegatedAttestationParams,
    web3_factory: Web3Factory | None = None,
) -> GaslessAttestationResult:
    """Validate inputs and submit a delegated attestation.

    Every failure is returned as an unsuccessful result rather than raised.
    """
    try:
        now = int(time.time())
        if params.deadline < now:
            logger.warning("Signature deadline expired (deadline=%s now=%s)", params.deadline, now)
            return GaslessAttestationResult(success=False, error="Signature deadline expired")

        if not is_hex32(params.schema_uid):
            return GaslessAttestationResult(success=False, error="Invalid schema UID format")
        if not is_valid_address(params.recipient):
            return GaslessAttestationResult(success=False, error="Invalid recipient address")
        if not is_hex(params.data):
            return GaslessAttestationResult(success=False, error="Invalid encoded data format")

        if not config.lock_manager_private_key:
            logger.error("Service wallet not configured")
            return GaslessAttestationResult(
                success=False,
                error="Server configuration error - service wallet not configured",
            )

        network = session.exec(select(EasNetwork).where(EasNetwork.chain_id == params.chain_id)).first()
        if not network:
            logger.error("No network configured for chain %s", params.chain_id)
            return GaslessAttestationResult(
                success=False,
                error=f"Chain {params.chain_id} not supported or not configured",
            )
        if not network.enabled:
            return GaslessAttestationResult(success=False, error=f"Chain {params.chain_id} is disabled")
        if not network.rpc_url:
            return GaslessAttestationResult(
                success=False,
                error=f"RPC URL not configured for chain {params.chain_id}",
            )

        try:
            parse_signature(params.signature)
        except ValueError:
            logger.error("Failed to parse attestation signature")
            return GaslessAttestationResult(success=False, error="Invalid signature format")

        logger.debug(
            "Creating delegated attestation schema=%s recipient=%s network=%s",
            params.schema_uid, params.recipient, network.name,
        )
        w3 = (web3_factory or _http_web3)(network.rpc_url)
        client = EASClient(w3, network.eas_contract_address)
        client.set_signer(create_service_account(config))

        # The user is the attester, not the service wallet
        uid, tx_hash = client.attest_by_delegation(params, attester=params.recipient)
        logger.info("Delegated attestation created uid=%s tx=%s recipient=%s", uid, tx_hash, params.recipient)
        return GaslessAttestationResult(success=True, uid=uid, tx_hash=tx_hash)

    except Exception as e:
        message = str(e) or "Failed to create delegated attestation"
        logger.error("Failed to create delegated attestation: %s", message)
        return GaslessAttestationResult(success=False, error=message)
