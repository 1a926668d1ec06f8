"""Server-side gasless attestation handling.

Takes a client-signed delegated attestation, checks it against the expected
recipient and the schema registered for the key, relays it on-chain and
applies the graceful degradation policy to failures.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlmodel import Session

from inferno.cli.config import InfernoConfig
from inferno.db.models import Attestation
from inferno.sdk.auth import validate_wallet_ownership
from inferno.sdk.delegated import Web3Factory, create_delegated_attestation
from inferno.sdk.errors import WalletValidationError
from inferno.sdk.models import (
    AuthUser,
    DelegatedAttestationParams,
    DelegatedAttestationSignature,
    GaslessAttestationResult,
)
from inferno.sdk.networks import get_default_network_name
from inferno.sdk.registry import resolve_schema_uid

logger = logging.getLogger(__name__)


def should_gracefully_degrade(config: InfernoConfig, schema_key: str | None = None) -> bool:
    """Per-schema override first, then the global setting."""
    if schema_key:
        override = config.schema_degrade_override(schema_key)
        if override is not None:
            return override
    return config.eas_graceful_degrade


def _degrade_or_fail(graceful_degrade: bool, error: str) -> GaslessAttestationResult:
    if graceful_degrade:
        return GaslessAttestationResult(success=True)
    return GaslessAttestationResult(success=False, error=error)


def handle_gasless_attestation(
    session: Session,
    config: InfernoConfig,
    *,
    signature: DelegatedAttestationSignature | None,
    schema_key: str,
    recipient: str,
    graceful_degrade: bool | None = None,
    network: str | None = None,
    web3_factory: Web3Factory | None = None,
) -> GaslessAttestationResult:
    """Relay a delegated attestation for `recipient` under `schema_key`.

    Args:
        session: Database session
        config: Relay configuration
        signature: Client signature, or None if the client sent none
        schema_key: Logical schema key, e.g. "quest_task_reward_claim"
        recipient: Wallet the attestation must be issued to
        graceful_degrade: Explicit degrade flag; defaults to the configured policy
        network: Network name; defaults to the configured network
        web3_factory: Builds a Web3 client from an RPC URL

    Returns:
        GaslessAttestationResult with uid and tx hash on success
    """
    degrade = graceful_degrade if graceful_degrade is not None else should_gracefully_degrade(config, schema_key)

    if not config.eas_enabled:
        logger.debug("EAS is disabled, skipping attestation for %s", schema_key)
        return GaslessAttestationResult(success=True)

    if signature is None:
        message = f"EAS enabled but no attestation signature provided for {schema_key}"
        if degrade:
            logger.warning(message)
        else:
            logger.error(message)
        return _degrade_or_fail(degrade, "Attestation signature is required")

    try:
        # Security check: never degraded
        if signature.recipient.lower() != recipient.lower():
            logger.error(
                "Signature recipient (%s) does not match expected recipient (%s) for %s",
                signature.recipient, recipient, schema_key,
            )
            return GaslessAttestationResult(success=False, error="Signature recipient mismatch")

        resolved_network = network or get_default_network_name(config)
        schema_uid = resolve_schema_uid(session, config, schema_key, resolved_network)
        if not schema_uid:
            message = f"Schema UID not found for key '{schema_key}' on network '{resolved_network}'"
            if degrade:
                logger.warning(message)
            else:
                logger.error(message)
            return _degrade_or_fail(degrade, "Schema UID not configured")

        if signature.schema_uid and signature.schema_uid.lower() != schema_uid.lower():
            logger.error(
                "Signature schema UID (%s) does not match resolved schema UID (%s) for %s on %s",
                signature.schema_uid, schema_uid, schema_key, resolved_network,
            )
            return GaslessAttestationResult(success=False, error="Signature schema UID mismatch")

        logger.info(
            "Creating delegated attestation key=%s schema=%s recipient=%s network=%s",
            schema_key, schema_uid, recipient, resolved_network,
        )
        result = create_delegated_attestation(
            session,
            config,
            DelegatedAttestationParams(
                schema_uid=schema_uid,
                recipient=signature.recipient,
                data=signature.data,
                signature=signature.signature,
                deadline=signature.deadline,
                chain_id=signature.chain_id,
                expiration_time=signature.expiration_time,
                revocable=signature.revocable,
                ref_uid=signature.ref_uid,
            ),
            web3_factory=web3_factory,
        )

        if result.success and result.uid:
            logger.info("Delegated attestation created key=%s uid=%s tx=%s", schema_key, result.uid, result.tx_hash)
            return GaslessAttestationResult(success=True, uid=result.uid, tx_hash=result.tx_hash)

        message = result.error or "Failed to create delegated attestation"
        logger.error("Failed to create delegated attestation for %s: %s", schema_key, message)
        return _degrade_or_fail(degrade, message)

    except Exception as e:
        message = str(e) or "Exception during attestation creation"
        logger.error("Exception during delegated attestation creation for %s: %s", schema_key, message)
        return _degrade_or_fail(degrade, message)


def extract_and_validate_wallet_from_signature(
    config: InfernoConfig,
    user: AuthUser,
    signature: DelegatedAttestationSignature | None,
    context: str,
) -> str | None:
    """Return the signing wallet after checking it is linked to the user.

    Returns None when attestations are disabled.

    Raises:
        WalletValidationError: If the signature is missing or the wallet is not the user's
    """
    if not config.eas_enabled:
        logger.debug("EAS disabled, skipping wallet validation (%s)", context)
        return None

    if signature is None:
        logger.error("Attestation signature required but not provided (%s, user=%s)", context, user.id)
        raise WalletValidationError(
            "Attestation signature is required to claim rewards",
            code="SIGNATURE_REQUIRED",
        )

    return validate_wallet_ownership(user, signature.recipient, context)


def build_attestation_record(
    session: Session,
    config: InfernoConfig,
    *,
    schema_key: str,
    signature: DelegatedAttestationSignature | None,
    result: GaslessAttestationResult,
    network: str | None = None,
) -> Attestation | None:
    """Row for the ``attestations`` table describing a relayed attestation.

    Returns None when nothing was relayed (disabled or degraded). The caller
    adds the row and commits it together with the rest of its writes.
    """
    if signature is None or not result.uid:
        return None
    resolved_network = (network or get_default_network_name(config)).lower()
    schema_uid = resolve_schema_uid(session, config, schema_key, resolved_network)
    if not schema_uid:
        logger.warning("Attestation %s relayed but schema key %s no longer resolves", result.uid, schema_key)
        return None
    expiration = None
    if signature.expiration_time:
        expiration = datetime.fromtimestamp(signature.expiration_time, tz=timezone.utc)
    return Attestation(
        attestation_uid=result.uid,
        schema_uid=schema_uid,
        network=resolved_network,
        attester=signature.attester or signature.recipient,
        recipient=signature.recipient,
        data={"platform": "P2E Inferno Gasless", "txHash": result.tx_hash},
        expiration_time=expiration,
    )
