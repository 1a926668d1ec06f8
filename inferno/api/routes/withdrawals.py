"""DG token withdrawal and withdrawal attestation endpoints."""

from __future__ import annotations

import logging
import time

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlmodel import Session

from inferno.api.deps import (
    Web3ForChain,
    get_config,
    get_current_user,
    get_session,
    get_web3_factory,
    get_web3_for_chain,
    scan_link,
)
from inferno.cli.config import InfernoConfig, create_service_account
from inferno.db import crud
from inferno.db.models import DGTokenWithdrawal
from inferno.sdk.auth import validate_wallet_ownership
from inferno.sdk.errors import WalletValidationError
from inferno.sdk.gasless import build_attestation_record, handle_gasless_attestation
from inferno.sdk.hashing import normalize_bytes32
from inferno.sdk.models import AuthUser, DelegatedAttestationSignature, WithdrawalMessage
from inferno.sdk.networks import get_default_network_name
from inferno.sdk.registry import decode_attestation_data
from inferno.sdk.withdrawal import dg_to_wei, has_valid_dg_nation_key, transfer_dg_tokens, verify_withdrawal_signature

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/token", tags=["withdrawals"])

WITHDRAWAL_SCHEMA_KEY = "dg_withdrawal"


class WithdrawRequest(BaseModel):
    wallet_address: str | None = Field(default=None, alias="walletAddress")
    amount_dg: int | None = Field(default=None, alias="amountDG")
    signature: str | None = None
    deadline: int | None = None
    chain_id: int | None = Field(default=None, alias="chainId")


class CommitWithdrawalAttestationRequest(BaseModel):
    withdrawal_id: int | None = Field(default=None, alias="withdrawalId")
    attestation_signature: DelegatedAttestationSignature | None = Field(default=None, alias="attestationSignature")


@router.post("/withdraw")
def withdraw(
    body: WithdrawRequest,
    user: AuthUser = Depends(get_current_user),
    session: Session = Depends(get_session),
    config: InfernoConfig = Depends(get_config),
    web3_for_chain: Web3ForChain = Depends(get_web3_for_chain),
):
    """Convert XP into DG tokens sent from the service wallet."""
    if not body.wallet_address or not body.amount_dg or not body.signature or not body.deadline or not body.chain_id:
        raise HTTPException(status_code=400, detail="Missing required fields")

    try:
        wallet = validate_wallet_ownership(user, body.wallet_address, "token:withdraw")
    except WalletValidationError as e:
        raise HTTPException(status_code=403, detail=str(e))

    w3 = None
    try:
        w3 = web3_for_chain(body.chain_id)
    except ValueError as e:
        logger.error("No RPC for withdrawal chain %s: %s", body.chain_id, e)

    if config.dg_nation_lock_address:
        if w3 is None or not has_valid_dg_nation_key(w3, wallet, config.dg_nation_lock_address):
            raise HTTPException(status_code=403, detail="DG Nation membership required")

    token_address = config.dg_contracts_by_chain().get(body.chain_id)
    if not token_address:
        raise HTTPException(status_code=400, detail="Unsupported or misconfigured chainId")

    message = WithdrawalMessage(user=wallet, amount=dg_to_wei(body.amount_dg), deadline=body.deadline)
    verification = verify_withdrawal_signature(config, message, body.signature, body.chain_id)
    if not verification.valid:
        raise HTTPException(status_code=403, detail="Invalid signature")
    if body.deadline < int(time.time()):
        raise HTTPException(status_code=400, detail="Signature expired")

    initiation = crud.initiate_withdrawal(
        session,
        user_id=user.id,
        wallet_address=wallet,
        amount_dg=body.amount_dg,
        signature=body.signature,
        deadline=body.deadline,
        min_amount=config.dg_withdrawal_min_amount,
        max_daily_amount=config.dg_withdrawal_max_daily_amount,
    )
    if not initiation.success:
        raise HTTPException(status_code=400, detail=initiation.error)

    if initiation.idempotent:
        existing = session.get(DGTokenWithdrawal, initiation.withdrawal_id)
        return {
            "success": True,
            "idempotent": True,
            "withdrawalId": existing.id,
            "status": existing.status,
            "transactionHash": existing.transaction_hash,
        }

    try:
        account = create_service_account(config)
    except ValueError as e:
        logger.error("Service wallet unavailable: %s", e)
        account = None

    transfer = transfer_dg_tokens(w3, account, wallet, dg_to_wei(body.amount_dg), token_address)
    if not transfer.success:
        crud.rollback_withdrawal(session, initiation.withdrawal_id, transfer.error or "Transfer failed")
        return JSONResponse(status_code=500, content={"error": transfer.error or "Transfer failed"})

    crud.complete_withdrawal(session, initiation.withdrawal_id, transfer.transaction_hash)
    logger.info("Withdrawal %s of %s DG sent to %s", initiation.withdrawal_id, body.amount_dg, wallet)
    return {
        "success": True,
        "withdrawalId": initiation.withdrawal_id,
        "transactionHash": transfer.transaction_hash,
        "amountDG": body.amount_dg,
    }


@router.post("/withdraw/commit-attestation")
def commit_withdrawal_attestation(
    body: CommitWithdrawalAttestationRequest,
    user: AuthUser = Depends(get_current_user),
    session: Session = Depends(get_session),
    config: InfernoConfig = Depends(get_config),
    web3_factory=Depends(get_web3_factory),
):
    """Attest a completed withdrawal.

    The transfer already happened, so relay failures are reported as a null uid
    rather than an error. The payload must carry the withdrawal's transfer hash.
    """
    if body.withdrawal_id is None:
        raise HTTPException(status_code=400, detail="withdrawalId is required")

    withdrawal = session.get(DGTokenWithdrawal, body.withdrawal_id)
    if withdrawal is None or withdrawal.user_id != user.id:
        raise HTTPException(status_code=404, detail="Withdrawal not found")
    if withdrawal.status != "completed" or not withdrawal.transaction_hash:
        raise HTTPException(status_code=400, detail="Withdrawal not completed")

    if withdrawal.attestation_uid:
        uid = withdrawal.attestation_uid
        return {"success": True, "attestationUid": uid, "attestationScanUrl": scan_link(session, config, uid)}

    empty = {"success": True, "attestationUid": None, "attestationScanUrl": None}
    if not config.eas_enabled:
        return empty

    signature = body.attestation_signature
    if signature is None:
        raise HTTPException(status_code=400, detail="Attestation signature is required")

    decoded = decode_attestation_data(
        session, config, WITHDRAWAL_SCHEMA_KEY, signature.data, get_default_network_name(config)
    )
    if decoded is None:
        raise HTTPException(status_code=400, detail="Invalid attestation payload")
    if normalize_bytes32(decoded.get("withdrawalTxHash")) != normalize_bytes32(withdrawal.transaction_hash):
        raise HTTPException(status_code=400, detail="Attestation payload does not match withdrawal")

    attestation = handle_gasless_attestation(
        session,
        config,
        signature=signature,
        schema_key=WITHDRAWAL_SCHEMA_KEY,
        recipient=withdrawal.wallet_address,
        graceful_degrade=True,
        web3_factory=web3_factory,
    )
    if not attestation.success or not attestation.uid:
        return empty

    withdrawal.attestation_uid = attestation.uid
    session.add(withdrawal)
    record = build_attestation_record(
        session, config, schema_key=WITHDRAWAL_SCHEMA_KEY, signature=signature, result=attestation
    )
    if record is not None:
        session.add(record)
    session.commit()
    logger.info("Withdrawal %s attested as %s", withdrawal.id, attestation.uid)
    return {
        "success": True,
        "attestationUid": attestation.uid,
        "attestationScanUrl": scan_link(session, config, attestation.uid),
    }
