"""Quest task completion, reward claims and completion attestations."""

from __future__ import annotations

import logging
import math
from typing import Any

from fastapi import APIRouter, Depends, Header, HTTPException
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
from inferno.cli.config import InfernoConfig
from inferno.db import crud
from inferno.db.models import QuestTask, UserTaskCompletion
from inferno.sdk.auth import validate_wallet_ownership
from inferno.sdk.errors import WalletValidationError
from inferno.sdk.gasless import (
    build_attestation_record,
    extract_and_validate_wallet_from_signature,
    handle_gasless_attestation,
)
from inferno.sdk.hashing import normalize_bytes32, normalize_uint
from inferno.sdk.models import AuthUser, DelegatedAttestationSignature
from inferno.sdk.networks import get_default_network_name
from inferno.sdk.quests.registry import get_verification_strategy, is_blockchain_task
from inferno.sdk.registry import decode_attestation_data

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/quests", tags=["quests"])

TASK_REWARD_SCHEMA_KEY = "quest_task_reward_claim"
QUEST_COMPLETION_SCHEMA_KEY = "quest_completion"


class CompleteTaskRequest(BaseModel):
    quest_id: str | None = Field(default=None, alias="questId")
    task_id: str | None = Field(default=None, alias="taskId")
    verification_data: dict[str, Any] = Field(default_factory=dict, alias="verificationData")
    input_data: Any = Field(default=None, alias="inputData")


class ClaimTaskRewardRequest(BaseModel):
    completion_id: int | None = Field(default=None, alias="completionId")
    attestation_signature: DelegatedAttestationSignature | None = Field(default=None, alias="attestationSignature")


class CommitAttestationRequest(BaseModel):
    quest_id: str | None = Field(default=None, alias="questId")
    attestation_signature: DelegatedAttestationSignature | None = Field(default=None, alias="attestationSignature")


def _wallet_status(error: WalletValidationError) -> int:
    return 403 if error.code == "WALLET_NOT_OWNED" else 400


def _active_wallet(user: AuthUser, header: str | None) -> str | None:
    """Wallet named by X-Active-Wallet, else the first linked wallet."""
    if header:
        return validate_wallet_ownership(user, header, "quests:complete-task")
    return user.wallets[0] if user.wallets else None


@router.post("/complete-task")
def complete_task(
    body: CompleteTaskRequest,
    user: AuthUser = Depends(get_current_user),
    session: Session = Depends(get_session),
    config: InfernoConfig = Depends(get_config),
    web3_for_chain: Web3ForChain = Depends(get_web3_for_chain),
    x_active_wallet: str | None = Header(default=None),
):
    """Verify a task and record the completion."""
    if not body.quest_id:
        raise HTTPException(status_code=400, detail="Quest ID is required")
    if not body.task_id:
        raise HTTPException(status_code=400, detail="Task ID is required")

    task = crud.get_task(session, body.quest_id, body.task_id)
    if task is None:
        raise HTTPException(status_code=404, detail="Task not found")
    if crud.get_completion(session, user.id, task.id):
        raise HTTPException(status_code=409, detail="Task already completed")

    try:
        wallet = _active_wallet(user, x_active_wallet)
    except WalletValidationError as e:
        raise HTTPException(status_code=_wallet_status(e), detail=str(e))

    verification_data = dict(body.verification_data)
    if body.input_data is not None and "submission" not in verification_data:
        verification_data["submission"] = body.input_data

    blockchain = is_blockchain_task(task.task_type) or task.verification_method == "blockchain"
    tx_hash = verification_data.get("transactionHash") if blockchain else None
    if tx_hash and crud.is_transaction_used(session, str(tx_hash)):
        raise HTTPException(status_code=400, detail="Transaction already used")

    metadata: dict[str, Any] = {}
    requires_review = task.requires_admin_review
    strategy = get_verification_strategy(task.task_type, session, config, web3_for_chain)
    if strategy is None and blockchain:
        raise HTTPException(status_code=400, detail=f"Unsupported task type: {task.task_type}")
    if strategy is not None:
        if blockchain and not wallet:
            raise HTTPException(status_code=400, detail="Wallet address is required")
        task_config = {**task.task_config, "requires_admin_review": task.requires_admin_review}
        result = strategy.verify(task.task_type, verification_data, user.id, wallet or "", task_config)
        if not result.success:
            logger.info("Task %s verification failed for %s: %s", task.id, user.id, result.code)
            return JSONResponse(status_code=400, content={"error": result.error, "code": result.code})
        metadata = result.metadata
        requires_review = requires_review or bool(metadata.get("requires_review"))

    status = "pending" if requires_review else "completed"
    chain_id = metadata.get("chainId", config.chain_id) if tx_hash else None
    try:
        completion = crud.record_task_completion(
            session,
            user_id=user.id,
            task=task,
            verification_data={**verification_data, **metadata},
            submission_status=status,
            tx_hash=str(tx_hash) if tx_hash else None,
            chain_id=chain_id,
            metadata=metadata,
        )
    except ValueError as e:
        code = 400 if tx_hash else 409
        raise HTTPException(status_code=code, detail=str(e))

    logger.info("Task %s completed by %s (%s)", task.id, user.id, status)
    return {"success": True, "completionId": completion.id, "status": status}


def _reward_amount(task: QuestTask, completion: UserTaskCompletion) -> int:
    multiplier = completion.verification_data.get("rewardMultiplier")
    if task.task_type == "deploy_lock" and multiplier:
        return math.floor(task.reward_amount * float(multiplier))
    return task.reward_amount


@router.post("/claim-task-reward")
def claim_task_reward(
    body: ClaimTaskRewardRequest,
    user: AuthUser = Depends(get_current_user),
    session: Session = Depends(get_session),
    config: InfernoConfig = Depends(get_config),
    web3_factory=Depends(get_web3_factory),
):
    """Claim XP for a completed task, attesting the claim on-chain when enabled."""
    if body.completion_id is None:
        raise HTTPException(status_code=400, detail="Completion ID is required")

    completion = session.get(UserTaskCompletion, body.completion_id)
    if completion is None or completion.user_id != user.id:
        raise HTTPException(status_code=404, detail="Completion not found")
    if completion.reward_claimed:
        raise HTTPException(status_code=400, detail="Reward already claimed")
    if completion.submission_status != "completed":
        raise HTTPException(status_code=400, detail="Task not completed")
    task = session.get(QuestTask, completion.task_id)
    if task is None:
        raise HTTPException(status_code=404, detail="Task not found")

    try:
        wallet = extract_and_validate_wallet_from_signature(
            config, user, body.attestation_signature, "quests:claim-task-reward"
        )
    except WalletValidationError as e:
        raise HTTPException(status_code=_wallet_status(e), detail=str(e))

    attestation = handle_gasless_attestation(
        session,
        config,
        signature=body.attestation_signature,
        schema_key=TASK_REWARD_SCHEMA_KEY,
        recipient=wallet or "",
        graceful_degrade=False,
        web3_factory=web3_factory,
    )
    if not attestation.success:
        raise HTTPException(status_code=400, detail=attestation.error or "Attestation failed")

    reward = _reward_amount(task, completion)
    completion.reward_claimed = True
    completion.reward_attestation_uid = attestation.uid
    session.add(completion)
    record = build_attestation_record(
        session, config, schema_key=TASK_REWARD_SCHEMA_KEY, signature=body.attestation_signature, result=attestation
    )
    if record is not None:
        session.add(record)
    session.commit()
    crud.award_xp(session, user.id, reward)

    return {
        "success": True,
        "rewardAmount": reward,
        "attestationUid": attestation.uid,
        "attestationScanUrl": scan_link(session, config, attestation.uid),
    }


@router.post("/commit-completion-attestation")
def commit_completion_attestation(
    body: CommitAttestationRequest,
    user: AuthUser = Depends(get_current_user),
    session: Session = Depends(get_session),
    config: InfernoConfig = Depends(get_config),
    web3_factory=Depends(get_web3_factory),
):
    """Attest a quest completion after its key was granted.

    The attestation payload must carry the grant transaction hash and key token id
    recorded on the user's progress row.
    """
    if not body.quest_id:
        raise HTTPException(status_code=400, detail="questId is required")

    empty = {"success": True, "attestationUid": None, "attestationScanUrl": None}
    if not config.eas_enabled:
        return empty

    try:
        wallet = extract_and_validate_wallet_from_signature(
            config, user, body.attestation_signature, "quest-completion-commit"
        )
    except WalletValidationError as e:
        raise HTTPException(status_code=_wallet_status(e), detail=str(e))
    if not wallet:
        raise HTTPException(status_code=400, detail="Wallet is required")

    progress = crud.get_quest_progress(session, user.id, body.quest_id)
    if progress is None or not progress.reward_claimed or not progress.is_completed:
        raise HTTPException(status_code=400, detail="Quest not completed/claimed yet")

    if progress.key_claim_attestation_uid:
        uid = progress.key_claim_attestation_uid
        return {"success": True, "attestationUid": uid, "attestationScanUrl": scan_link(session, config, uid)}

    signature = body.attestation_signature
    decoded = decode_attestation_data(
        session, config, QUEST_COMPLETION_SCHEMA_KEY, signature.data, get_default_network_name(config)
    )
    if decoded is None:
        raise HTTPException(status_code=400, detail="Invalid attestation payload")

    expected_tx = normalize_bytes32(progress.key_claim_tx_hash)
    expected_token = normalize_uint(progress.key_claim_token_id)
    if not expected_tx or expected_token is None:
        raise HTTPException(status_code=400, detail="Grant details not recorded for this quest completion")
    if (
        normalize_bytes32(decoded.get("grantTxHash")) != expected_tx
        or normalize_uint(decoded.get("keyTokenId")) != expected_token
    ):
        raise HTTPException(status_code=400, detail="Attestation payload does not match recorded grant details")

    attestation = handle_gasless_attestation(
        session,
        config,
        signature=signature,
        schema_key=QUEST_COMPLETION_SCHEMA_KEY,
        recipient=wallet,
        graceful_degrade=True,
        web3_factory=web3_factory,
    )
    # The key grant already happened on-chain, so a failed attestation does not fail the request
    if not attestation.success or not attestation.uid:
        return empty

    progress.key_claim_attestation_uid = attestation.uid
    session.add(progress)
    record = build_attestation_record(
        session, config, schema_key=QUEST_COMPLETION_SCHEMA_KEY, signature=signature, result=attestation
    )
    if record is not None:
        session.add(record)
    session.commit()
    return {
        "success": True,
        "attestationUid": attestation.uid,
        "attestationScanUrl": scan_link(session, config, attestation.uid),
    }
