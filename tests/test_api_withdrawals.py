"""Test the DG withdrawal and withdrawal attestation endpoints."""

from __future__ import annotations

import time
from unittest.mock import Mock, patch

import pytest
from eth_abi import encode as abi_encode
from eth_account.signers.local import LocalAccount
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from inferno.api.app import create_app
from inferno.cli.config import InfernoConfig
from inferno.db.models import Attestation, DGTokenWithdrawal, EasNetwork, UserProfile
from inferno.sdk import registry
from inferno.sdk.models import GaslessAttestationResult, SchemaRegistration, TransferResult, WithdrawalMessage
from inferno.sdk.withdrawal import dg_to_wei, sign_withdrawal
from tests.conftest import DG_TOKEN_BASE_SEPOLIA
from tests.helpers import bearer

TRANSFER_TX = "0x" + "5e" * 32


@pytest.fixture
def profile(session: Session) -> UserProfile:
    profile = UserProfile(id="user-1", experience_points=10000)
    session.add(profile)
    session.commit()
    return profile


def _request(config: InfernoConfig, account: LocalAccount, amount: int = 5000, deadline: int | None = None,
             chain_id: int = 84532) -> dict:
    deadline = deadline or int(time.time()) + 900
    message = WithdrawalMessage(user=account.address, amount=dg_to_wei(amount), deadline=deadline)
    return {
        "walletAddress": account.address,
        "amountDG": amount,
        "signature": sign_withdrawal(config, message, 84532, account.key),
        "deadline": deadline,
        "chainId": chain_id,
    }


def _withdraw(client: TestClient, account: LocalAccount, body: dict):
    return client.post("/api/token/withdraw", json=body, headers=bearer("user-1", [account.address]))


@patch("inferno.api.routes.withdrawals.transfer_dg_tokens")
def test_withdraw(
    mock_transfer: Mock, client: TestClient, session: Session, config: InfernoConfig,
    user_account: LocalAccount, profile: UserProfile,
) -> None:
    mock_transfer.return_value = TransferResult(success=True, transaction_hash=TRANSFER_TX, block_number=10)

    response = _withdraw(client, user_account, _request(config, user_account))

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["transactionHash"] == TRANSFER_TX
    assert body["amountDG"] == 5000
    args = mock_transfer.call_args.args
    assert args[2] == user_account.address
    assert args[3] == dg_to_wei(5000)
    assert args[4] == DG_TOKEN_BASE_SEPOLIA

    session.expire_all()
    assert session.get(UserProfile, "user-1").experience_points == 5000
    assert session.get(DGTokenWithdrawal, body["withdrawalId"]).status == "completed"


@patch("inferno.api.routes.withdrawals.transfer_dg_tokens")
def test_withdraw_is_idempotent(
    mock_transfer: Mock, client: TestClient, session: Session, config: InfernoConfig,
    user_account: LocalAccount, profile: UserProfile,
) -> None:
    """Replaying a signature returns the first withdrawal without a second transfer."""
    mock_transfer.return_value = TransferResult(success=True, transaction_hash=TRANSFER_TX)
    body = _request(config, user_account)

    first = _withdraw(client, user_account, body)
    second = _withdraw(client, user_account, body)

    assert second.status_code == 200
    assert second.json() == {
        "success": True,
        "idempotent": True,
        "withdrawalId": first.json()["withdrawalId"],
        "status": "completed",
        "transactionHash": TRANSFER_TX,
    }
    assert mock_transfer.call_count == 1
    session.expire_all()
    assert session.get(UserProfile, "user-1").experience_points == 5000


@patch("inferno.api.routes.withdrawals.transfer_dg_tokens")
def test_failed_transfer_rolls_back(
    mock_transfer: Mock, client: TestClient, session: Session, config: InfernoConfig,
    user_account: LocalAccount, profile: UserProfile,
) -> None:
    mock_transfer.return_value = TransferResult(success=False, error="Transaction reverted on-chain")

    response = _withdraw(client, user_account, _request(config, user_account))

    assert response.status_code == 500
    assert response.json() == {"error": "Transaction reverted on-chain"}
    session.expire_all()
    assert session.get(UserProfile, "user-1").experience_points == 10000
    withdrawal = session.get(DGTokenWithdrawal, 1)
    assert withdrawal.status == "failed"
    assert withdrawal.error_message == "Transaction reverted on-chain"


def test_withdraw_validation(client: TestClient, config: InfernoConfig, user_account: LocalAccount, profile: UserProfile) -> None:
    body = _request(config, user_account)

    missing = _withdraw(client, user_account, {**body, "signature": None})
    assert missing.status_code == 400
    assert missing.json()["error"] == "Missing required fields"

    not_owned = client.post("/api/token/withdraw", json=body, headers=bearer("user-1", ["0x" + "bb" * 20]))
    assert not_owned.status_code == 403

    wrong_chain = _withdraw(client, user_account, {**body, "chainId": 10})
    assert wrong_chain.json()["error"] == "Unsupported or misconfigured chainId"

    tampered = _withdraw(client, user_account, {**body, "amountDG": 6000})
    assert tampered.status_code == 403
    assert tampered.json()["error"] == "Invalid signature"


def test_withdraw_rejects_expired_signature(
    client: TestClient, config: InfernoConfig, user_account: LocalAccount, profile: UserProfile
) -> None:
    response = _withdraw(client, user_account, _request(config, user_account, deadline=int(time.time()) - 10))

    assert response.status_code == 400
    assert response.json()["error"] == "Signature expired"


def test_withdraw_limits(client: TestClient, config: InfernoConfig, user_account: LocalAccount, profile: UserProfile) -> None:
    response = _withdraw(client, user_account, _request(config, user_account, amount=100))

    assert response.status_code == 400
    assert response.json()["error"] == "Minimum withdrawal is 3000 DG"


@patch("inferno.api.routes.withdrawals.has_valid_dg_nation_key")
def test_withdraw_requires_dg_nation_key(
    mock_key: Mock, config: InfernoConfig, engine: Engine, user_account: LocalAccount, profile: UserProfile
) -> None:
    gated = config.model_copy(update={"dg_nation_lock_address": "0x" + "4d" * 20})
    client = TestClient(create_app(gated, engine, Mock()))
    mock_key.return_value = False

    response = _withdraw(client, user_account, _request(gated, user_account))

    assert response.status_code == 403
    assert response.json()["error"] == "DG Nation membership required"


# ---------- commit-attestation ----------
WALLET = "0x" + "aa" * 20
AUTH = bearer("user-1", [WALLET])
ATTESTATION_UID = "0x" + "34" * 32
WITHDRAWAL_SCHEMA_UID = "0x" + "d9" * 32


@pytest.fixture
def completed_withdrawal(session: Session, eas_config: InfernoConfig) -> int:
    withdrawal = DGTokenWithdrawal(
        user_id="user-1", wallet_address=WALLET, amount_dg=3000, xp_balance_before=10000,
        signature="0x" + "77" * 65, deadline=int(time.time()) + 900,
        status="completed", transaction_hash=TRANSFER_TX,
    )
    session.add(withdrawal)
    session.commit()
    registry.register_schema(session, eas_config, SchemaRegistration(
        schema_uid=WITHDRAWAL_SCHEMA_UID,
        name="DG Withdrawal",
        schema_definition="address userAddress,uint256 amountDg,uint256 withdrawalTimestamp,bytes32 withdrawalTxHash",
        schema_key="dg_withdrawal",
    ))
    return withdrawal.id


def _withdrawal_payload(tx_hash: str = TRANSFER_TX) -> str:
    encoded = abi_encode(
        ["address", "uint256", "uint256", "bytes32"], [WALLET, 3000, 1700000000, bytes.fromhex(tx_hash[2:])]
    )
    return "0x" + encoded.hex()


def _attestation_signature(data: str) -> dict:
    return {
        "signature": "0x" + "11" * 65,
        "deadline": int(time.time()) + 600,
        "recipient": WALLET,
        "data": data,
        "chainId": 84532,
    }


def _commit(client: TestClient, body: dict, headers: dict | None = None):
    return client.post("/api/token/withdraw/commit-attestation", json=body, headers=headers or AUTH)


def test_commit_attestation_requires_auth(client: TestClient) -> None:
    assert client.post("/api/token/withdraw/commit-attestation", json={"withdrawalId": 1}).status_code == 401


def test_commit_attestation_request_errors(client: TestClient, completed_withdrawal: int) -> None:
    missing = _commit(client, {})
    assert missing.status_code == 400
    assert missing.json()["error"] == "withdrawalId is required"

    someone_else = _commit(client, {"withdrawalId": completed_withdrawal}, headers=bearer("user-2", [WALLET]))
    assert someone_else.status_code == 404


def test_commit_attestation_pending_withdrawal(client: TestClient, session: Session, completed_withdrawal: int) -> None:
    withdrawal = session.get(DGTokenWithdrawal, completed_withdrawal)
    withdrawal.status = "pending"
    session.add(withdrawal)
    session.commit()

    response = _commit(client, {"withdrawalId": completed_withdrawal})

    assert response.status_code == 400
    assert response.json()["error"] == "Withdrawal not completed"


def test_commit_attestation_disabled(client: TestClient, completed_withdrawal: int) -> None:
    response = _commit(client, {"withdrawalId": completed_withdrawal})

    assert response.status_code == 200
    assert response.json() == {"success": True, "attestationUid": None, "attestationScanUrl": None}


def test_commit_attestation_requires_signature(
    eas_config: InfernoConfig, engine: Engine, completed_withdrawal: int
) -> None:
    client = TestClient(create_app(eas_config, engine, web3_factory=Mock()))

    response = _commit(client, {"withdrawalId": completed_withdrawal})

    assert response.status_code == 400
    assert response.json()["error"] == "Attestation signature is required"


@pytest.mark.parametrize("payload,error", [
    ("0x12", "Invalid attestation payload"),
    (_withdrawal_payload("0x" + "00" * 32), "Attestation payload does not match withdrawal"),
])
def test_commit_attestation_payload_checks(
    eas_config: InfernoConfig, engine: Engine, completed_withdrawal: int, payload: str, error: str
) -> None:
    client = TestClient(create_app(eas_config, engine, web3_factory=Mock()))
    body = {"withdrawalId": completed_withdrawal, "attestationSignature": _attestation_signature(payload)}

    response = _commit(client, body)

    assert response.status_code == 400
    assert response.json()["error"] == error


@patch("inferno.sdk.gasless.create_delegated_attestation")
def test_commit_attestation(
    mock_create: Mock, eas_config: InfernoConfig, engine: Engine, session: Session,
    base_sepolia: EasNetwork, completed_withdrawal: int,
) -> None:
    mock_create.return_value = GaslessAttestationResult(success=True, uid=ATTESTATION_UID, tx_hash="0x" + "56" * 32)
    client = TestClient(create_app(eas_config, engine, web3_factory=Mock()))
    body = {"withdrawalId": completed_withdrawal, "attestationSignature": _attestation_signature(_withdrawal_payload())}

    response = _commit(client, body)

    assert response.status_code == 200
    assert response.json()["attestationUid"] == ATTESTATION_UID
    assert response.json()["attestationScanUrl"] == f"https://base-sepolia.easscan.org/attestation/view/{ATTESTATION_UID}"
    session.expire_all()
    assert session.get(DGTokenWithdrawal, completed_withdrawal).attestation_uid == ATTESTATION_UID
    row = session.exec(select(Attestation)).one()
    assert (row.attestation_uid, row.schema_uid) == (ATTESTATION_UID, WITHDRAWAL_SCHEMA_UID)

    # Already attested: the stored uid comes back without relaying again
    again = _commit(client, {"withdrawalId": completed_withdrawal})
    assert again.json()["attestationUid"] == ATTESTATION_UID
    assert mock_create.call_count == 1


@patch("inferno.sdk.gasless.create_delegated_attestation")
def test_commit_attestation_relay_failure_is_not_an_error(
    mock_create: Mock, eas_config: InfernoConfig, engine: Engine, session: Session, completed_withdrawal: int
) -> None:
    mock_create.return_value = GaslessAttestationResult(success=False, error="execution reverted")
    client = TestClient(create_app(eas_config, engine, web3_factory=Mock()))
    body = {"withdrawalId": completed_withdrawal, "attestationSignature": _attestation_signature(_withdrawal_payload())}

    response = _commit(client, body)

    assert response.status_code == 200
    assert response.json()["attestationUid"] is None
    session.expire_all()
    assert session.get(DGTokenWithdrawal, completed_withdrawal).attestation_uid is None
    assert session.exec(select(Attestation)).all() == []
