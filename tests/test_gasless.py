"""Test gasless attestation handling and graceful degradation."""

from __future__ import annotations

import time
from pathlib import Path
from unittest.mock import Mock, patch

import pytest
from sqlmodel import Session

from inferno.cli.config import InfernoConfig
from inferno.sdk import registry
from inferno.sdk.errors import WalletValidationError
from inferno.sdk.gasless import (
    extract_and_validate_wallet_from_signature,
    handle_gasless_attestation,
    should_gracefully_degrade,
)
from inferno.sdk.hashing import compute_schema_uid
from inferno.sdk.models import AuthUser, DelegatedAttestationSignature, GaslessAttestationResult, SchemaRegistration

RECIPIENT = "0x" + "ab" * 20
DEFINITION = "uint256 taskId,uint256 reward"
SCHEMA_UID = compute_schema_uid(DEFINITION)


def _signature(**overrides) -> DelegatedAttestationSignature:
    data = {
        "signature": "0x" + "11" * 65,
        "deadline": int(time.time()) + 600,
        "recipient": RECIPIENT,
        "schemaUid": SCHEMA_UID,
        "data": "0x00",
        "chainId": 84532,
    }
    data.update(overrides)
    return DelegatedAttestationSignature(**data)


@pytest.fixture
def reward_schema(session: Session, eas_config: InfernoConfig) -> None:
    registry.register_schema(session, eas_config, SchemaRegistration(
        schema_uid=SCHEMA_UID,
        name="Task Reward Claim",
        schema_definition=DEFINITION,
        schema_key="quest_task_reward_claim",
    ))


def test_disabled_eas_skips(session: Session, config: InfernoConfig) -> None:
    result = handle_gasless_attestation(
        session, config, signature=None, schema_key="quest_task_reward_claim", recipient=RECIPIENT
    )

    assert result.success
    assert result.uid is None


def test_missing_signature(session: Session, eas_config: InfernoConfig) -> None:
    strict = handle_gasless_attestation(
        session, eas_config, signature=None, schema_key="daily_checkin",
        recipient=RECIPIENT, graceful_degrade=False,
    )
    lenient = handle_gasless_attestation(
        session, eas_config, signature=None, schema_key="daily_checkin",
        recipient=RECIPIENT, graceful_degrade=True,
    )

    assert not strict.success
    assert strict.error == "Attestation signature is required"
    assert lenient.success
    assert lenient.uid is None


def test_recipient_mismatch_never_degrades(session: Session, eas_config: InfernoConfig) -> None:
    result = handle_gasless_attestation(
        session, eas_config, signature=_signature(), schema_key="quest_task_reward_claim",
        recipient="0x" + "cd" * 20, graceful_degrade=True,
    )

    assert not result.success
    assert result.error == "Signature recipient mismatch"


def test_unregistered_schema(session: Session, eas_config: InfernoConfig) -> None:
    result = handle_gasless_attestation(
        session, eas_config, signature=_signature(), schema_key="quest_task_reward_claim",
        recipient=RECIPIENT, graceful_degrade=False,
    )

    assert not result.success
    assert result.error == "Schema UID not configured"


def test_schema_uid_mismatch(session: Session, eas_config: InfernoConfig, reward_schema: None) -> None:
    result = handle_gasless_attestation(
        session, eas_config, signature=_signature(schemaUid="0x" + "99" * 32),
        schema_key="quest_task_reward_claim", recipient=RECIPIENT, graceful_degrade=True,
    )

    assert not result.success
    assert result.error == "Signature schema UID mismatch"


@patch("inferno.sdk.gasless.create_delegated_attestation")
def test_relays_with_resolved_schema(
    mock_create: Mock, session: Session, eas_config: InfernoConfig, reward_schema: None
) -> None:
    mock_create.return_value = GaslessAttestationResult(success=True, uid="0x" + "34" * 32, tx_hash="0x" + "56" * 32)

    result = handle_gasless_attestation(
        session, eas_config, signature=_signature(schemaUid=None),
        schema_key="quest_task_reward_claim", recipient=RECIPIENT.upper().replace("0X", "0x"),
    )

    assert result.success
    assert result.uid == "0x" + "34" * 32
    params = mock_create.call_args.args[2]
    assert params.schema_uid == SCHEMA_UID
    assert params.recipient == RECIPIENT
    assert params.chain_id == 84532


@patch("inferno.sdk.gasless.create_delegated_attestation")
def test_relay_failure_degrade_policy(
    mock_create: Mock, session: Session, eas_config: InfernoConfig, reward_schema: None
) -> None:
    mock_create.return_value = GaslessAttestationResult(success=False, error="execution reverted")

    strict = handle_gasless_attestation(
        session, eas_config, signature=_signature(), schema_key="quest_task_reward_claim",
        recipient=RECIPIENT, graceful_degrade=False,
    )
    lenient = handle_gasless_attestation(
        session, eas_config, signature=_signature(), schema_key="quest_task_reward_claim",
        recipient=RECIPIENT, graceful_degrade=True,
    )

    assert strict == GaslessAttestationResult(success=False, error="execution reverted")
    assert lenient == GaslessAttestationResult(success=True)


def test_should_gracefully_degrade(config: InfernoConfig, monkeypatch: pytest.MonkeyPatch) -> None:
    """Per-schema environment overrides win over the global flag."""
    assert not should_gracefully_degrade(config, "daily_checkin")

    monkeypatch.setenv("INFERNO_DAILY_CHECKIN_EAS_GRACEFUL_DEGRADE", "true")
    assert should_gracefully_degrade(InfernoConfig(_env_file=None), "daily_checkin")

    monkeypatch.setenv("INFERNO_DAILY_CHECKIN_EAS_GRACEFUL_DEGRADE", "false")
    lenient = InfernoConfig(_env_file=None, eas_graceful_degrade=True)
    assert not should_gracefully_degrade(lenient, "daily_checkin")
    assert should_gracefully_degrade(lenient, "quest_completion")
    assert should_gracefully_degrade(lenient)


def test_schema_degrade_flags_from_env_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("INFERNO_EAS_GRACEFUL_DEGRADE", raising=False)
    monkeypatch.delenv("INFERNO_MILESTONE_EAS_GRACEFUL_DEGRADE", raising=False)
    env_file = tmp_path / ".env"
    env_file.write_text(
        "INFERNO_EAS_GRACEFUL_DEGRADE=false\n"
        "INFERNO_MILESTONE_EAS_GRACEFUL_DEGRADE=true\n"
        "INFERNO_DAILY_CHECKIN_EAS_GRACEFUL_DEGRADE=true\n"
    )
    monkeypatch.setenv("INFERNO_DAILY_CHECKIN_EAS_GRACEFUL_DEGRADE", "false")

    config = InfernoConfig(_env_file=env_file)

    assert config.eas_graceful_degrade is False
    assert config.schema_degrade_override("milestone") is True
    assert should_gracefully_degrade(config, "milestone")
    assert not should_gracefully_degrade(config, "daily_checkin")
    assert config.schema_degrade_override("quest_completion") is None


def test_extract_wallet_from_signature(config: InfernoConfig, eas_config: InfernoConfig) -> None:
    user = AuthUser(id="user-1", wallets=[RECIPIENT])

    assert extract_and_validate_wallet_from_signature(config, user, None, "test") is None
    assert extract_and_validate_wallet_from_signature(eas_config, user, _signature(), "test") == RECIPIENT

    with pytest.raises(WalletValidationError) as exc_info:
        extract_and_validate_wallet_from_signature(eas_config, user, None, "test")
    assert exc_info.value.code == "SIGNATURE_REQUIRED"

    with pytest.raises(WalletValidationError) as exc_info:
        extract_and_validate_wallet_from_signature(eas_config, AuthUser(id="user-2"), _signature(), "test")
    assert exc_info.value.code == "WALLET_NOT_OWNED"


@patch("inferno.sdk.gasless.create_delegated_attestation")
def test_network_name_casing(mock_create: Mock, session: Session, eas_config: InfernoConfig) -> None:
    """A schema stored under a mixed-case default network is found by the relay."""
    mixed = eas_config.model_copy(update={"blockchain_network": "Base-Sepolia"})
    registry.register_schema(session, mixed, SchemaRegistration(
        schema_uid=SCHEMA_UID,
        name="Task Reward Claim",
        schema_definition=DEFINITION,
        schema_key="quest_task_reward_claim",
    ))
    mock_create.return_value = GaslessAttestationResult(success=True, uid="0x" + "34" * 32, tx_hash="0x" + "56" * 32)

    result = handle_gasless_attestation(
        session, mixed, signature=_signature(), schema_key="quest_task_reward_claim",
        recipient=RECIPIENT, graceful_degrade=False,
    )

    assert result.success
    assert registry.get_schema(session, mixed, SCHEMA_UID).network == "base-sepolia"
    assert registry.resolve_schema_uid(session, eas_config, "quest_task_reward_claim", "BASE-SEPOLIA") == SCHEMA_UID
