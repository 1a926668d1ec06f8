"""Test delegated attestation submission."""

from __future__ import annotations

import time
from unittest.mock import Mock, patch

import pytest
from sqlmodel import Session

from inferno.cli.config import InfernoConfig
from inferno.db.models import EasNetwork
from inferno.sdk.delegated import create_delegated_attestation
from inferno.sdk.models import DelegatedAttestationParams

RECIPIENT = "0x" + "ab" * 20
SCHEMA_UID = "0x" + "12" * 32


def _params(**overrides) -> DelegatedAttestationParams:
    data = {
        "schema_uid": SCHEMA_UID,
        "recipient": RECIPIENT,
        "data": "0x" + "00" * 32,
        "signature": "0x" + "11" * 64 + "1c",
        "deadline": int(time.time()) + 600,
        "chain_id": 84532,
    }
    data.update(overrides)
    return DelegatedAttestationParams(**data)


@pytest.mark.parametrize("overrides,error", [
    ({"deadline": 1}, "Signature deadline expired"),
    ({"schema_uid": "0x1234"}, "Invalid schema UID format"),
    ({"recipient": "not-an-address"}, "Invalid recipient address"),
    ({"data": "zz"}, "Invalid encoded data format"),
])
def test_input_validation(
    session: Session, config: InfernoConfig, base_sepolia: EasNetwork, overrides: dict, error: str
) -> None:
    result = create_delegated_attestation(session, config, _params(**overrides))

    assert not result.success
    assert result.error == error


def test_requires_service_wallet(session: Session, config: InfernoConfig, base_sepolia: EasNetwork) -> None:
    no_wallet = config.model_copy(update={"lock_manager_private_key": None})

    result = create_delegated_attestation(session, no_wallet, _params())

    assert result.error == "Server configuration error - service wallet not configured"


def test_network_checks(session: Session, config: InfernoConfig, base_sepolia: EasNetwork) -> None:
    result = create_delegated_attestation(session, config, _params(chain_id=10))
    assert result.error == "Chain 10 not supported or not configured"

    base_sepolia.enabled = False
    session.add(base_sepolia)
    session.commit()
    result = create_delegated_attestation(session, config, _params())
    assert result.error == "Chain 84532 is disabled"

    base_sepolia.enabled = True
    base_sepolia.rpc_url = None
    session.add(base_sepolia)
    session.commit()
    result = create_delegated_attestation(session, config, _params())
    assert result.error == "RPC URL not configured for chain 84532"


def test_invalid_signature(session: Session, config: InfernoConfig, base_sepolia: EasNetwork) -> None:
    result = create_delegated_attestation(session, config, _params(signature="0x1234"))

    assert result.error == "Invalid signature format"


@patch("inferno.sdk.delegated.EASClient")
def test_submits_with_user_as_attester(
    mock_client_cls: Mock, session: Session, config: InfernoConfig, base_sepolia: EasNetwork
) -> None:
    """The recipient signs and is recorded as attester; the service wallet pays."""
    mock_client = mock_client_cls.return_value
    mock_client.attest_by_delegation.return_value = ("0x" + "34" * 32, "0x" + "56" * 32)
    factory = Mock()

    result = create_delegated_attestation(session, config, _params(), web3_factory=factory)

    assert result.success
    assert result.uid == "0x" + "34" * 32
    assert result.tx_hash == "0x" + "56" * 32
    factory.assert_called_once_with("http://localhost:8545")
    mock_client_cls.assert_called_once_with(factory.return_value, base_sepolia.eas_contract_address)
    mock_client.set_signer.assert_called_once()
    assert mock_client.attest_by_delegation.call_args.kwargs["attester"] == RECIPIENT


@patch("inferno.sdk.delegated.EASClient")
def test_submission_errors_are_returned(
    mock_client_cls: Mock, session: Session, config: InfernoConfig, base_sepolia: EasNetwork
) -> None:
    mock_client_cls.return_value.attest_by_delegation.side_effect = RuntimeError("execution reverted")

    result = create_delegated_attestation(session, config, _params(), web3_factory=Mock())

    assert not result.success
    assert result.error == "execution reverted"
