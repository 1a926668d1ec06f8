"""Test the attestation schema registry."""

from __future__ import annotations

from unittest.mock import Mock

import pytest
from eth_abi import encode as abi_encode
from sqlmodel import Session

from inferno.cli.config import InfernoConfig
from inferno.db.models import Attestation, AttestationSchema
from inferno.sdk import registry
from inferno.sdk.hashing import compute_schema_uid
from inferno.sdk.models import SchemaCategory, SchemaRegistration

DEFINITION = "uint256 questId,address user"


def _registration(**overrides) -> SchemaRegistration:
    data = {
        "schema_uid": compute_schema_uid(DEFINITION),
        "name": "Quest Completion",
        "schema_definition": DEFINITION,
        "category": SchemaCategory.ACHIEVEMENT,
        "schema_key": "quest_completion",
    }
    data.update(overrides)
    return SchemaRegistration(**data)


def test_register_and_get_schema(session: Session, config: InfernoConfig) -> None:
    schema = registry.register_schema(session, config, _registration())

    assert schema.id is not None
    assert schema.network == "base-sepolia"
    assert schema.category == "achievement"

    found = registry.get_schema(session, config, schema.schema_uid)
    assert found is not None
    assert found.name == "Quest Completion"
    assert registry.get_schema(session, config, schema.schema_uid, network="base") is None


def test_register_rejects_invalid_input(session: Session, config: InfernoConfig) -> None:
    with pytest.raises(ValueError, match="Invalid schema definition format"):
        registry.register_schema(session, config, _registration(schema_definition="uint256"))
    with pytest.raises(ValueError, match="Invalid schema key format"):
        registry.register_schema(session, config, _registration(schema_key="Bad-Key"))


def test_register_duplicate_uid_per_network(session: Session, config: InfernoConfig) -> None:
    """The same UID may exist once per network."""
    registry.register_schema(session, config, _registration())

    with pytest.raises(ValueError, match="already exists"):
        registry.register_schema(session, config, _registration())

    other = registry.register_schema(session, config, _registration(network="base"))
    assert other.network == "base"


def test_list_schemas_filters(session: Session, config: InfernoConfig) -> None:
    registry.register_schema(session, config, _registration())
    registry.register_schema(session, config, _registration(
        schema_uid=compute_schema_uid("bool present"),
        name="Attendance",
        schema_definition="bool present",
        category=SchemaCategory.ATTENDANCE,
        schema_key=None,
    ))

    assert len(registry.list_schemas(session, config)) == 2
    assert [s.name for s in registry.list_schemas(session, config, category="attendance")] == ["Attendance"]
    assert registry.list_schemas(session, config, network="base") == []


def test_update_schema(session: Session, config: InfernoConfig) -> None:
    schema = registry.register_schema(session, config, _registration())

    updated = registry.update_schema(session, config, schema.schema_uid, {"name": "Renamed", "category": "review"})
    assert updated is not None
    assert updated.name == "Renamed"
    assert updated.category == "review"

    assert registry.update_schema(session, config, "0x" + "00" * 32, {"name": "x"}) is None
    with pytest.raises(ValueError, match="Cannot update fields: network"):
        registry.update_schema(session, config, schema.schema_uid, {"network": "base"})
    with pytest.raises(ValueError, match="Invalid schema definition format"):
        registry.update_schema(session, config, schema.schema_uid, {"schema_definition": "nope"})


def test_delete_schema(session: Session, config: InfernoConfig) -> None:
    schema = registry.register_schema(session, config, _registration())

    assert registry.delete_schema(session, config, schema.schema_uid)
    assert not registry.delete_schema(session, config, schema.schema_uid)


def test_delete_schema_with_attestations(session: Session, config: InfernoConfig) -> None:
    schema = registry.register_schema(session, config, _registration())
    session.add(Attestation(
        attestation_uid="0x" + "01" * 32,
        schema_uid=schema.schema_uid,
        network="base-sepolia",
        attester="0x" + "aa" * 20,
        recipient="0x" + "bb" * 20,
    ))
    session.commit()

    with pytest.raises(ValueError, match="existing attestations"):
        registry.delete_schema(session, config, schema.schema_uid)


def test_resolve_schema_uid_latest_wins(session: Session, config: InfernoConfig) -> None:
    first = registry.register_schema(session, config, _registration())
    second = registry.register_schema(session, config, _registration(
        schema_uid=compute_schema_uid(DEFINITION, revocable=False),
    ))

    assert first.schema_uid != second.schema_uid
    assert registry.resolve_schema_uid(session, config, "quest_completion") == second.schema_uid
    assert registry.resolve_schema_uid(session, config, "quest_completion", network="base") is None
    assert registry.resolve_schema_uid(session, config, "unknown_key") is None


def test_schema_keys(session: Session) -> None:
    registry.create_schema_key(session, "daily_checkin", "Daily Check-in")
    registry.create_schema_key(session, "quest_completion", "Quest Completion", "Completed quests")

    with pytest.raises(ValueError, match="already exists"):
        registry.create_schema_key(session, "daily_checkin", "Again")
    with pytest.raises(ValueError, match="lowercase snake_case"):
        registry.create_schema_key(session, "DailyCheckin", "Bad")
    with pytest.raises(ValueError, match="Label is required"):
        registry.create_schema_key(session, "no_label", "")

    assert registry.deactivate_schema_key(session, "daily_checkin") is not None
    assert registry.deactivate_schema_key(session, "missing") is None
    assert [k.key for k in registry.list_schema_keys(session)] == ["quest_completion"]
    assert len(registry.list_schema_keys(session, include_inactive=True)) == 2


def test_deploy_schema_onchain_replaces_placeholder(session: Session, config: InfernoConfig) -> None:
    """A template placeholder UID is swapped for the registry UID."""
    schema = registry.register_schema(session, config, _registration(schema_uid="quest_completion_placeholder"))
    real_uid = compute_schema_uid(DEFINITION, revocable=False)
    client = Mock()
    client.register_schema.return_value = real_uid

    deployed = registry.deploy_schema_onchain(session, client, schema)

    client.register_schema.assert_called_once_with(DEFINITION, revocable=False)
    assert deployed.schema_uid == real_uid
    assert session.get(AttestationSchema, schema.id).schema_uid == real_uid


def test_decode_attestation_data(session: Session, config: InfernoConfig) -> None:
    registry.register_schema(session, config, _registration())
    user = "0x" + "ab" * 20
    encoded = "0x" + abi_encode(["uint256", "address"], [7, user]).hex()

    decoded = registry.decode_attestation_data(session, config, "quest_completion", encoded)

    assert decoded is not None
    assert decoded["questId"] == 7
    assert decoded["user"].lower() == user
    assert registry.decode_attestation_data(session, config, "quest_completion", "0x12") is None
    assert registry.decode_attestation_data(session, config, "unknown_key", encoded) is None
