"""Test CLI commands and the schema deployment script."""

from __future__ import annotations

import json
import time
from pathlib import Path
from unittest.mock import Mock

import pytest
from eth_account.signers.local import LocalAccount
from typer.testing import CliRunner

from inferno import __version__
from inferno.cli.config import InfernoConfig, validate_config
from inferno.cli.main import app
from inferno.scripts.deploy_schemas import deploy, write_manifest
from inferno.sdk.hashing import compute_schema_uid
from inferno.sdk.models import WithdrawalMessage
from inferno.sdk.telegram import format_notification_message
from inferno.sdk.withdrawal import dg_to_wei, sign_withdrawal
from tests.conftest import DG_TOKEN_BASE_SEPOLIA

DEFINITION = "uint256 score,string note"


@pytest.fixture
def runner() -> CliRunner:
    """CLI test runner fixture."""
    return CliRunner()


@pytest.fixture(autouse=True)
def cli_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> str:
    """Point the CLI at a throwaway database and keep .env files out."""
    monkeypatch.chdir(tmp_path)
    database_url = f"sqlite:///{tmp_path / 'cli.db'}"
    monkeypatch.setenv("INFERNO_DATABASE_URL", database_url)
    monkeypatch.setenv("INFERNO_DG_TOKEN_ADDRESS_BASE_SEPOLIA", DG_TOKEN_BASE_SEPOLIA)
    monkeypatch.setenv("INFERNO_APP_URL", "https://app.example.com")
    monkeypatch.delenv("INFERNO_TELEGRAM_BOT_TOKEN", raising=False)
    monkeypatch.delenv("INFERNO_EAS_ENABLED", raising=False)
    return database_url


def test_config_load_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("INFERNO_CHAIN_ID", "8453")
    monkeypatch.setenv("INFERNO_EAS_ENABLED", "true")
    monkeypatch.setenv("INFERNO_RPC_URLS", '{"8453": "https://base.example.com"}')

    config = InfernoConfig()

    assert config.chain_id == 8453
    assert config.eas_enabled is True
    assert config.rpc_url_for_chain(8453) == "https://base.example.com"
    assert config.dg_contracts_by_chain()[84532] == DG_TOKEN_BASE_SEPOLIA


def test_config_validation_requires_rpc() -> None:
    with pytest.raises(ValueError):
        validate_config(InfernoConfig(_env_file=None, chain_id=8453, rpc_url=None))


def test_version(runner: CliRunner) -> None:
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert f"Inferno relay version {__version__}" in result.stdout


def test_compute_uid(runner: CliRunner) -> None:
    result = runner.invoke(app, ["schema", "compute-uid", DEFINITION, "--no-revocable"])

    assert result.exit_code == 0
    assert result.stdout.strip() == compute_schema_uid(DEFINITION, revocable=False)


def test_schema_lifecycle(runner: CliRunner) -> None:
    uid = compute_schema_uid(DEFINITION, revocable=False)

    registered = runner.invoke(
        app, ["schema", "register", "--name", "Quest Score", "--definition", DEFINITION, "--key", "quest_score"]
    )
    assert registered.exit_code == 0, registered.stdout
    assert "Schema registered successfully" in registered.stdout
    assert uid in registered.stdout

    listed = runner.invoke(app, ["schema", "list"])
    assert listed.exit_code == 0
    assert "Quest Score" in listed.stdout

    resolved = runner.invoke(app, ["schema", "resolve", "quest_score"])
    assert resolved.stdout.strip() == uid

    duplicate = runner.invoke(
        app, ["schema", "register", "--name", "Quest Score", "--definition", DEFINITION]
    )
    assert duplicate.exit_code == 1
    assert "already exists" in duplicate.stdout

    deleted = runner.invoke(app, ["schema", "delete", uid])
    assert deleted.exit_code == 0
    assert runner.invoke(app, ["schema", "resolve", "quest_score"]).exit_code == 1
    assert runner.invoke(app, ["schema", "delete", uid]).exit_code == 1


def test_register_rejects_bad_definition(runner: CliRunner) -> None:
    result = runner.invoke(
        app, ["schema", "register", "--name", "Bad", "--definition", "uint256", "--uid", "0x" + "ab" * 32]
    )

    assert result.exit_code == 1
    assert "Invalid schema definition format" in result.stdout


def test_withdrawal_sign(runner: CliRunner, user_account: LocalAccount) -> None:
    result = runner.invoke(
        app, ["withdrawal", "sign", "--amount", "5000", "--private-key", user_account.key.hex()]
    )

    assert result.exit_code == 0
    assert "Withdrawal signed" in result.stdout
    assert user_account.address in result.stdout


def test_withdrawal_verify(runner: CliRunner, user_account: LocalAccount) -> None:
    deadline = int(time.time()) + 900
    message = WithdrawalMessage(user=user_account.address, amount=dg_to_wei(5000), deadline=deadline)
    signature = sign_withdrawal(InfernoConfig(), message, 84532, user_account.key)
    args = ["withdrawal", "verify", "--user", user_account.address, "--deadline", str(deadline), "--signature", signature]

    valid = runner.invoke(app, [*args, "--amount", "5000"])
    assert valid.exit_code == 0
    assert "Valid signature" in valid.stdout

    invalid = runner.invoke(app, [*args, "--amount", "6000"])
    assert invalid.exit_code == 1
    assert "Invalid withdrawal signature" in invalid.stdout


def test_notify_format(runner: CliRunner) -> None:
    result = runner.invoke(
        app, ["notify", "format", "Quest done", "You earned 50 XP", "--link", "/lobby/quests", "--type", "task_completed"]
    )

    assert result.exit_code == 0
    expected = format_notification_message(
        "Quest done", "You earned 50 XP", "/lobby/quests", "task_completed", "https://app.example.com"
    )
    assert result.stdout.strip() == expected.strip()


def test_notify_broadcast_requires_token(runner: CliRunner) -> None:
    result = runner.invoke(app, ["notify", "broadcast", "New quest", "Go play"])

    assert result.exit_code == 1
    assert "Bot token not configured" in result.stdout


def test_write_manifest(tmp_path: Path) -> None:
    manifest = write_manifest("base-sepolia", {"Quest Score": "0x" + "ab" * 32}, tmp_path / "artifacts")

    assert manifest.name == "eas_schemas_base-sepolia.json"
    assert json.loads(manifest.read_text()) == {
        "network": "base-sepolia",
        "schemas": {"Quest Score": "0x" + "ab" * 32},
    }


def test_deploy_replaces_placeholder_uids(runner: CliRunner, tmp_path: Path) -> None:
    runner.invoke(
        app, ["schema", "register", "--name", "Quest Score", "--definition", DEFINITION, "--uid", "quest-score-template"]
    )
    client = Mock()
    client.register_schema.return_value = "0x" + "cd" * 32

    uids = deploy(InfernoConfig(), client=client, output_dir=tmp_path / "out")

    assert uids == {"Quest Score": "0x" + "cd" * 32}
    client.register_schema.assert_called_once_with(DEFINITION, revocable=False)
    manifest = json.loads((tmp_path / "out" / "eas_schemas_base-sepolia.json").read_text())
    assert manifest["schemas"] == uids
