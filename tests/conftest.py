"""Shared fixtures: in-memory database, relay configuration and test wallets."""

from __future__ import annotations

from collections.abc import Generator
from unittest.mock import Mock

import pytest
from eth_account import Account
from eth_account.signers.local import LocalAccount
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine
from sqlmodel import Session

from inferno.api.app import create_app
from inferno.cli.config import InfernoConfig
from inferno.db.models import EasNetwork
from inferno.db.session import create_db_engine, init_db
from inferno.sdk.networks import invalidate_network_cache

DG_TOKEN_BASE_SEPOLIA = "0x1111111111111111111111111111111111111111"
DG_TOKEN_BASE = "0x2222222222222222222222222222222222222222"
VENDOR_ADDRESS = "0x3333333333333333333333333333333333333333"
SERVICE_KEY = "0x" + "11" * 32
JWT_SECRET = "test-secret"


@pytest.fixture(autouse=True)
def fresh_network_cache() -> Generator[None, None, None]:
    invalidate_network_cache()
    yield
    invalidate_network_cache()


@pytest.fixture
def engine() -> Engine:
    engine = create_db_engine("sqlite://")
    init_db(engine)
    return engine


@pytest.fixture
def session(engine: Engine) -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session


@pytest.fixture
def config() -> InfernoConfig:
    """Relay configuration with EAS disabled and test contracts."""
    return InfernoConfig(
        _env_file=None,
        database_url="sqlite://",
        rpc_url="http://localhost:8545",
        chain_id=84532,
        blockchain_network="base-sepolia",
        eas_enabled=False,
        eas_graceful_degrade=False,
        lock_manager_private_key=SERVICE_KEY,
        dg_token_address_base=DG_TOKEN_BASE,
        dg_token_address_base_sepolia=DG_TOKEN_BASE_SEPOLIA,
        dg_vendor_address=VENDOR_ADDRESS,
        auth_jwt_secret=JWT_SECRET,
        app_url="https://app.example.com",
    )


@pytest.fixture
def eas_config(config: InfernoConfig) -> InfernoConfig:
    return config.model_copy(update={"eas_enabled": True})


@pytest.fixture
def user_account() -> LocalAccount:
    return Account.create()


@pytest.fixture
def base_sepolia(session: Session) -> EasNetwork:
    network = EasNetwork(
        name="base-sepolia",
        chain_id=84532,
        display_name="Base Sepolia",
        is_testnet=True,
        enabled=True,
        eas_contract_address="0x4200000000000000000000000000000000000021",
        schema_registry_address="0x4200000000000000000000000000000000000020",
        eas_scan_base_url="https://base-sepolia.easscan.org",
        rpc_url="http://localhost:8545",
    )
    session.add(network)
    session.commit()
    session.refresh(network)
    return network


@pytest.fixture
def web3_factory() -> Mock:
    """RPC URL -> Web3 factory; every URL yields the same mocked client."""
    return Mock()


@pytest.fixture
def app(config: InfernoConfig, engine: Engine, web3_factory: Mock) -> FastAPI:
    return create_app(config, engine, web3_factory=web3_factory)


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)
