"""Configuration management for the Inferno relay using pydantic-settings.

Handles RPC client setup, service wallet loading and environment configuration
following pydantic-settings best practices with BaseSettings.
"""

from __future__ import annotations

from typing import Any

from eth_account import Account
from eth_account.signers.local import LocalAccount
from pydantic import Field, field_validator
from pydantic.fields import FieldInfo
from pydantic_settings import (
    BaseSettings,
    DotEnvSettingsSource,
    EnvSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)
from web3 import Web3

from inferno.contracts.abi import DEFAULT_RPC_URLS

ENV_PREFIX = "INFERNO_"
DEGRADE_SUFFIX = "_EAS_GRACEFUL_DEGRADE"


class SchemaDegradeSettingsSource(PydanticBaseSettingsSource):
    """Collects INFERNO_<KEY>_EAS_GRACEFUL_DEGRADE flags into `schema_graceful_degrade`.

    Process environment wins over the .env file, matching the other settings.
    """

    def __init__(
        self,
        settings_cls: type[BaseSettings],
        env_settings: EnvSettingsSource,
        dotenv_settings: DotEnvSettingsSource,
    ):
        super().__init__(settings_cls)
        self.env_settings = env_settings
        self.dotenv_settings = dotenv_settings

    def get_field_value(self, field: FieldInfo, field_name: str) -> tuple[Any, str, bool]:
        return None, field_name, False

    def __call__(self) -> dict[str, Any]:
        prefix, suffix = ENV_PREFIX.lower(), DEGRADE_SUFFIX.lower()
        flags: dict[str, bool] = {}
        for source in (self.dotenv_settings, self.env_settings):
            for name, raw in source.env_vars.items():
                name = name.lower()
                if raw is None or not name.startswith(prefix) or not name.endswith(suffix):
                    continue
                key = name[len(prefix):-len(suffix)]
                if key:
                    flags[key] = raw.strip().lower() == "true"
        return {"schema_graceful_degrade": flags} if flags else {}


class InfernoConfig(BaseSettings):
    """Relay configuration using pydantic-settings BaseSettings."""

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_file='.env',
        env_file_encoding='utf-8',
        secrets_dir='/run/secrets',
        extra='ignore',
    )

    database_url: str = Field(
        default="sqlite:///./inferno.db",
        description="SQLAlchemy database URL"
    )
    rpc_url: str | None = Field(
        default=None,
        description="JSON-RPC endpoint for the default network"
    )
    rpc_urls: dict[int, str] = Field(
        default_factory=dict,
        description="Per-chain JSON-RPC endpoints (chain id -> URL)"
    )
    chain_id: int = Field(default=84532, description="Default chain id")
    blockchain_network: str = Field(
        default="base-sepolia",
        description="Default EAS network name"
    )
    eas_enabled: bool = Field(default=False, description="Submit attestations on-chain")
    eas_graceful_degrade: bool = Field(
        default=False,
        description="Let actions succeed when their attestation fails"
    )
    schema_graceful_degrade: dict[str, bool] = Field(
        default_factory=dict,
        description="Per-schema degrade flags keyed by schema key"
    )
    eas_contract_address: str = Field(default="0x4200000000000000000000000000000000000021")
    schema_registry_address: str = Field(default="0x4200000000000000000000000000000000000020")
    lock_manager_private_key: str | None = Field(
        default=None,
        description="Service wallet key used to relay attestations and transfers"
    )
    dg_token_address_base: str | None = Field(default=None)
    dg_token_address_base_sepolia: str | None = Field(default=None)
    dg_vendor_address: str | None = Field(default=None)
    dg_nation_lock_address: str | None = Field(default=None)
    admin_lock_address: str | None = Field(default=None)
    dg_withdrawal_min_amount: int = Field(default=3000)
    dg_withdrawal_max_daily_amount: int = Field(default=100000)
    auth_jwt_secret: str = Field(default="change-me", description="HS256 secret for bearer tokens")
    telegram_bot_token: str | None = Field(default=None)
    app_url: str = Field(default="http://localhost:3000")
    paystack_secret_key: str | None = Field(default=None)
    log_level: str = Field(default="INFO")

    @field_validator(
        'dg_token_address_base',
        'dg_token_address_base_sepolia',
        'dg_vendor_address',
        'dg_nation_lock_address',
        'admin_lock_address',
    )
    @classmethod
    def validate_optional_address(cls, v: str | None) -> str | None:
        """Validate contract addresses when provided."""
        if v in (None, ""):
            return None
        if not Web3.is_address(v):
            raise ValueError(f"Invalid address: {v}")
        return Web3.to_checksum_address(v)

    @field_validator('chain_id')
    @classmethod
    def validate_chain_id(cls, v: int) -> int:
        """Validate chain ID is positive."""
        if v <= 0:
            raise ValueError("Chain ID must be positive")
        return v

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            file_secret_settings,
            SchemaDegradeSettingsSource(settings_cls, env_settings, dotenv_settings),
        )

    def schema_degrade_override(self, schema_key: str) -> bool | None:
        """Per-schema graceful degradation flag, if set."""
        return self.schema_graceful_degrade.get(schema_key.lower())

    def rpc_url_for_chain(self, chain_id: int) -> str | None:
        """Resolve the RPC URL for a chain, falling back to public endpoints."""
        if chain_id in self.rpc_urls:
            return self.rpc_urls[chain_id]
        if chain_id == self.chain_id and self.rpc_url:
            return self.rpc_url
        return DEFAULT_RPC_URLS.get(chain_id)

    def dg_contracts_by_chain(self) -> dict[int, str | None]:
        """DG token contract per supported chain."""
        return {
            8453: self.dg_token_address_base,
            84532: self.dg_token_address_base_sepolia,
        }


def create_web3(config: InfernoConfig, chain_id: int | None = None) -> Web3:
    """Create Web3 client for the default (or given) chain."""
    target = chain_id or config.chain_id
    url = config.rpc_url_for_chain(target)
    if not url:
        raise ValueError(f"RPC URL required for chain {target}. Set INFERNO_RPC_URL.")
    return Web3(Web3.HTTPProvider(url))


def create_service_account(config: InfernoConfig) -> LocalAccount:
    """Load the service wallet from its private key."""
    if not config.lock_manager_private_key:
        raise ValueError("Service wallet key required. Set INFERNO_LOCK_MANAGER_PRIVATE_KEY.")

    try:
        return Account.from_key(config.lock_manager_private_key)
    except Exception as e:
        raise ValueError(f"Invalid service wallet key: {e}")


def validate_config(config: InfernoConfig) -> None:
    """Validate configuration completeness for on-chain operations."""
    if not config.rpc_url and config.chain_id not in config.rpc_urls:
        raise ValueError("RPC URL required. Set INFERNO_RPC_URL environment variable.")
    if not config.lock_manager_private_key:
        raise ValueError("Service wallet key required. Set INFERNO_LOCK_MANAGER_PRIVATE_KEY.")
