"""FastAPI dependencies shared by the route modules."""

from __future__ import annotations

import logging
from collections.abc import Callable, Generator

from fastapi import Depends, Header, HTTPException, Request
from sqlmodel import Session
from web3 import Web3

from inferno.cli.config import InfernoConfig
from inferno.sdk.auth import decode_access_token
from inferno.sdk.chain import has_valid_key
from inferno.sdk.errors import AuthenticationError, NetworkConfigError
from inferno.sdk.models import AuthUser
from inferno.sdk.networks import build_eas_scan_link

logger = logging.getLogger(__name__)

Web3ForChain = Callable[[int], Web3]


def get_config(request: Request) -> InfernoConfig:
    return request.app.state.config


def get_session(request: Request) -> Generator[Session, None, None]:
    with Session(request.app.state.engine) as session:
        yield session


def get_web3_factory(request: Request) -> Callable[[str], Web3]:
    """Builds a Web3 client from an RPC URL."""
    return request.app.state.web3_factory


def get_web3_for_chain(
    config: InfernoConfig = Depends(get_config),
    web3_factory: Callable[[str], Web3] = Depends(get_web3_factory),
) -> Web3ForChain:
    """Builds a Web3 client for a chain id using the configured RPC URLs."""
    def for_chain(chain_id: int) -> Web3:
        url = config.rpc_url_for_chain(chain_id)
        if not url:
            raise ValueError(f"RPC URL not configured for chain {chain_id}")
        return web3_factory(url)
    return for_chain


def get_current_user(
    authorization: str | None = Header(default=None),
    config: InfernoConfig = Depends(get_config),
) -> AuthUser:
    token = None
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization[7:].strip()
    try:
        return decode_access_token(token or "", config.auth_jwt_secret)
    except AuthenticationError as e:
        logger.debug("Rejected bearer token: %s", e)
        raise HTTPException(status_code=401, detail="Unauthorized")


def require_admin(
    user: AuthUser = Depends(get_current_user),
    config: InfernoConfig = Depends(get_config),
    web3_for_chain: Web3ForChain = Depends(get_web3_for_chain),
) -> AuthUser:
    """Admins hold a valid key on the admin lock with one of their wallets."""
    if not config.admin_lock_address:
        raise HTTPException(status_code=403, detail="Admin access not configured")
    try:
        w3 = web3_for_chain(config.chain_id)
        for wallet in user.wallets:
            if has_valid_key(w3, config.admin_lock_address, wallet):
                return user
    except Exception as e:
        logger.error("Admin key check failed for %s: %s", user.id, e)
        raise HTTPException(status_code=503, detail="Admin verification unavailable")
    raise HTTPException(status_code=403, detail="Admin access required")


def scan_link(session: Session, config: InfernoConfig, uid: str | None) -> str | None:
    """EAS explorer link for an attestation uid, or None when it cannot be built."""
    if not uid:
        return None
    try:
        return build_eas_scan_link(session, config, uid)
    except NetworkConfigError as e:
        logger.warning("No scan link for %s: %s", uid, e)
        return None
