"""Bearer token authentication and wallet ownership checks.

Access tokens are HS256 JWTs whose `sub` claim is the user id and whose
`wallets` claim lists the wallets linked to that account.
"""

from __future__ import annotations

import logging
import time
from typing import Any

import jwt

from inferno.sdk.errors import AuthenticationError, WalletValidationError
from inferno.sdk.models import AuthUser

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
DEFAULT_TTL_SECONDS = 3600


def issue_access_token(user: AuthUser, secret: str, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> str:
    """Create a signed access token for a user."""
    now = int(time.time())
    payload: dict[str, Any] = {
        "sub": user.id,
        "wallets": [w.lower() for w in user.wallets],
        "iat": now,
        "exp": now + ttl_seconds,
    }
    if user.email:
        payload["email"] = user.email
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def decode_access_token(token: str, secret: str) -> AuthUser:
    """Verify an access token and return the user it identifies.

    Raises:
        AuthenticationError: If the token is missing, expired or invalid
    """
    if not token:
        raise AuthenticationError("Authentication required")
    try:
        payload = jwt.decode(token, secret, algorithms=[ALGORITHM], options={"require": ["sub", "exp"]})
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token expired")
    except jwt.InvalidTokenError as e:
        raise AuthenticationError(f"Invalid token: {e}")

    return AuthUser(
        id=str(payload["sub"]),
        wallets=[str(w) for w in payload.get("wallets", [])],
        email=payload.get("email"),
    )


def validate_wallet_ownership(user: AuthUser, wallet: str | None, context: str) -> str:
    """Ensure `wallet` is linked to the user and return it.

    Raises:
        WalletValidationError: If the wallet is missing or belongs to someone else
    """
    if not wallet:
        raise WalletValidationError("Wallet address is required", code="WALLET_REQUIRED")

    linked = {w.lower() for w in user.wallets}
    if wallet.lower() not in linked:
        logger.warning("Wallet %s is not linked to user %s (%s)", wallet, user.id, context)
        raise WalletValidationError(
            "Wallet address does not belong to the authenticated user",
            code="WALLET_NOT_OWNED",
        )
    return wallet
