"""Exception types raised by the relay SDK."""

from __future__ import annotations


class InfernoError(Exception):
    """Base class for relay errors."""


class WalletValidationError(InfernoError):
    """Wallet missing, malformed or not linked to the caller."""

    def __init__(self, message: str, code: str = "INVALID"):
        super().__init__(message)
        self.code = code


class NetworkConfigError(InfernoError):
    """EAS network configuration missing or unusable."""


class AuthenticationError(InfernoError):
    """Bearer token missing or invalid."""
