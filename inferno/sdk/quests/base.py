"""Common interface for quest task verification strategies."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from inferno.sdk.models import VerificationResult


class VerificationStrategy(ABC):
    """Verifies that a user completed a quest task of a given type."""

    @abstractmethod
    def verify(
        self,
        task_type: str,
        verification_data: dict[str, Any],
        user_id: str,
        user_address: str,
        task_config: dict[str, Any] | None = None,
    ) -> VerificationResult:
        """Return a VerificationResult; strategies report failures, never raise."""


def receipt_field(receipt: Any, key: str) -> Any:
    """Read a field from a dict or web3 AttributeDict receipt."""
    if hasattr(receipt, "get"):
        return receipt.get(key)
    return getattr(receipt, key, None)
