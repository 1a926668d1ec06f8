"""Sign a DG withdrawal request as a user wallet.

Args (positional):
  1) private_key_hex: user wallet key
  2) amount_dg: whole DG amount
  3) deadline: unix timestamp
  4) chain_id: 8453 or 84532 (DG token address read from INFERNO_ env)

Prints two space-separated values: <user_address> <signature_hex>
"""

from __future__ import annotations

import sys

from eth_account import Account

from inferno.cli.config import InfernoConfig
from inferno.sdk.models import WithdrawalMessage
from inferno.sdk.withdrawal import dg_to_wei, sign_withdrawal


def main() -> int:
    if len(sys.argv) < 5:
        print("Usage: sign_withdrawal.py <private_key_hex> <amount_dg> <deadline> <chain_id>", file=sys.stderr)
        return 2

    key, amount, deadline, chain_id = sys.argv[1:5]
    user = Account.from_key(key).address
    message = WithdrawalMessage(user=user, amount=dg_to_wei(int(amount)), deadline=int(deadline))
    try:
        signature = sign_withdrawal(InfernoConfig(), message, int(chain_id), key)
    except ValueError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    print(f"{user} {signature}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
