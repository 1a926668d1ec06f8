"""DG withdrawal signing CLI commands."""

from __future__ import annotations

import time

import typer
from eth_account import Account
from rich.console import Console

from inferno.cli.config import InfernoConfig
from inferno.sdk.models import WithdrawalMessage
from inferno.sdk.withdrawal import dg_to_wei, sign_withdrawal, verify_withdrawal_signature

app = typer.Typer(name="withdrawal", help="EIP-712 withdrawal signature commands")
console = Console()

DEFAULT_VALIDITY_SECONDS = 900


@app.command("sign")
def sign_command(
    amount: int = typer.Option(..., "--amount", "-a", help="Amount in DG"),
    chain_id: int = typer.Option(84532, "--chain-id", help="Chain id of the DG token"),
    private_key: str = typer.Option(..., "--private-key", envvar="INFERNO_USER_PRIVATE_KEY", help="User wallet key"),
    deadline: int | None = typer.Option(None, "--deadline", help="Unix deadline (default: 15 minutes from now)"),
) -> None:
    """Sign a withdrawal request with a user wallet."""
    try:
        user = Account.from_key(private_key).address
        message = WithdrawalMessage(
            user=user,
            amount=dg_to_wei(amount),
            deadline=deadline or int(time.time()) + DEFAULT_VALIDITY_SECONDS,
        )
        signature = sign_withdrawal(InfernoConfig(), message, chain_id, private_key)
    except Exception as e:
        console.print(f"❌ Error signing withdrawal: {e}")
        raise typer.Exit(1)

    console.print("✅ Withdrawal signed")
    console.print(f"User: {user}")
    console.print(f"Deadline: {message.deadline}")
    console.print(f"Signature: [bold]{signature}[/bold]")


@app.command("verify")
def verify_command(
    user: str = typer.Option(..., "--user", "-u", help="Signing wallet"),
    amount: int = typer.Option(..., "--amount", "-a", help="Amount in DG"),
    deadline: int = typer.Option(..., "--deadline", help="Unix deadline"),
    signature: str = typer.Option(..., "--signature", "-s", help="0x signature"),
    chain_id: int = typer.Option(84532, "--chain-id", help="Chain id of the DG token"),
) -> None:
    """Verify a withdrawal signature."""
    message = WithdrawalMessage(user=user, amount=dg_to_wei(amount), deadline=deadline)
    result = verify_withdrawal_signature(InfernoConfig(), message, signature, chain_id)

    if not result.valid:
        console.print(f"❌ Invalid withdrawal signature: {result.error}")
        raise typer.Exit(1)
    console.print(f"✅ Valid signature from {result.recovered_address}")
