"""Contract interfaces used by the relay.

ABI fragments for the EAS contracts, Unlock Protocol locks and factory,
the DG token vendor and ERC20 tokens, plus per-chain deployment constants.
"""

from __future__ import annotations

from typing import Any

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
ZERO_BYTES32 = "0x" + "00" * 32

# Public RPC endpoints for the networks quests can target
DEFAULT_RPC_URLS: dict[int, str] = {
    8453: "https://mainnet.base.org",
    84532: "https://sepolia.base.org",
    10: "https://mainnet.optimism.io",
    42161: "https://arb1.arbitrum.io/rpc",
    42220: "https://forno.celo.org",
}

# Unlock factory (deterministic deployment, same address on every chain)
UNLOCK_FACTORY_ADDRESSES: dict[int, str] = {
    8453: "0x1FF7e338d5E582138C46044dc238543Ce555C963",
    84532: "0x1FF7e338d5E582138C46044dc238543Ce555C963",
    10: "0x1FF7e338d5E582138C46044dc238543Ce555C963",
    42161: "0x1FF7e338d5E582138C46044dc238543Ce555C963",
    42220: "0x1FF7e338d5E582138C46044dc238543Ce555C963",
}


def _param(name: str, type_: str, indexed: bool | None = None, components: list[dict[str, Any]] | None = None) -> dict[str, Any]:
    entry: dict[str, Any] = {"name": name, "type": type_}
    if indexed is not None:
        entry["indexed"] = indexed
    if components is not None:
        entry["components"] = components
    return entry


ATTESTATION_REQUEST_DATA = [
    _param("recipient", "address"),
    _param("expirationTime", "uint64"),
    _param("revocable", "bool"),
    _param("refUID", "bytes32"),
    _param("data", "bytes"),
    _param("value", "uint256"),
]

EIP712_SIGNATURE = [
    _param("v", "uint8"),
    _param("r", "bytes32"),
    _param("s", "bytes32"),
]

EAS_ABI: list[dict[str, Any]] = [
    {
        "type": "function",
        "name": "attestByDelegation",
        "stateMutability": "payable",
        "inputs": [
            _param("delegatedRequest", "tuple", components=[
                _param("schema", "bytes32"),
                _param("data", "tuple", components=ATTESTATION_REQUEST_DATA),
                _param("signature", "tuple", components=EIP712_SIGNATURE),
                _param("attester", "address"),
                _param("deadline", "uint64"),
            ]),
        ],
        "outputs": [_param("", "bytes32")],
    },
    {
        "type": "function",
        "name": "getAttestation",
        "stateMutability": "view",
        "inputs": [_param("uid", "bytes32")],
        "outputs": [
            _param("", "tuple", components=[
                _param("uid", "bytes32"),
                _param("schema", "bytes32"),
                _param("time", "uint64"),
                _param("expirationTime", "uint64"),
                _param("revocationTime", "uint64"),
                _param("refUID", "bytes32"),
                _param("recipient", "address"),
                _param("attester", "address"),
                _param("revocable", "bool"),
                _param("data", "bytes"),
            ]),
        ],
    },
    {
        "type": "event",
        "name": "Attested",
        "anonymous": False,
        "inputs": [
            _param("recipient", "address", indexed=True),
            _param("attester", "address", indexed=True),
            _param("uid", "bytes32", indexed=False),
            _param("schemaUID", "bytes32", indexed=True),
        ],
    },
]

SCHEMA_REGISTRY_ABI: list[dict[str, Any]] = [
    {
        "type": "function",
        "name": "register",
        "stateMutability": "nonpayable",
        "inputs": [
            _param("schema", "string"),
            _param("resolver", "address"),
            _param("revocable", "bool"),
        ],
        "outputs": [_param("", "bytes32")],
    },
]

PUBLIC_LOCK_ABI: list[dict[str, Any]] = [
    {
        "type": "function",
        "name": "getHasValidKey",
        "stateMutability": "view",
        "inputs": [_param("_user", "address")],
        "outputs": [_param("isValid", "bool")],
    },
]

UNLOCK_FACTORY_EVENTS: list[dict[str, Any]] = [
    {
        "type": "event",
        "name": "NewLock",
        "anonymous": False,
        "inputs": [
            _param("lockOwner", "address", indexed=True),
            _param("newLockAddress", "address", indexed=True),
        ],
    },
]

DG_TOKEN_VENDOR_ABI: list[dict[str, Any]] = [
    {
        "type": "function",
        "name": "getUserState",
        "stateMutability": "view",
        "inputs": [_param("user", "address")],
        "outputs": [
            _param("_userState", "tuple", components=[
                _param("stage", "uint8"),
                _param("points", "uint256"),
                _param("fuel", "uint256"),
                _param("lastStage3MaxSale", "uint256"),
                _param("dailySoldAmount", "uint256"),
                _param("dailyWindowStart", "uint256"),
            ]),
        ],
    },
    {
        "type": "event",
        "name": "TokensPurchased",
        "anonymous": False,
        "inputs": [
            _param("buyer", "address", indexed=True),
            _param("baseTokenAmount", "uint256", indexed=False),
            _param("swapTokenAmount", "uint256", indexed=False),
            _param("fee", "uint256", indexed=False),
        ],
    },
    {
        "type": "event",
        "name": "TokensSold",
        "anonymous": False,
        "inputs": [
            _param("seller", "address", indexed=True),
            _param("swapTokenAmount", "uint256", indexed=False),
            _param("baseTokenAmount", "uint256", indexed=False),
            _param("fee", "uint256", indexed=False),
        ],
    },
    {
        "type": "event",
        "name": "Lit",
        "anonymous": False,
        "inputs": [
            _param("user", "address", indexed=True),
            _param("burnAmount", "uint256", indexed=False),
            _param("newFuel", "uint256", indexed=False),
        ],
    },
]

ERC20_ABI: list[dict[str, Any]] = [
    {
        "type": "function",
        "name": "decimals",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [_param("", "uint8")],
    },
    {
        "type": "function",
        "name": "balanceOf",
        "stateMutability": "view",
        "inputs": [_param("account", "address")],
        "outputs": [_param("", "uint256")],
    },
    {
        "type": "function",
        "name": "transfer",
        "stateMutability": "nonpayable",
        "inputs": [_param("to", "address"), _param("amount", "uint256")],
        "outputs": [_param("", "bool")],
    },
]


def events_of(abi: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Return the event entries of an ABI."""
    return [entry for entry in abi if entry.get("type") == "event"]
