"""Compute the EAS schema UID for a schema definition.

Usage: python scripts/compute_schema_uid.py "<definition>" [resolver] [revocable]
Prints the 0x-prefixed 32-byte UID to stdout.
"""

from __future__ import annotations

import sys

from inferno.contracts.abi import ZERO_ADDRESS
from inferno.sdk.hashing import compute_schema_uid


def main() -> int:
    if len(sys.argv) < 2:
        print("Usage: compute_schema_uid.py <definition> [resolver] [true|false]", file=sys.stderr)
        return 2
    definition = sys.argv[1]
    resolver = sys.argv[2] if len(sys.argv) > 2 else ZERO_ADDRESS
    revocable = sys.argv[3].lower() != "false" if len(sys.argv) > 3 else True
    try:
        print(compute_schema_uid(definition, resolver, revocable))
        return 0
    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
