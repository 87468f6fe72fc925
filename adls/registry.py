"""
Registry accounts — where recipients publish their meta public key.

Account layout (read-only here; written by the on-chain registry program):
    discriminator  8 bytes
    owner         32 bytes   wallet that registered
    meta_pubkey   32 bytes   recipient's meta public key
    bump           1 byte    address derivation bump seed
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from adls import POINT_SIZE, REGISTRY_ACCOUNT_SIZE, REGISTRY_DISCRIMINATOR_SIZE
from adls.stealth import encode_address


@dataclass(frozen=True)
class RegistryAccount:
    """Decoded registry account."""

    owner: bytes
    meta_pubkey: bytes
    bump: int

    @property
    def owner_address(self) -> str:
        return encode_address(self.owner)

    @classmethod
    def from_bytes(cls, data: bytes) -> RegistryAccount:
        """Decode raw account data. Trailing bytes (padding) are ignored."""
        if len(data) < REGISTRY_ACCOUNT_SIZE:
            raise ValueError(
                f"Registry account too short: {len(data)} < {REGISTRY_ACCOUNT_SIZE} bytes"
            )
        body = data[REGISTRY_DISCRIMINATOR_SIZE:]
        return cls(
            owner=bytes(body[:POINT_SIZE]),
            meta_pubkey=bytes(body[POINT_SIZE:2 * POINT_SIZE]),
            bump=body[2 * POINT_SIZE],
        )


def lookup_registry(ledger: Any, address: str) -> RegistryAccount | None:
    """Fetch and decode a registry account. None if it does not exist."""
    data = ledger.get_account_data(address)
    if data is None:
        return None
    return RegistryAccount.from_bytes(data)
