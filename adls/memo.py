"""
Memo codec — carries the sender's ephemeral public key on-chain.

Format:
    "ADLSv1:" + 64 lowercase hex chars (32-byte ephemeral public key)
     ^          ^
     |          ephemeral Ed25519 point
     protocol prefix

Anything else is not ADLS traffic and decodes to None.
"""

from __future__ import annotations

import re

from adls import MEMO_PAYLOAD_HEX_LEN, MEMO_PREFIX, POINT_SIZE

# Exactly 64 hex chars; bytes.fromhex alone would also accept whitespace
_PAYLOAD_RE = re.compile(r"[0-9a-fA-F]{%d}" % MEMO_PAYLOAD_HEX_LEN)


def encode_memo(ephemeral_pk: bytes) -> str:
    """Build the memo text for an ephemeral public key."""
    if not isinstance(ephemeral_pk, (bytes, bytearray)) or len(ephemeral_pk) != POINT_SIZE:
        raise ValueError(f"Ephemeral public key must be {POINT_SIZE} bytes")
    return MEMO_PREFIX + bytes(ephemeral_pk).hex()


def decode_memo(memo: str) -> bytes | None:
    """Extract the ephemeral public key from a memo.

    Returns None if the prefix does not match exactly or the payload is
    not exactly 64 hex characters.
    """
    if not isinstance(memo, str) or not memo.startswith(MEMO_PREFIX):
        return None

    payload = memo[len(MEMO_PREFIX):]
    if not _PAYLOAD_RE.fullmatch(payload):
        return None

    try:
        return bytes.fromhex(payload)
    except ValueError:
        return None


def is_stealth_memo(memo: str) -> bool:
    """Cheap prefix check used before a full decode."""
    return isinstance(memo, str) and memo.startswith(MEMO_PREFIX)
