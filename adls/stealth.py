"""
Single-key stealth address protocol.

Sender (needs only the recipient's meta public key):
    e  = random scalar,  E = e·G                     ephemeral keypair
    ss = SHA-256(e·M)                                shared secret
    t  = H(ss || "adelos:stealth:v1") mod L          domain scalar
    P  = M + t·G                                     one-time address
    memo = "ADLSv1:" + hex(E)

Recipient (holds m, M = m·G):
    ss = SHA-256(m·E)         equal to the sender's, since e·M = m·E = (e·m)·G
    t  = H(ss || domain) mod L
    p  = (m + t) mod L        one-time secret, p·G == P

The meta secret is not stored anywhere: it is SHA-256 of the owner's wallet
signature over UNLOCK_MESSAGE, so it can be re-derived at will.
"""

from __future__ import annotations

import hashlib
import hmac
import os
from dataclasses import dataclass, field
from typing import Callable

import base58

from adls import POINT_SIZE, SCALAR_SIZE, STEALTH_DOMAIN, UNLOCK_MESSAGE
from adls.curve import (
    Scalar,
    hash_to_scalar,
    point_add,
    point_from_bytes,
    point_scalar_mul,
    scalar_mul_base,
)
from adls.memo import encode_memo

_DOMAIN_BYTES = STEALTH_DOMAIN.encode("utf-8")


def encode_address(pubkey: bytes) -> str:
    """32-byte public key -> base58 ledger address."""
    return base58.b58encode(bytes(pubkey)).decode("ascii")


def decode_address(address: str) -> bytes:
    """base58 ledger address -> 32-byte public key."""
    raw = base58.b58decode(address)
    if len(raw) != POINT_SIZE:
        raise ValueError(f"Address must decode to {POINT_SIZE} bytes: {address!r}")
    return raw


@dataclass(frozen=True)
class EphemeralKeypair:
    """Sender-side one-use keypair. The secret is dropped after the transfer."""

    secret_key: bytes = field(repr=False)
    public_key: bytes


@dataclass(frozen=True)
class MetaKeypair:
    """The recipient's long-lived identity keypair."""

    secret_key: bytes = field(repr=False)
    public_key: bytes

    @classmethod
    def from_secret(cls, secret_key: bytes) -> MetaKeypair:
        return cls(secret_key=bytes(secret_key), public_key=derive_public_key(secret_key))

    @classmethod
    def from_signature(cls, signature: bytes) -> MetaKeypair:
        """Derive the meta keypair from a wallet signature over UNLOCK_MESSAGE."""
        return cls.from_secret(hashlib.sha256(signature).digest())


@dataclass(frozen=True)
class StealthAddress:
    """Everything the sender needs to pay a recipient privately.

    Attributes:
        stealth_pubkey: 32-byte one-time address (payment destination).
        ephemeral: The ephemeral keypair; discard after broadcasting.
        shared_secret: The DH shared secret; never transmitted.
        memo: Memo text to attach to the transfer.
    """

    stealth_pubkey: bytes
    ephemeral: EphemeralKeypair
    shared_secret: bytes = field(repr=False)
    memo: str

    @property
    def address(self) -> str:
        """One-time address in base58 ledger form."""
        return encode_address(self.stealth_pubkey)


# ---------------------------------------------------------------------------
# Keys
# ---------------------------------------------------------------------------

def derive_public_key(secret_key: bytes) -> bytes:
    """Public point of a raw scalar secret (no seed hashing, no clamping)."""
    return scalar_mul_base(Scalar.from_bytes(secret_key)).to_bytes()


def generate_ephemeral_keypair() -> EphemeralKeypair:
    """Fresh random ephemeral keypair."""
    secret_key = os.urandom(SCALAR_SIZE)
    return EphemeralKeypair(secret_key=secret_key, public_key=derive_public_key(secret_key))


def unlock_privacy(sign_message: Callable[[bytes], bytes]) -> bytes:
    """Derive the meta secret key by having the owner's wallet sign UNLOCK_MESSAGE.

    Ed25519 wallet signatures are deterministic, so the same wallet always
    yields the same meta secret.
    """
    signature = sign_message(UNLOCK_MESSAGE.encode("utf-8"))
    return hashlib.sha256(bytes(signature)).digest()


def is_valid_meta_pubkey(meta_pk: bytes) -> bool:
    """A meta public key must be 32 bytes and not all zeros."""
    if not isinstance(meta_pk, (bytes, bytearray)) or len(meta_pk) != POINT_SIZE:
        return False
    return any(meta_pk)


# ---------------------------------------------------------------------------
# Shared secret and one-time key
# ---------------------------------------------------------------------------

def compute_shared_secret(ephemeral_sk: bytes, recipient_meta_pk: bytes) -> bytes:
    """Sender side: SHA-256(ephemeral scalar · meta point)."""
    point = point_scalar_mul(point_from_bytes(recipient_meta_pk), Scalar.from_bytes(ephemeral_sk))
    return hashlib.sha256(point.to_bytes()).digest()


def compute_shared_secret_as_recipient(meta_sk: bytes, ephemeral_pk: bytes) -> bytes:
    """Recipient side: SHA-256(meta scalar · ephemeral point)."""
    point = point_scalar_mul(point_from_bytes(ephemeral_pk), Scalar.from_bytes(meta_sk))
    return hashlib.sha256(point.to_bytes()).digest()


def domain_scalar(shared_secret: bytes) -> Scalar:
    """Domain-separated tweak scalar shared by both sides."""
    return hash_to_scalar(shared_secret + _DOMAIN_BYTES)


def derive_stealth_pubkey(meta_pk: bytes, shared_secret: bytes) -> bytes:
    """One-time address: meta point + tweak·G."""
    tweak = scalar_mul_base(domain_scalar(shared_secret))
    return point_add(point_from_bytes(meta_pk), tweak).to_bytes()


def recover_stealth_secret_key(meta_sk: bytes, shared_secret: bytes) -> bytes:
    """One-time secret: (meta scalar + tweak) mod L, 32 bytes little-endian."""
    stealth = Scalar.from_bytes(meta_sk) + domain_scalar(shared_secret)
    return stealth.to_bytes()


def is_stealth_match(
    meta_sk: bytes,
    meta_pk: bytes,
    ephemeral_pk: bytes,
    stealth_pk: bytes,
) -> bool:
    """Detection test: was stealth_pk derived for this meta keypair?"""
    shared = compute_shared_secret_as_recipient(meta_sk, ephemeral_pk)
    expected = derive_stealth_pubkey(meta_pk, shared)
    return hmac.compare_digest(expected, bytes(stealth_pk))


# ---------------------------------------------------------------------------
# Full sender flow
# ---------------------------------------------------------------------------

def generate_stealth_memo(ephemeral_pk: bytes) -> str:
    return encode_memo(ephemeral_pk)


def generate_stealth_address(recipient_meta_pk: bytes) -> StealthAddress:
    """Derive a fresh one-time address and memo for a recipient.

    Raises CurveError if the meta public key is not a valid point.
    """
    ephemeral = generate_ephemeral_keypair()
    shared = compute_shared_secret(ephemeral.secret_key, recipient_meta_pk)
    return StealthAddress(
        stealth_pubkey=derive_stealth_pubkey(recipient_meta_pk, shared),
        ephemeral=ephemeral,
        shared_secret=shared,
        memo=generate_stealth_memo(ephemeral.public_key),
    )
