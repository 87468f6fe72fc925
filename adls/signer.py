"""
Ed25519 signing from a raw scalar.

Standard Ed25519 signers expand a 32-byte seed with SHA-512 and clamp it.
A recovered one-time key is already a finished scalar, so feeding it to a
seed-based signer would sign for a different public key. sign_with_scalar
performs the Schnorr steps directly:

    A = s·G
    r = random scalar,  R = r·G
    k = SHA-512(R || A || M) mod L
    S = (r + k·s) mod L
    signature = R || S

The output verifies under any RFC 8032 verifier. The nonce is random, not
derived from (key, message): reusing a nonce for two messages under the
same key reveals the key, and each one-time key signs only once.

Verification uses the `cryptography` package, lazily imported.
"""

from __future__ import annotations

import hashlib
import os

from adls import POINT_SIZE, SCALAR_SIZE, SIGNATURE_SIZE
from adls.curve import Scalar, scalar_mul_base


def _import_cryptography():
    """Lazily import the cryptography Ed25519 primitives.

    Raises ImportError with a helpful message if not installed.
    """
    try:
        from cryptography.exceptions import InvalidSignature
        from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

        return Ed25519PublicKey, InvalidSignature
    except ImportError:
        raise ImportError(
            "cryptography is required for signature verification. "
            "Install with: pip install cryptography"
        )


def sign_with_scalar(
    message: bytes,
    scalar_bytes: bytes,
    nonce: bytes | None = None,
) -> bytes:
    """Sign a message with a raw 32-byte scalar (not a seed).

    Args:
        message: Bytes to sign.
        scalar_bytes: 32-byte little-endian scalar, e.g. a recovered stealth key.
        nonce: 32 bytes to use as r instead of fresh randomness. Never pass
            the same nonce twice for one key.

    Returns:
        64-byte signature R || S.

    Raises:
        ValueError: if the scalar or the nonce reduces to zero.
    """
    scalar = Scalar.from_bytes(scalar_bytes)
    if scalar.is_zero():
        raise ValueError("Signing scalar reduces to zero")
    public = scalar_mul_base(scalar).to_bytes()

    r = Scalar.from_bytes(nonce if nonce is not None else os.urandom(SCALAR_SIZE))
    if r.is_zero():
        raise ValueError("Nonce reduces to zero")
    commitment = scalar_mul_base(r).to_bytes()

    challenge = Scalar.from_wide_bytes(
        hashlib.sha512(commitment + public + bytes(message)).digest()
    )
    response = r + challenge * scalar

    return commitment + response.to_bytes()


def verify_signature(message: bytes, signature: bytes, public_key: bytes) -> bool:
    """Standard Ed25519 verification. Returns False on any invalid input."""
    Ed25519PublicKey, InvalidSignature = _import_cryptography()

    if len(signature) != SIGNATURE_SIZE or len(public_key) != POINT_SIZE:
        return False
    try:
        key = Ed25519PublicKey.from_public_bytes(bytes(public_key))
        key.verify(bytes(signature), bytes(message))
    except (InvalidSignature, ValueError):
        return False
    return True
