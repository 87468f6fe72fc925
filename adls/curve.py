"""
Ed25519 scalar and point arithmetic.

Scalars are integers modulo the group order L. They cross every boundary as
32-byte little-endian buffers and are reduced explicitly when read
(``Scalar.from_bytes`` / ``Scalar.from_wide_bytes``), never implicitly.

Points are 32-byte compressed encodings. Point arithmetic is delegated to
libsodium through PyNaCl, which refuses non-canonical encodings, points of
small order and points outside the prime-order subgroup, and fails any
multiplication that lands on the identity. Those refusals surface as CurveError.

Requires PyNaCl — install with: pip install pynacl
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field

from adls import POINT_SIZE, SCALAR_SIZE

# Order of the Ed25519 prime-order subgroup
CURVE_ORDER = 2**252 + 27742317777372353535851937790883648493


class CurveError(ValueError):
    """Invalid point encoding or degenerate curve operation."""


# ---------------------------------------------------------------------------
# libsodium bindings — NO FALLBACK. PyNaCl is REQUIRED.
# ---------------------------------------------------------------------------

def _import_nacl():
    """Import PyNaCl's libsodium bindings. Raises ImportError if unavailable."""
    try:
        import nacl.bindings
        return nacl.bindings
    except ImportError:
        raise ImportError(
            "PyNaCl is required for Ed25519 point arithmetic. "
            "Install with: pip install pynacl"
        )


# ---------------------------------------------------------------------------
# Scalars
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Scalar:
    """An Ed25519 scalar, always in [0, L).

    The value is kept out of ``repr`` so secret scalars do not end up in logs
    or tracebacks.
    """

    value: int = field(repr=False)

    def __post_init__(self) -> None:
        if not isinstance(self.value, int) or not 0 <= self.value < CURVE_ORDER:
            raise ValueError("Scalar out of range; use Scalar.reduce()")

    @classmethod
    def reduce(cls, value: int) -> Scalar:
        return cls(value % CURVE_ORDER)

    @classmethod
    def from_bytes(cls, data: bytes) -> Scalar:
        """Interpret a little-endian buffer as a scalar, reduced mod L.

        Accepts 32 bytes, or 64 bytes of which the first (low-order) 32 are
        used. Every value is valid after reduction.
        """
        if len(data) == 2 * SCALAR_SIZE:
            data = data[:SCALAR_SIZE]
        if len(data) != SCALAR_SIZE:
            raise ValueError(
                f"Scalar input must be {SCALAR_SIZE} or {2 * SCALAR_SIZE} bytes, got {len(data)}"
            )
        return cls.reduce(int.from_bytes(data, "little"))

    @classmethod
    def from_wide_bytes(cls, data: bytes) -> Scalar:
        """Reduce a full 64-byte little-endian digest mod L (EdDSA challenge)."""
        if len(data) != 2 * SCALAR_SIZE:
            raise ValueError(f"Wide scalar input must be {2 * SCALAR_SIZE} bytes")
        return cls.reduce(int.from_bytes(data, "little"))

    def to_bytes(self) -> bytes:
        """Fixed-width 32-byte little-endian encoding."""
        return self.value.to_bytes(SCALAR_SIZE, "little")

    def is_zero(self) -> bool:
        return self.value == 0

    def __add__(self, other: Scalar) -> Scalar:
        if not isinstance(other, Scalar):
            return NotImplemented
        return Scalar.reduce(self.value + other.value)

    def __sub__(self, other: Scalar) -> Scalar:
        if not isinstance(other, Scalar):
            return NotImplemented
        return Scalar.reduce(self.value - other.value)

    def __mul__(self, other: Scalar) -> Scalar:
        if not isinstance(other, Scalar):
            return NotImplemented
        return Scalar.reduce(self.value * other.value)


def hash_to_scalar(data: bytes) -> Scalar:
    """SHA-256 the input and read the digest as a reduced scalar."""
    return Scalar.from_bytes(hashlib.sha256(data).digest())


# ---------------------------------------------------------------------------
# Points
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Point:
    """A compressed Ed25519 point in the prime-order subgroup.

    Build through point_from_bytes() or the arithmetic helpers; the
    constructor does not validate.
    """

    encoded: bytes

    def to_bytes(self) -> bytes:
        return self.encoded

    def hex(self) -> str:
        return self.encoded.hex()


def point_from_bytes(data: bytes) -> Point:
    """Decode and validate a 32-byte compressed point."""
    lib = _import_nacl()
    if not isinstance(data, (bytes, bytearray)) or len(data) != POINT_SIZE:
        raise CurveError(f"Point encoding must be {POINT_SIZE} bytes")
    data = bytes(data)
    if not lib.crypto_core_ed25519_is_valid_point(data):
        raise CurveError(f"Not a valid Ed25519 point: {data.hex()}")
    return Point(data)


def point_to_bytes(point: Point) -> bytes:
    return point.encoded


def scalar_mul_base(scalar: Scalar) -> Point:
    """scalar·G"""
    lib = _import_nacl()
    try:
        return Point(lib.crypto_scalarmult_ed25519_base_noclamp(scalar.to_bytes()))
    except RuntimeError as e:
        raise CurveError("Base point multiplication produced the identity") from e


def point_scalar_mul(point: Point, scalar: Scalar) -> Point:
    """scalar·P"""
    lib = _import_nacl()
    try:
        return Point(lib.crypto_scalarmult_ed25519_noclamp(scalar.to_bytes(), point.encoded))
    except RuntimeError as e:
        raise CurveError(f"Scalar multiplication failed for point {point.hex()}") from e


def point_add(a: Point, b: Point) -> Point:
    """a + b"""
    lib = _import_nacl()
    try:
        return Point(lib.crypto_core_ed25519_add(a.encoded, b.encoded))
    except RuntimeError as e:
        raise CurveError("Point addition failed") from e
