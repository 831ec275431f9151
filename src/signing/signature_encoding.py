"""
Signature Encoding Module

Converts ECDSA signatures between the fixed-width ``r || s`` concatenation
spoken by key-management backends and the ASN.1 DER
``SEQUENCE { INTEGER r, INTEGER s }`` form expected by standard verifiers.
"""

from cryptography.hazmat.primitives.asymmetric.utils import (
    decode_dss_signature,
    encode_dss_signature,
)

from .errors import MalformedSignatureError


def der_from_raw(raw: bytes) -> bytes:
    """
    Encode a raw ``r || s`` signature as DER.

    Args:
        raw: Concatenated big-endian scalars, each half of the total length

    Returns:
        DER-encoded signature bytes
    """
    if not raw or len(raw) % 2 != 0:
        raise MalformedSignatureError(f"raw signature length {len(raw)} is not a non-zero even number")

    half = len(raw) // 2
    r = int.from_bytes(raw[:half], "big")
    s = int.from_bytes(raw[half:], "big")
    return encode_dss_signature(r, s)


def raw_from_der(der: bytes, scalar_size: int) -> bytes:
    """
    Decode a DER signature into fixed-width ``r || s``.

    Parsing is strict: the input must be exactly the canonical encoding of
    two non-negative integers, with no trailing bytes.

    Args:
        der: DER-encoded signature
        scalar_size: Byte width of each scalar (32 for P-256)

    Returns:
        Raw signature of length ``2 * scalar_size``
    """
    try:
        r, s = decode_dss_signature(der)
    except ValueError as e:
        raise MalformedSignatureError(f"parsing signature: {e}") from e

    if r < 0 or s < 0:
        raise MalformedSignatureError("parsing signature: negative integer")
    # Rejects trailing data and non-minimal integer encodings.
    if encode_dss_signature(r, s) != bytes(der):
        raise MalformedSignatureError("parsing signature: non-canonical DER encoding")

    try:
        return r.to_bytes(scalar_size, "big") + s.to_bytes(scalar_size, "big")
    except OverflowError as e:
        raise MalformedSignatureError(f"signature scalar wider than {scalar_size} bytes") from e
