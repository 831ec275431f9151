"""
KMS Signer/Verifier Module

Signs and verifies message digests with a private key that never leaves a
remote key-management backend. The backend speaks raw ``r || s`` ECDSA
signatures; callers of this module only ever see ASN.1 DER.
"""

import io
import logging
from types import MappingProxyType
from typing import Any, BinaryIO, Callable, List, Mapping, Optional, Protocol, Tuple, Union

from cryptography.hazmat.primitives import hashes, serialization

from call_context import CallContext, ContextDone, ensure_context
from .errors import (
    BackendError,
    CanceledError,
    MalformedSignatureError,
    SigningError,
    UnsupportedAlgorithmError,
    UnsupportedHashError,
    VerificationError,
)
from .local_kms import LocalKeyBackend
from .signature_encoding import der_from_raw, raw_from_der

logger = logging.getLogger(__name__)

ALGORITHM_ES256 = "ES256"

SUPPORTED_ALGORITHMS = [ALGORITHM_ES256]
SUPPORTED_HASH_ALGORITHMS = (hashes.SHA256,)

# Byte width of each scalar in a raw signature.
_SCALAR_SIZES = {ALGORITHM_ES256: 32}

_READ_CHUNK_SIZE = 64 * 1024

MessageInput = Union[bytes, bytearray, BinaryIO]


class KeyBackend(Protocol):
    """Capability interface for a remote key-management backend."""

    def sign(self, ctx: CallContext, digest: bytes) -> bytes: ...

    def verify(self, ctx: CallContext, raw_signature: bytes, digest: bytes) -> bool: ...

    def public_key(self, ctx: CallContext) -> bytes: ...

    def create_key(self, ctx: CallContext, algorithm: str) -> bytes: ...


Connector = Callable[[CallContext, str], KeyBackend]

# Connectors keyed by locator scheme. Extra schemes are passed per call.
BACKEND_CONNECTORS: Mapping[str, Connector] = MappingProxyType({
    "localkms": LocalKeyBackend.connect,
})


def load_signer_verifier(key_ref: str,
                         hash_algorithm: Optional[hashes.HashAlgorithm] = None,
                         ctx: Optional[CallContext] = None,
                         connectors: Optional[Mapping[str, Connector]] = None) -> "KMSSignerVerifier":
    """
    Build a signer/verifier for a key locator.

    The scheme of ``key_ref`` selects the connector, looked up first in
    ``connectors`` and then in the built-in BACKEND_CONNECTORS.

    Args:
        key_ref: Key locator, e.g. ``localkms://release-key``
        hash_algorithm: Default hash algorithm (SHA-256 when unset)
        ctx: Context for the backend connection
        connectors: Extra connectors keyed by scheme, e.g. ``{"gcpkms": connect}``

    Returns:
        A connected KMSSignerVerifier
    """
    scheme, sep, _ = key_ref.partition("://")
    table = {**BACKEND_CONNECTORS, **(connectors or {})}
    connect = table.get(scheme) if sep else None
    if connect is None:
        raise BackendError("connect", message=f"no key backend registered for {key_ref!r}")
    return KMSSignerVerifier(key_ref, connect, hash_algorithm=hash_algorithm, ctx=ctx)


class KMSSignerVerifier:
    """Signer and verifier backed by a remote asymmetric key."""

    def __init__(self,
                 key_ref: str,
                 connect: Connector,
                 hash_algorithm: Optional[hashes.HashAlgorithm] = None,
                 ctx: Optional[CallContext] = None):
        """
        Connect to the key backend.

        Args:
            key_ref: Opaque key locator understood by ``connect``
            connect: Callable resolving ``(ctx, key_ref)`` into a KeyBackend
            hash_algorithm: Default hash algorithm, SHA-256 when unset
            ctx: Context for the connection attempt
        """
        self.key_ref = key_ref
        self.hash_algorithm = self._check_hash(hash_algorithm or hashes.SHA256())

        ctx = ensure_context(ctx)
        ctx.check("connect", CanceledError)
        try:
            self.client = connect(ctx, key_ref)
        except SigningError:
            raise
        except Exception as e:
            if isinstance(e, ContextDone) or ctx.done():
                raise CanceledError("connect") from e
            raise BackendError("connect", e, f"resolving key {key_ref!r}: {e}") from e

    @staticmethod
    def _check_hash(hash_algorithm: hashes.HashAlgorithm) -> hashes.HashAlgorithm:
        if not isinstance(hash_algorithm, SUPPORTED_HASH_ALGORITHMS):
            raise UnsupportedHashError(f"hash algorithm {hash_algorithm.name} is not supported by the key backend")
        return hash_algorithm

    def _compute_digest(self,
                        message: Optional[MessageInput],
                        digest: Optional[bytes],
                        hash_algorithm: Optional[hashes.HashAlgorithm]) -> bytes:
        hash_algorithm = self._check_hash(hash_algorithm or self.hash_algorithm)

        if digest is not None:
            if len(digest) != hash_algorithm.digest_size:
                raise UnsupportedHashError(
                    f"digest is {len(digest)} bytes, {hash_algorithm.name} produces {hash_algorithm.digest_size}"
                )
            return bytes(digest)

        if message is None:
            raise ValueError("either a message or a digest must be provided")

        hasher = hashes.Hash(hash_algorithm)
        stream = io.BytesIO(message) if isinstance(message, (bytes, bytearray)) else message
        for chunk in iter(lambda: stream.read(_READ_CHUNK_SIZE), b""):
            hasher.update(chunk)
        return hasher.finalize()

    def _call(self, operation: str, ctx: CallContext, fn: Callable, *args) -> Any:
        """Invoke a backend method, mapping failures onto the signing taxonomy."""
        ctx.check(operation, CanceledError)
        try:
            return fn(ctx, *args)
        except SigningError:
            raise
        except Exception as e:
            if isinstance(e, ContextDone) or ctx.done():
                raise CanceledError(operation) from e
            raise BackendError(operation, e) from e

    def sign_message(self,
                     message: Optional[MessageInput] = None,
                     *,
                     digest: Optional[bytes] = None,
                     hash_algorithm: Optional[hashes.HashAlgorithm] = None,
                     ctx: Optional[CallContext] = None) -> bytes:
        """
        Sign a message, or a precomputed digest of it.

        Args:
            message: Bytes or readable binary stream to digest
            digest: Precomputed digest; takes precedence over ``message``
            hash_algorithm: Per-call override of the default hash algorithm
            ctx: Caller context

        Returns:
            DER-encoded ECDSA signature
        """
        ctx = ensure_context(ctx)
        digest = self._compute_digest(message, digest, hash_algorithm)

        raw_signature = self._call("sign", ctx, self.client.sign, digest)

        expected = 2 * _SCALAR_SIZES[ALGORITHM_ES256]
        if len(raw_signature) != expected:
            raise BackendError("sign", message=f"backend returned {len(raw_signature)}-byte signature, expected {expected}")
        return der_from_raw(raw_signature)

    def verify_signature(self,
                         signature: MessageInput,
                         message: Optional[MessageInput] = None,
                         *,
                         digest: Optional[bytes] = None,
                         hash_algorithm: Optional[hashes.HashAlgorithm] = None,
                         ctx: Optional[CallContext] = None) -> None:
        """
        Verify a DER signature against a message or digest.

        The backend is the sole verification authority. Returns None on
        success and raises VerificationError when the backend rejects the
        signature.
        """
        ctx = ensure_context(ctx)
        digest = self._compute_digest(message, digest, hash_algorithm)

        sig_bytes = self._signature_bytes(signature)
        raw_signature = raw_from_der(sig_bytes, _SCALAR_SIZES[ALGORITHM_ES256])

        if not self._call("verify", ctx, self.client.verify, raw_signature, digest):
            raise VerificationError("signature does not match digest")

    @staticmethod
    def _signature_bytes(signature: Any) -> bytes:
        if hasattr(signature, "read"):
            signature = signature.read()
        if isinstance(signature, str):
            raise MalformedSignatureError("signature must be bytes, not str")
        try:
            return bytes(signature)
        except (TypeError, ValueError) as e:
            raise MalformedSignatureError(f"signature is not a byte sequence: {e}") from e

    def public_key(self, ctx: Optional[CallContext] = None):
        """Fetch the current public key from the backend."""
        ctx = ensure_context(ctx)
        pem = self._call("public_key", ctx, self.client.public_key)
        return self._load_public_key("public_key", pem)

    def create_key(self, algorithm: str, ctx: Optional[CallContext] = None):
        """
        Provision a new key under this signer's locator scope.

        Args:
            algorithm: One of ``supported_algorithms()``
            ctx: Caller context

        Returns:
            Public key of the new key
        """
        if algorithm not in SUPPORTED_ALGORITHMS:
            raise UnsupportedAlgorithmError(f"algorithm {algorithm!r} is not supported, expected one of {SUPPORTED_ALGORITHMS}")

        ctx = ensure_context(ctx)
        pem = self._call("create_key", ctx, self.client.create_key, algorithm)
        logger.info("Created %s key for %s", algorithm, self.key_ref)
        return self._load_public_key("create_key", pem)

    @staticmethod
    def _load_public_key(operation: str, pem: bytes):
        try:
            return serialization.load_pem_public_key(pem)
        except ValueError as e:
            raise BackendError(operation, e, f"backend returned an unreadable public key: {e}") from e

    def crypto_signer(self,
                      ctx: Optional[CallContext] = None,
                      err_func: Optional[Callable[[Exception], None]] = None) -> Tuple["CryptoSignerWrapper", hashes.HashAlgorithm]:
        """Return a digest signer bound to ``ctx`` together with the default hash."""
        return CryptoSignerWrapper(self, ensure_context(ctx), self.hash_algorithm, err_func), self.hash_algorithm

    @staticmethod
    def supported_algorithms() -> List[str]:
        return list(SUPPORTED_ALGORITHMS)

    @staticmethod
    def default_algorithm() -> str:
        return ALGORITHM_ES256


class CryptoSignerWrapper:
    """Signs precomputed digests with a KMSSignerVerifier under a fixed context."""

    def __init__(self,
                 signer_verifier: KMSSignerVerifier,
                 ctx: CallContext,
                 hash_algorithm: hashes.HashAlgorithm,
                 err_func: Optional[Callable[[Exception], None]] = None):
        self.signer_verifier = signer_verifier
        self.ctx = ctx
        self.hash_algorithm = hash_algorithm
        self.err_func = err_func

    def public(self):
        try:
            return self.signer_verifier.public_key(ctx=self.ctx)
        except SigningError as e:
            if self.err_func is None:
                raise
            self.err_func(e)
            return None

    def sign(self, digest: bytes, hash_algorithm: Optional[hashes.HashAlgorithm] = None) -> bytes:
        return self.signer_verifier.sign_message(
            digest=digest,
            hash_algorithm=hash_algorithm or self.hash_algorithm,
            ctx=self.ctx
        )
