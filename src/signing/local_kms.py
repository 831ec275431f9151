"""
Local Key Backend Module

An in-process stand-in for a remote key-management service. Keys are ECDSA
P-256 and signatures are returned in the raw ``r || s`` form that cloud KMS
APIs produce, so the signer sees the same wire shape as in production.
"""

import logging
from typing import Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import Prehashed

from call_context import CallContext
from .errors import CanceledError, UnsupportedAlgorithmError
from .signature_encoding import der_from_raw, raw_from_der

logger = logging.getLogger(__name__)

LOCAL_KMS_SCHEME = "localkms://"
P256_SCALAR_SIZE = 32


class LocalKeyBackend:
    """Key backend holding a P-256 private key in memory."""

    def __init__(self, key_name: str, private_key: Optional[ec.EllipticCurvePrivateKey] = None):
        self.key_name = key_name
        self._private_key = private_key or ec.generate_private_key(ec.SECP256R1())

    @classmethod
    def connect(cls, ctx: CallContext, key_ref: str) -> "LocalKeyBackend":
        """
        Resolve a ``localkms://<name>`` locator into a backend.

        Args:
            ctx: Caller context
            key_ref: Key locator string

        Returns:
            A connected LocalKeyBackend
        """
        ctx.check("connect", CanceledError)
        if not key_ref.startswith(LOCAL_KMS_SCHEME):
            raise ValueError(f"invalid local key reference: {key_ref!r}")
        key_name = key_ref[len(LOCAL_KMS_SCHEME):]
        if not key_name:
            raise ValueError("local key reference is missing a key name")
        return cls(key_name)

    def sign(self, ctx: CallContext, digest: bytes) -> bytes:
        ctx.check("sign", CanceledError)
        der = self._private_key.sign(digest, ec.ECDSA(Prehashed(hashes.SHA256())))
        return raw_from_der(der, P256_SCALAR_SIZE)

    def verify(self, ctx: CallContext, raw_signature: bytes, digest: bytes) -> bool:
        ctx.check("verify", CanceledError)
        try:
            self._private_key.public_key().verify(
                der_from_raw(raw_signature),
                digest,
                ec.ECDSA(Prehashed(hashes.SHA256()))
            )
        except InvalidSignature:
            return False
        return True

    def public_key(self, ctx: CallContext) -> bytes:
        ctx.check("public_key", CanceledError)
        return self._pem(self._private_key.public_key())

    def create_key(self, ctx: CallContext, algorithm: str = "ES256") -> bytes:
        ctx.check("create_key", CanceledError)
        if algorithm != "ES256":
            raise UnsupportedAlgorithmError(f"local backend cannot create {algorithm} keys")
        self._private_key = ec.generate_private_key(ec.SECP256R1())
        logger.info("Created new local key %s", self.key_name)
        return self._pem(self._private_key.public_key())

    @staticmethod
    def _pem(public_key: ec.EllipticCurvePublicKey) -> bytes:
        return public_key.public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo
        )
