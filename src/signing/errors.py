"""
Signing Errors Module

Exception hierarchy raised by the KMS signer/verifier and its helpers.
"""

from typing import Optional

from call_context import ContextDone


class SigningError(Exception):
    """Base class for all signing failures."""


class BackendError(SigningError):
    """A call to the remote key-management backend failed."""

    def __init__(self, operation: str, cause: Optional[BaseException] = None, message: str = ""):
        self.operation = operation
        self.cause = cause
        detail = message or (str(cause) if cause is not None else "backend call failed")
        super().__init__(f"{operation}: {detail}")


class UnsupportedHashError(SigningError):
    """The requested hash algorithm or digest length is not supported."""


class UnsupportedAlgorithmError(SigningError):
    """The requested signing algorithm is not supported by the backend."""


class MalformedSignatureError(SigningError):
    """Signature bytes are not a strict DER or raw ECDSA encoding."""


class VerificationError(SigningError):
    """The backend rejected the signature for the given digest."""


class CanceledError(SigningError, ContextDone):
    """The caller's context was canceled or its deadline passed."""
