"""
Pipeline Attestation - Signing Module

This module signs and verifies payloads with keys held by a remote
key-management backend, converting between the backend's raw ECDSA
signatures and the DER encoding used by standard verifiers.
"""

from call_context import CallContext
from .errors import (
    BackendError,
    CanceledError,
    MalformedSignatureError,
    SigningError,
    UnsupportedAlgorithmError,
    UnsupportedHashError,
    VerificationError,
)
from .kms_signer import BACKEND_CONNECTORS, CryptoSignerWrapper, KMSSignerVerifier, load_signer_verifier
from .local_kms import LocalKeyBackend
from .signature_encoding import der_from_raw, raw_from_der

__all__ = [
    'CallContext',
    'KMSSignerVerifier',
    'CryptoSignerWrapper',
    'LocalKeyBackend',
    'load_signer_verifier',
    'BACKEND_CONNECTORS',
    'der_from_raw',
    'raw_from_der',
    'SigningError',
    'BackendError',
    'CanceledError',
    'MalformedSignatureError',
    'UnsupportedAlgorithmError',
    'UnsupportedHashError',
    'VerificationError',
]
