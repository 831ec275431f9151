"""
Storage Errors Module

Exceptions raised while persisting or reading signing material on a TaskRun.
"""

from typing import Optional

from call_context import ContextDone


class StorageError(Exception):
    """Base class for attestation storage failures."""


class CanceledError(StorageError, ContextDone):
    """The caller's context was canceled or its deadline passed."""


class StoreBackendError(StorageError):
    """A get or patch against the resource store failed."""

    def __init__(self, operation: str, namespace: str, name: str, cause: Optional[BaseException] = None):
        self.operation = operation
        self.namespace = namespace
        self.name = name
        self.cause = cause
        super().__init__(f"{operation} on TaskRun {namespace}/{name}: {cause}")


class UnsupportedPayloadFormatError(StorageError):
    """The payload format has no annotation key on this backend."""

    def __init__(self, payload_format):
        self.payload_format = payload_format
        super().__init__(f"tekton storage does not support payloads of type {payload_format!r}")


class CorruptAnnotationError(StorageError):
    """A stored annotation value is not valid base64."""

    def __init__(self, annotation_key: str, cause: Optional[BaseException] = None):
        self.annotation_key = annotation_key
        self.cause = cause
        super().__init__(f"error decoding the annotation value for the key {annotation_key!r}: {cause}")


class RecordNotFoundError(StorageError):
    """The execution record does not exist in the resource store."""

    def __init__(self, namespace: str, name: str):
        self.namespace = namespace
        self.name = name
        super().__init__(f"TaskRun {namespace}/{name} not found")
