"""
Pipeline Attestation - Storage Module

This module persists signed payloads, signatures and certificates onto the
TaskRun that produced them, using merge-patches that are safe under
concurrent writers.
"""

from .config import ClusterSettings
from .errors import (
    CanceledError,
    CorruptAnnotationError,
    RecordNotFoundError,
    StorageError,
    StoreBackendError,
    UnsupportedPayloadFormatError,
)
from .memory_client import InMemoryResourceClient
from .options import PAYLOAD_ANNOTATION_FORMATS, PayloadFormat, StorageOpts, payload_annotation_key
from .rest_client import TaskRunRESTClient
from .storage_backend import ResourceClient, StorageBackend, TektonStorageBackend

__all__ = [
    'StorageBackend',
    'TektonStorageBackend',
    'ResourceClient',
    'InMemoryResourceClient',
    'TaskRunRESTClient',
    'ClusterSettings',
    'StorageOpts',
    'PayloadFormat',
    'PAYLOAD_ANNOTATION_FORMATS',
    'payload_annotation_key',
    'StorageError',
    'CanceledError',
    'StoreBackendError',
    'UnsupportedPayloadFormatError',
    'CorruptAnnotationError',
    'RecordNotFoundError',
]
