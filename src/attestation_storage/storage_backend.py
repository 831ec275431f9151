"""
Storage Backend Module

Storage backends for signed payloads. The Tekton backend keeps the payload,
signature, certificate and chain as base64 annotations on the TaskRun that
produced them.
"""

import base64
import binascii
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Protocol, Union

from call_context import CallContext, ensure_context

from .errors import CanceledError, CorruptAnnotationError, StoreBackendError
from .options import (
    CERT_ANNOTATION_FORMAT,
    CHAIN_ANNOTATION_FORMAT,
    SIGNATURE_ANNOTATION_FORMAT,
    STORAGE_BACKEND_TEKTON,
    StorageOpts,
    payload_annotation_key,
)
from .patch import get_annotations_patch

logger = logging.getLogger(__name__)

Material = Union[bytes, bytearray, str]


class ResourceClient(Protocol):
    """Capability interface for the orchestrator's resource store."""

    def get(self, namespace: str, name: str, ctx: CallContext) -> Dict[str, Any]: ...

    def patch(self, namespace: str, name: str, patch_bytes: bytes, ctx: CallContext) -> Dict[str, Any]: ...


class StorageBackend(ABC):
    """Abstract base class for signed payload storage backends."""

    @abstractmethod
    def store_payload(self, raw_payload: Material, signature: Material, opts: StorageOpts,
                      ctx: Optional[CallContext] = None) -> None:
        """Store a payload together with its signature and certificates."""
        pass

    @abstractmethod
    def retrieve_signature(self, opts: StorageOpts, ctx: Optional[CallContext] = None) -> bytes:
        """Retrieve the signature for a slot, or empty bytes if none is stored."""
        pass

    @abstractmethod
    def retrieve_payload(self, opts: StorageOpts, ctx: Optional[CallContext] = None) -> bytes:
        """Retrieve the payload for a slot, or empty bytes if none is stored."""
        pass

    @abstractmethod
    def type(self) -> str:
        """Identifier of this backend."""
        pass


def _encode(value: Material) -> str:
    if isinstance(value, str):
        value = value.encode("utf-8")
    return base64.b64encode(bytes(value)).decode("ascii")


class TektonStorageBackend(StorageBackend):
    """Stores signed payloads as annotations on a single TaskRun."""

    def __init__(self, client: ResourceClient, namespace: str, name: str):
        """
        Bind the backend to one TaskRun.

        Args:
            client: Resource store client used for get and merge-patch
            namespace: TaskRun namespace
            name: TaskRun name
        """
        self.client = client
        self.namespace = namespace
        self.name = name

    def store_payload(self, raw_payload: Material, signature: Material, opts: StorageOpts,
                      ctx: Optional[CallContext] = None) -> None:
        """
        Write payload, signature, cert and chain for ``opts.key`` in one merge-patch.

        Existing material for the same slot is overwritten. Annotations for
        other slots, and unrelated annotations, are never touched.
        """
        ctx = ensure_context(ctx)
        payload_key = payload_annotation_key(opts)

        logger.info("Storing payload on TaskRun %s/%s", self.namespace, self.name)
        patch_map = {
            SIGNATURE_ANNOTATION_FORMAT % opts.key: _encode(signature),
            CERT_ANNOTATION_FORMAT % opts.key: _encode(opts.cert),
            CHAIN_ANNOTATION_FORMAT % opts.key: _encode(opts.chain),
            payload_key: _encode(raw_payload),
        }

        # Merge-patch: keys not listed here are left as they are on the TaskRun.
        patch_bytes = get_annotations_patch(patch_map)
        logger.debug("Patching annotations %s", sorted(patch_map))

        ctx.check("store_payload", CanceledError)
        try:
            self.client.patch(self.namespace, self.name, patch_bytes, ctx)
        except CanceledError:
            raise
        except Exception as e:
            if ctx.done():
                raise CanceledError("store_payload") from e
            raise StoreBackendError("store_payload", self.namespace, self.name, e) from e

    def type(self) -> str:
        return STORAGE_BACKEND_TEKTON

    def _retrieve_annotation_value(self, annotation_key: str, ctx: CallContext) -> bytes:
        """Fetch the TaskRun and return one annotation, base64-decoded."""
        logger.info("Retrieving annotation %r on TaskRun %s/%s", annotation_key, self.namespace, self.name)

        ctx.check("retrieve", CanceledError)
        try:
            record = self.client.get(self.namespace, self.name, ctx)
        except CanceledError:
            raise
        except Exception as e:
            if ctx.done():
                raise CanceledError("retrieve") from e
            raise StoreBackendError("retrieve", self.namespace, self.name, e) from e

        annotations = (record.get("metadata") or {}).get("annotations") or {}
        raw_value = annotations.get(annotation_key)
        if raw_value is None:
            return b""

        try:
            return base64.b64decode(raw_value, validate=True)
        except (binascii.Error, ValueError) as e:
            raise CorruptAnnotationError(annotation_key, e) from e

    def retrieve_signature(self, opts: StorageOpts, ctx: Optional[CallContext] = None) -> bytes:
        """Retrieve the signature stored on the TaskRun for ``opts.key``."""
        logger.info("Retrieving signature on TaskRun %s/%s", self.namespace, self.name)
        return self._retrieve_annotation_value(SIGNATURE_ANNOTATION_FORMAT % opts.key, ensure_context(ctx))

    def retrieve_payload(self, opts: StorageOpts, ctx: Optional[CallContext] = None) -> bytes:
        """Retrieve the payload stored on the TaskRun for ``opts.key``."""
        logger.info("Retrieving payload on TaskRun %s/%s", self.namespace, self.name)
        payload_key = payload_annotation_key(opts)
        return self._retrieve_annotation_value(payload_key, ensure_context(ctx))
