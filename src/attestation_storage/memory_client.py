"""
In-Memory Resource Client Module

A resource store kept in process memory. Each merge-patch is applied
atomically, mirroring how the Kubernetes API server applies patches.
"""

import copy
import json
import threading
from typing import Any, Dict, Optional, Tuple

from call_context import CallContext

from .errors import CanceledError, RecordNotFoundError
from .patch import apply_merge_patch


class InMemoryResourceClient:
    """Resource client holding TaskRun-like records keyed by namespace and name."""

    def __init__(self):
        self._records: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self._lock = threading.Lock()
        self.patch_count = 0

    def add_record(self, namespace: str, name: str, annotations: Optional[Dict[str, str]] = None) -> None:
        """Create a record, optionally seeded with annotations."""
        with self._lock:
            self._records[(namespace, name)] = {
                "metadata": {
                    "namespace": namespace,
                    "name": name,
                    "annotations": dict(annotations or {}),
                }
            }

    def get(self, namespace: str, name: str, ctx: Optional[CallContext] = None) -> Dict[str, Any]:
        if ctx is not None:
            ctx.check("get", CanceledError)
        with self._lock:
            record = self._records.get((namespace, name))
            if record is None:
                raise RecordNotFoundError(namespace, name)
            return copy.deepcopy(record)

    def patch(self, namespace: str, name: str, patch_bytes: bytes, ctx: Optional[CallContext] = None) -> Dict[str, Any]:
        if ctx is not None:
            ctx.check("patch", CanceledError)
        patch = json.loads(patch_bytes)
        with self._lock:
            record = self._records.get((namespace, name))
            if record is None:
                raise RecordNotFoundError(namespace, name)
            patched = apply_merge_patch(record, patch)
            self._records[(namespace, name)] = patched
            self.patch_count += 1
            return copy.deepcopy(patched)
