"""
TaskRun REST Client Module

Reads and merge-patches Tekton TaskRuns through the Kubernetes API server
with ``requests``.
"""

import logging
from typing import Any, Dict, Optional

import requests

from call_context import CallContext, ensure_context

from .config import ClusterSettings
from .errors import CanceledError

logger = logging.getLogger(__name__)

MERGE_PATCH_CONTENT_TYPE = "application/merge-patch+json"


class TaskRunRESTClient:
    """
    Resource client for ``tekton.dev`` TaskRuns.

    Cancellation is only partly observed: ``ctx.cancel()`` is checked before
    a request is sent, but a request already in flight runs until it
    completes or hits its timeout. The context deadline does bound in-flight
    requests, because it caps the ``requests`` timeout.
    """

    def __init__(self,
                 settings: ClusterSettings,
                 session: Optional[requests.Session] = None,
                 api_version: str = "tekton.dev/v1beta1"):
        self.settings = settings
        self.api_version = api_version
        self.session = session or requests.Session()

        token = settings.read_token()
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"
        if settings.ca_path:
            self.session.verify = settings.ca_path

    def _url(self, namespace: str, name: str) -> str:
        return f"{self.settings.api_server}/apis/{self.api_version}/namespaces/{namespace}/taskruns/{name}"

    def _timeout(self, ctx: CallContext) -> float:
        remaining = ctx.remaining()
        if remaining is None:
            return self.settings.request_timeout
        return min(remaining, self.settings.request_timeout)

    def get(self, namespace: str, name: str, ctx: Optional[CallContext] = None) -> Dict[str, Any]:
        """
        GET one TaskRun.

        Raises CanceledError if ``ctx`` is already canceled or expired. An
        explicit cancel during the request is not seen; only the deadline,
        through the request timeout, stops it early.
        """
        ctx = ensure_context(ctx)
        ctx.check("get", CanceledError)
        response = self.session.get(self._url(namespace, name), timeout=self._timeout(ctx))
        response.raise_for_status()
        return response.json()

    def patch(self, namespace: str, name: str, patch_bytes: bytes, ctx: Optional[CallContext] = None) -> Dict[str, Any]:
        """
        Apply a JSON merge-patch to one TaskRun.

        Same cancellation rules as get(): cancel is checked before sending,
        the deadline bounds the request through its timeout.
        """
        ctx = ensure_context(ctx)
        ctx.check("patch", CanceledError)
        logger.debug("PATCH TaskRun %s/%s (%d bytes)", namespace, name, len(patch_bytes))
        response = self.session.patch(
            self._url(namespace, name),
            data=patch_bytes,
            headers={"Content-Type": MERGE_PATCH_CONTENT_TYPE},
            timeout=self._timeout(ctx)
        )
        response.raise_for_status()
        return response.json()
