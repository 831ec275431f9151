"""
Cluster Configuration Module

Reads the settings the REST resource client needs from the environment,
falling back to the in-cluster service account conventions.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

SERVICE_ACCOUNT_DIR = "/var/run/secrets/kubernetes.io/serviceaccount"
DEFAULT_REQUEST_TIMEOUT = 30.0


@dataclass(frozen=True)
class ClusterSettings:
    """Connection settings for the Kubernetes API server."""
    api_server: str
    token_path: Optional[str] = None
    ca_path: Optional[str] = None
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT

    @classmethod
    def from_env(cls) -> "ClusterSettings":
        """
        Build settings from environment variables.

        ``CHAINS_API_SERVER`` overrides the address derived from
        ``KUBERNETES_SERVICE_HOST`` and ``KUBERNETES_SERVICE_PORT``.
        """
        api_server = os.getenv("CHAINS_API_SERVER")
        if not api_server:
            host = os.getenv("KUBERNETES_SERVICE_HOST", "kubernetes.default.svc")
            port = os.getenv("KUBERNETES_SERVICE_PORT", "443")
            api_server = f"https://{host}:{port}"

        token_path = os.getenv("CHAINS_TOKEN_PATH", f"{SERVICE_ACCOUNT_DIR}/token")
        ca_path = os.getenv("CHAINS_CA_PATH", f"{SERVICE_ACCOUNT_DIR}/ca.crt")

        return cls(
            api_server=api_server.rstrip("/"),
            token_path=token_path if Path(token_path).exists() else None,
            ca_path=ca_path if Path(ca_path).exists() else None,
            request_timeout=float(os.getenv("CHAINS_REQUEST_TIMEOUT", str(DEFAULT_REQUEST_TIMEOUT)))
        )

    def read_token(self) -> Optional[str]:
        if not self.token_path:
            return None
        return Path(self.token_path).read_text().strip()
