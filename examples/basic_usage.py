#!/usr/bin/env python3
"""
Basic Usage Example for Pipeline Attestation

This example demonstrates the core flow:
1. Signing a TaskRun payload with a KMS-held key
2. Storing payload, signature and certificates on the TaskRun
3. Retrieving and verifying the stored material
"""

import json
import logging

from attestation_storage import InMemoryResourceClient, PayloadFormat, StorageOpts, TektonStorageBackend
from call_context import CallContext
from signing import load_signer_verifier


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    # An in-memory store stands in for the Kubernetes API server.
    client = InMemoryResourceClient()
    client.add_record("default", "build-image-run-1")
    storage = TektonStorageBackend(client, "default", "build-image-run-1")

    signer = load_signer_verifier("localkms://chains-signing-key")

    payload = json.dumps({"taskRun": "build-image-run-1", "results": {"IMAGE_DIGEST": "sha256:abc123"}}).encode()
    ctx = CallContext.with_timeout(10)

    signature = signer.sign_message(payload, ctx=ctx)
    opts = StorageOpts(key="build-image-run-1", payload_format=PayloadFormat.TEKTON)
    storage.store_payload(payload, signature, opts, ctx=ctx)

    stored_payload = storage.retrieve_payload(opts, ctx=ctx)
    stored_signature = storage.retrieve_signature(opts, ctx=ctx)
    signer.verify_signature(stored_signature, stored_payload, ctx=ctx)

    print(f"Stored and verified {len(stored_signature)}-byte {signer.default_algorithm()} signature")
    for key in sorted(client.get("default", "build-image-run-1")["metadata"]["annotations"]):
        print(f"  {key}")


if __name__ == "__main__":
    main()
