"""
Test suite for the Tekton attestation storage backend.
"""

import base64
import json
from concurrent.futures import ThreadPoolExecutor

import pytest

from attestation_storage import (
    CanceledError,
    CorruptAnnotationError,
    InMemoryResourceClient,
    PayloadFormat,
    RecordNotFoundError,
    StorageError,
    StorageOpts,
    StoreBackendError,
    TektonStorageBackend,
    UnsupportedPayloadFormatError,
)
from attestation_storage.patch import apply_merge_patch, get_annotations_patch
from call_context import CallContext, ContextDone

NAMESPACE = "default"
NAME = "build-taskrun"


class CapturingClient(InMemoryResourceClient):
    """In-memory client that keeps every patch body it receives."""

    def __init__(self):
        super().__init__()
        self.patches = []

    def patch(self, namespace, name, patch_bytes, ctx=None):
        self.patches.append(json.loads(patch_bytes))
        return super().patch(namespace, name, patch_bytes, ctx)


class TestTektonStorageBackend:
    """Test cases for TektonStorageBackend."""

    def setup_method(self):
        """Set up a TaskRun with one unrelated annotation."""
        self.client = CapturingClient()
        self.client.add_record(NAMESPACE, NAME, {"team": "platform"})
        self.backend = TektonStorageBackend(self.client, NAMESPACE, NAME)
        self.opts = StorageOpts(key="step1", cert="C", chain="K", payload_format=PayloadFormat.TEKTON)

    def annotations(self):
        return self.client.get(NAMESPACE, NAME)["metadata"]["annotations"]

    def test_end_to_end(self):
        """Stored payload and signature read back; untouched slots are empty."""
        self.backend.store_payload(b"p", b"s", self.opts)

        assert self.backend.retrieve_payload(self.opts) == b"p"
        assert self.backend.retrieve_signature(self.opts) == b"s"

        other = StorageOpts(key="step2", payload_format=PayloadFormat.TEKTON)
        assert self.backend.retrieve_payload(other) == b""
        assert self.backend.retrieve_signature(other) == b""

    def test_patch_contains_exactly_four_annotations(self):
        """One merge-patch sets signature, cert, chain and payload."""
        self.backend.store_payload(b"p", b"s", self.opts)

        assert self.client.patches == [{
            "metadata": {
                "annotations": {
                    "chains.tekton.dev/signature-step1": base64.b64encode(b"s").decode(),
                    "chains.tekton.dev/cert-step1": base64.b64encode(b"C").decode(),
                    "chains.tekton.dev/chain-step1": base64.b64encode(b"K").decode(),
                    "chains.tekton.dev/taskrun-step1": base64.b64encode(b"p").decode(),
                }
            }
        }]

    def test_unrelated_annotations_untouched(self):
        """Pre-existing annotations survive a store."""
        self.backend.store_payload(b"p", b"s", self.opts)

        annotations = self.annotations()
        assert annotations["team"] == "platform"
        assert len(annotations) == 5

    def test_slot_isolation(self):
        """Storing slot A never alters slot B."""
        opts_b = StorageOpts(key="B", cert="cb", chain="kb", payload_format=PayloadFormat.TEKTON)
        self.backend.store_payload(b"payload-b", b"sig-b", opts_b)
        before = {k: v for k, v in self.annotations().items() if k.endswith("-B")}

        opts_a = StorageOpts(key="A", cert="ca", chain="ka", payload_format=PayloadFormat.TEKTON)
        self.backend.store_payload(b"payload-a", b"sig-a", opts_a)
        after = {k: v for k, v in self.annotations().items() if k.endswith("-B")}

        assert before == after
        assert self.backend.retrieve_payload(opts_b) == b"payload-b"

    def test_attestation_format_key(self):
        """In-toto payloads go under the attestation annotation."""
        opts = StorageOpts(key="step1", payload_format="in-toto")
        self.backend.store_payload(b'{"_type": "statement"}', b"s", opts)

        assert "chains.tekton.dev/attestation-step1" in self.annotations()
        assert "chains.tekton.dev/taskrun-step1" not in self.annotations()
        assert self.backend.retrieve_payload(opts) == b'{"_type": "statement"}'

    def test_unsupported_format_issues_no_patch(self):
        """Unknown formats fail before any I/O."""
        opts = StorageOpts(key="step1", payload_format="simplesigning")

        with pytest.raises(UnsupportedPayloadFormatError) as exc_info:
            self.backend.store_payload(b"p", b"s", opts)

        assert exc_info.value.payload_format == "simplesigning"
        assert self.client.patch_count == 0

        with pytest.raises(UnsupportedPayloadFormatError):
            self.backend.retrieve_payload(opts)

    def test_corrupt_annotation(self):
        """Non-base64 values are reported with their annotation key."""
        self.client.add_record(NAMESPACE, NAME, {"chains.tekton.dev/signature-step1": "not base64!!"})

        with pytest.raises(CorruptAnnotationError) as exc_info:
            self.backend.retrieve_signature(self.opts)

        assert exc_info.value.annotation_key == "chains.tekton.dev/signature-step1"

    def test_binary_material_round_trips(self):
        """Arbitrary bytes, including DER signatures, survive storage."""
        payload = bytes(range(256))
        signature = b"\x30\x45\x02\x20" + b"\xff" * 32

        self.backend.store_payload(payload, signature, self.opts)

        assert self.backend.retrieve_payload(self.opts) == payload
        assert self.backend.retrieve_signature(self.opts) == signature

    def test_restore_overwrites(self):
        """Storing the same slot again replaces its material."""
        self.backend.store_payload(b"first", b"sig1", self.opts)
        self.backend.store_payload(b"second", b"sig2", self.opts)

        assert self.backend.retrieve_payload(self.opts) == b"second"
        assert self.backend.retrieve_signature(self.opts) == b"sig2"

    def test_retrieve_always_refetches(self):
        """Changes made by other writers are visible immediately."""
        assert self.backend.retrieve_signature(self.opts) == b""

        other_writer = TektonStorageBackend(self.client, NAMESPACE, NAME)
        other_writer.store_payload(b"p", b"s", self.opts)

        assert self.backend.retrieve_signature(self.opts) == b"s"

    def test_missing_record(self):
        """Patching a missing TaskRun is a store error."""
        backend = TektonStorageBackend(self.client, NAMESPACE, "missing")

        with pytest.raises(StoreBackendError) as exc_info:
            backend.store_payload(b"p", b"s", self.opts)

        assert isinstance(exc_info.value.__cause__, RecordNotFoundError)
        with pytest.raises(StoreBackendError):
            backend.retrieve_payload(self.opts)

    def test_canceled_store_sends_nothing(self):
        """A canceled context never sends the patch."""
        ctx = CallContext()
        ctx.cancel()

        with pytest.raises(CanceledError):
            self.backend.store_payload(b"p", b"s", self.opts, ctx=ctx)

        assert self.client.patch_count == 0
        assert "chains.tekton.dev/taskrun-step1" not in self.annotations()

    def test_canceled_retrieve(self):
        """Retrieval honors cancellation."""
        with pytest.raises(CanceledError):
            self.backend.retrieve_payload(self.opts, ctx=CallContext.with_timeout(0))

    def test_cancellation_is_a_storage_error(self):
        """Cancellation stays inside the storage error hierarchy."""
        ctx = CallContext()
        ctx.cancel()

        with pytest.raises(StorageError) as exc_info:
            self.backend.store_payload(b"p", b"s", self.opts, ctx=ctx)

        assert isinstance(exc_info.value, CanceledError)
        assert isinstance(exc_info.value, ContextDone)
        assert exc_info.value.operation == "store_payload"

    def test_client_cancellation_mapped_to_storage_error(self):
        """A client that raises the bare context error is reported as CanceledError."""
        ctx = CallContext()

        class CancelingClient(InMemoryResourceClient):
            def patch(self, namespace, name, patch_bytes, ctx=None):
                ctx.cancel()
                ctx.check("patch")

        backend = TektonStorageBackend(CancelingClient(), NAMESPACE, NAME)

        with pytest.raises(CanceledError) as exc_info:
            backend.store_payload(b"p", b"s", self.opts, ctx=ctx)

        assert isinstance(exc_info.value.__cause__, ContextDone)
        assert not isinstance(exc_info.value.__cause__, StorageError)

    def test_concurrent_disjoint_writers(self):
        """Concurrent stores on different slots all land."""
        keys = [f"step{i}" for i in range(32)]

        def store(key):
            opts = StorageOpts(key=key, cert=f"cert-{key}", payload_format=PayloadFormat.TEKTON)
            self.backend.store_payload(f"payload-{key}", f"sig-{key}", opts)

        with ThreadPoolExecutor(max_workers=8) as executor:
            list(executor.map(store, keys))

        for key in keys:
            opts = StorageOpts(key=key, payload_format=PayloadFormat.TEKTON)
            assert self.backend.retrieve_payload(opts) == f"payload-{key}".encode()
            assert self.backend.retrieve_signature(opts) == f"sig-{key}".encode()
        assert self.annotations()["team"] == "platform"

    def test_backend_type(self):
        """The backend identifies itself as tekton."""
        assert self.backend.type() == "tekton"


class TestMergePatch:
    """Test cases for merge-patch helpers."""

    def test_annotations_patch_shape(self):
        """The patch nests annotations under metadata."""
        patch = json.loads(get_annotations_patch({"a": "1"}))

        assert patch == {"metadata": {"annotations": {"a": "1"}}}

    def test_apply_sets_and_keeps(self):
        """Keys in the patch are set; others are left alone."""
        target = {"metadata": {"name": "tr", "annotations": {"a": "1", "b": "2"}}}
        patch = {"metadata": {"annotations": {"b": "3", "c": "4"}}}

        result = apply_merge_patch(target, patch)

        assert result == {"metadata": {"name": "tr", "annotations": {"a": "1", "b": "3", "c": "4"}}}
        assert target["metadata"]["annotations"] == {"a": "1", "b": "2"}

    def test_apply_null_deletes(self):
        """A null value removes the key."""
        result = apply_merge_patch({"a": "1", "b": "2"}, {"a": None})

        assert result == {"b": "2"}
