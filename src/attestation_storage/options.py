"""
Storage Options Module

Per-call storage options and the annotation key templates written onto a
TaskRun for each kind of signing material.
"""

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Union

from .errors import UnsupportedPayloadFormatError

STORAGE_BACKEND_TEKTON = "tekton"

TASKRUN_ANNOTATION_FORMAT = "chains.tekton.dev/taskrun-%s"
ATTESTATION_ANNOTATION_FORMAT = "chains.tekton.dev/attestation-%s"
SIGNATURE_ANNOTATION_FORMAT = "chains.tekton.dev/signature-%s"
CERT_ANNOTATION_FORMAT = "chains.tekton.dev/cert-%s"
CHAIN_ANNOTATION_FORMAT = "chains.tekton.dev/chain-%s"


class PayloadFormat(str, Enum):
    """Payload formats the Tekton backend can store."""
    TEKTON = "tekton"
    IN_TOTO = "in-toto"


PAYLOAD_ANNOTATION_FORMATS: Mapping[PayloadFormat, str] = MappingProxyType({
    PayloadFormat.TEKTON: TASKRUN_ANNOTATION_FORMAT,
    PayloadFormat.IN_TOTO: ATTESTATION_ANNOTATION_FORMAT,
})


@dataclass(frozen=True)
class StorageOpts:
    """Which slot to write under, plus the certificate material to store with it."""
    key: str
    payload_format: Union[PayloadFormat, str]
    cert: str = ""
    chain: str = ""


def payload_annotation_key(opts: StorageOpts) -> str:
    """
    Annotation key holding the payload for ``opts``.

    Raises:
        UnsupportedPayloadFormatError: if the format has no template
    """
    try:
        payload_format = PayloadFormat(opts.payload_format)
    except ValueError:
        raise UnsupportedPayloadFormatError(opts.payload_format) from None
    return PAYLOAD_ANNOTATION_FORMATS[payload_format] % opts.key
