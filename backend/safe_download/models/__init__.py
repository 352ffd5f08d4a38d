# Data models package

from .certificate import Certificate, RsaPublicKey
from .container import CONTAINER_SUFFIX, SIGNATURE_SIZE, SignedContainer
from .downloads import (
    DownloadDecision,
    DownloadEvent,
    DownloadEventKind,
    DownloadPhase,
    DownloadRecord,
)
from .trust import NotReady, PolicyDocument, Ready, TrustSnapshot, TrustState
from .verification import GateVerdict, RevocationVerdict, VerificationOutcome

__all__ = [
    "CONTAINER_SUFFIX",
    "Certificate",
    "DownloadDecision",
    "DownloadEvent",
    "DownloadEventKind",
    "DownloadPhase",
    "DownloadRecord",
    "GateVerdict",
    "NotReady",
    "PolicyDocument",
    "Ready",
    "RevocationVerdict",
    "RsaPublicKey",
    "SIGNATURE_SIZE",
    "SignedContainer",
    "TrustSnapshot",
    "TrustState",
    "VerificationOutcome",
]
