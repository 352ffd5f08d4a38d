# Services package

from .certificates import CertificateChainValidator
from .container import ContainerCodec
from .download_gate import DownloadGate, DownloadHost
from .engine import EngineContext, build_engine
from .pipeline import ContainerVerificationPipeline
from .revocation import RevocationOracle
from .signature_verifier import SignatureFailure, SignatureVerifier
from .signer import ContainerSigner, SignedArtifact
from .trust_config import PolicyLoader, TrustConfigHolder

__all__ = [
    "CertificateChainValidator",
    "ContainerCodec",
    "ContainerSigner",
    "ContainerVerificationPipeline",
    "DownloadGate",
    "DownloadHost",
    "EngineContext",
    "PolicyLoader",
    "RevocationOracle",
    "SignatureFailure",
    "SignatureVerifier",
    "SignedArtifact",
    "TrustConfigHolder",
    "build_engine",
]
