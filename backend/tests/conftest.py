from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID
from hypothesis import settings

from safe_download.models.certificate import Certificate
from safe_download.models.errors import RevocationUnavailableError
from safe_download.models.trust import TrustSnapshot
from safe_download.models.verification import RevocationVerdict
from safe_download.services.signer import ContainerSigner
from safe_download.services.trust_config import TrustConfigHolder

_DEFAULT_MAX_EXAMPLES = int(os.getenv("HYPOTHESIS_MAX_EXAMPLES", "25"))

# RSA 演算を含むテストは 200ms を超えることがあるため、デッドラインを無効化する。
if "HYPOTHESIS_PROFILE" not in os.environ:
    try:
        settings.register_profile(
            "ci",
            settings(
                deadline=None,
                max_examples=_DEFAULT_MAX_EXAMPLES,
            ),
        )
    except ValueError:
        # プロファイルが既に存在する場合は無視して既定プロファイルを読み込む
        pass
    settings.load_profile("ci")

TRUSTED_DOMAIN = "trusted.example.com"
PERMITTED_FORMATS = frozenset({"pdf", "txt"})
KEY_PASSWORD = "correct horse battery staple"


def _name(common_name: str) -> x509.Name:
    return x509.Name(
        [
            x509.NameAttribute(NameOID.COMMON_NAME, common_name),
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Safe Download Test"),
            x509.NameAttribute(NameOID.COUNTRY_NAME, "US"),
        ]
    )


def issue_certificate(
    *,
    subject_key: rsa.RSAPrivateKey,
    subject: str,
    issuer_key: rsa.RSAPrivateKey,
    issuer: str,
    is_ca: bool = False,
    not_before: Optional[datetime] = None,
    not_after: Optional[datetime] = None,
) -> Certificate:
    """テスト用の証明書を発行する。"""
    now = datetime.now(timezone.utc)
    builder = (
        x509.CertificateBuilder()
        .subject_name(_name(subject))
        .issuer_name(_name(issuer))
        .public_key(subject_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_before or now - timedelta(days=1))
        .not_valid_after(not_after or now + timedelta(days=30))
        .add_extension(x509.BasicConstraints(ca=is_ca, path_length=None), critical=True)
    )
    cert = builder.sign(issuer_key, hashes.SHA256())
    return Certificate.from_pem(cert.public_bytes(serialization.Encoding.PEM))


@dataclass
class Pki:
    """ルート CA と、それが発行したリーフ証明書の組。"""

    root_key: rsa.RSAPrivateKey
    root: Certificate
    leaf_key: rsa.RSAPrivateKey
    leaf: Certificate
    leaf_key_pem: bytes = field(repr=False)


def _build_pki(root_cn: str, leaf_cn: str) -> Pki:
    root_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    leaf_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    root = issue_certificate(
        subject_key=root_key, subject=root_cn, issuer_key=root_key, issuer=root_cn, is_ca=True
    )
    leaf = issue_certificate(
        subject_key=leaf_key, subject=leaf_cn, issuer_key=root_key, issuer=root_cn
    )
    leaf_key_pem = leaf_key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.BestAvailableEncryption(KEY_PASSWORD.encode("utf-8")),
    )
    return Pki(
        root_key=root_key, root=root, leaf_key=leaf_key, leaf=leaf, leaf_key_pem=leaf_key_pem
    )


@pytest.fixture(scope="session")
def pki() -> Pki:
    """信頼されたルート CA とリーフ証明書。"""
    return _build_pki("Safe Download Root CA", "Alice Signer")


@pytest.fixture(scope="session")
def foreign_pki() -> Pki:
    """信頼されていない別系統のルート CA とリーフ証明書。"""
    return _build_pki("Untrusted Root CA", "Mallory Signer")


@pytest.fixture
def snapshot(pki: Pki) -> TrustSnapshot:
    return TrustSnapshot(
        permitted_domains=frozenset({TRUSTED_DOMAIN}),
        permitted_formats=PERMITTED_FORMATS,
        ca_root_certificate=pki.root,
    )


@pytest.fixture
def ready_trust(snapshot: TrustSnapshot) -> TrustConfigHolder:
    holder = TrustConfigHolder()
    holder.publish(snapshot)
    return holder


@pytest.fixture
def sign_container(pki: Pki) -> Callable[..., bytes]:
    """ペイロードに署名したコンテナのバイト列を返すファクトリ。"""
    signer = ContainerSigner()

    def _sign(payload: bytes, filename: str = "report.pdf", source: Pki | None = None) -> bytes:
        keys = source or pki
        artifact = signer.sign_payload(
            payload,
            private_key_pem=keys.leaf_key_pem,
            password=KEY_PASSWORD,
            certificate_pem=keys.leaf.pem,
            filename=filename,
        )
        return artifact.content

    return _sign


class StubRevocation:
    """RevocationOracle のスタブ。"""

    def __init__(
        self,
        verdict: RevocationVerdict | None = None,
        error: Exception | None = None,
    ) -> None:
        self.verdict = verdict or RevocationVerdict(valid=True, reasons=[])
        self.error = error
        self.calls: list[str] = []

    async def check_certificate(self, certificate_pem: str) -> RevocationVerdict:
        self.calls.append(certificate_pem)
        if self.error is not None:
            raise self.error
        return self.verdict


@pytest.fixture
def revocation_ok() -> StubRevocation:
    return StubRevocation()


@pytest.fixture
def revocation_down() -> StubRevocation:
    return StubRevocation(error=RevocationUnavailableError("revocation service unreachable"))


@pytest.fixture
def make_revocation() -> Callable[..., StubRevocation]:
    return StubRevocation


@pytest.fixture
def issue_cert() -> Callable[..., Certificate]:
    """有効期間や発行者を変えた証明書を発行するファクトリ。"""
    return issue_certificate


@pytest.fixture
def key_password() -> str:
    """テスト用秘密鍵のパスフレーズ。"""
    return KEY_PASSWORD
