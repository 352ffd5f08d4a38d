"""証明書チェーン検証サービス。"""

import logging
from datetime import datetime, timezone
from typing import Optional

from cryptography.exceptions import InvalidSignature
from cryptography.x509 import Certificate as X509Certificate

from ..models.certificate import Certificate
from ..models.errors import CertificateError
from ..models.verification import VerificationOutcome

logger = logging.getLogger(__name__)


class CertificateChainValidator:
    """
    単一ルートのトラストストアに対してリーフ証明書を検証する。

    Responsibilities:
    - ルート証明書が自己発行で有効期間内であること
    - リーフ証明書が有効期間内であること
    - リーフの issuer とルートの subject が一致すること
    - リーフの署名がルートの公開鍵で検証できること

    中間証明書と OCSP/CRL は扱わない (失効確認は RevocationOracle の責務)。
    """

    def validate(
        self,
        leaf: Certificate | str,
        root: Certificate | str,
        *,
        now: Optional[datetime] = None,
    ) -> VerificationOutcome:
        """リーフがルートに連鎖するか判定する。例外は送出しない。"""
        moment = now or datetime.now(timezone.utc)
        try:
            leaf_cert = leaf if isinstance(leaf, Certificate) else Certificate.from_pem(leaf)
        except CertificateError as exc:
            return self._fail(f"malformed certificate: {exc.message}")
        try:
            root_cert = root if isinstance(root, Certificate) else Certificate.from_pem(root)
        except CertificateError as exc:
            return self._fail(f"malformed root certificate: {exc.message}")

        if root_cert.subject != root_cert.issuer:
            return self._fail("root certificate is not self-issued")
        if not root_cert.is_valid_at(moment):
            return self._fail(self._validity_reason("root certificate", root_cert, moment))
        if not leaf_cert.is_valid_at(moment):
            return self._fail(self._validity_reason("certificate", leaf_cert, moment))
        if leaf_cert.issuer != root_cert.subject:
            return self._fail(
                "wrong issuer: "
                f"{leaf_cert.issuer.rfc4514_string()} != {root_cert.subject.rfc4514_string()}"
            )

        reason = self._check_issued_by(leaf_cert.x509_certificate, root_cert.x509_certificate)
        if reason:
            return self._fail(reason)
        return VerificationOutcome.ok()

    @staticmethod
    def _check_issued_by(leaf: X509Certificate, root: X509Certificate) -> Optional[str]:
        try:
            leaf.verify_directly_issued_by(root)
        except InvalidSignature:
            return "certificate signature does not verify against the trusted root"
        except (ValueError, TypeError) as exc:
            return f"certificate cannot be verified against the trusted root: {exc}"
        return None

    @staticmethod
    def _validity_reason(label: str, cert: Certificate, moment: datetime) -> str:
        if moment < cert.not_valid_before:
            return f"{label} is not yet valid (not before {cert.not_valid_before.isoformat()})"
        return f"{label} has expired (not after {cert.not_valid_after.isoformat()})"

    @staticmethod
    def _fail(reason: str) -> VerificationOutcome:
        logger.debug("証明書チェーン検証に失敗しました: %s", reason)
        return VerificationOutcome.fail(reason)
