"""署名コンテナの検証パイプライン。"""

import logging
from typing import Literal, Optional

from ..config import settings
from ..models.certificate import Certificate
from ..models.errors import CertificateError, ContainerFormatError, RevocationUnavailableError
from ..models.verification import GateVerdict, VerificationOutcome
from .certificates import CertificateChainValidator
from .container import ContainerCodec
from .revocation import RevocationOracle
from .signature_verifier import SignatureVerifier
from .trust_config import TrustConfigHolder

logger = logging.getLogger(__name__)

REVOCATION_UNAVAILABLE_REASON = "revocation service unavailable"


class ContainerVerificationPipeline:
    """
    コンテナ解析 → 証明書チェーン → 署名 → 失効確認 を固定順で実行する。

    最初に失敗したステップで打ち切り、その理由のみを返す。
    ポリシー未取得で呼ばれた場合を除き、例外は送出しない。
    """

    def __init__(
        self,
        trust: TrustConfigHolder,
        revocation: RevocationOracle,
        *,
        codec: Optional[ContainerCodec] = None,
        chain_validator: Optional[CertificateChainValidator] = None,
        signature_verifier: Optional[SignatureVerifier] = None,
        revocation_unavailable_action: Optional[Literal["reject", "allow"]] = None,
    ) -> None:
        self._trust = trust
        self._revocation = revocation
        self._codec = codec or ContainerCodec()
        self._chain_validator = chain_validator or CertificateChainValidator()
        self._signature_verifier = signature_verifier or SignatureVerifier()
        self._revocation_unavailable_action = (
            revocation_unavailable_action or settings.revocation_unavailable_action
        )

    @property
    def codec(self) -> ContainerCodec:
        return self._codec

    async def verify(self, buffer: bytes, filename: str) -> GateVerdict:
        """
        バッファ全体を検証する。

        Raises:
            PolicyUnavailableError: ポリシーが一度も読み込まれていない場合
        """
        snapshot = self._trust.require_snapshot()

        try:
            container = self._codec.parse(buffer, filename)
        except ContainerFormatError as exc:
            return self._reject("container", exc.message)

        try:
            leaf = Certificate.from_pem(container.certificate_pem)
        except CertificateError as exc:
            return self._reject("certificate", f"malformed certificate: {exc.message}")

        chain = self._chain_validator.validate(leaf, snapshot.ca_root_certificate)
        if not chain.valid:
            return self._reject("certificate", *chain.reasons)

        try:
            public_key = leaf.public_key
        except CertificateError as exc:
            return self._reject("certificate", exc.message)

        signature = self._signature_verifier.verify(
            container.payload, container.signature, public_key
        )
        if not signature.valid:
            return self._reject("signature", *signature.reasons)

        try:
            verdict = await self._revocation.check_certificate(container.certificate_pem)
        except RevocationUnavailableError as exc:
            if self._revocation_unavailable_action == "allow":
                logger.warning(
                    "失効確認を実施できませんでしたが、設定により許可します: %s", exc.message
                )
            else:
                return self._reject(
                    "revocation", f"{REVOCATION_UNAVAILABLE_REASON}: {exc.message}"
                )
        else:
            outcome = verdict.to_outcome()
            if not outcome.valid:
                return self._reject("revocation", *outcome.reasons)

        logger.info(
            "署名コンテナを検証しました: %s (%d bytes)",
            container.declared_filename,
            len(container.payload),
        )
        return GateVerdict(
            outcome=VerificationOutcome.ok(),
            clean_filename=container.declared_filename,
            payload=container.payload,
        )

    @staticmethod
    def _reject(step: str, *reasons: str) -> GateVerdict:
        logger.warning("署名コンテナを拒否しました: step=%s reasons=%s", step, list(reasons))
        return GateVerdict(outcome=VerificationOutcome.fail(*reasons), failed_step=step)
