"""署名側: ペイロードに署名して .safe コンテナを作成する。"""

import logging
from dataclasses import dataclass
from typing import Optional

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa, utils

from ..models.container import SIGNATURE_SIZE
from ..models.errors import ContainerFormatError, SigningError
from .container import ContainerCodec, safe_filename
from .signature_verifier import chunked_sha256

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SignedArtifact:
    """署名済みコンテナとその保存名。"""

    content: bytes
    safe_name: str


class ContainerSigner:
    """暗号化された秘密鍵と発行済み証明書でコンテナを作成する。"""

    def __init__(
        self,
        codec: Optional[ContainerCodec] = None,
        chunk_size: Optional[int] = None,
    ) -> None:
        self._codec = codec or ContainerCodec()
        self._chunk_size = chunk_size

    @staticmethod
    def load_private_key(private_key_pem: bytes, password: Optional[str]) -> rsa.RSAPrivateKey:
        try:
            key = serialization.load_pem_private_key(
                private_key_pem,
                password=password.encode("utf-8") if password else None,
            )
        except (ValueError, TypeError) as exc:
            raise SigningError(f"秘密鍵を読み込めません: {exc}") from exc
        if not isinstance(key, rsa.RSAPrivateKey):
            raise SigningError("秘密鍵が RSA ではありません")
        return key

    def sign_payload(
        self,
        payload: bytes,
        *,
        private_key_pem: bytes,
        password: Optional[str],
        certificate_pem: str,
        filename: str,
    ) -> SignedArtifact:
        """
        ペイロードに署名してコンテナを作成する。

        証明書は呼び出し側から明示的に渡す。

        Raises:
            SigningError: 鍵の読み込み・署名・コンテナ作成に失敗した場合
        """
        key = self.load_private_key(private_key_pem, password)
        digest = chunked_sha256(payload, self._chunk_size)
        signature = key.sign(
            digest, padding.PKCS1v15(), utils.Prehashed(hashes.SHA256())
        )
        if len(signature) != SIGNATURE_SIZE:
            raise SigningError(
                f"署名長が不正です: {len(signature)} bytes (期待値 {SIGNATURE_SIZE})"
            )

        try:
            content = self._codec.build(certificate_pem, signature, payload)
        except ContainerFormatError as exc:
            raise SigningError(exc.message) from exc

        artifact = SignedArtifact(content=content, safe_name=safe_filename(filename))
        logger.info("署名済みコンテナを作成しました: %s", artifact.safe_name)
        return artifact
