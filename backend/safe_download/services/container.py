"""
署名コンテナ (.safe) の解析と構築。

レイアウト::

    [ PEM 証明書 (ASCII、END マーカー + 改行で終端) ]
    [ 256 バイトの生の署名 ]
    [ ペイロード ]
"""

import logging

from ..models.container import CONTAINER_SUFFIX, SIGNATURE_SIZE, SignedContainer
from ..models.errors import ContainerFormatError, ErrorCode

logger = logging.getLogger(__name__)

PEM_BEGIN = b"-----BEGIN CERTIFICATE-----"
PEM_END = b"-----END CERTIFICATE-----"


def _line_terminator_length(data: bytes, offset: int) -> int:
    if data.startswith(b"\r\n", offset):
        return 2
    if data.startswith(b"\n", offset) or data.startswith(b"\r", offset):
        return 1
    return 0


def strip_container_suffix(filename: str) -> str:
    """末尾の .safe を 1 つだけ取り除く。"""
    if filename.endswith(CONTAINER_SUFFIX):
        return filename[: -len(CONTAINER_SUFFIX)]
    return filename


def safe_filename(filename: str) -> str:
    """署名済みファイル名 (.safe 付き) を返す。"""
    if filename.endswith(CONTAINER_SUFFIX):
        return filename
    return filename + CONTAINER_SUFFIX


def is_container_filename(filename: str | None) -> bool:
    return bool(filename) and filename.endswith(CONTAINER_SUFFIX)


class ContainerCodec:
    """署名コンテナとバイト列を相互変換する。"""

    def __init__(self, signature_size: int = SIGNATURE_SIZE) -> None:
        self._signature_size = signature_size

    def parse(self, buffer: bytes, filename: str) -> SignedContainer:
        """
        バイト列を証明書・署名・ペイロードに分解する。

        Raises:
            ContainerFormatError: 証明書が無い、形式が不正、署名に足りない長さ
        """
        data = bytes(buffer)
        begin = data.find(PEM_BEGIN)
        end = data.find(PEM_END)
        if begin < 0 or end < 0:
            raise ContainerFormatError(
                "no certificate", error_code=ErrorCode.NO_CERTIFICATE
            )

        cert_end = end + len(PEM_END)
        span = data[begin:cert_end]
        if not span.startswith(PEM_BEGIN):
            raise ContainerFormatError(
                "invalid certificate format",
                error_code=ErrorCode.INVALID_CERTIFICATE_FORMAT,
            )

        # 行末 1 つ (\r\n, \n, \r) のみ読み飛ばす。それ以降は署名の先頭バイト
        cert_end += _line_terminator_length(data, cert_end)

        try:
            certificate_pem = data[begin:cert_end].decode("ascii")
        except UnicodeDecodeError as exc:
            raise ContainerFormatError(
                "certificate block is not ASCII",
                error_code=ErrorCode.NON_ASCII_CERTIFICATE,
            ) from exc

        if len(data) - cert_end < self._signature_size:
            raise ContainerFormatError(
                "file too small for signature",
                error_code=ErrorCode.FILE_TOO_SMALL_FOR_SIGNATURE,
            )

        sig_end = cert_end + self._signature_size
        container = SignedContainer(
            certificate_pem=certificate_pem,
            signature=data[cert_end:sig_end],
            payload=data[sig_end:],
            declared_filename=strip_container_suffix(filename),
        )
        logger.debug(
            "コンテナを解析しました: filename=%s payload=%d bytes",
            container.declared_filename,
            len(container.payload),
        )
        return container

    def build(self, certificate_pem: str, signature: bytes, payload: bytes) -> bytes:
        """証明書・署名・ペイロードを連結してコンテナを作る。"""
        if len(signature) != self._signature_size:
            raise ContainerFormatError(
                f"signature must be exactly {self._signature_size} bytes",
                error_code=ErrorCode.INVALID_SIGNATURE_LENGTH,
            )
        pem = certificate_pem.strip()
        if not pem.startswith(PEM_BEGIN.decode("ascii")):
            raise ContainerFormatError(
                "invalid certificate format",
                error_code=ErrorCode.INVALID_CERTIFICATE_FORMAT,
            )
        try:
            pem_bytes = (pem + "\n").encode("ascii")
        except UnicodeEncodeError as exc:
            raise ContainerFormatError(
                "certificate block is not ASCII",
                error_code=ErrorCode.NON_ASCII_CERTIFICATE,
            ) from exc
        return pem_bytes + bytes(signature) + bytes(payload)
