"""
RSA PKCS#1 v1.5 (SHA-256) 署名検証サービス。

ライブラリの検証 API は使わず、冪剰余と DER の読み取りだけで検証する。
各ステップの失敗は SignatureFailure のいずれか 1 つとして報告される。

    EM = 0x00 || 0x01 || 0xFF... || 0x00 || DigestInfo
    DigestInfo ::= SEQUENCE { SEQUENCE { OID, NULL }, OCTET STRING }
"""

import hashlib
import hmac
import logging
from enum import Enum
from typing import Optional

from ..config import settings
from ..models.certificate import RsaPublicKey
from ..models.verification import VerificationOutcome
from . import der

logger = logging.getLogger(__name__)

SHA256_OID = "2.16.840.1.101.3.4.2.1"
SHA256_DIGEST_SIZE = 32


class SignatureFailure(str, Enum):
    """署名検証の失敗理由。"""

    SIGNATURE_OUT_OF_RANGE = "signature out of range"
    INVALID_LEADING_BYTE = "invalid leading byte"
    INVALID_BLOCK_TYPE = "invalid 0x01 byte"
    INVALID_SEPARATOR = "invalid separator"
    MALFORMED_DIGEST_INFO = "malformed DigestInfo sequence"
    MALFORMED_ALGORITHM_IDENTIFIER = "malformed algorithm identifier"
    WRONG_HASH_OID = "wrong hash OID"
    WRONG_DIGEST_LENGTH = "wrong digest length"
    DIGEST_MISMATCH = "digest mismatch"


def chunked_sha256(data: bytes, chunk_size: Optional[int] = None) -> bytes:
    """
    SHA-256 をチャンク単位で計算する。

    結果はチャンクサイズに依存せず、一括計算と同じになる。
    """
    size = chunk_size or settings.hash_chunk_size_bytes
    if size <= 0:
        raise ValueError("chunk_size must be positive")
    view = memoryview(data)
    digest = hashlib.sha256()
    for offset in range(0, len(view), size):
        digest.update(view[offset : offset + size])
    return digest.digest()


def rsa_public_operation(signature: bytes, public_key: RsaPublicKey) -> Optional[bytes]:
    """
    signature^e mod n を計算し、modulus 長まで左側をゼロ埋めして返す。

    署名長が modulus 長と異なる場合、整数表現が n 以上の場合は None。
    """
    if len(signature) != public_key.size_bytes:
        return None
    s = int.from_bytes(signature, "big")
    if s >= public_key.n:
        return None
    m = pow(s, public_key.e, public_key.n)
    k = public_key.size_bytes
    # 先頭にゼロバイトが続く場合は to_bytes が左詰めで埋める
    return m.to_bytes(k, "big")


def _fail(reason: SignatureFailure) -> VerificationOutcome:
    logger.debug("署名検証に失敗しました: %s", reason.value)
    return VerificationOutcome.fail(reason.value)


def strip_padding(block: bytes) -> bytes | SignatureFailure:
    """PKCS#1 v1.5 type 1 のパディングを検査し、DigestInfo 部分を返す。"""
    if len(block) < 1 or block[0] != 0x00:
        return SignatureFailure.INVALID_LEADING_BYTE
    if len(block) < 2 or block[1] != 0x01:
        return SignatureFailure.INVALID_BLOCK_TYPE

    index = 2
    while index < len(block) and block[index] == 0xFF:
        index += 1
    # 0xFF が 1 つ以上続き、ちょうど 1 つの 0x00 で終わる必要がある
    if index == 2 or index >= len(block) or block[index] != 0x00:
        return SignatureFailure.INVALID_SEPARATOR
    return block[index + 1 :]


def parse_digest_info(encoded: bytes) -> tuple[str, bytes] | SignatureFailure:
    """DigestInfo を (OID, digest) に分解する。"""
    try:
        outer = der.read_single(encoded)
        if outer.tag != der.TAG_SEQUENCE:
            return SignatureFailure.MALFORMED_DIGEST_INFO
        children = der.read_children(outer)
    except der.DerError:
        return SignatureFailure.MALFORMED_DIGEST_INFO
    if len(children) != 2:
        return SignatureFailure.MALFORMED_DIGEST_INFO

    algorithm, digest = children
    if algorithm.tag != der.TAG_SEQUENCE:
        return SignatureFailure.MALFORMED_ALGORITHM_IDENTIFIER
    try:
        parts = der.read_children(algorithm)
    except der.DerError:
        return SignatureFailure.MALFORMED_ALGORITHM_IDENTIFIER
    if (
        len(parts) != 2
        or parts[0].tag != der.TAG_OID
        or parts[1].tag != der.TAG_NULL
        or parts[1].value
    ):
        return SignatureFailure.MALFORMED_ALGORITHM_IDENTIFIER
    try:
        oid = der.decode_oid(parts[0].value)
    except der.DerError:
        return SignatureFailure.MALFORMED_ALGORITHM_IDENTIFIER

    if digest.tag != der.TAG_OCTET_STRING:
        return SignatureFailure.MALFORMED_DIGEST_INFO
    return oid, digest.value


def decode_signature_block(block: bytes, expected_digest: bytes) -> VerificationOutcome:
    """復号済みブロックを検査し、expected_digest と一致するか判定する。"""
    stripped = strip_padding(block)
    if isinstance(stripped, SignatureFailure):
        return _fail(stripped)

    parsed = parse_digest_info(stripped)
    if isinstance(parsed, SignatureFailure):
        return _fail(parsed)

    oid, digest = parsed
    if oid != SHA256_OID:
        return _fail(SignatureFailure.WRONG_HASH_OID)
    if len(digest) != SHA256_DIGEST_SIZE:
        return _fail(SignatureFailure.WRONG_DIGEST_LENGTH)
    if not hmac.compare_digest(digest, expected_digest):
        return _fail(SignatureFailure.DIGEST_MISMATCH)
    return VerificationOutcome.ok()


class SignatureVerifier:
    """ペイロードと署名、公開鍵から署名の正当性を判定する。"""

    def __init__(self, chunk_size: Optional[int] = None) -> None:
        self._chunk_size = chunk_size or settings.hash_chunk_size_bytes

    def verify(
        self, payload: bytes, signature: bytes, public_key: RsaPublicKey
    ) -> VerificationOutcome:
        """
        署名を検証する。

        Returns:
            すべての検査に通れば valid=True、そうでなければ失敗理由 1 件
        """
        digest = chunked_sha256(payload, self._chunk_size)
        block = rsa_public_operation(signature, public_key)
        if block is None:
            return _fail(SignatureFailure.SIGNATURE_OUT_OF_RANGE)
        return decode_signature_block(block, digest)
