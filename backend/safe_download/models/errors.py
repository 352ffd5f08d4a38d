"""検証エンジン全体で利用する例外階層。"""

from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    """機械可読なエラーコード。"""

    POLICY_UNAVAILABLE = "policy_unavailable"
    POLICY_ALREADY_PUBLISHED = "policy_already_published"
    NO_CERTIFICATE = "no_certificate"
    INVALID_CERTIFICATE_FORMAT = "invalid_certificate_format"
    NON_ASCII_CERTIFICATE = "non_ascii_certificate"
    FILE_TOO_SMALL_FOR_SIGNATURE = "file_too_small_for_signature"
    INVALID_SIGNATURE_LENGTH = "invalid_signature_length"
    CERTIFICATE_ERROR = "certificate_error"
    REVOCATION_UNAVAILABLE = "revocation_unavailable"
    SIGNING_ERROR = "signing_error"
    INTERNAL_ERROR = "internal_error"


class SafeDownloadError(Exception):
    """エンジンが送出する例外の基底クラス。"""

    default_code = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        *,
        error_code: ErrorCode | str | None = None,
        remediation: Optional[str] = None,
    ) -> None:
        resolved = error_code or self.default_code
        super().__init__(message)
        self.error_code = ErrorCode(resolved)
        self.message = message
        self.remediation = remediation


class PolicyUnavailableError(SafeDownloadError):
    """ポリシーが一度も読み込まれていない状態でエンジンを利用した。"""

    default_code = ErrorCode.POLICY_UNAVAILABLE


class TrustConfigAlreadyPublishedError(SafeDownloadError):
    """公開済みのポリシーを再度公開しようとした。"""

    default_code = ErrorCode.POLICY_ALREADY_PUBLISHED


class ContainerFormatError(SafeDownloadError):
    """署名コンテナの形式が不正。"""

    default_code = ErrorCode.INVALID_CERTIFICATE_FORMAT


class CertificateError(SafeDownloadError):
    """証明書の読み込みに失敗した。"""

    default_code = ErrorCode.CERTIFICATE_ERROR


class RevocationUnavailableError(SafeDownloadError):
    """失効確認サービスから明示的な判定を得られなかった。"""

    default_code = ErrorCode.REVOCATION_UNAVAILABLE


class SigningError(SafeDownloadError):
    """署名側でのコンテナ作成に失敗した。"""

    default_code = ErrorCode.SIGNING_ERROR
