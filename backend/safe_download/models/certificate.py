"""X.509 証明書の読み取り専用ラッパー。"""

from dataclasses import dataclass
from datetime import datetime

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from .errors import CertificateError


@dataclass(frozen=True)
class RsaPublicKey:
    """RSA 公開鍵 (modulus n, exponent e)。"""

    n: int
    e: int

    @property
    def size_bytes(self) -> int:
        """modulus のバイト長 ceil(bitlen(n) / 8)."""
        return (self.n.bit_length() + 7) // 8


class Certificate:
    """
    解析済み証明書。

    エンジンが参照するのは公開鍵、subject、issuer、有効期間のみ。
    生成後に変更されることはない。
    """

    __slots__ = ("_cert", "_pem")

    def __init__(self, cert: x509.Certificate, pem: str) -> None:
        self._cert = cert
        self._pem = pem

    @classmethod
    def from_pem(cls, pem: str | bytes) -> "Certificate":
        try:
            data = pem.encode("ascii") if isinstance(pem, str) else pem
            text = data.decode("ascii")
            cert = x509.load_pem_x509_certificate(data)
        except (ValueError, TypeError) as exc:
            raise CertificateError(f"証明書を解析できません: {exc}") from exc
        return cls(cert, text)

    @property
    def pem(self) -> str:
        return self._pem

    @property
    def x509_certificate(self) -> x509.Certificate:
        return self._cert

    @property
    def subject(self) -> x509.Name:
        return self._cert.subject

    @property
    def issuer(self) -> x509.Name:
        return self._cert.issuer

    @property
    def not_valid_before(self) -> datetime:
        return self._cert.not_valid_before_utc

    @property
    def not_valid_after(self) -> datetime:
        return self._cert.not_valid_after_utc

    @property
    def public_key(self) -> RsaPublicKey:
        """RSA 公開鍵を返す。RSA 以外の鍵は CertificateError。"""
        key = self._cert.public_key()
        if not isinstance(key, rsa.RSAPublicKey):
            raise CertificateError("証明書の公開鍵が RSA ではありません")
        numbers = key.public_numbers()
        return RsaPublicKey(n=numbers.n, e=numbers.e)

    def is_valid_at(self, moment: datetime) -> bool:
        return self.not_valid_before <= moment <= self.not_valid_after

    def public_bytes(self) -> bytes:
        return self._cert.public_bytes(serialization.Encoding.PEM)

    def __repr__(self) -> str:
        return f"Certificate(subject={self.subject.rfc4514_string()!r})"
