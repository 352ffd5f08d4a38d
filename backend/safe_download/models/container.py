"""署名コンテナのモデル定義。"""

from pydantic import BaseModel, Field, field_validator

# RSA-2048 の modulus 長
SIGNATURE_SIZE = 256
CONTAINER_SUFFIX = ".safe"


class SignedContainer(BaseModel):
    """証明書・署名・ペイロードに分解された署名コンテナ。"""

    certificate_pem: str
    signature: bytes = Field(repr=False)
    payload: bytes = Field(repr=False)
    declared_filename: str

    @field_validator("signature")
    @classmethod
    def _check_signature_size(cls, value: bytes) -> bytes:
        if len(value) != SIGNATURE_SIZE:
            raise ValueError(f"signature must be exactly {SIGNATURE_SIZE} bytes")
        return value


class ContainerSummary(BaseModel):
    """API で返すコンテナの概要。"""

    declared_filename: str
    certificate_subject: str
    certificate_issuer: str
    payload_size: int
    payload_sha256: str


class ContainerVerifyResponse(BaseModel):
    """コンテナ検証 API のレスポンスモデル。"""

    valid: bool
    reasons: list[str] = Field(default_factory=list)
    failed_step: str | None = None
    clean_filename: str | None = None
    payload_size: int | None = None
    payload_sha256: str | None = None
