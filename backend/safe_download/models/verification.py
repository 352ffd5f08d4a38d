"""検証結果のモデル定義。"""

from typing import List, Optional

from pydantic import BaseModel, Field, model_validator


class VerificationOutcome(BaseModel):
    """各検証ステップの結果。reasons は valid のときに限り空になる。"""

    valid: bool
    reasons: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_reasons(self) -> "VerificationOutcome":
        if self.valid and self.reasons:
            raise ValueError("valid な結果に reasons を含めることはできません")
        if not self.valid and not self.reasons:
            raise ValueError("invalid な結果には少なくとも 1 件の reason が必要です")
        return self

    @classmethod
    def ok(cls) -> "VerificationOutcome":
        return cls(valid=True, reasons=[])

    @classmethod
    def fail(cls, *reasons: str) -> "VerificationOutcome":
        return cls(valid=False, reasons=[str(reason) for reason in reasons])


class RevocationVerdict(BaseModel):
    """失効確認サービスが返した明示的な判定。"""

    valid: bool
    reasons: List[str] = Field(default_factory=list)

    def to_outcome(self) -> VerificationOutcome:
        if self.valid:
            return VerificationOutcome.ok()
        return VerificationOutcome.fail(*(self.reasons or ["certificate revoked"]))


class GateVerdict(BaseModel):
    """署名コンテナ全体の検証結果。"""

    outcome: VerificationOutcome
    failed_step: Optional[str] = Field(
        default=None, description="短絡したステップ名 (成功時は None)"
    )
    clean_filename: Optional[str] = None
    payload: Optional[bytes] = Field(default=None, repr=False, exclude=True)

    @property
    def valid(self) -> bool:
        return self.outcome.valid

    @property
    def reasons(self) -> List[str]:
        return self.outcome.reasons
