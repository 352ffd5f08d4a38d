"""信頼ポリシーのモデル定義。"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import FrozenSet, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .certificate import Certificate


def _now_utc() -> datetime:
    """UTC 現在時刻を返す。"""
    return datetime.now(timezone.utc)


class PolicyDocument(BaseModel):
    """ポリシーエンドポイントの応答。"""

    model_config = ConfigDict(populate_by_name=True)

    permitted_domains: List[str] = Field(..., alias="permittedDomains")
    permitted_formats: List[str] = Field(..., alias="permittedFormats")
    ca_root_certificate: str = Field(..., alias="caRootCertificate")


class TrustSnapshot(BaseModel):
    """公開後は変更されないポリシーのスナップショット。"""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    permitted_domains: FrozenSet[str]
    permitted_formats: FrozenSet[str]
    ca_root_certificate: Certificate
    loaded_at: datetime = Field(default_factory=_now_utc)

    @classmethod
    def from_document(cls, document: PolicyDocument) -> "TrustSnapshot":
        """応答からスナップショットを構築する。CA ルートはここで一度だけ解析する。"""
        return cls(
            permitted_domains=frozenset(document.permitted_domains),
            permitted_formats=frozenset(fmt.lower() for fmt in document.permitted_formats),
            ca_root_certificate=Certificate.from_pem(document.ca_root_certificate),
        )


@dataclass(frozen=True)
class NotReady:
    """ポリシー未取得。"""

    ready = False


@dataclass(frozen=True)
class Ready:
    """ポリシー取得済み。"""

    snapshot: TrustSnapshot
    ready = True


TrustState = Union[NotReady, Ready]


class PolicyStatus(BaseModel):
    """ポリシー状態 API のレスポンスモデル。"""

    ready: bool
    loaded_at: Optional[datetime] = None
    permitted_domains: List[str] = Field(default_factory=list)
    permitted_formats: List[str] = Field(default_factory=list)
    ca_subject: Optional[str] = None
    load_attempts: int = 0
