"""ダウンロード判定のモデル定義。"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


def _now_utc() -> datetime:
    """UTC 現在時刻を返す。"""
    return datetime.now(timezone.utc)


class DownloadPhase(str, Enum):
    """ダウンロードの判定フェーズ。"""

    EVALUATING = "evaluating"
    AWAITING_POLICY_READY = "awaiting_policy_ready"
    PASSED = "passed"
    HELD = "held"
    RESUMED = "resumed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    REVALIDATING = "revalidating"
    REPLACED = "replaced"
    FAILED = "failed"


class DownloadRecord(BaseModel):
    """DownloadGate が追跡するダウンロード。"""

    download_id: int
    url: str
    filename: str
    phase: DownloadPhase = DownloadPhase.EVALUATING
    created_at: datetime = Field(default_factory=_now_utc)


class DownloadEventKind(str, Enum):
    """ホストから届くライフサイクルイベントの種別。"""

    CREATED = "created"
    COMPLETED = "completed"
    INTERRUPTED = "interrupted"


class DownloadEvent(BaseModel):
    """ホストのダウンロードマネージャから届くイベント。"""

    kind: DownloadEventKind
    download_id: int
    url: str = ""
    filename: str = ""
    state: str = Field(default="in_progress", description="ホスト側の状態文字列")


class DownloadDecision(BaseModel):
    """終端に達したダウンロードの判定記録。"""

    download_id: int
    url: str
    filename: str
    phase: DownloadPhase
    reasons: List[str] = Field(default_factory=list)
    output_filename: Optional[str] = None
    decided_at: datetime = Field(default_factory=_now_utc)
