"""
ダウンロードの通過・保留・置換・拒否を決める状態機械。

    EVALUATING → AWAITING_POLICY_READY (0..1) → {PASSED | HELD | CANCELLED}
    HELD → RESUMED → COMPLETED → REVALIDATING → {REPLACED | FAILED}

ホストのイベントは単一のイベントループ上で handle_event() に渡される前提。
追跡テーブルはこのクラスだけが読み書きする。
"""

import logging
from collections import deque
from pathlib import PurePosixPath
from typing import Deque, Dict, List, Literal, Optional, Protocol
from urllib.parse import urlparse

from ..config import settings
from ..models.downloads import (
    DownloadDecision,
    DownloadEvent,
    DownloadEventKind,
    DownloadPhase,
    DownloadRecord,
)
from .container import is_container_filename
from .pipeline import ContainerVerificationPipeline
from .trust_config import TrustConfigHolder

logger = logging.getLogger(__name__)

IGNORED_URL_SCHEMES = ("blob:", "data:")


class DownloadHost(Protocol):
    """ホストのダウンロードマネージャが提供する操作。"""

    async def pause(self, download_id: int) -> None: ...

    async def resume(self, download_id: int) -> None: ...

    async def cancel(self, download_id: int) -> None: ...

    async def remove_file(self, download_id: int) -> None: ...

    async def erase(self, download_id: int) -> None: ...

    async def read_bytes(self, download_id: int) -> bytes: ...

    async def emit_artifact(self, payload: bytes, filename: str) -> Optional[int]: ...


def file_extension(filename: str, url: str) -> str:
    """ファイル名 (無ければ URL パス) の最後のドット以降を小文字で返す。"""
    source = filename
    if not source:
        try:
            source = urlparse(url).path
        except ValueError:
            return ""
    name = source.replace("\\", "/").rsplit("/", 1)[-1]
    parts = name.split(".")
    if len(parts) > 1:
        return parts[-1].lower()
    return ""


def output_name(declared_filename: str) -> str:
    """ディレクトリ部分を除いた出力ファイル名。"""
    return PurePosixPath(declared_filename.replace("\\", "/")).name


class DownloadGate:
    """ダウンロードの判定を行う。"""

    def __init__(
        self,
        trust: TrustConfigHolder,
        host: DownloadHost,
        pipeline: ContainerVerificationPipeline,
        *,
        readiness_timeout_seconds: Optional[float] = None,
        readiness_poll_interval_seconds: Optional[float] = None,
        timeout_action: Optional[Literal["cancel", "resume"]] = None,
        history_size: Optional[int] = None,
    ) -> None:
        self._trust = trust
        self._host = host
        self._pipeline = pipeline
        self._readiness_timeout = (
            settings.readiness_timeout_seconds
            if readiness_timeout_seconds is None
            else readiness_timeout_seconds
        )
        self._poll_interval = (
            readiness_poll_interval_seconds or settings.readiness_poll_interval_seconds
        )
        self._timeout_action = timeout_action or settings.readiness_timeout_action
        self._tracked: Dict[int, DownloadRecord] = {}
        self._decisions: Deque[DownloadDecision] = deque(
            maxlen=max(1, history_size or settings.decision_history_size)
        )

    @property
    def tracked_count(self) -> int:
        return len(self._tracked)

    def is_tracked(self, download_id: int) -> bool:
        return download_id in self._tracked

    def phase_of(self, download_id: int) -> Optional[DownloadPhase]:
        record = self._tracked.get(download_id)
        return record.phase if record else None

    @property
    def decisions(self) -> List[DownloadDecision]:
        return list(self._decisions)

    async def handle_event(self, event: DownloadEvent) -> Optional[DownloadPhase]:
        """ホストのイベント 1 件を処理し、到達したフェーズを返す。"""
        if event.kind == DownloadEventKind.CREATED:
            return await self.on_created(
                event.download_id, event.url, event.filename, state=event.state
            )
        if event.kind == DownloadEventKind.COMPLETED:
            return await self.on_completed(event.download_id)
        if event.kind == DownloadEventKind.INTERRUPTED:
            self.on_interrupted(event.download_id)
            return None
        raise ValueError(f"unknown event kind: {event.kind}")

    async def on_created(
        self, download_id: int, url: str, filename: str = "", *, state: str = "in_progress"
    ) -> Optional[DownloadPhase]:
        """新しいダウンロードを一時停止し、ポリシーに基づいて判定する。"""
        if state != "in_progress" or url.startswith(IGNORED_URL_SCHEMES):
            return None

        name = filename or url[url.rfind("/") + 1 :]
        record = DownloadRecord(download_id=download_id, url=url, filename=name)
        self._tracked[download_id] = record

        try:
            await self._host.pause(download_id)

            if not self._trust.is_ready:
                record.phase = DownloadPhase.AWAITING_POLICY_READY
                ready = await self._trust.wait_until_ready(
                    self._readiness_timeout, self._poll_interval
                )
                if self._tracked.get(download_id) is not record:
                    logger.info("ポリシー待機中にダウンロード %s が終了しました", download_id)
                    return None
                if not ready:
                    return await self._on_readiness_timeout(record)

            if is_container_filename(name):
                record.phase = DownloadPhase.HELD
                # resume 中に届く完了イベントは RESUMED として再検証する
                record.phase = DownloadPhase.RESUMED
                await self._host.resume(download_id)
                if self._tracked.get(download_id) is not record:
                    return None
                logger.info("署名付きダウンロード %s を完了後に検証します: %s", download_id, name)
                return record.phase

            extension = file_extension(filename, url)
            domain_ok = self._trust.domain_permitted(url)
            format_ok = self._trust.format_permitted(extension)
            if domain_ok or format_ok:
                await self._host.resume(download_id)
                return self._finish(record, DownloadPhase.PASSED)

            reasons = ["domain not permitted", f"format not permitted: {extension or '(none)'}"]
            await self._host.cancel(download_id)
            return self._finish(record, DownloadPhase.CANCELLED, reasons=reasons)
        except Exception as exc:  # noqa: BLE001
            logger.exception("ダウンロード %s の判定に失敗しました", download_id)
            if self._tracked.get(download_id) is not record:
                return None
            try:
                await self._host.cancel(download_id)
            except Exception:  # noqa: BLE001
                logger.exception("ダウンロード %s のキャンセルに失敗しました", download_id)
            return self._finish(
                record, DownloadPhase.CANCELLED, reasons=[f"evaluation failed: {exc}"]
            )

    async def _on_readiness_timeout(self, record: DownloadRecord) -> DownloadPhase:
        """ポリシー待機のタイムアウト時に設定された動作を一度だけ実行する。"""
        reason = "policy not ready before timeout"
        if self._timeout_action == "resume":
            logger.warning(
                "ポリシー未取得のままダウンロード %s を再開します (fail-open)", record.download_id
            )
            await self._host.resume(record.download_id)
            return self._finish(record, DownloadPhase.RESUMED, reasons=[reason])

        logger.warning(
            "ポリシー未取得のためダウンロード %s をキャンセルします (fail-closed)",
            record.download_id,
        )
        await self._host.cancel(record.download_id)
        return self._finish(record, DownloadPhase.CANCELLED, reasons=[reason])

    async def on_completed(self, download_id: int) -> Optional[DownloadPhase]:
        """追跡中の .safe ダウンロードを検証し、置換または削除する。"""
        record = self._tracked.pop(download_id, None)
        if record is None:
            return None
        if record.phase != DownloadPhase.RESUMED or not is_container_filename(record.filename):
            # 判定前に完了したもの、署名なしで承認済みのものはそのまま残す
            return None

        record.phase = DownloadPhase.COMPLETED
        logger.info("署名付きダウンロード %s が完了しました。再検証します", download_id)
        record.phase = DownloadPhase.REVALIDATING
        try:
            buffer = await self._host.read_bytes(download_id)
            verdict = await self._pipeline.verify(buffer, record.filename)
        except Exception as exc:  # noqa: BLE001
            logger.exception("ダウンロード %s の再検証に失敗しました", download_id)
            await self._discard(download_id)
            return self._finish(record, DownloadPhase.FAILED, reasons=[f"revalidation failed: {exc}"])

        await self._discard(download_id)
        if not verdict.valid:
            return self._finish(record, DownloadPhase.FAILED, reasons=verdict.reasons)

        clean_name = output_name(verdict.clean_filename or "")
        try:
            await self._host.emit_artifact(verdict.payload or b"", clean_name)
        except Exception as exc:  # noqa: BLE001
            logger.exception("検証済みファイル %s の出力に失敗しました", clean_name)
            return self._finish(
                record, DownloadPhase.FAILED, reasons=[f"replacement artifact not emitted: {exc}"]
            )
        return self._finish(record, DownloadPhase.REPLACED, output_filename=clean_name)

    def on_interrupted(self, download_id: int) -> None:
        record = self._tracked.pop(download_id, None)
        if record is not None:
            logger.info("ダウンロード %s が中断されたため追跡を終了します", download_id)

    async def _discard(self, download_id: int) -> None:
        """元の署名付きファイルを削除し、履歴からも消す。"""
        try:
            await self._host.remove_file(download_id)
        except Exception:  # noqa: BLE001
            logger.exception("ダウンロード %s のファイル削除に失敗しました", download_id)
        try:
            await self._host.erase(download_id)
        except Exception:  # noqa: BLE001
            logger.exception("ダウンロード %s の履歴削除に失敗しました", download_id)

    def _finish(
        self,
        record: DownloadRecord,
        phase: DownloadPhase,
        *,
        reasons: Optional[List[str]] = None,
        output_filename: Optional[str] = None,
    ) -> DownloadPhase:
        record.phase = phase
        self._tracked.pop(record.download_id, None)
        decision = DownloadDecision(
            download_id=record.download_id,
            url=record.url,
            filename=record.filename,
            phase=phase,
            reasons=list(reasons or []),
            output_filename=output_filename,
        )
        self._decisions.append(decision)
        if reasons:
            logger.warning(
                "ダウンロード %s: %s (%s)", record.download_id, phase.value, ", ".join(reasons)
            )
        else:
            logger.info("ダウンロード %s: %s", record.download_id, phase.value)
        return phase
