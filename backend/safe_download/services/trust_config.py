"""信頼ポリシー (許可ドメイン・許可形式・CA ルート) の保持と取得。"""

import asyncio
import logging
from typing import Callable, Optional
from urllib.parse import urlparse

import httpx

from ..config import settings
from ..models.errors import (
    PolicyUnavailableError,
    SafeDownloadError,
    TrustConfigAlreadyPublishedError,
)
from ..models.trust import NotReady, PolicyDocument, PolicyStatus, Ready, TrustSnapshot, TrustState

logger = logging.getLogger(__name__)


class TrustConfigHolder:
    """
    プロセス全体で共有するポリシーの保持者。

    起動時に NotReady で生成され、ローダーによって一度だけ Ready に置き換わる。
    以後は読み取り専用のため、読み手はロックなしで参照できる。
    """

    def __init__(self) -> None:
        self._state: TrustState = NotReady()

    @property
    def state(self) -> TrustState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return isinstance(self._state, Ready)

    @property
    def snapshot(self) -> Optional[TrustSnapshot]:
        state = self._state
        return state.snapshot if isinstance(state, Ready) else None

    def publish(self, snapshot: TrustSnapshot) -> None:
        """スナップショットを公開する。二度目の公開は拒否する。"""
        if self.is_ready:
            raise TrustConfigAlreadyPublishedError("ポリシーは既に公開済みです")
        self._state = Ready(snapshot)
        logger.info(
            "ポリシーを公開しました: domains=%d formats=%d",
            len(snapshot.permitted_domains),
            len(snapshot.permitted_formats),
        )

    def require_snapshot(self) -> TrustSnapshot:
        """公開済みスナップショットを返す。未取得なら PolicyUnavailableError。"""
        snapshot = self.snapshot
        if snapshot is None:
            raise PolicyUnavailableError(
                "ポリシーがまだ読み込まれていません",
                remediation="ポリシーエンドポイントへの到達性を確認してください。",
            )
        return snapshot

    def domain_permitted(self, url: str) -> bool:
        """URL のホスト名が許可リストに完全一致するか。不正な URL は False。"""
        snapshot = self.snapshot
        if snapshot is None:
            return False
        try:
            parsed = urlparse(url)
            hostname = parsed.hostname
        except (ValueError, TypeError, AttributeError):
            return False
        if not parsed.scheme or not hostname:
            return False
        return hostname in snapshot.permitted_domains

    def format_permitted(self, extension: str) -> bool:
        """拡張子 (ドットなし) が許可リストに完全一致するか。小文字化は呼び出し側の責務。"""
        snapshot = self.snapshot
        if snapshot is None:
            return False
        return extension in snapshot.permitted_formats

    async def wait_until_ready(self, timeout: float, poll_interval: float) -> bool:
        """固定間隔でポーリングし、timeout 秒以内に Ready になれば True。"""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + max(0.0, timeout)
        while not self.is_ready:
            remaining = deadline - loop.time()
            if remaining <= 0:
                return False
            await asyncio.sleep(min(poll_interval, remaining))
        return True


class PolicyLoader:
    """ポリシーエンドポイントから設定を取得し、TrustConfigHolder に公開する。"""

    def __init__(
        self,
        holder: TrustConfigHolder,
        *,
        url: Optional[str] = None,
        retry_delay_seconds: Optional[float] = None,
        request_timeout_seconds: Optional[float] = None,
        http_client_factory: Optional[Callable[[], httpx.AsyncClient]] = None,
    ) -> None:
        self._holder = holder
        self._url = url or settings.policy_url
        self._retry_delay = (
            settings.policy_retry_delay_seconds
            if retry_delay_seconds is None
            else float(retry_delay_seconds)
        )
        self._timeout = request_timeout_seconds or settings.policy_request_timeout_seconds
        self._http_client_factory = http_client_factory or self._default_http_client_factory
        self._task: Optional[asyncio.Task] = None
        self.attempts = 0
        self.last_error: Optional[str] = None

    @property
    def holder(self) -> TrustConfigHolder:
        """公開先の TrustConfigHolder."""
        return self._holder

    def _default_http_client_factory(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout)

    async def load(self) -> TrustSnapshot:
        """
        公開に成功するまで取得を繰り返す。

        失敗時は固定間隔で無期限に再試行する (バックオフ・上限なし)。
        """
        while True:
            snapshot = self._holder.snapshot
            if snapshot is not None:
                return snapshot
            self.attempts += 1
            try:
                snapshot = await self.fetch_once()
            except (httpx.HTTPError, ValueError, SafeDownloadError) as exc:
                self.last_error = str(exc) or exc.__class__.__name__
                logger.warning(
                    "ポリシーの取得に失敗しました (attempt=%d): %s。%.1f 秒後に再試行します。",
                    self.attempts,
                    self.last_error,
                    self._retry_delay,
                )
                await asyncio.sleep(self._retry_delay)
                continue

            if not self._holder.is_ready:
                self._holder.publish(snapshot)
            self.last_error = None
            return self._holder.require_snapshot()

    async def fetch_once(self) -> TrustSnapshot:
        """1 回だけ取得・検証する。"""
        logger.info("ポリシーを取得します: %s", self._url)
        async with self._http_client_factory() as client:
            response = await client.get(
                self._url, headers={"Content-Type": "application/json"}
            )
            response.raise_for_status()
            data = response.json()
        document = PolicyDocument.model_validate(data)
        return TrustSnapshot.from_document(document)

    def start(self) -> asyncio.Task:
        """バックグラウンドで load() を開始する。"""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.load(), name="policy-loader")
        return self._task

    async def stop(self) -> None:
        task = self._task
        self._task = None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def status(self) -> PolicyStatus:
        snapshot = self._holder.snapshot
        if snapshot is None:
            return PolicyStatus(ready=False, load_attempts=self.attempts)
        return PolicyStatus(
            ready=True,
            loaded_at=snapshot.loaded_at,
            permitted_domains=sorted(snapshot.permitted_domains),
            permitted_formats=sorted(snapshot.permitted_formats),
            ca_subject=snapshot.ca_root_certificate.subject.rfc4514_string(),
            load_attempts=self.attempts,
        )
