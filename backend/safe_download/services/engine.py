"""エンジンの構成要素をまとめるコンテキスト。"""

from dataclasses import dataclass
from typing import Optional

from .download_gate import DownloadGate, DownloadHost
from .pipeline import ContainerVerificationPipeline
from .revocation import RevocationOracle
from .trust_config import PolicyLoader, TrustConfigHolder


@dataclass
class EngineContext:
    """
    起動時に一度だけ生成し、参照で受け渡すプロセス全体のコンテキスト。

    TrustConfigHolder はローダーが一度だけ公開し、その後は読み取り専用。
    """

    trust: TrustConfigHolder
    loader: PolicyLoader
    revocation: RevocationOracle
    pipeline: ContainerVerificationPipeline

    def create_gate(self, host: DownloadHost, **kwargs) -> DownloadGate:
        """ホストに紐づく DownloadGate を生成する。保持は呼び出し側が行う。"""
        return DownloadGate(self.trust, host, self.pipeline, **kwargs)

    async def start(self) -> None:
        self.loader.start()

    async def stop(self) -> None:
        await self.loader.stop()


def build_engine(
    *,
    loader: Optional[PolicyLoader] = None,
    revocation: Optional[RevocationOracle] = None,
    trust: Optional[TrustConfigHolder] = None,
) -> EngineContext:
    """
    既定の設定でコンテキストを組み立てる。

    loader を渡した場合、保持者は loader が公開する先に揃える。

    Raises:
        ValueError: trust と loader の公開先が異なる場合
    """
    if loader is not None:
        if trust is not None and trust is not loader.holder:
            raise ValueError("trust must be the holder the loader publishes into")
        holder = loader.holder
        policy_loader = loader
    else:
        holder = trust or TrustConfigHolder()
        policy_loader = PolicyLoader(holder)
    oracle = revocation or RevocationOracle()
    pipeline = ContainerVerificationPipeline(holder, oracle)
    return EngineContext(
        trust=holder,
        loader=policy_loader,
        revocation=oracle,
        pipeline=pipeline,
    )
