"""EngineContext と build_engine のテスト。"""

import httpx
import pytest

from safe_download.models.downloads import DownloadPhase
from safe_download.services.engine import build_engine
from safe_download.services.trust_config import PolicyLoader, TrustConfigHolder


def _loader(holder: TrustConfigHolder, pki) -> PolicyLoader:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={
                "permittedDomains": ["trusted.example.com"],
                "permittedFormats": ["pdf"],
                "caRootCertificate": pki.root.pem,
            },
        )

    return PolicyLoader(
        holder,
        url="http://policy.test/download_settings.php",
        http_client_factory=lambda: httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


@pytest.mark.asyncio
async def test_loader_and_pipeline_share_one_holder(pki, revocation_ok, sign_container):
    holder = TrustConfigHolder()
    engine = build_engine(loader=_loader(holder, pki), revocation=revocation_ok)

    assert engine.trust is holder
    await engine.loader.load()

    verdict = await engine.pipeline.verify(sign_container(b"payload"), "report.pdf.safe")
    assert verdict.valid is True


def test_mismatched_trust_and_loader_are_rejected(pki, revocation_ok):
    loader = _loader(TrustConfigHolder(), pki)

    with pytest.raises(ValueError):
        build_engine(loader=loader, trust=TrustConfigHolder(), revocation=revocation_ok)


def test_default_engine_wires_loader_to_trust(revocation_ok):
    trust = TrustConfigHolder()
    engine = build_engine(trust=trust, revocation=revocation_ok)

    assert engine.loader.holder is trust
    assert engine.pipeline is not None


@pytest.mark.asyncio
async def test_create_gate_uses_shared_trust_and_pipeline(ready_trust, revocation_ok):
    engine = build_engine(trust=ready_trust, revocation=revocation_ok)
    calls: list[str] = []

    class Host:
        async def pause(self, download_id: int) -> None:
            calls.append("pause")

        async def resume(self, download_id: int) -> None:
            calls.append("resume")

        async def cancel(self, download_id: int) -> None:
            calls.append("cancel")

    gate = engine.create_gate(Host(), history_size=5)

    phase = await gate.on_created(1, "https://trusted.example.com/setup.exe", "setup.exe")

    assert phase == DownloadPhase.PASSED
    assert calls == ["pause", "resume"]
    assert engine.create_gate(Host()) is not gate
