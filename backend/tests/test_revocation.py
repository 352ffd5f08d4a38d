"""RevocationOracle のテスト。"""

import httpx
import pytest

from safe_download.models.errors import RevocationUnavailableError
from safe_download.services.revocation import CERTIFICATE_FIELD, RevocationOracle

REVOCATION_URL = "http://ca.test/validate_signature.php"


def _oracle(handler, **kwargs) -> RevocationOracle:
    def _factory() -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return RevocationOracle(url=REVOCATION_URL, http_client_factory=_factory, **kwargs)


@pytest.mark.asyncio
async def test_explicit_valid_verdict(pki):
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"valid": True, "reasons": []})

    verdict = await _oracle(handler, api_token="secret-token").check_certificate(pki.leaf.pem)

    assert verdict.valid is True
    request = seen[0]
    assert request.method == "POST"
    assert request.headers["Authorization"] == "Bearer secret-token"
    body = request.read()
    assert CERTIFICATE_FIELD.encode() in body
    assert b"-----BEGIN CERTIFICATE-----" in body


@pytest.mark.asyncio
async def test_explicit_revoked_verdict(pki):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"valid": False, "reasons": ["certificate revoked"]})

    verdict = await _oracle(handler).check_certificate(pki.leaf.pem)

    assert verdict.valid is False
    assert verdict.to_outcome().reasons == ["certificate revoked"]


@pytest.mark.asyncio
async def test_no_authorization_header_without_token(pki):
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"valid": True})

    await _oracle(handler, api_token="").check_certificate(pki.leaf.pem)

    assert "Authorization" not in seen[0].headers


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, json={"valid": True}),
        httpx.Response(403, json={"valid": False}),
        httpx.Response(200, text="<html>oops</html>"),
        httpx.Response(200, json={"reasons": []}),
        httpx.Response(200, json={"valid": "yes"}),
        httpx.Response(200, json=[True]),
        httpx.Response(200, json={"valid": False, "reasons": [1, 2]}),
    ],
)
async def test_non_verdict_responses_are_unavailable_not_revoked(pki, response):
    def handler(request: httpx.Request) -> httpx.Response:
        return response

    with pytest.raises(RevocationUnavailableError):
        await _oracle(handler).check_certificate(pki.leaf.pem)


@pytest.mark.asyncio
async def test_transport_failure_is_unavailable(pki):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(RevocationUnavailableError) as exc:
        await _oracle(handler).check_certificate(pki.leaf.pem)
    assert exc.value.message == "revocation service unreachable"


@pytest.mark.asyncio
async def test_timeout_is_unavailable(pki):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(RevocationUnavailableError) as exc:
        await _oracle(handler).check_certificate(pki.leaf.pem)
    assert exc.value.message == "revocation service timed out"
