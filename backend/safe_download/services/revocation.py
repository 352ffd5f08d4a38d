"""失効確認サービス (外部の信頼機関) のクライアント。"""

import logging
from typing import Callable, Optional

import httpx
from pydantic import ValidationError

from ..config import settings
from ..models.errors import RevocationUnavailableError
from ..models.verification import RevocationVerdict

logger = logging.getLogger(__name__)

CERTIFICATE_FIELD = "fileToUploadX509"


class RevocationOracle:
    """
    証明書の発行・失効状態を外部サービスに問い合わせる。

    通信失敗や 2xx 以外の応答を「失効」とはみなさず、
    RevocationUnavailableError として呼び出し側に判断を委ねる。
    """

    def __init__(
        self,
        *,
        url: Optional[str] = None,
        api_token: Optional[str] = None,
        request_timeout_seconds: Optional[float] = None,
        http_client_factory: Optional[Callable[[], httpx.AsyncClient]] = None,
    ) -> None:
        self._url = url or settings.revocation_url
        self._api_token = settings.revocation_api_token if api_token is None else api_token
        self._timeout = request_timeout_seconds or settings.revocation_request_timeout_seconds
        self._http_client_factory = http_client_factory or self._default_http_client_factory

    def _default_http_client_factory(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout)

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._api_token:
            headers["Authorization"] = f"Bearer {self._api_token}"
        return headers

    async def check_certificate(self, certificate_pem: str) -> RevocationVerdict:
        """
        証明書の状態を問い合わせる。

        Raises:
            RevocationUnavailableError: 明示的な判定を得られなかった場合
        """
        files = {
            CERTIFICATE_FIELD: ("cert.pem", certificate_pem.encode("ascii"), "text/plain"),
        }
        try:
            async with self._http_client_factory() as client:
                response = await client.post(self._url, files=files, headers=self._headers())
        except httpx.TimeoutException as exc:
            logger.warning("失効確認がタイムアウトしました: %s", exc)
            raise RevocationUnavailableError("revocation service timed out") from exc
        except httpx.HTTPError as exc:
            logger.warning("失効確認サービスに接続できません: %s", exc)
            raise RevocationUnavailableError("revocation service unreachable") from exc

        if not response.is_success:
            logger.warning("失効確認サービスがエラーを返しました: status=%s", response.status_code)
            raise RevocationUnavailableError(
                f"revocation service returned status {response.status_code}"
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise RevocationUnavailableError("revocation service returned non-JSON body") from exc
        if not isinstance(data, dict) or not isinstance(data.get("valid"), bool):
            raise RevocationUnavailableError("revocation service returned no explicit verdict")

        try:
            verdict = RevocationVerdict.model_validate(
                {"valid": data["valid"], "reasons": data.get("reasons") or []}
            )
        except ValidationError as exc:
            raise RevocationUnavailableError("revocation service returned malformed reasons") from exc

        logger.info("失効確認の結果: valid=%s reasons=%s", verdict.valid, verdict.reasons)
        return verdict
