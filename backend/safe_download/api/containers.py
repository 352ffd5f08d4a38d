"""署名コンテナの検証・解析 API。"""

import hashlib
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from ..models.certificate import Certificate
from ..models.container import CONTAINER_SUFFIX, ContainerSummary, ContainerVerifyResponse
from ..models.errors import CertificateError, ContainerFormatError
from ..services.engine import EngineContext
from .dependencies import get_engine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/containers", tags=["containers"])


@router.post("/verify", response_model=ContainerVerifyResponse)
async def verify_container(
    request: Request,
    engine: Annotated[EngineContext, Depends(get_engine)],
    filename: Annotated[str, Query(min_length=1)] = f"upload{CONTAINER_SUFFIX}",
) -> ContainerVerifyResponse:
    """
    リクエストボディのコンテナを検証する。

    ポリシー未取得の場合は PolicyUnavailableError (503) となる。
    """
    body = await request.body()
    verdict = await engine.pipeline.verify(body, filename)
    if not verdict.valid:
        return ContainerVerifyResponse(
            valid=False, reasons=verdict.reasons, failed_step=verdict.failed_step
        )
    payload = verdict.payload or b""
    return ContainerVerifyResponse(
        valid=True,
        clean_filename=verdict.clean_filename,
        payload_size=len(payload),
        payload_sha256=hashlib.sha256(payload).hexdigest(),
    )


@router.post("/inspect", response_model=ContainerSummary)
async def inspect_container(
    request: Request,
    engine: Annotated[EngineContext, Depends(get_engine)],
    filename: Annotated[str, Query(min_length=1)] = f"upload{CONTAINER_SUFFIX}",
) -> ContainerSummary:
    """署名検証は行わず、コンテナの構造と証明書の概要を返す。"""
    body = await request.body()
    try:
        container = engine.pipeline.codec.parse(body, filename)
        certificate = Certificate.from_pem(container.certificate_pem)
    except (ContainerFormatError, CertificateError) as exc:
        logger.info("コンテナを解析できません: %s", exc.message)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error_code": exc.error_code.value, "message": exc.message},
        ) from exc

    return ContainerSummary(
        declared_filename=container.declared_filename,
        certificate_subject=certificate.subject.rfc4514_string(),
        certificate_issuer=certificate.issuer.rfc4514_string(),
        payload_size=len(container.payload),
        payload_sha256=hashlib.sha256(container.payload).hexdigest(),
    )
