"""Trust policy API endpoints."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends

from ..models.trust import PolicyStatus
from ..services.engine import EngineContext
from .dependencies import get_engine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/policy", tags=["policy"])


@router.get("/status", response_model=PolicyStatus)
async def get_policy_status(
    engine: Annotated[EngineContext, Depends(get_engine)],
) -> PolicyStatus:
    """
    Return whether the trust policy has been loaded.

    Returns:
        PolicyStatus with the permitted domains/formats once ready
    """
    return engine.loader.status()
