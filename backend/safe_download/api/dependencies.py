"""API 共通の依存関係。"""

from fastapi import Request

from ..services.engine import EngineContext


def get_engine(request: Request) -> EngineContext:
    """lifespan で生成したエンジンコンテキストを返す。"""
    return request.app.state.engine
