from datetime import datetime
from fastapi import Depends, Request
from typing import Callable
import httpx

from ..core.auth import require_api_key
from ..services.exports import utc_now
from ..services.upstream import AppTweakClient


def get_http_client(request: Request) -> httpx.AsyncClient:
    """Shared httpx client created in the app lifespan"""
    return request.app.state.http_client


def get_upstream_client(
    api_key: str = Depends(require_api_key),
    http: httpx.AsyncClient = Depends(get_http_client),
) -> AppTweakClient:
    return AppTweakClient(api_key=api_key, http=http)


def get_clock() -> Callable[[], datetime]:
    return utc_now
