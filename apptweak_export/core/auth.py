from fastapi import Depends
from fastapi.security import APIKeyHeader
from typing import Optional

from .config import settings
from .errors import AuthError

api_key_header = APIKeyHeader(
    name=settings.API_KEY_HEADER,
    auto_error=False,
    description="AppTweak API key, forwarded to the upstream API",
)


async def require_api_key(
    api_key: Optional[str] = Depends(api_key_header),
) -> str:
    """Require the AppTweak API key header - raises 401 if missing"""
    if not api_key:
        raise AuthError("API key is required")
    return api_key
