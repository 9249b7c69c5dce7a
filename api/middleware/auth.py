"""
Authentication Middleware for the Alba API.

API key authentication via the X-API-Key header. Organization membership
checks are done by the calling application.
"""

import logging
from typing import Optional

from fastapi import HTTPException, Security
from fastapi.security import APIKeyHeader

from config.settings import get_settings

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-API-Key"

api_key_header = APIKeyHeader(name=API_KEY_HEADER, auto_error=False)


def get_api_key() -> str:
    """Get the configured API key."""
    return get_settings().api_key or ""


async def api_key_auth(header_key: Optional[str] = Security(api_key_header)) -> str:
    """Validate the API key header."""
    expected_key = get_api_key()

    # Skip auth if no key configured (development mode)
    if not expected_key:
        return ""

    if not header_key:
        raise HTTPException(
            status_code=401,
            detail="API key required",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    if header_key != expected_key:
        logger.warning("Invalid API key attempt")
        raise HTTPException(status_code=403, detail="Invalid API key")

    return header_key
