"""Shared-secret API key check for the analysis routes."""

import logging
import secrets
from typing import Optional

from fastapi import Depends, HTTPException, Request

from app.config import Settings

logger = logging.getLogger(__name__)


def get_settings_from_app(request: Request) -> Settings:
    return request.app.state.settings


def extract_api_key(request: Request) -> Optional[str]:
    """Key from 'Authorization: Bearer <key>', else from 'x-api-key'."""
    auth_header = request.headers.get("authorization", "")
    if auth_header.startswith("Bearer "):
        key = auth_header[7:].strip()
        if key:
            return key
    return request.headers.get("x-api-key") or None


async def require_api_key(request: Request, settings: Settings = Depends(get_settings_from_app)) -> None:
    provided = extract_api_key(request)
    client = request.client.host if request.client else "unknown"

    if not provided:
        logger.warning(f"Authentication failed: no API key ({request.method} {request.url.path} from {client})")
        raise HTTPException(
            status_code=401,
            detail={
                "error": "Authentication required",
                "message": "Please provide API key in Authorization header (Bearer token) or x-api-key header",
            },
        )

    if not settings.api_key or not secrets.compare_digest(provided.encode(), settings.api_key.encode()):
        logger.warning(
            f"Authentication failed: invalid API key {provided[:8]}... "
            f"({request.method} {request.url.path} from {client})"
        )
        raise HTTPException(
            status_code=401,
            detail={
                "error": "Invalid API key",
                "message": "The provided API key is not valid",
            },
        )
