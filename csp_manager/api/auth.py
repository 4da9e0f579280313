"""API key authentication for the policy settings endpoints."""

from __future__ import annotations

import hmac

from fastapi import HTTPException, Security
from fastapi.security import APIKeyHeader

from csp_manager.config.loader import get_settings

_api_key_header = APIKeyHeader(name="Authorization", auto_error=False)
_BEARER = "bearer "


async def require_api_key(api_key: str | None = Security(_api_key_header)) -> str:
    """Check the ``Authorization: Bearer <key>`` header against ``CSP_API_KEY``.

    The settings API stays closed (503) until a key is configured.
    """
    expected = get_settings().api_key
    if not expected:
        raise HTTPException(status_code=503, detail="Settings API disabled: no API key configured")
    if not api_key:
        raise HTTPException(status_code=401, detail="Missing Authorization header")

    token = api_key[len(_BEARER):] if api_key.lower().startswith(_BEARER) else api_key
    if not hmac.compare_digest(token.encode(), expected.encode()):
        raise HTTPException(status_code=403, detail="Invalid API key")
    return token
