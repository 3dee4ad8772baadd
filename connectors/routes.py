"""
Connector API routes — OAuth connect/callback, list connections, disconnect.

Route prefix: /api/v1/connectors
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import time
from base64 import urlsafe_b64decode, urlsafe_b64encode
from typing import Any, Dict, List
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from auth.dependencies import db_session, get_current_user_id
from config.settings import config
from connectors.registry import ConnectorRegistry
from connectors.token_manager import disconnect, get_user_connections, store_connection

logger = logging.getLogger(__name__)

router = APIRouter(tags=["connectors"])

_STATE_TTL = 600  # seconds


def _state_sig(raw: bytes) -> str:
    return hmac.new(config.oauth_state_secret.encode(), raw, hashlib.sha256).hexdigest()[:16]


def create_state(user_id: int) -> str:
    """Opaque state string encoding user_id + expiry (CSRF protection)."""
    raw = json.dumps({"user_id": user_id, "exp": int(time.time()) + _STATE_TTL}).encode()
    return urlsafe_b64encode(raw).decode() + "." + _state_sig(raw)


def verify_state(state: str) -> int:
    """Return the user_id encoded in *state*; 400 on any mismatch."""
    try:
        encoded, sig = state.split(".", 1)
        raw = urlsafe_b64decode(encoded)
        if not hmac.compare_digest(sig, _state_sig(raw)):
            raise ValueError("bad signature")
        payload = json.loads(raw)
        if payload.get("exp", 0) < time.time():
            raise ValueError("state expired")
        return int(payload["user_id"])
    except (ValueError, KeyError, TypeError) as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid or expired OAuth state: {exc}",
        )


def _frontend_redirect(provider: str, success: bool, message: str = "") -> RedirectResponse:
    query = urlencode({"provider": provider, "connected": str(success).lower(), "message": message})
    return RedirectResponse(f"{config.frontend_url}/integrations?{query}", status_code=302)


@router.get("/providers")
async def list_providers() -> List[Dict[str, Any]]:
    """Available providers and whether each one is configured (no auth)."""
    return ConnectorRegistry().list_providers()


@router.get("/connections")
async def list_connections(
    user_id: int = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
) -> List[Dict[str, Any]]:
    return await get_user_connections(session, user_id)


@router.get("/{provider}/auth-url")
async def get_auth_url(
    provider: str,
    user_id: int = Depends(get_current_user_id),
) -> Dict[str, str]:
    connector = ConnectorRegistry().get(provider)
    if connector is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Provider '{provider}' not found or not configured",
        )
    return {"auth_url": connector.get_auth_url(create_state(user_id)), "provider": provider}


@router.get("/{provider}/callback")
async def oauth_callback(
    provider: str,
    code: str = Query(...),
    state: str = Query(...),
    session: AsyncSession = Depends(db_session),
) -> RedirectResponse:
    """Exchange the code, store the connection, send the browser back to the app."""
    user_id = verify_state(state)

    connector = ConnectorRegistry().get(provider)
    if connector is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, f"Provider '{provider}' not available")

    try:
        token_data = await connector.handle_callback(code)
    except Exception as exc:
        logger.error("OAuth callback failed for %s: %s", provider, exc)
        return _frontend_redirect(provider, False, f"Connection failed: {exc}")

    await store_connection(session, user_id, provider, token_data)
    logger.info(
        "OAuth connected: user=%s provider=%s account=%s",
        user_id, provider, token_data.get("account_label"),
    )
    return _frontend_redirect(provider, True, token_data.get("account_label") or "")


@router.delete("/connections/{connection_id}")
async def delete_connection(
    connection_id: int,
    user_id: int = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    if not await disconnect(session, user_id, connection_id):
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Connection not found")
    return {"status": "disconnected", "connection_id": connection_id}
