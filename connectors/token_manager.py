"""
Token manager — get / refresh / store per-user provider tokens.

This is the single interface the integration routes use to obtain an
active token for a given user + provider combination.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from connectors.encryption import decrypt_token, encrypt_token
from connectors.registry import ConnectorRegistry
from database.models import UserConnection

logger = logging.getLogger(__name__)

_REFRESH_MARGIN = timedelta(seconds=120)


def _expiry(expires_in: Optional[int]) -> Optional[datetime]:
    if not expires_in:
        return None
    return datetime.now(timezone.utc) + timedelta(seconds=int(expires_in))


def _is_expiring(expires_at: Optional[datetime]) -> bool:
    if expires_at is None:
        return False
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    return expires_at < datetime.now(timezone.utc) + _REFRESH_MARGIN


async def _active_connection(
    session: AsyncSession,
    user_id: int,
    provider: str,
) -> Optional[UserConnection]:
    result = await session.execute(
        select(UserConnection)
        .where(
            UserConnection.user_id == user_id,
            UserConnection.provider == provider,
            UserConnection.status == "active",
        )
        .order_by(UserConnection.connected_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def get_active_token(
    session: AsyncSession,
    user_id: int,
    provider: str,
) -> Optional[str]:
    """
    Return a usable access token for the user + provider, or None.

    Tokens within two minutes of expiry are refreshed first; a failed
    refresh marks the connection ``error`` and yields None.
    """
    conn = await _active_connection(session, user_id, provider)
    if conn is None:
        return None

    if _is_expiring(conn.expires_at):
        if not conn.refresh_token:
            conn.status = "expired"
            conn.error_message = "Token expired and no refresh token available"
            await session.flush()
            return None

        connector = ConnectorRegistry().get(provider)
        if connector is None:
            logger.error("No connector for provider %s", provider)
            return None
        try:
            refreshed = await connector.refresh_access_token(decrypt_token(conn.refresh_token))
        except Exception as exc:
            conn.status = "error"
            conn.error_message = f"Refresh failed: {exc}"
            await session.flush()
            logger.warning("Token refresh failed for %s/%s: %s", provider, user_id, exc)
            return None

        conn.access_token = encrypt_token(refreshed["access_token"])
        conn.expires_at = _expiry(refreshed.get("expires_in"))
        conn.last_refreshed = datetime.now(timezone.utc)
        # Some providers rotate refresh tokens
        if refreshed.get("refresh_token"):
            conn.refresh_token = encrypt_token(refreshed["refresh_token"])
        conn.error_message = None
        logger.info("Refreshed %s token for user %s", provider, user_id)

    conn.last_used_at = datetime.now(timezone.utc)
    await session.flush()
    return decrypt_token(conn.access_token)


async def store_connection(
    session: AsyncSession,
    user_id: int,
    provider: str,
    token_data: Dict[str, Any],
) -> int:
    """
    Create or update the connection for ``(user, provider, account)``.

    *token_data* is the output of ``connector.handle_callback()``.
    Returns the connection id.
    """
    account_id = token_data.get("account_id") or ""
    result = await session.execute(
        select(UserConnection).where(
            UserConnection.user_id == user_id,
            UserConnection.provider == provider,
            UserConnection.account_id == account_id,
        )
    )
    conn = result.scalar_one_or_none()
    if conn is None:
        conn = UserConnection(user_id=user_id, provider=provider, account_id=account_id)
        session.add(conn)
        logger.info("Created %s connection for user %s", provider, user_id)
    else:
        logger.info("Updated %s connection for user %s", provider, user_id)

    conn.access_token = encrypt_token(token_data["access_token"])
    if token_data.get("refresh_token"):
        conn.refresh_token = encrypt_token(token_data["refresh_token"])
    conn.expires_at = _expiry(token_data.get("expires_in"))
    conn.scopes = token_data.get("scopes", [])
    conn.provider_meta = token_data.get("provider_meta", {})
    conn.account_label = token_data.get("account_label") or conn.account_label
    conn.status = "active"
    conn.error_message = None
    conn.connected_at = datetime.now(timezone.utc)
    await session.flush()
    return conn.id


async def get_user_connections(session: AsyncSession, user_id: int) -> List[Dict[str, Any]]:
    """All connections for a user (no tokens exposed)."""
    result = await session.execute(
        select(UserConnection).where(UserConnection.user_id == user_id)
    )
    return [
        {
            "connection_id": c.id,
            "provider": c.provider,
            "account_label": c.account_label,
            "account_id": c.account_id,
            "status": c.status,
            "scopes": c.scopes or [],
            "connected_at": c.connected_at.isoformat() if c.connected_at else None,
            "last_used_at": c.last_used_at.isoformat() if c.last_used_at else None,
            "error_message": c.error_message,
            "provider_meta": c.provider_meta or {},
        }
        for c in result.scalars().all()
    ]


async def disconnect(session: AsyncSession, user_id: int, connection_id: int) -> bool:
    """
    Revoke (best effort) and delete a connection.
    Returns False if the user has no such connection.
    """
    result = await session.execute(
        select(UserConnection).where(
            UserConnection.id == connection_id,
            UserConnection.user_id == user_id,
        )
    )
    conn = result.scalar_one_or_none()
    if conn is None:
        return False

    connector = ConnectorRegistry().get(conn.provider)
    if connector is not None:
        revoked = await connector.revoke_token(decrypt_token(conn.access_token))
        if not revoked:
            logger.info("Provider %s did not confirm revocation", conn.provider)

    await session.delete(conn)
    await session.flush()
    logger.info("Disconnected %s for user %s", conn.provider, user_id)
    return True
