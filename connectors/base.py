"""
BaseConnector — one interface per workspace provider.

Every provider (Slack, Google, …) subclasses this and implements two
groups of methods: the OAuth2 flow used to obtain per-user tokens, and
the messaging capability the monitoring surface relies on.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx


class BaseConnector(ABC):
    """Abstract base for all provider connectors."""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._transport = transport

    def _client(self, **kwargs: Any) -> httpx.AsyncClient:
        kwargs.setdefault("timeout", httpx.Timeout(15.0))
        return httpx.AsyncClient(transport=self._transport, **kwargs)

    # ── Identity ────────────────────────────────────────────────────────
    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Platform slug: 'slack', 'google', …"""
        ...

    @property
    @abstractmethod
    def display_name(self) -> str:
        ...

    @property
    @abstractmethod
    def scopes(self) -> List[str]:
        ...

    def is_configured(self) -> bool:
        """True if client id/secret are present."""
        return True

    # ── OAuth flow ──────────────────────────────────────────────────────

    @abstractmethod
    def get_auth_url(self, state: str) -> str:
        """
        Build the provider's OAuth2 authorization URL.

        Parameters
        ----------
        state : str
            Opaque signed state (encodes user_id + expiry).
        """
        ...

    @abstractmethod
    async def handle_callback(self, code: str) -> Dict[str, Any]:
        """
        Exchange the authorization code for tokens.

        Returns
        -------
        dict with keys:
            access_token, refresh_token, expires_in, scopes,
            account_id, account_label, provider_meta
        """
        ...

    @abstractmethod
    async def refresh_access_token(self, refresh_token: str) -> Dict[str, Any]:
        """Return ``access_token``, ``expires_in`` and optionally a rotated ``refresh_token``."""
        ...

    async def revoke_token(self, access_token: str) -> bool:
        """Revoke at the provider; ``False`` if unsupported or refused."""
        return False

    # ── Messaging capability ────────────────────────────────────────────

    @abstractmethod
    async def list_channels(self, token: str) -> List[Dict[str, Any]]:
        """
        Channels the token can see, each as a dict with at least
        ``id``, ``name`` and ``is_private``.
        """
        ...

    @abstractmethod
    async def send_message(
        self,
        token: str,
        channel_id: str,
        text: str,
        *,
        thread_id: Optional[str] = None,
        username: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Post *text* and return ``{"channel": ..., "ts"/"id": ...}``."""
        ...
