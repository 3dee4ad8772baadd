"""
GoogleConnector — OAuth2 web flow for Google Workspace, with Google Chat
spaces standing in as the provider's "channels".
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import httpx

from config.settings import config
from connectors.base import BaseConnector

logger = logging.getLogger(__name__)

# Google OAuth2 endpoints
_GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
_GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
_GOOGLE_REVOKE_URL = "https://oauth2.googleapis.com/revoke"
_GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"
_CHAT_API = "https://chat.googleapis.com/v1"


class GoogleConnector(BaseConnector):
    """OAuth2 + Google Chat connector."""

    @property
    def provider_name(self) -> str:
        return "google"

    @property
    def display_name(self) -> str:
        return "Google Workspace"

    @property
    def scopes(self) -> List[str]:
        return [
            "https://www.googleapis.com/auth/chat.spaces.readonly",
            "https://www.googleapis.com/auth/chat.messages.create",
            "https://www.googleapis.com/auth/gmail.readonly",
            "https://www.googleapis.com/auth/calendar.readonly",
            "https://www.googleapis.com/auth/userinfo.email",
        ]

    def is_configured(self) -> bool:
        return bool(config.google_client_id and config.google_client_secret)

    def _redirect_uri(self) -> str:
        return f"{config.oauth_redirect_base}/api/v1/connectors/google/callback"

    def get_auth_url(self, state: str) -> str:
        params = {
            "client_id": config.google_client_id,
            "redirect_uri": self._redirect_uri(),
            "response_type": "code",
            "scope": " ".join(self.scopes),
            "access_type": "offline",       # gets refresh_token
            "prompt": "consent",            # force consent to always get refresh_token
            "state": state,
        }
        return f"{_GOOGLE_AUTH_URL}?{urlencode(params)}"

    async def handle_callback(self, code: str) -> Dict[str, Any]:
        async with self._client() as client:
            token_resp = await client.post(
                _GOOGLE_TOKEN_URL,
                data={
                    "code": code,
                    "client_id": config.google_client_id,
                    "client_secret": config.google_client_secret,
                    "redirect_uri": self._redirect_uri(),
                    "grant_type": "authorization_code",
                },
            )
            token_resp.raise_for_status()
            token_data = token_resp.json()

            headers = {"Authorization": f"Bearer {token_data['access_token']}"}
            user_resp = await client.get(_GOOGLE_USERINFO_URL, headers=headers)
            user_resp.raise_for_status()
            user_info = user_resp.json()

        return {
            "access_token": token_data["access_token"],
            "refresh_token": token_data.get("refresh_token"),
            "expires_in": token_data.get("expires_in", 3600),
            "scopes": token_data.get("scope", "").split(),
            "account_id": user_info.get("id", user_info.get("email", "")),
            "account_label": user_info.get("email", ""),
            "provider_meta": {
                "email": user_info.get("email"),
                "name": user_info.get("name"),
            },
        }

    async def refresh_access_token(self, refresh_token: str) -> Dict[str, Any]:
        async with self._client() as client:
            resp = await client.post(
                _GOOGLE_TOKEN_URL,
                data={
                    "client_id": config.google_client_id,
                    "client_secret": config.google_client_secret,
                    "refresh_token": refresh_token,
                    "grant_type": "refresh_token",
                },
            )
            resp.raise_for_status()
            data = resp.json()

        return {
            "access_token": data["access_token"],
            "expires_in": data.get("expires_in", 3600),
            "refresh_token": data.get("refresh_token"),
        }

    async def revoke_token(self, access_token: str) -> bool:
        try:
            async with self._client() as client:
                resp = await client.post(_GOOGLE_REVOKE_URL, params={"token": access_token})
            return resp.status_code == 200
        except httpx.HTTPError as exc:
            logger.warning("Google token revocation failed: %s", exc)
            return False

    async def list_channels(self, token: str) -> List[Dict[str, Any]]:
        async with self._client() as client:
            resp = await client.get(
                f"{_CHAT_API}/spaces",
                headers={"Authorization": f"Bearer {token}"},
                params={"pageSize": 200},
            )
            resp.raise_for_status()
            data = resp.json()
        return [
            {
                "id": s["name"],
                "name": s.get("displayName") or s["name"],
                "is_private": s.get("spaceType") == "DIRECT_MESSAGE",
                "space_type": s.get("spaceType", ""),
            }
            for s in data.get("spaces", [])
        ]

    async def send_message(
        self,
        token: str,
        channel_id: str,
        text: str,
        *,
        thread_id: Optional[str] = None,
        username: Optional[str] = None,
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {"text": text}
        params: Dict[str, str] = {}
        if thread_id:
            body["thread"] = {"name": thread_id}
            params["messageReplyOption"] = "REPLY_MESSAGE_FALLBACK_TO_NEW_THREAD"
        async with self._client() as client:
            resp = await client.post(
                f"{_CHAT_API}/{channel_id}/messages",
                headers={"Authorization": f"Bearer {token}"},
                params=params,
                json=body,
            )
            resp.raise_for_status()
            data = resp.json()
        return {
            "channel": channel_id,
            "id": data.get("name"),
            "thread": (data.get("thread") or {}).get("name"),
        }
