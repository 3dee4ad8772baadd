"""
SlackConnector — OAuth v2 install flow plus the Web API calls used by the
monitoring surface (channel listing, posting messages).

Slack answers HTTP 200 with ``{"ok": false, "error": ...}`` on failure,
so every call goes through ``_check``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import httpx

from config.settings import config
from connectors.base import BaseConnector
from utils.errors import ConnectorError

logger = logging.getLogger(__name__)

_SLACK_AUTH_URL = "https://slack.com/oauth/v2/authorize"
_SLACK_API = "https://slack.com/api"


def _check(resp: httpx.Response, method: str) -> Dict[str, Any]:
    resp.raise_for_status()
    data = resp.json()
    if not data.get("ok"):
        logger.error("Slack %s failed: %s", method, data.get("error"))
        raise ConnectorError(f"Slack {method} failed: {data.get('error', 'unknown_error')}")
    return data


class SlackConnector(BaseConnector):
    """OAuth2 + messaging connector for Slack."""

    @property
    def provider_name(self) -> str:
        return "slack"

    @property
    def display_name(self) -> str:
        return "Slack"

    @property
    def scopes(self) -> List[str]:
        return [
            "channels:read", "groups:read", "channels:history", "groups:history",
            "channels:join", "chat:write", "chat:write.customize",
            "im:read", "im:history", "mpim:read", "mpim:history",
            "reactions:read", "reactions:write", "users:read", "users.profile:read",
        ]

    def is_configured(self) -> bool:
        return bool(config.slack_client_id and config.slack_client_secret)

    def _redirect_uri(self) -> str:
        return f"{config.oauth_redirect_base}/api/v1/connectors/slack/callback"

    def get_auth_url(self, state: str) -> str:
        params = {
            "client_id": config.slack_client_id,
            "scope": ",".join(self.scopes),
            "user_scope": "openid,email,profile",
            "redirect_uri": self._redirect_uri(),
            "state": state,
        }
        return f"{_SLACK_AUTH_URL}?{urlencode(params)}"

    async def handle_callback(self, code: str) -> Dict[str, Any]:
        async with self._client() as client:
            resp = await client.post(
                f"{_SLACK_API}/oauth.v2.access",
                data={
                    "client_id": config.slack_client_id,
                    "client_secret": config.slack_client_secret,
                    "code": code,
                    "redirect_uri": self._redirect_uri(),
                },
            )
        data = _check(resp, "oauth.v2.access")
        team = data.get("team") or {}
        return {
            "access_token": data["access_token"],
            "refresh_token": data.get("refresh_token"),
            # Non-rotating Slack tokens carry no expiry.
            "expires_in": data.get("expires_in"),
            "scopes": (data.get("scope") or "").split(","),
            "account_id": team.get("id", ""),
            "account_label": team.get("name", ""),
            "provider_meta": {
                "team_id": team.get("id"),
                "team_name": team.get("name"),
                "bot_user_id": data.get("bot_user_id"),
                "authed_user_id": (data.get("authed_user") or {}).get("id"),
            },
        }

    async def refresh_access_token(self, refresh_token: str) -> Dict[str, Any]:
        async with self._client() as client:
            resp = await client.post(
                f"{_SLACK_API}/oauth.v2.access",
                data={
                    "client_id": config.slack_client_id,
                    "client_secret": config.slack_client_secret,
                    "grant_type": "refresh_token",
                    "refresh_token": refresh_token,
                },
            )
        data = _check(resp, "oauth.v2.access")
        return {
            "access_token": data["access_token"],
            "expires_in": data.get("expires_in", 43200),
            "refresh_token": data.get("refresh_token"),
        }

    async def revoke_token(self, access_token: str) -> bool:
        try:
            async with self._client() as client:
                resp = await client.post(
                    f"{_SLACK_API}/auth.revoke",
                    headers={"Authorization": f"Bearer {access_token}"},
                )
            return bool(resp.json().get("revoked"))
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Slack token revocation failed: %s", exc)
            return False

    async def list_channels(self, token: str) -> List[Dict[str, Any]]:
        async with self._client() as client:
            resp = await client.get(
                f"{_SLACK_API}/conversations.list",
                headers={"Authorization": f"Bearer {token}"},
                params={
                    "limit": 200,
                    "types": "public_channel,private_channel",
                    "exclude_archived": "true",
                },
            )
        data = _check(resp, "conversations.list")
        return [
            {
                "id": c["id"],
                "name": c.get("name", ""),
                "topic": (c.get("topic") or {}).get("value", ""),
                "is_private": bool(c.get("is_private")),
                "is_member": bool(c.get("is_member")),
                "num_members": c.get("num_members", 0),
            }
            for c in data.get("channels", [])
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
        payload: Dict[str, Any] = {"channel": channel_id, "text": text}
        if thread_id:
            payload["thread_ts"] = thread_id
        if username:
            payload["username"] = username
        async with self._client() as client:
            resp = await client.post(
                f"{_SLACK_API}/chat.postMessage",
                headers={"Authorization": f"Bearer {token}"},
                json=payload,
            )
        data = _check(resp, "chat.postMessage")
        return {"channel": data.get("channel", channel_id), "ts": data.get("ts")}
