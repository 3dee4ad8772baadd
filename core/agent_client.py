"""
HTTP client for the external reasoning service.

Three contracts:
  • ``POST /analyze-context``  → ``{"suggestions": [...]}``
  • ``POST /execute-action``   → opaque result, stored verbatim
  • ``POST /ask-agent``        → ``{"message": "..."}`` (conversational relay)

Transport failures are translated into ``AgentUnavailableError`` (refused,
unreachable, timed out) or ``AgentServiceError`` (error status, bad JSON),
so callers pick their own recovery policy.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from utils.errors import AgentServiceError, AgentUnavailableError

logger = logging.getLogger(__name__)


def _error_detail(resp: httpx.Response) -> Any:
    """Prefer the service's structured ``detail`` field over the raw body."""
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:500] or f"HTTP {resp.status_code}"
    if isinstance(body, dict) and body.get("detail"):
        return body["detail"]
    return body or f"HTTP {resp.status_code}"


class AgentClient:
    """Thin async wrapper; a fresh ``httpx.AsyncClient`` per call."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        relay_timeout: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.relay_timeout = relay_timeout
        self._transport = transport

    async def _post(self, path: str, payload: Dict[str, Any], timeout: float) -> Any:
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(timeout),
                transport=self._transport,
            ) as client:
                resp = await client.post(url, json=payload)
        except (httpx.ConnectError, httpx.TimeoutException) as exc:
            raise AgentUnavailableError(
                f"Reasoning service unreachable at {url}: {exc!r}"
            ) from exc
        except httpx.HTTPError as exc:
            raise AgentServiceError(f"Request to {url} failed: {exc}") from exc

        if resp.is_error:
            raise AgentServiceError(_error_detail(resp), status_code=resp.status_code)
        try:
            return resp.json()
        except ValueError as exc:
            raise AgentServiceError(
                f"Reasoning service returned non-JSON from {path}",
                status_code=resp.status_code,
            ) from exc

    async def analyze_context(
        self,
        user_id: int,
        platform: str,
        channel_id: str,
        context: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        """Return the raw ``suggestions`` list (possibly empty)."""
        data = await self._post(
            "/analyze-context",
            {
                "user_id": user_id,
                "platform": platform,
                "channel_id": channel_id,
                "context": context,
                "metadata": metadata or {},
            },
            self.timeout,
        )
        suggestions = data.get("suggestions") if isinstance(data, dict) else None
        if suggestions is None:
            logger.debug("analyze-context returned no suggestions: %s", data)
            return []
        if not isinstance(suggestions, list):
            raise AgentServiceError("'suggestions' is not a list")
        return suggestions

    async def execute_action(
        self,
        user_id: int,
        tool: str,
        parameters: Dict[str, Any],
    ) -> Any:
        return await self._post(
            "/execute-action",
            {"user_id": user_id, "tool": tool, "parameters": parameters},
            self.timeout,
        )

    async def ask(self, user_id: int, message: str) -> str:
        data = await self._post(
            "/ask-agent",
            {"user_id": user_id, "message": message},
            self.relay_timeout,
        )
        if isinstance(data, dict) and data.get("message"):
            return str(data["message"])
        return "I processed your request."
