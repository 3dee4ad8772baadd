"""
Integration routes — dashboard data from connected providers, sending
messages, and the Slack ↔ agent chat bridge.

Read paths degrade to empty data per provider (``tolerant_call``) so one
provider being down never blanks the dashboard; write paths propagate
errors.

Route prefix: /api/v1/integrations
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Dict, List, Tuple

import httpx
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_agent_client
from auth.dependencies import db_session, get_current_user_id
from connectors.base import BaseConnector
from connectors.registry import ConnectorRegistry
from connectors.token_manager import get_active_token, get_user_connections
from core.agent_client import AgentClient
from database.channels import list_channels
from utils.errors import AgentServiceError, AgentUnavailableError, ConnectorError
from utils.schemas import AIChatRequest, Platform, SendMessageRequest
from utils.tolerant import tolerant_call

logger = logging.getLogger(__name__)

router = APIRouter(tags=["integrations"])

_USER_MENTION = re.compile(r"<@[A-Z0-9]+>")
_CHANNEL_MENTION = re.compile(r"<#([A-Z0-9]+)\|?([^>]*)>")
_TIMESTAMP_NOISE = re.compile(r"Timestamp:\s*[\d.]+")
_EXTRA_BLANK_LINES = re.compile(r"\n{3,}")

_AGENT_OFFLINE = "⚠️ The AI agent is currently offline. Your message was sent but could not be processed."
_AGENT_SLOW = "⏳ The AI is still processing your request. Check back shortly."
_AGENT_FAILED = "⚠️ AI processing failed. Your message was still sent."


async def _connected(
    session: AsyncSession,
    user_id: int,
    platform: str,
) -> Tuple[BaseConnector, str]:
    connector = ConnectorRegistry().get(platform)
    if connector is None:
        raise ConnectorError(f"Provider '{platform}' not available", status_code=404)
    token = await get_active_token(session, user_id, platform)
    if not token:
        # A failed refresh marks the connection; keep it past the error response.
        await session.commit()
        raise ConnectorError(f"{connector.display_name} not connected", status_code=404)
    return connector, token


def clean_slack_text(message: str) -> str:
    """Drop user mentions and turn channel links into ``#name``."""
    text = _USER_MENTION.sub("", message)
    text = _CHANNEL_MENTION.sub(lambda m: f"#{m.group(2) or m.group(1)}", text)
    return text.strip()


def clean_agent_reply(reply: str) -> str:
    text = _TIMESTAMP_NOISE.sub("", reply)
    text = _CHANNEL_MENTION.sub(lambda m: f"#{m.group(2) or 'channel'}", text)
    return _EXTRA_BLANK_LINES.sub("\n\n", text).strip()


@router.get("/providers")
async def list_providers() -> List[Dict[str, Any]]:
    return ConnectorRegistry().list_providers()


@router.get("/overview")
async def get_overview(
    user_id: int = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    """Channel lists for every provider the user has connected."""
    connections = await get_user_connections(session, user_id)
    providers = sorted({c["provider"] for c in connections if c["status"] == "active"})

    calls = []
    for provider in providers:
        try:
            connector, token = await _connected(session, user_id, provider)
        except ConnectorError as exc:
            logger.info("Overview: skipping %s — %s", provider, exc.detail)
            continue
        calls.append(
            (provider, tolerant_call(connector.list_channels(token), [], label=f"{provider} channels"))
        )

    results = await asyncio.gather(*(call for _, call in calls))
    return {
        "providers": {
            provider: {"channels": channels}
            for (provider, _), channels in zip(calls, results)
        }
    }


@router.get("/{platform}/channels")
async def get_available_channels(
    platform: Platform,
    user_id: int = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
) -> List[Dict[str, Any]]:
    """Every channel the provider exposes, flagged with ``is_monitored``."""
    try:
        connector, token = await _connected(session, user_id, platform.value)
    except ConnectorError as exc:
        logger.info("Available channels for %s: %s", platform.value, exc.detail)
        return []

    channels = await tolerant_call(
        connector.list_channels(token), [], label=f"{platform.value} channels",
    )
    monitored = {c.channel_id for c in await list_channels(session, user_id, platform.value)}
    return [{**ch, "is_monitored": ch["id"] in monitored} for ch in channels]


@router.post("/{platform}/messages")
async def send_message(
    platform: Platform,
    payload: SendMessageRequest,
    user_id: int = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    connector, token = await _connected(session, user_id, platform.value)
    try:
        sent = await connector.send_message(
            token, payload.channel_id, payload.text, thread_id=payload.thread_id,
        )
    except httpx.HTTPError as exc:
        raise ConnectorError(f"{connector.display_name} send failed: {exc}") from exc
    return {"success": True, "message": "Message sent", "data": sent}


async def _ask_agent(agent: AgentClient, user_id: int, message: str) -> str:
    try:
        return clean_agent_reply(await agent.ask(user_id, message))
    except AgentUnavailableError as exc:
        if isinstance(exc.__cause__, httpx.TimeoutException):
            return _AGENT_SLOW
        return _AGENT_OFFLINE
    except AgentServiceError as exc:
        logger.error("Agent relay error: %s", exc)
        return _AGENT_FAILED


@router.post("/slack/ai-chat")
async def slack_ai_chat(
    payload: AIChatRequest,
    user_id: int = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
    agent: AgentClient = Depends(get_agent_client),
) -> Dict[str, Any]:
    """
    Post the user's message to Slack, relay it to the agent, then post the
    agent's answer as a thread reply.
    """
    connector, token = await _connected(session, user_id, Platform.SLACK.value)
    try:
        sent = await connector.send_message(token, payload.channel_id, payload.message)
        reply_text = await _ask_agent(agent, user_id, clean_slack_text(payload.message))
        reply = await connector.send_message(
            token,
            payload.channel_id,
            f"🧠 *AI:*\n{reply_text}",
            thread_id=sent.get("ts"),
        )
    except httpx.HTTPError as exc:
        raise ConnectorError(f"Slack send failed: {exc}") from exc
    return {
        "success": True,
        "data": {"userMessage": sent, "aiResponse": reply_text, "aiMessage": reply},
    }
