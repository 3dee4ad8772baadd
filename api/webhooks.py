"""
Webhook receivers for external platforms (no auth — providers call these).

Route prefix: /api/v1/monitoring/webhooks
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Header, Request, Response, status

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhooks"])


@router.post("/asana")
async def asana_webhook(
    request: Request,
    x_hook_secret: Optional[str] = Header(None, alias="X-Hook-Secret"),
) -> Response:
    """
    Asana opens a subscription with a handshake that must echo
    ``X-Hook-Secret``; later deliveries carry ``{"events": [...]}``.
    """
    if x_hook_secret:
        logger.info("[Asana Webhook] Handshake received")
        return Response(status_code=status.HTTP_200_OK, headers={"X-Hook-Secret": x_hook_secret})

    try:
        body = await request.json()
    except ValueError:
        body = {}
    events = body.get("events", []) if isinstance(body, dict) else []
    for event in events:
        if not isinstance(event, dict):
            continue
        logger.info(
            "[Asana Webhook] %s %s",
            event.get("action"),
            (event.get("resource") or {}).get("resource_type"),
        )
    return Response(status_code=status.HTTP_200_OK)


@router.post("/google")
async def google_webhook(
    x_goog_resource_state: Optional[str] = Header(None, alias="X-Goog-Resource-State"),
    x_goog_channel_id: Optional[str] = Header(None, alias="X-Goog-Channel-ID"),
) -> Response:
    """Google push notifications only carry headers; acknowledge them."""
    logger.info("[Google Webhook] state=%s channel=%s", x_goog_resource_state, x_goog_channel_id)
    return Response(status_code=status.HTTP_200_OK)
