"""
Monitoring API routes — suggested actions, monitored channels and the
internal endpoints called by the agent relay.

Route prefix: /api/v1/monitoring
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_monitoring_service
from auth.dependencies import db_session, get_current_user_id
from core.monitoring import MonitoringService
from utils.schemas import (
    ActionStatus,
    ChannelSpec,
    InternalAnalyzeRequest,
    MonitoredChannelOut,
    SuggestedActionOut,
    UpdateActionRequest,
)
from utils.tolerant import tolerant_call

logger = logging.getLogger(__name__)

router = APIRouter(tags=["monitoring"])


# ── Suggested actions ───────────────────────────────────────────────────


@router.get("/actions", response_model=List[SuggestedActionOut])
async def get_actions(
    status_filter: Optional[ActionStatus] = Query(None, alias="status"),
    limit: Optional[int] = Query(None, ge=1, le=500),
    user_id: int = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
    service: MonitoringService = Depends(get_monitoring_service),
) -> List[SuggestedActionOut]:
    rows = await service.list_actions(
        session, user_id, status_filter.value if status_filter else None, limit,
    )
    return [SuggestedActionOut.model_validate(r) for r in rows]


@router.get("/actions/count")
async def get_action_count(
    user_id: int = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
    service: MonitoringService = Depends(get_monitoring_service),
) -> Dict[str, int]:
    """Pending count for the notification badge."""
    return {"count": await service.pending_count(session, user_id)}


@router.get("/actions/{action_id}", response_model=SuggestedActionOut)
async def get_action(
    action_id: int,
    user_id: int = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
    service: MonitoringService = Depends(get_monitoring_service),
) -> SuggestedActionOut:
    return SuggestedActionOut.model_validate(
        await service.get_action(session, user_id, action_id)
    )


@router.put("/actions/{action_id}")
async def update_action(
    action_id: int,
    payload: UpdateActionRequest,
    user_id: int = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
    service: MonitoringService = Depends(get_monitoring_service),
) -> Dict[str, Any]:
    action = await service.edit_action(session, user_id, action_id, payload.params)
    return {
        "success": True,
        "message": "Action parameters updated",
        "data": SuggestedActionOut.model_validate(action).model_dump(mode="json"),
    }


@router.post("/actions/{action_id}/execute")
async def execute_action(
    action_id: int,
    user_id: int = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
    service: MonitoringService = Depends(get_monitoring_service),
) -> Dict[str, Any]:
    logger.info("[Monitor] Execute action: id=%s user=%s", action_id, user_id)
    return await service.execute_action(session, user_id, action_id)


@router.post("/actions/{action_id}/reject")
async def reject_action(
    action_id: int,
    user_id: int = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
    service: MonitoringService = Depends(get_monitoring_service),
) -> Dict[str, Any]:
    await service.reject_action(session, user_id, action_id)
    return {"success": True, "message": "Action dismissed"}


# ── Monitored channels ──────────────────────────────────────────────────


@router.get("/channels", response_model=List[MonitoredChannelOut])
async def get_channels(
    platform: Optional[str] = Query(None),
    user_id: int = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
    service: MonitoringService = Depends(get_monitoring_service),
) -> List[MonitoredChannelOut]:
    rows = await service.list_channels(session, user_id, platform)
    return [MonitoredChannelOut.model_validate(r) for r in rows]


@router.post("/channels")
async def set_channels(
    payload: Dict[str, Any] = Body(...),
    user_id: int = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
    service: MonitoringService = Depends(get_monitoring_service),
) -> Dict[str, Any]:
    """
    Replace the monitored set for one platform.

    Body: ``{"platform": "slack", "channels": [{"channelId", "channelName"}]}``
    """
    platform = payload.get("platform")
    raw_channels = payload.get("channels")
    if not platform or not isinstance(raw_channels, list):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="platform and channels[] are required",
        )
    try:
        channels = [ChannelSpec.model_validate(c) for c in raw_channels]
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid channel entry: {exc.errors()[0]['msg']}",
        )

    rows = await service.set_channels(session, user_id, platform, channels)
    return {
        "success": True,
        "data": [MonitoredChannelOut.model_validate(r).model_dump(mode="json") for r in rows],
        "message": f"Monitoring {len(rows)} {platform} channels",
    }


@router.delete("/channels/{row_id}")
async def remove_channel(
    row_id: int,
    user_id: int = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
    service: MonitoringService = Depends(get_monitoring_service),
) -> Dict[str, Any]:
    if not await service.remove_channel(session, user_id, row_id):
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Monitored channel not found")
    return {"success": True, "message": "Channel removed from monitoring"}


# ── Internal (agent relay, no auth) ─────────────────────────────────────


@router.get("/channels/check/{channel_id}")
async def check_channel(
    channel_id: str,
    session: AsyncSession = Depends(db_session),
    service: MonitoringService = Depends(get_monitoring_service),
) -> Dict[str, Any]:
    """Which users monitor this external channel."""
    user_ids = await tolerant_call(
        service.users_for_channel(session, channel_id),
        None,
        label=f"channel check {channel_id}",
    )
    if user_ids is None:
        return {"success": False, "user_ids": []}
    return {"success": True, "user_ids": user_ids}


@router.post("/internal/analyze")
async def internal_analyze(
    payload: InternalAnalyzeRequest,
    session: AsyncSession = Depends(db_session),
    service: MonitoringService = Depends(get_monitoring_service),
) -> Dict[str, Any]:
    """Analyze relayed context for one user and store the suggestions."""
    if payload.user_id is None or not payload.context:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="userId and context required",
        )
    actions = await service.process_event(
        session,
        payload.user_id,
        payload.platform or "slack",
        payload.channel_id or "",
        payload.context,
        payload.metadata or {},
    )
    return {"success": True, "count": len(actions)}
