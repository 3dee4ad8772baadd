"""
Pydantic schemas for the monitoring pipeline and its HTTP surface.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Platform(str, Enum):
    SLACK = "slack"
    GOOGLE = "google"
    ASANA = "asana"
    JIRA = "jira"
    MIRO = "miro"
    ZOHO = "zoho"


class ActionStatus(str, Enum):
    PENDING = "pending"
    REJECTED = "rejected"
    EXECUTED = "executed"
    EXPIRED = "expired"


# ═══════════════════════════════════════════════════════════════════════════════
# Suggested actions
# ═══════════════════════════════════════════════════════════════════════════════


class ActionDraft(BaseModel):
    """Everything needed to insert one proposal (status is always pending)."""

    user_id: int
    source_platform: str
    source_channel: str = ""
    source_context: str = ""
    suggested_tool: str
    suggested_params: Dict[str, Any] = Field(default_factory=dict)
    description: str = ""


class SuggestedActionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    source_platform: str
    source_channel: str
    source_context: str
    suggested_tool: str
    suggested_params: Dict[str, Any] = Field(default_factory=dict)
    description: str
    status: ActionStatus
    edited_params: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None
    executed_at: Optional[datetime] = None
    execution_result: Optional[Any] = None


class UpdateActionRequest(BaseModel):
    params: Dict[str, Any]


class Suggestion(BaseModel):
    """One entry of the reasoning service's ``suggestions`` array."""

    model_config = ConfigDict(extra="allow")

    tool: Optional[str] = None
    params: Optional[Dict[str, Any]] = None
    parameters: Optional[Dict[str, Any]] = None
    description: Optional[str] = None

    def resolved_params(self) -> Dict[str, Any]:
        if self.params is not None:
            return self.params
        if self.parameters is not None:
            return self.parameters
        return {}


class InternalAnalyzeRequest(BaseModel):
    """Body of ``POST /internal/analyze`` (camelCase, as relays send it)."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: Optional[int] = Field(None, alias="userId")
    platform: Optional[str] = None
    channel_id: Optional[str] = Field(None, alias="channelId")
    context: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


# ═══════════════════════════════════════════════════════════════════════════════
# Monitored channels
# ═══════════════════════════════════════════════════════════════════════════════


class ChannelSpec(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    channel_id: str = Field(..., alias="channelId", min_length=1)
    channel_name: str = Field("", alias="channelName")
    platform: Optional[str] = None


class MonitoredChannelOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    platform: str
    channel_id: str
    channel_name: str
    is_active: bool
    created_at: Optional[datetime] = None


# ═══════════════════════════════════════════════════════════════════════════════
# Integrations
# ═══════════════════════════════════════════════════════════════════════════════


class SendMessageRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    channel_id: str = Field(..., alias="channelId")
    text: str = Field(..., min_length=1)
    thread_id: Optional[str] = Field(None, alias="threadTs")


class AIChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    channel_id: str = Field(..., alias="channelId")
    message: str = Field(..., min_length=1)
    channel_name: Optional[str] = Field(None, alias="channelName")
