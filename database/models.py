"""
SQLAlchemy ORM models for suggested actions, monitored channels and
provider connections.

Users live in the identity service; ``user_id`` columns hold its numeric
ids and carry no foreign key.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.types import TypeDecorator


class Base(DeclarativeBase):
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JSONText(TypeDecorator):
    """Structured value stored as serialized JSON text, parsed on read."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return json.dumps(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return json.loads(value)


class SuggestedAction(Base):
    __tablename__ = "suggested_actions"
    __table_args__ = (
        Index("ix_suggested_actions_user_status", "user_id", "status"),
        Index("ix_suggested_actions_status_created", "status", "created_at"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False)
    source_platform = Column(String(50), nullable=False)
    source_channel = Column(String(100), nullable=False, default="")
    source_context = Column(Text, nullable=False, default="")
    suggested_tool = Column(String(100), nullable=False)
    suggested_params = Column(JSONText, nullable=False, default=dict)
    description = Column(Text, nullable=False, default="")
    status = Column(String(16), nullable=False, default="pending")
    edited_params = Column(JSONText, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    executed_at = Column(DateTime(timezone=True), nullable=True)
    execution_result = Column(JSONText, nullable=True)

    @property
    def resolved_params(self) -> dict:
        """Edited parameters win over the proposal once they exist."""
        if self.edited_params is not None:
            return self.edited_params
        return self.suggested_params or {}


class MonitoredChannel(Base):
    __tablename__ = "monitored_channels"
    __table_args__ = (
        UniqueConstraint("user_id", "platform", "channel_id", name="uq_monitored_channel"),
        Index("ix_monitored_channels_channel_active", "channel_id", "is_active"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False)
    platform = Column(String(50), nullable=False, default="slack")
    channel_id = Column(String(100), nullable=False)
    channel_name = Column(String(255), nullable=False, default="")
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)


class UserConnection(Base):
    __tablename__ = "user_connections"
    __table_args__ = (
        UniqueConstraint("user_id", "provider", "account_id", name="uq_user_connection"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, index=True)
    provider = Column(String(32), nullable=False)
    account_label = Column(String(128))
    account_id = Column(String(256), nullable=False, default="")
    access_token = Column(Text, nullable=False)
    refresh_token = Column(Text)
    expires_at = Column(DateTime(timezone=True))
    scopes = Column(JSONText, default=list)
    provider_meta = Column(JSONText, default=dict)
    status = Column(String(16), nullable=False, default="active")
    connected_at = Column(DateTime(timezone=True), default=_utcnow)
    last_refreshed = Column(DateTime(timezone=True))
    last_used_at = Column(DateTime(timezone=True))
    error_message = Column(Text)
