"""Notification events delivered to the UI collaborator.

The transport and the client never reach into their observers; they only
publish these immutable events through registered callbacks.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ConnectionStatus(StrEnum):
    LISTENING = "listening"
    LISTEN_FAILED = "listen_failed"
    STOPPED = "stopped"
    RECEIVING = "receiving"
    RECEIVED = "received"
    REQUEST_RECEIVED = "request_received"
    BAD_HEADER = "bad_header"
    RECEIVE_FAILED = "receive_failed"
    SENDING = "sending"
    SENT = "sent"
    SEND_FAILED = "send_failed"


class SyncAction(StrEnum):
    REQUESTED = "requested"
    SENT = "sent"


class StatusEvent(BaseModel):
    """Connection status changed."""

    model_config = ConfigDict(frozen=True)

    status: ConnectionStatus
    detail: str = ""
    observed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class ConfigReceivedEvent(BaseModel):
    """A complete configuration payload arrived from the peer."""

    model_config = ConfigDict(frozen=True)

    payload: str
    peer: str = ""
    observed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("observed_at")
    @classmethod
    def _ensure_tz_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value


class ConfigRequestEvent(BaseModel):
    """The peer sent a zero-length frame asking for our configuration."""

    model_config = ConfigDict(frozen=True)

    peer: str = ""
    observed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class StoreStats(BaseModel):
    """Summary counters for display next to the editor."""

    model_config = ConfigDict(frozen=True)

    section_count: int = 0
    key_count: int = 0
    last_received_at: datetime | None = None
