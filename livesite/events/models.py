from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .types import EventType


class BaseEvent(BaseModel):
    model_config = ConfigDict(extra="allow")
    type: EventType
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    workspace_id: Optional[str] = None
    seq: Optional[int] = None
    event_id: Optional[str] = None

    def to_sse(self) -> str:
        """Convert event to SSE format."""
        data = self.model_dump(mode="json")
        timestamp = self.timestamp
        if isinstance(timestamp, datetime):
            if timestamp.tzinfo is None:
                timestamp = timestamp.replace(tzinfo=timezone.utc)
            data["timestamp"] = (
                timestamp.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
            )
        return f"data: {json.dumps(data, ensure_ascii=False)}\n\n"


class ContentDeltaEvent(BaseEvent):
    """Text appended to ``file_name`` since the previous delta for it.

    Clients rebuild the file as ``content[:offset] + delta``; ``offset`` 0
    starts the file over. ``length`` is the file size after the delta.
    """

    type: EventType = EventType.CONTENT_DELTA
    file_name: str
    delta: str
    offset: int = 0
    length: int = 0


class FileSwitchEvent(BaseEvent):
    type: EventType = EventType.FILE_SWITCH
    file_name: str


class ActionLogEvent(BaseEvent):
    type: EventType = EventType.ACTION_LOG
    message: str


class SessionStateEvent(BaseEvent):
    type: EventType = EventType.SESSION_STATE
    state: str
    message: Optional[str] = None


class PreviewReadyEvent(BaseEvent):
    type: EventType = EventType.PREVIEW_READY
    file_name: str
    render_id: str
    live_edit: bool = True


class EditAppliedEvent(BaseEvent):
    type: EventType = EventType.EDIT_APPLIED
    file_name: str
    sync_id: int


class EditRejectedEvent(BaseEvent):
    type: EventType = EventType.EDIT_REJECTED
    reason: str
    sync_id: Optional[int] = None


class ConsoleLogEvent(BaseEvent):
    type: EventType = EventType.CONSOLE_LOG
    log_type: str = "log"
    message: str = ""


class SandboxErrorEvent(BaseEvent):
    type: EventType = EventType.SANDBOX_ERROR
    message: str


class HealAttemptEvent(BaseEvent):
    type: EventType = EventType.HEAL_ATTEMPT
    attempt: int
    max_attempts: int
    details: Optional[str] = None


class DeploymentEvent(BaseEvent):
    type: EventType = EventType.DEPLOYMENT
    status: str  # started, succeeded, failed
    url: Optional[str] = None
    attempt: int = 0
    message: Optional[str] = None


class ErrorEvent(BaseEvent):
    type: EventType = EventType.ERROR
    message: str
    details: Optional[str] = None
    trace_id: Optional[str] = None


class DoneEvent(BaseEvent):
    type: EventType = EventType.DONE
    summary: Optional[str] = None
    files: List[str] = Field(default_factory=list)
    stats: Dict[str, Any] = Field(default_factory=dict)
