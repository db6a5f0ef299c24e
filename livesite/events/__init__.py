from .emitter import EventEmitter, EventUnion
from .models import (
    ActionLogEvent,
    BaseEvent,
    ConsoleLogEvent,
    ContentDeltaEvent,
    DeploymentEvent,
    DoneEvent,
    EditAppliedEvent,
    EditRejectedEvent,
    ErrorEvent,
    FileSwitchEvent,
    HealAttemptEvent,
    PreviewReadyEvent,
    SandboxErrorEvent,
    SessionStateEvent,
)
from .types import EventType

__all__ = [
    "EventEmitter",
    "EventUnion",
    "EventType",
    "BaseEvent",
    "ContentDeltaEvent",
    "FileSwitchEvent",
    "ActionLogEvent",
    "SessionStateEvent",
    "PreviewReadyEvent",
    "EditAppliedEvent",
    "EditRejectedEvent",
    "ConsoleLogEvent",
    "SandboxErrorEvent",
    "HealAttemptEvent",
    "DeploymentEvent",
    "ErrorEvent",
    "DoneEvent",
]
