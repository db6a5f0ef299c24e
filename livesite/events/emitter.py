from __future__ import annotations

import logging
import uuid
from typing import List, Union

from .models import (
    ActionLogEvent,
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

logger = logging.getLogger(__name__)

EventUnion = Union[
    ContentDeltaEvent,
    FileSwitchEvent,
    ActionLogEvent,
    SessionStateEvent,
    PreviewReadyEvent,
    EditAppliedEvent,
    EditRejectedEvent,
    ConsoleLogEvent,
    SandboxErrorEvent,
    HealAttemptEvent,
    DeploymentEvent,
    ErrorEvent,
    DoneEvent,
]


class EventEmitter:
    def __init__(
        self,
        *,
        workspace_id: str | None = None,
        max_events: int | None = 2000,
    ) -> None:
        self._events: List[EventUnion] = []
        self._offset = 0
        self._seq = 0
        self.workspace_id = workspace_id
        self._max_events = max_events

    def emit(self, event: EventUnion) -> None:
        """Emit an event."""
        if getattr(event, "workspace_id", None) is None and self.workspace_id:
            event.workspace_id = self.workspace_id
        if getattr(event, "event_id", None) is None:
            event.event_id = uuid.uuid4().hex
        self._seq += 1
        event.seq = self._seq
        self._events.append(event)
        if self._max_events is not None and len(self._events) > self._max_events:
            overflow = len(self._events) - self._max_events
            del self._events[:overflow]
            self._offset += overflow
        logger.debug("Event emitted: %s", getattr(event.type, "value", event.type))

    def get_events(self) -> List[EventUnion]:
        """Get all emitted events."""
        return list(self._events)

    @property
    def cursor(self) -> int:
        return self._offset + len(self._events)

    def events_since(self, index: int) -> tuple[List[EventUnion], int]:
        """Return events since the given index and the new index."""
        if index < 0:
            index = 0
        if index < self._offset:
            index = self._offset
        relative = index - self._offset
        if relative >= len(self._events):
            return [], self._offset + len(self._events)
        return self._events[relative:], self._offset + len(self._events)
