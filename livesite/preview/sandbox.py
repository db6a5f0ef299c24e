from __future__ import annotations

import base64
import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol
from uuid import uuid4

logger = logging.getLogger(__name__)

MessageCallback = Callable[[Dict[str, Any]], Any]


@dataclass(frozen=True)
class SandboxHandle:
    id: str


class Sandbox(Protocol):
    """Isolated document host for the preview.

    Author content never runs with host privileges; the host and the page
    talk only through ``post_message`` and ``on_message``.
    """

    allows_scripts: bool

    def render(self, document: str) -> SandboxHandle: ...

    def post_message(self, handle: SandboxHandle, message: Dict[str, Any]) -> None: ...

    def on_message(self, handle: SandboxHandle, callback: MessageCallback) -> None: ...

    def address(self, name: str, content: str, media_type: str) -> str: ...


class InMemorySandbox:
    """Sandbox that keeps rendered documents in memory.

    Used by the HTTP layer, where the browser frame is the real sandbox and
    messages arrive over the API, and by tests.
    """

    def __init__(self, *, allows_scripts: bool = True, max_documents: int = 8) -> None:
        self.allows_scripts = allows_scripts
        self._max_documents = max_documents
        self._documents: "OrderedDict[str, str]" = OrderedDict()
        self._listeners: Dict[str, List[MessageCallback]] = {}
        self._outbox: Dict[str, List[Dict[str, Any]]] = {}
        self.current: Optional[SandboxHandle] = None

    def render(self, document: str) -> SandboxHandle:
        handle = SandboxHandle(id=uuid4().hex)
        self._documents[handle.id] = document
        while len(self._documents) > self._max_documents:
            stale, _ = self._documents.popitem(last=False)
            self._listeners.pop(stale, None)
            self._outbox.pop(stale, None)
        self.current = handle
        return handle

    def document(self, handle: Optional[SandboxHandle] = None) -> Optional[str]:
        target = handle or self.current
        if target is None:
            return None
        return self._documents.get(target.id)

    def post_message(self, handle: SandboxHandle, message: Dict[str, Any]) -> None:
        if handle.id not in self._documents:
            logger.debug("Dropping message for discarded sandbox document %s", handle.id)
            return
        self._outbox.setdefault(handle.id, []).append(dict(message))

    def sent_messages(self, handle: SandboxHandle) -> List[Dict[str, Any]]:
        return list(self._outbox.get(handle.id, []))

    def on_message(self, handle: SandboxHandle, callback: MessageCallback) -> None:
        self._listeners.setdefault(handle.id, []).append(callback)

    def deliver(self, handle: SandboxHandle, message: Dict[str, Any]) -> List[Any]:
        """Hand a message from the page to every registered listener."""
        results = []
        for callback in list(self._listeners.get(handle.id, [])):
            try:
                results.append(callback(message))
            except Exception:
                logger.exception("Sandbox message listener failed")
        return results

    def address(self, name: str, content: str, media_type: str) -> str:
        encoded = base64.b64encode((content or "").encode("utf-8")).decode("ascii")
        return f"data:{media_type};charset=utf-8;base64,{encoded}"


__all__ = ["SandboxHandle", "Sandbox", "InMemorySandbox", "MessageCallback"]
