from __future__ import annotations

import logging
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

logger = logging.getLogger(__name__)


class _SandboxMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class SyncEdit(_SandboxMessage):
    type: Literal["SYNC_TEXT"] = "SYNC_TEXT"
    sync_id: int = Field(alias="syncId")
    new_content: str = Field(alias="newContent")
    render_id: Optional[str] = Field(default=None, alias="renderId")


class NavigationRequest(_SandboxMessage):
    type: Literal["SWITCH_PAGE_INTERNAL"] = "SWITCH_PAGE_INTERNAL"
    page_name: str = Field(alias="pageName")


class ConsoleLog(_SandboxMessage):
    type: Literal["CONSOLE_LOG"] = "CONSOLE_LOG"
    log_type: str = Field(default="log", alias="logType")
    message: str = ""


class SandboxError(_SandboxMessage):
    type: Literal["IFRAME_ERROR"] = "IFRAME_ERROR"
    error: Any = None

    def describe(self) -> str:
        if isinstance(self.error, dict):
            message = self.error.get("msg") or self.error.get("message") or "Unknown runtime error"
            line = self.error.get("line")
            return f"{message} (line {line})" if line else str(message)
        if self.error:
            return str(self.error)
        return "Unknown runtime error"


SandboxMessage = Annotated[
    Union[SyncEdit, NavigationRequest, ConsoleLog, SandboxError],
    Field(discriminator="type"),
]

_adapter: TypeAdapter = TypeAdapter(SandboxMessage)


def parse_sandbox_message(raw: Any) -> Optional[Union[SyncEdit, NavigationRequest, ConsoleLog, SandboxError]]:
    """Validate a raw message from the sandbox; ``None`` when malformed."""
    if not isinstance(raw, dict):
        logger.debug("Ignoring non-object sandbox message: %r", raw)
        return None
    try:
        return _adapter.validate_python(raw)
    except ValidationError as exc:
        logger.debug("Ignoring malformed sandbox message %s: %s", raw.get("type"), exc.errors())
        return None


__all__ = [
    "SyncEdit",
    "NavigationRequest",
    "ConsoleLog",
    "SandboxError",
    "SandboxMessage",
    "parse_sandbox_message",
]
