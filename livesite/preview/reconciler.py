"""Apply messages from the preview sandbox back onto the project files.

Edits are addressed by ``syncId`` relative to one render. Anything that
makes that addressing unreliable (a newer render, a different active file,
content that changed after the render, an element still being streamed)
rejects the edit instead of guessing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import PurePosixPath
from typing import Any, Callable, Dict, List, Optional, Union

from bs4 import BeautifulSoup

from ..events import (
    ConsoleLogEvent,
    EditAppliedEvent,
    EditRejectedEvent,
    EventEmitter,
    PreviewReadyEvent,
    SandboxErrorEvent,
)
from ..log import log_sandbox_message
from ..project.store import ProjectFileStore
from ..schemas.sandbox import (
    ConsoleLog,
    NavigationRequest,
    SandboxError,
    SyncEdit,
    parse_sandbox_message,
)
from ..stream.demux import normalize_file_name
from .bridge import BRIDGE_MARKER
from .renderer import (
    EDITABLE_ATTR,
    PAGE_TARGET_ATTR,
    REFERENCE_ATTRS,
    SYNC_ID_ATTR,
    PreviewRenderer,
    RenderRecord,
)
from .sanitize import sanitize_soup

logger = logging.getLogger(__name__)

SandboxMessageModel = Union[SyncEdit, NavigationRequest, ConsoleLog, SandboxError]


class EditStatus(str, Enum):
    APPLIED = "applied"
    REJECTED = "rejected"
    NAVIGATED = "navigated"
    FORWARDED = "forwarded"
    IGNORED = "ignored"


@dataclass
class EditOutcome:
    status: EditStatus
    reason: Optional[str] = None
    file_name: Optional[str] = None
    record: Optional[RenderRecord] = None

    @property
    def accepted(self) -> bool:
        return self.status in (EditStatus.APPLIED, EditStatus.NAVIGATED, EditStatus.FORWARDED)

    @classmethod
    def rejected(cls, reason: str, *, file_name: Optional[str] = None) -> "EditOutcome":
        return cls(EditStatus.REJECTED, reason=reason, file_name=file_name)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "reason": self.reason,
            "file_name": self.file_name,
            "render_id": self.record.render_id if self.record is not None else None,
        }


def clean_edit_content(content: str, addresses: Optional[Dict[str, str]] = None) -> str:
    """Turn ``innerHTML`` reported by the bridge back into source HTML."""
    addresses = addresses or {}
    if "<" not in content and not any(address in content for address in addresses):
        return content
    soup = BeautifulSoup(content, "html.parser")
    sanitize_soup(soup)
    for injected in soup.find_all(attrs={BRIDGE_MARKER: True}):
        injected.decompose()
    for tag in soup.find_all(True):
        tag.attrs.pop(EDITABLE_ATTR, None)
        tag.attrs.pop(SYNC_ID_ATTR, None)
        original = tag.attrs.pop(PAGE_TARGET_ATTR, None)
        if original is not None and tag.name == "a":
            tag["href"] = original
        for attr in REFERENCE_ATTRS:
            value = tag.get(attr)
            if isinstance(value, str) and value in addresses:
                tag[attr] = addresses[value]
        style = tag.get("style")
        if isinstance(style, str):
            for address, name in addresses.items():
                style = style.replace(address, name)
            tag["style"] = style
    return str(soup)


class EditReconciler:
    def __init__(
        self,
        store: ProjectFileStore,
        renderer: PreviewRenderer,
        *,
        allow_create_pages: bool = False,
        edit_gate: Optional[Callable[[str], bool]] = None,
        on_render: Optional[Callable[[Optional[RenderRecord]], None]] = None,
        on_console: Optional[Callable[[ConsoleLog], None]] = None,
        on_sandbox_error: Optional[Callable[[SandboxError], None]] = None,
        emitter: Optional[EventEmitter] = None,
    ) -> None:
        self.store = store
        self.renderer = renderer
        self.allow_create_pages = allow_create_pages
        self.edit_gate = edit_gate
        self.on_render = on_render
        self.on_console = on_console
        self.on_sandbox_error = on_sandbox_error
        self.emitter = emitter
        self.console_log: List[ConsoleLog] = []
        self.errors: List[SandboxError] = []

    def handle_message(self, message: Union[Dict[str, Any], SandboxMessageModel]) -> EditOutcome:
        if isinstance(message, (SyncEdit, NavigationRequest, ConsoleLog, SandboxError)):
            parsed = message
        else:
            parsed = parse_sandbox_message(message)
        if parsed is None:
            log_sandbox_message(str(message.get("type") if isinstance(message, dict) else None), False, "malformed")
            return EditOutcome(EditStatus.IGNORED, reason="malformed message")

        if isinstance(parsed, SyncEdit):
            outcome = self.apply_sync_edit(parsed)
        elif isinstance(parsed, NavigationRequest):
            outcome = self.navigate(parsed)
        elif isinstance(parsed, ConsoleLog):
            outcome = self._forward_console(parsed)
        else:
            outcome = self._forward_error(parsed)
        log_sandbox_message(parsed.type, outcome.accepted, outcome.reason)
        return outcome

    def _reject(self, edit: SyncEdit, reason: str, file_name: Optional[str] = None) -> EditOutcome:
        logger.warning("Rejected edit for syncId %s: %s", edit.sync_id, reason)
        if self.emitter is not None:
            self.emitter.emit(EditRejectedEvent(reason=reason, sync_id=edit.sync_id))
        return EditOutcome.rejected(reason, file_name=file_name)

    def apply_sync_edit(self, edit: SyncEdit) -> EditOutcome:
        record = self.renderer.current
        if record is None:
            return self._reject(edit, "no current render")
        name = record.file_name
        if edit.render_id is not None and edit.render_id != record.render_id:
            return self._reject(edit, "stale render", name)
        if name != self.store.active_file:
            return self._reject(edit, "file is no longer active", name)
        if self.store.is_streaming(name) or (self.edit_gate is not None and not self.edit_gate(name)):
            return self._reject(edit, "file is being streamed", name)
        if self.store.revision(name) != record.revision:
            return self._reject(edit, "content changed since render", name)
        if not record.live_edit:
            return self._reject(edit, "live editing is disabled for this render", name)
        if not 0 <= edit.sync_id < len(record.targets):
            return self._reject(edit, "unknown syncId", name)
        target = record.targets[edit.sync_id]
        if not target.patchable:
            return self._reject(edit, "element cannot be patched", name)

        span = target.span
        source = self.store.get(name) or ""
        new_inner = clean_edit_content(edit.new_content, record.addresses)
        old_length = span.inner_end - span.inner_start
        updated = source[: span.inner_start] + new_inner + source[span.inner_end :]
        self.store.set_file_content(name, updated)

        delta = len(new_inner) - old_length
        edited_start, inner_start, inner_end = span.start, span.inner_start, span.inner_end
        for other in record.targets:
            other_span = other.span
            if other is target or other_span is None:
                continue
            if other_span.start >= inner_end:
                other_span.shift(delta)
            elif inner_start <= other_span.start < inner_end:
                # Nested inside the replaced slice; its offsets are gone.
                other.valid = False
            elif other_span.start < edited_start and other_span.inner_end is not None and other_span.inner_end >= inner_end:
                other_span.inner_end += delta
                other_span.end += delta
        span.inner_end += delta
        span.end += delta

        record.source = updated
        record.revision = self.store.revision(name)
        logger.debug("Applied edit to %s syncId %s (%+d chars)", name, edit.sync_id, delta)
        if self.emitter is not None:
            self.emitter.emit(EditAppliedEvent(file_name=name, sync_id=edit.sync_id))
        return EditOutcome(EditStatus.APPLIED, file_name=name, record=record)

    def resolve_page(self, raw_name: str) -> Optional[str]:
        raw = (raw_name or "").strip()
        while raw.startswith("./"):
            raw = raw[2:]
        raw = raw.lstrip("/")
        if not raw:
            return None
        candidates = [raw, raw.lower()]
        path = PurePosixPath(raw)
        if path.suffix.lower() in self.renderer.page_extensions:
            stem = str(path.with_suffix(""))
            candidates.extend([stem, stem.lower()])
        else:
            for ext in self.renderer.page_extensions:
                candidates.extend([raw + ext, raw.lower() + ext])
        for candidate in candidates:
            if candidate in self.store:
                return candidate
        return None

    def navigate(self, request: NavigationRequest) -> EditOutcome:
        name = self.resolve_page(request.page_name)
        if name is None:
            if not self.allow_create_pages:
                logger.warning("Navigation to unknown page %r ignored", request.page_name)
                return EditOutcome(EditStatus.IGNORED, reason="unknown page")
            path = PurePosixPath(normalize_file_name(request.page_name))
            name = str(path.with_suffix("")) if path.suffix in self.renderer.page_extensions else str(path)
            if not name or name == ".":
                return EditOutcome(EditStatus.IGNORED, reason="unknown page")
            self.store.set_file_content(name, "")
            logger.info("Created page %s from navigation", name)

        self.store.switch_active(name)
        record = self.renderer.render_from(self.store)
        if self.on_render is not None:
            self.on_render(record)
        if record is not None and self.emitter is not None:
            self.emitter.emit(
                PreviewReadyEvent(file_name=name, render_id=record.render_id, live_edit=record.live_edit)
            )
        return EditOutcome(EditStatus.NAVIGATED, file_name=name, record=record)

    def _forward_console(self, message: ConsoleLog) -> EditOutcome:
        self.console_log.append(message)
        if self.on_console is not None:
            self.on_console(message)
        if self.emitter is not None:
            self.emitter.emit(ConsoleLogEvent(log_type=message.log_type, message=message.message))
        return EditOutcome(EditStatus.FORWARDED)

    def _forward_error(self, message: SandboxError) -> EditOutcome:
        self.errors.append(message)
        logger.info("Preview runtime error: %s", message.describe())
        if self.on_sandbox_error is not None:
            self.on_sandbox_error(message)
        if self.emitter is not None:
            self.emitter.emit(SandboxErrorEvent(message=message.describe()))
        return EditOutcome(EditStatus.FORWARDED)


__all__ = ["EditStatus", "EditOutcome", "EditReconciler", "clean_edit_content"]
