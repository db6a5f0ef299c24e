from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Dict, List, Optional
from uuid import uuid4

from ..config import Settings, get_settings
from ..events import EventEmitter
from ..preview.reconciler import EditOutcome, EditReconciler, EditStatus
from ..preview.renderer import PreviewRenderer, RenderRecord
from ..preview.sandbox import InMemorySandbox
from ..project.store import ProjectFileStore, ProjectState
from ..session.controller import GenerationSessionController, SessionOutcome
from ..stream.transport import GenerationTransport, HttpGenerationTransport
from .export import ExportResult, build_archive
from .persistence import AsyncProjectStore, ProjectPersistence

logger = logging.getLogger(__name__)


class Workspace:
    """Everything one open project needs: files, preview, edits, generation."""

    def __init__(
        self,
        *,
        transport: GenerationTransport,
        persistence: ProjectPersistence,
        settings: Optional[Settings] = None,
        state: Optional[ProjectState] = None,
        sandbox: Optional[InMemorySandbox] = None,
        workspace_id: Optional[str] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self.id = workspace_id or uuid4().hex
        entry = self._settings.default_entry_file
        if state is not None:
            self.store = ProjectFileStore.from_state(state, default_entry_file=entry)
        else:
            self.store = ProjectFileStore(default_entry_file=entry)
        self.emitter = EventEmitter(workspace_id=self.id)
        self.sandbox = sandbox or InMemorySandbox()
        self.renderer = PreviewRenderer(self.sandbox, settings=self._settings, on_render=self._bind_render)
        self.controller = GenerationSessionController(
            self.store,
            transport,
            persistence,
            renderer=self.renderer,
            emitter=self.emitter,
            settings=self._settings,
        )
        self.reconciler = EditReconciler(
            self.store,
            self.renderer,
            allow_create_pages=self._settings.allow_create_pages_on_navigation,
            edit_gate=self.controller.is_edit_allowed,
            emitter=self.emitter,
        )
        self.task: Optional[asyncio.Task] = None
        self.last_used = 0.0
        self.renderer.render_from(self.store)

    def _bind_render(self, record: RenderRecord) -> None:
        if record.handle is not None:
            self.sandbox.on_message(record.handle, self.reconciler.handle_message)

    def start_generation(self, prompt: str, *, resume: bool = False) -> "asyncio.Task[SessionOutcome]":
        self.task = asyncio.create_task(self.controller.run(prompt, resume=resume))
        return self.task

    def relay(self, message: Dict[str, Any]) -> EditOutcome:
        """Deliver a message posted by the preview page."""
        record = self.renderer.current
        if record is None or record.handle is None:
            return self.reconciler.handle_message(message)
        results = self.sandbox.deliver(record.handle, message)
        if not results:
            return EditOutcome(EditStatus.IGNORED, reason="message could not be handled")
        return results[-1]

    def switch_active(self, name: str) -> bool:
        if not self.store.switch_active(name):
            return False
        self.renderer.render_from(self.store)
        return True

    def export(self) -> ExportResult:
        extensions = self._settings.page_extensions
        return build_archive(
            self.store.snapshot(),
            extension=extensions[0] if extensions else ".html",
            entry_file=self.store.default_entry_file,
        )

    def preview_html(self) -> Optional[str]:
        record = self.renderer.current
        return record.html if record is not None else None

    def describe(self) -> Dict[str, Any]:
        record = self.renderer.current
        return {
            "id": self.id,
            "project_id": self.store.project_id,
            "display_name": self.store.display_name,
            "files": self.store.names(),
            "active_file": self.store.active_file,
            "streaming_file": self.store.streaming_file,
            "state": self.controller.state.value,
            "render_id": record.render_id if record is not None else None,
            "live_edit": record.live_edit if record is not None else False,
            "last_error": self.controller.last_error,
            "activity_log": list(self.controller.activity_log),
        }


class WorkspaceRegistry:
    """Open workspaces by id.

    Workspaces idle for longer than ``workspace_idle_seconds`` are closed,
    and the least recently used idle ones are closed once more than
    ``max_workspaces`` are open. A workspace with a running generation is
    never closed by eviction.
    """

    def __init__(
        self,
        *,
        settings: Optional[Settings] = None,
        persistence: Optional[ProjectPersistence] = None,
        transport_factory: Optional[Callable[[], GenerationTransport]] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._settings = settings or get_settings()
        self.persistence = persistence or AsyncProjectStore()
        self._transport_factory = transport_factory or (lambda: HttpGenerationTransport(settings=self._settings))
        self._clock = clock
        self._workspaces: Dict[str, Workspace] = {}

    async def create(self, *, project_id: Optional[str] = None) -> Workspace:
        state = None
        if project_id:
            state = await self.persistence.load(project_id)
            if state is None:
                raise KeyError(project_id)
        workspace = Workspace(
            transport=self._transport_factory(),
            persistence=self.persistence,
            settings=self._settings,
            state=state,
        )
        workspace.last_used = self._clock()
        self._workspaces[workspace.id] = workspace
        logger.info("Opened workspace %s for project %s", workspace.id, project_id)
        self.evict(keep=workspace.id)
        return workspace

    def get(self, workspace_id: str) -> Optional[Workspace]:
        workspace = self._workspaces.get(workspace_id)
        if workspace is not None:
            workspace.last_used = self._clock()
        return workspace

    def remove(self, workspace_id: str) -> bool:
        workspace = self._workspaces.pop(workspace_id, None)
        if workspace is None:
            return False
        workspace.controller.cancel()
        return True

    def evict(self, *, keep: Optional[str] = None) -> List[str]:
        now = self._clock()
        idle_limit = self._settings.workspace_idle_seconds
        candidates = sorted(
            (
                workspace
                for workspace in self._workspaces.values()
                if workspace.id != keep and not workspace.controller.is_running
            ),
            key=lambda workspace: workspace.last_used,
        )
        evicted = [
            workspace.id
            for workspace in candidates
            if idle_limit > 0 and now - workspace.last_used > idle_limit
        ]
        overflow = len(self._workspaces) - len(evicted) - self._settings.max_workspaces
        if self._settings.max_workspaces > 0 and overflow > 0:
            remaining = [workspace.id for workspace in candidates if workspace.id not in evicted]
            evicted.extend(remaining[:overflow])
        for workspace_id in evicted:
            self.remove(workspace_id)
        if evicted:
            logger.info("Closed %s idle workspace(s)", len(evicted))
        return evicted

    def __len__(self) -> int:
        return len(self._workspaces)


__all__ = ["Workspace", "WorkspaceRegistry"]
