"""Lifecycle of one generation request and of self-healing deployments.

The controller owns the abort signal and the session state. It opens the
transport stream, drives the demultiplexer, keeps the preview current
while content arrives, and persists the project once a stream completes.
Only transport failures and exhausted repairs reach the user as errors.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import AsyncIterator, Callable, Dict, List, Optional

from ..config import Settings, get_settings
from ..events import (
    ActionLogEvent,
    ContentDeltaEvent,
    DeploymentEvent,
    DoneEvent,
    ErrorEvent,
    EventEmitter,
    FileSwitchEvent,
    HealAttemptEvent,
    PreviewReadyEvent,
    SessionStateEvent,
)
from ..exceptions import (
    DeploymentError,
    PersistenceError,
    SelfHealingExhaustedError,
    SessionBusyError,
    StreamTimeoutError,
    TransportError,
    describe_error,
)
from ..log import GenerationRunLogger
from ..preview.renderer import PreviewRenderer
from ..project.naming import generate_display_name, slugify
from ..project.store import ProjectFileStore
from ..services.deployment import DeploymentAuditor, DeployRequest
from ..services.persistence import ProjectPersistence
from ..stream.demux import DemuxState, StreamDemultiplexer
from ..stream.directives import TagParser
from ..stream.transport import GenerationRequest, GenerationTransport, TransportEvent
from .healing import SelfHealingPolicy, build_fix_prompt, build_runtime_fix_prompt

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    READY = "ready"
    REQUESTING = "requesting"
    STREAMING = "streaming"
    COMPLETED = "completed"
    ABORTED = "aborted"
    ERROR = "error"


RUNNING_STATES = {SessionState.REQUESTING, SessionState.STREAMING}


@dataclass
class SessionOutcome:
    state: SessionState
    files: Dict[str, str] = field(default_factory=dict)
    active_file: Optional[str] = None
    project_id: Optional[str] = None
    actions: List[str] = field(default_factory=list)
    elapsed_seconds: float = 0.0
    error: Optional[str] = None
    persistence_error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.state is SessionState.COMPLETED


@dataclass
class DeployOutcome:
    ok: bool
    url: Optional[str] = None
    repairs: int = 0
    error: Optional[str] = None
    details: Optional[str] = None
    exhausted: bool = False


class GenerationSessionController:
    def __init__(
        self,
        store: ProjectFileStore,
        transport: GenerationTransport,
        persistence: ProjectPersistence,
        *,
        renderer: Optional[PreviewRenderer] = None,
        emitter: Optional[EventEmitter] = None,
        settings: Optional[Settings] = None,
        healing: Optional[SelfHealingPolicy] = None,
        owner_id: Optional[str] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.store = store
        self.transport = transport
        self.persistence = persistence
        self.renderer = renderer
        self.emitter = emitter
        self._settings = settings or get_settings()
        self.healing = healing or SelfHealingPolicy.from_settings(self._settings)
        self.owner_id = owner_id
        self._clock = clock

        self.state = SessionState.READY
        self.activity_log: List[str] = []
        self.last_error: Optional[str] = None
        self.last_prompt: Optional[str] = None
        self._abort: Optional[asyncio.Event] = None
        self._demux: Optional[StreamDemultiplexer] = None
        self._request_target: Optional[str] = None
        self._sent_lengths: Dict[str, int] = {}
        self._content_target: Optional[str] = None

    @property
    def is_running(self) -> bool:
        return self.state in RUNNING_STATES

    def _emit(self, event) -> None:
        if self.emitter is not None:
            self.emitter.emit(event)

    def _set_state(self, state: SessionState, message: Optional[str] = None) -> None:
        self.state = state
        logger.debug("Session state -> %s", state.value)
        self._emit(SessionStateEvent(state=state.value, message=message))

    def _log_action(self, message: str) -> None:
        self.activity_log.append(message)
        self._emit(ActionLogEvent(message=message))

    def _render(self, *, announce: bool = False) -> None:
        if self.renderer is None:
            return
        record = self.renderer.render_from(self.store)
        if announce and record is not None:
            self._emit(
                PreviewReadyEvent(
                    file_name=record.file_name,
                    render_id=record.render_id,
                    live_edit=record.live_edit,
                )
            )

    def is_edit_allowed(self, name: str) -> bool:
        if self.state is SessionState.STREAMING:
            return self.store.streaming_file != name
        if self.state is SessionState.REQUESTING:
            return self._request_target != name
        return True

    def cancel(self) -> bool:
        """Signal the running stream to stop; partial content is kept."""
        if not self.is_running or self._abort is None:
            return False
        self._abort.set()
        return True

    async def run(
        self,
        prompt: str,
        *,
        resume: bool = False,
        include_context: Optional[bool] = None,
        display_name: Optional[str] = None,
    ) -> SessionOutcome:
        """Generate from ``prompt`` into the project.

        ``resume`` continues the active file in place; otherwise every file
        the stream writes is replaced. The active file's content is sent as
        context when resuming, and by default whenever it is non-empty.
        """
        if display_name:
            self.store.display_name = display_name
        elif not self.store.display_name:
            self.store.display_name = generate_display_name()
        return await self._generate(prompt, resume=resume, include_context=include_context)

    async def heal_runtime_error(self, message: str) -> SessionOutcome:
        self._log_action(f"Repairing runtime error: {message}")
        return await self._generate(build_runtime_fix_prompt(message), resume=False, include_context=True)

    async def _observe(self, events: AsyncIterator[TransportEvent]) -> AsyncIterator[TransportEvent]:
        try:
            async for event in events:
                if self.state is SessionState.REQUESTING:
                    self._set_state(SessionState.STREAMING)
                yield event
        finally:
            aclose = getattr(events, "aclose", None)
            if aclose is not None:
                await aclose()

    def _on_content(self, name: str, content: str) -> None:
        offset = self._sent_lengths.get(name, 0)
        if offset > len(content):
            offset = 0
        self._sent_lengths[name] = len(content)
        self._content_target = name
        self._emit(ContentDeltaEvent(file_name=name, delta=content[offset:], offset=offset, length=len(content)))
        if name == self.store.active_file:
            self._render()

    def _on_file_switch(self, name: str) -> None:
        previous = self._content_target
        if previous is not None and previous != name and previous in self.store:
            self._on_content(previous, self.store.get(previous) or "")
        # the new target may have been reset by the switch
        self._sent_lengths.pop(name, None)
        self._content_target = name
        self._emit(FileSwitchEvent(file_name=name))
        self._render(announce=True)

    def _on_action(self, message: str) -> None:
        self._log_action(message)

    def _outcome(self, state: SessionState, started: float, **kwargs) -> SessionOutcome:
        return SessionOutcome(
            state=state,
            files=dict(self.store.snapshot()),
            active_file=self.store.active_file,
            project_id=self.store.project_id,
            actions=list(self._demux.actions) if self._demux is not None else [],
            elapsed_seconds=self._clock() - started,
            **kwargs,
        )

    async def _generate(
        self,
        prompt: str,
        *,
        resume: bool,
        include_context: Optional[bool],
    ) -> SessionOutcome:
        if self.is_running:
            raise SessionBusyError()
        prompt = (prompt or "").strip()
        if not prompt:
            raise ValueError("prompt must not be empty")

        active = self.store.active_file
        current = self.store.active_content()
        send_context = resume or (include_context if include_context is not None else bool(current))
        request = GenerationRequest(
            prompt=prompt,
            partial_code=current if send_context and current else None,
            page_name=active,
            resume=resume,
        )

        self._abort = asyncio.Event()
        self.last_error = None
        self.last_prompt = prompt
        self._request_target = active or self.store.default_entry_file
        self._sent_lengths = {}
        self._content_target = self._request_target
        self._demux = StreamDemultiplexer(
            self.store,
            parser=TagParser(max_pending=self._settings.max_pending_directive_chars),
            replace_existing=not resume,
            on_content=self._on_content,
            on_file_switch=self._on_file_switch,
            on_action=self._on_action,
        )
        started = self._clock()
        self._set_state(SessionState.REQUESTING)

        with GenerationRunLogger(project_id=self.store.project_id, resume=resume) as run_log:
            try:
                final_state = await self._demux.consume(
                    self._observe(self.transport.stream(request)),
                    abort_event=self._abort,
                    idle_timeout=self._settings.generation_idle_timeout_seconds,
                )
            except (TransportError, StreamTimeoutError) as exc:
                message = describe_error(exc)
                self.last_error = message
                run_log.failed(message, partial_chars=len(self.store.active_content()))
                self._log_action(f"Error: {message}")
                self._set_state(SessionState.ERROR, message)
                self._emit(ErrorEvent(message=message, trace_id=exc.trace_id))
                self._render(announce=True)
                return self._outcome(SessionState.ERROR, started, error=message)
            except Exception as exc:
                self._demux.fail(exc)
                self.last_error = describe_error(exc)
                run_log.failed(self.last_error)
                self._set_state(SessionState.ERROR, self.last_error)
                raise

            if final_state is DemuxState.ABORTED:
                self._log_action("Generation stopped")
                run_log.finished(SessionState.ABORTED.value, files=len(self.store), actions=len(self._demux.actions))
                self._set_state(SessionState.ABORTED, "Generation stopped")
                self._render(announce=True)
                return self._outcome(SessionState.ABORTED, started)

            elapsed = self._clock() - started
            self._log_action(f"Built in {elapsed:.1f}s")
            persistence_error = await self._persist(prompt)
            run_log.finished(SessionState.COMPLETED.value, files=len(self.store), actions=len(self._demux.actions))

        self._set_state(SessionState.COMPLETED)
        self._render(announce=True)
        self._emit(
            DoneEvent(
                summary=f"Built in {elapsed:.1f}s",
                files=self.store.names(),
                stats={"fragments": self._demux.fragments_processed, "actions": len(self._demux.actions)},
            )
        )
        return self._outcome(SessionState.COMPLETED, started, persistence_error=persistence_error)

    async def _persist(self, prompt: str) -> Optional[str]:
        try:
            project_id = await self.persistence.save(
                self.store.project_id,
                self.store.snapshot(),
                prompt=prompt,
                activity_log=list(self.activity_log),
                active_file=self.store.active_file,
                display_name=self.store.display_name,
                owner_id=self.owner_id,
            )
        except Exception as exc:
            message = describe_error(exc)
            logger.warning("Autosave failed for project %s: %s", self.store.project_id, message)
            self._emit(ErrorEvent(message="Project could not be saved", details=message))
            return message
        self.store.project_id = project_id
        return None

    async def deploy_with_healing(
        self,
        deployer: DeploymentAuditor,
        *,
        slug: Optional[str] = None,
        custom_domain: Optional[str] = None,
    ) -> DeployOutcome:
        """Deploy the current files, repairing corrupt output automatically.

        When the deployment audit reports corrupt files, a corrective
        generation runs with the audit details and the deployment is tried
        again, up to ``healing.max_attempts`` repairs.
        """
        if self.is_running:
            return DeployOutcome(ok=False, error="Wait for the current generation to finish before deploying")

        resolved_slug = slug or slugify(self.store.display_name or "") or None
        repairs = 0
        self._emit(DeploymentEvent(status="started", attempt=1))
        while True:
            request = DeployRequest(
                project_id=self.store.project_id,
                slug=resolved_slug,
                custom_domain=custom_domain,
                files=dict(self.store.snapshot()),
                attempt=repairs + 1,
            )
            try:
                result = await deployer.deploy(request)
            except DeploymentError as exc:
                message = describe_error(exc)
                self.last_error = message
                self._log_action(f"Deployment failed: {message}")
                self._emit(DeploymentEvent(status="failed", attempt=request.attempt, message=message))
                return DeployOutcome(ok=False, error=message, repairs=repairs)

            if result.ok:
                await self._record_deployment(result.url)
                self._log_action(f"Deployed to {result.url}" if result.url else "Deployed")
                self._emit(DeploymentEvent(status="succeeded", url=result.url, attempt=request.attempt))
                return DeployOutcome(ok=True, url=result.url, repairs=repairs)

            if not result.needs_repair:
                message = result.error or "Deployment failed"
                self._emit(DeploymentEvent(status="failed", attempt=request.attempt, message=message))
                return DeployOutcome(ok=False, error=message, details=result.details, repairs=repairs)

            if not self.healing.allows(repairs + 1):
                exc = SelfHealingExhaustedError(
                    f"Deployment still reports corrupt files after {repairs} repair attempts",
                    attempts=repairs,
                    details=result.details,
                )
                message = describe_error(exc)
                self.last_error = message
                logger.warning("%s: %s", exc.with_trace(), result.details)
                self._log_action(f"Self-healing gave up: {result.details}")
                self._emit(ErrorEvent(message=message, details=result.details, trace_id=exc.trace_id))
                self._emit(DeploymentEvent(status="failed", attempt=request.attempt, message=message))
                return DeployOutcome(
                    ok=False,
                    error=message,
                    details=result.details,
                    repairs=repairs,
                    exhausted=True,
                )

            repairs += 1
            self._log_action(f"Self-healing attempt {repairs}/{self.healing.max_attempts}: {result.details}")
            self._emit(
                HealAttemptEvent(attempt=repairs, max_attempts=self.healing.max_attempts, details=result.details)
            )
            delay = self.healing.delay_for(repairs)
            if delay:
                await asyncio.sleep(delay)
            repair = await self._generate(build_fix_prompt(result.details), resume=False, include_context=True)
            if not repair.ok:
                message = repair.error or "Repair generation did not complete"
                self._emit(DeploymentEvent(status="failed", attempt=request.attempt, message=message))
                return DeployOutcome(ok=False, error=message, details=result.details, repairs=repairs)

    async def _record_deployment(self, url: Optional[str]) -> None:
        if not url or not self.store.project_id:
            return
        try:
            await self.persistence.record_deployment(self.store.project_id, url)
        except PersistenceError as exc:
            logger.warning("Could not record deployment url for %s: %s", self.store.project_id, exc)


__all__ = [
    "SessionState",
    "SessionOutcome",
    "DeployOutcome",
    "GenerationSessionController",
]
