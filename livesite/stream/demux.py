from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import AsyncIterable, Callable, List, Mapping, Optional, Set

from ..exceptions import StreamTimeoutError, TransportError
from ..project.store import ProjectFileStore
from .directives import Directive, DirectiveKind, TagParser
from .transport import DoneSentinel, StatusUpdate, TextFragment, TransportEvent

logger = logging.getLogger(__name__)

ContentCallback = Callable[[str, str], None]
NameCallback = Callable[[str], None]
ActionCallback = Callable[[str], None]
CompleteCallback = Callable[[Mapping[str, str]], None]
StatusCallback = Callable[[StatusUpdate], None]


class DemuxState(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    COMPLETED = "completed"
    ABORTED = "aborted"
    FAILED = "failed"


TERMINAL_STATES = {DemuxState.COMPLETED, DemuxState.ABORTED, DemuxState.FAILED}


class _Aborted(Exception):
    pass


def normalize_file_name(raw: str) -> str:
    return (raw or "").strip().lower()


class StreamDemultiplexer:
    """Routes a chunked generation stream into per-file content.

    Text between directives is appended to the current target file in the
    order it arrived. ``replace_existing`` makes the first write of a run to
    an already existing file start that file over, which is what a full
    regeneration wants; continuation runs append instead.
    """

    def __init__(
        self,
        store: ProjectFileStore,
        *,
        parser: Optional[TagParser] = None,
        replace_existing: bool = True,
        on_content: Optional[ContentCallback] = None,
        on_file_switch: Optional[NameCallback] = None,
        on_action: Optional[ActionCallback] = None,
        on_complete: Optional[CompleteCallback] = None,
        on_status: Optional[StatusCallback] = None,
    ) -> None:
        self.store = store
        self.parser = parser or TagParser()
        self.replace_existing = replace_existing
        self.on_content = on_content
        self.on_file_switch = on_file_switch
        self.on_action = on_action
        self.on_complete = on_complete
        self.on_status = on_status

        self.state = DemuxState.IDLE
        self.target: Optional[str] = None
        self.actions: List[str] = []
        self.files_touched: List[str] = []
        self.fragments_processed = 0
        self._carry = ""
        self._claimed: Set[str] = set()
        self._page_open = False

    @property
    def pending(self) -> str:
        return self._carry

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def start(self) -> None:
        if self.state is not DemuxState.IDLE:
            return
        self.state = DemuxState.STREAMING
        self.target = self.store.active_file or self.store.default_entry_file
        self.store.streaming_file = self.target

    def feed(self, fragment: str) -> None:
        if self.is_terminal:
            logger.debug("Ignoring fragment after stream reached %s", self.state.value)
            return
        self.start()
        self.fragments_processed += 1
        self._route(self._carry + (fragment or ""), final=False)
        self._notify_content()

    def finish(self) -> None:
        if self.is_terminal:
            return
        self.start()
        if self._carry:
            self._route(self._carry, final=True)
            self._notify_content()
        self.state = DemuxState.COMPLETED
        self.store.streaming_file = None
        if self.on_complete is not None:
            self.on_complete(self.store.snapshot())

    def abort(self) -> None:
        if self.is_terminal:
            return
        self.state = DemuxState.ABORTED
        self._carry = ""
        self.store.streaming_file = None

    def fail(self, error: Optional[BaseException] = None) -> None:
        if self.is_terminal:
            return
        self.state = DemuxState.FAILED
        self._carry = ""
        self.store.streaming_file = None
        if error is not None:
            logger.warning("Stream failed after %s fragments: %s", self.fragments_processed, error)

    def _route(self, buffer: str, *, final: bool) -> None:
        directives: List[Directive] = []
        result = self.parser.parse(buffer, directives.append, final=final)
        self._carry = result.pending
        text_end = len(buffer) - len(result.pending)
        cursor = 0
        for directive in directives:
            self._append(buffer[cursor:directive.start])
            self._apply(directive)
            cursor = directive.end
        self._append(buffer[cursor:text_end])

    def _claim(self, name: str) -> None:
        if name in self._claimed:
            return
        self._claimed.add(name)
        if self.replace_existing and name in self.store and self.store.get(name):
            self.store.set_file_content(name, "")

    def _append(self, text: str) -> None:
        if not text or self.target is None:
            return
        self._claim(self.target)
        self.store.append_or_create(self.target, text)
        if self.target not in self.files_touched:
            self.files_touched.append(self.target)

    def _apply(self, directive: Directive) -> None:
        if directive.kind is DirectiveKind.NEW_PAGE:
            name = normalize_file_name(directive.payload)
            if not name:
                logger.warning("Ignoring NEW_PAGE directive without a file name")
                return
            self._claim(name)
            self.store.append_or_create(name, "")
            self.store.switch_active(name)
            self.target = name
            self.store.streaming_file = name
            self._page_open = True
            if name not in self.files_touched:
                self.files_touched.append(name)
            if self.on_file_switch is not None:
                self.on_file_switch(name)
        elif directive.kind is DirectiveKind.END_PAGE:
            if not self._page_open:
                logger.debug("END_PAGE without an open page for %s", self.target)
            self._page_open = False
        elif directive.kind is DirectiveKind.ACTION:
            self.actions.append(directive.payload)
            if self.on_action is not None:
                self.on_action(directive.payload)

    def _notify_content(self) -> None:
        if self.on_content is None or self.target is None or self.target not in self.store:
            return
        self.on_content(self.target, self.store.get(self.target) or "")

    async def consume(
        self,
        events: AsyncIterable[TransportEvent],
        *,
        abort_event: Optional[asyncio.Event] = None,
        idle_timeout: Optional[float] = None,
    ) -> DemuxState:
        """Drive the demultiplexer from transport events until a terminal state."""
        iterator = events.__aiter__()
        self.start()
        try:
            while not self.is_terminal:
                try:
                    event = await self._next_event(iterator, abort_event, idle_timeout)
                except StopAsyncIteration:
                    self.finish()
                    break
                except _Aborted:
                    self.abort()
                    break
                except asyncio.TimeoutError:
                    error = StreamTimeoutError(
                        f"Generation stream produced no data for {idle_timeout:.0f}s"
                    )
                    self.fail(error)
                    raise error from None
                except TransportError as exc:
                    self.fail(exc)
                    raise

                if isinstance(event, DoneSentinel):
                    self.finish()
                elif isinstance(event, TextFragment):
                    self.feed(event.text)
                elif isinstance(event, StatusUpdate):
                    if self.on_status is not None:
                        self.on_status(event)
                    if event.status == "error":
                        message = str(event.data.get("message") or "Generation service reported an error")
                        error = TransportError(message)
                        self.fail(error)
                        raise error
        finally:
            await _close_iterator(iterator)
        return self.state

    async def _next_event(
        self,
        iterator,
        abort_event: Optional[asyncio.Event],
        idle_timeout: Optional[float],
    ) -> TransportEvent:
        if abort_event is not None and abort_event.is_set():
            raise _Aborted()
        read = asyncio.ensure_future(iterator.__anext__())
        waiters = {read}
        abort_wait = None
        if abort_event is not None:
            abort_wait = asyncio.ensure_future(abort_event.wait())
            waiters.add(abort_wait)
        try:
            done, _ = await asyncio.wait(
                waiters,
                timeout=idle_timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            if abort_wait is not None and not abort_wait.done():
                abort_wait.cancel()

        if read in done and not (abort_event is not None and abort_event.is_set()):
            return read.result()

        # The in-flight read is discarded on abort or timeout.
        await _cancel_read(read)
        if abort_event is not None and abort_event.is_set():
            raise _Aborted()
        raise asyncio.TimeoutError()


async def _cancel_read(read: "asyncio.Future[TransportEvent]") -> None:
    if read.done():
        if not read.cancelled() and read.exception() is not None:
            logger.debug("Discarded failed read: %s", read.exception())
        return
    read.cancel()
    try:
        await read
    except asyncio.CancelledError:
        pass
    except Exception as exc:
        logger.debug("Discarded read raised during cancellation: %s", exc)


async def _close_iterator(iterator) -> None:
    aclose = getattr(iterator, "aclose", None)
    if aclose is None:
        return
    try:
        await aclose()
    except Exception as exc:
        logger.debug("Closing generation stream failed: %s", exc)


__all__ = [
    "DemuxState",
    "StreamDemultiplexer",
    "normalize_file_name",
]
