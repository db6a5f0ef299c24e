from __future__ import annotations

import codecs
import json
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Iterable, Optional, Protocol, Union

import httpx
from pydantic import BaseModel, ConfigDict, Field

from ..config import Settings, get_settings
from ..exceptions import TransportError

logger = logging.getLogger(__name__)

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"


@dataclass(frozen=True)
class TextFragment:
    text: str


@dataclass(frozen=True)
class StatusUpdate:
    status: str
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DoneSentinel:
    pass


TransportEvent = Union[TextFragment, StatusUpdate, DoneSentinel]


class GenerationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    prompt: str
    partial_code: Optional[str] = Field(default=None, alias="partialCode")
    page_name: Optional[str] = Field(default=None, alias="pageName")
    resume: bool = False

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


def parse_stream_line(line: str) -> Optional[TransportEvent]:
    """Decode one line of the generation stream; ``None`` for anything unusable."""
    stripped = (line or "").strip()
    if not stripped or not stripped.startswith(DATA_PREFIX):
        return None
    data_str = stripped[len(DATA_PREFIX):].strip()
    if data_str == DONE_SENTINEL:
        return DoneSentinel()
    try:
        payload = json.loads(data_str)
    except (TypeError, ValueError):
        logger.debug("Skipping unparseable stream line: %.80s", data_str)
        return None
    if not isinstance(payload, dict):
        logger.debug("Skipping non-object stream payload")
        return None
    text = payload.get("text")
    if isinstance(text, str) and text:
        return TextFragment(text)
    status = payload.get("status")
    if isinstance(status, str) and status:
        return StatusUpdate(status=status, data=payload)
    return None


class SSELineDecoder:
    """Turns arbitrary byte/str chunks into complete lines, carrying the tail over."""

    def __init__(self, encoding: str = "utf-8") -> None:
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._buffer = ""

    def feed(self, chunk: Union[bytes, str]) -> list[str]:
        if isinstance(chunk, bytes):
            chunk = self._decoder.decode(chunk)
        self._buffer += chunk
        if "\n" not in self._buffer:
            return []
        *lines, self._buffer = self._buffer.split("\n")
        return [line.rstrip("\r") for line in lines]

    def flush(self) -> list[str]:
        tail = self._buffer + self._decoder.decode(b"", final=True)
        self._buffer = ""
        return [tail.rstrip("\r")] if tail.strip() else []


def decode_lines(lines: Iterable[str]) -> list[TransportEvent]:
    events: list[TransportEvent] = []
    for line in lines:
        event = parse_stream_line(line)
        if event is not None:
            events.append(event)
    return events


class GenerationTransport(Protocol):
    def stream(self, request: GenerationRequest) -> AsyncIterator[TransportEvent]:
        ...


class HttpGenerationTransport:
    """Streams a generation over HTTP from the configured generation endpoint."""

    def __init__(
        self,
        *,
        settings: Optional[Settings] = None,
        url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._url = url or self._settings.generation_url
        self._client = client
        self._headers = dict(headers or {})

    def _build_client(self) -> httpx.AsyncClient:
        timeout = httpx.Timeout(
            connect=self._settings.generation_connect_timeout_seconds,
            read=None,
            write=self._settings.generation_connect_timeout_seconds,
            pool=self._settings.generation_connect_timeout_seconds,
        )
        return httpx.AsyncClient(timeout=timeout)

    async def stream(self, request: GenerationRequest) -> AsyncIterator[TransportEvent]:
        owns_client = self._client is None
        client = self._client or self._build_client()
        decoder = SSELineDecoder()
        try:
            async with client.stream(
                "POST",
                self._url,
                json=request.to_payload(),
                headers=self._headers,
            ) as response:
                if response.status_code == 429:
                    raise TransportError(
                        "Rate limit exceeded. Please wait a moment before trying again.",
                        status_code=429,
                    )
                if response.status_code >= 400:
                    raise TransportError(
                        f"Generation request failed with status {response.status_code}",
                        status_code=response.status_code,
                    )
                async for chunk in response.aiter_bytes():
                    for event in decode_lines(decoder.feed(chunk)):
                        yield event
                for event in decode_lines(decoder.flush()):
                    yield event
        except httpx.TimeoutException as exc:
            raise TransportError(f"Generation service timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"Generation connection failed: {exc}") from exc
        finally:
            if owns_client:
                await client.aclose()


__all__ = [
    "TextFragment",
    "StatusUpdate",
    "DoneSentinel",
    "TransportEvent",
    "GenerationRequest",
    "parse_stream_line",
    "SSELineDecoder",
    "decode_lines",
    "GenerationTransport",
    "HttpGenerationTransport",
]
