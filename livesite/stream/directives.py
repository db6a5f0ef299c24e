"""Inline directive scanner for the generation stream.

The model interleaves bracketed directives with file content::

    [NEW_PAGE: about]<p>About</p>[END_PAGE][ACTION: wrote about]

``TagParser.parse`` walks the buffer once with an explicit cursor. Complete
directives are reported through a callback and removed from the returned
text; a trailing fragment that may still grow into a directive is handed
back as ``pending`` so the caller can prepend it to the next chunk.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, Optional

_NAME_CHARS = frozenset("ABCDEFGHIJKLMNOPQRSTUVWXYZ_")
_END_PREFIX = "END_"


class DirectiveKind(str, Enum):
    NEW_PAGE = "NEW_PAGE"
    END_PAGE = "END_PAGE"
    ACTION = "ACTION"


@dataclass(frozen=True)
class DirectiveSyntax:
    kind: DirectiveKind
    inline: bool = False  # [KIND: payload]
    bare: bool = False  # [KIND]
    block: bool = False  # [KIND]payload[END_KIND]


DEFAULT_SYNTAX: tuple[DirectiveSyntax, ...] = (
    DirectiveSyntax(DirectiveKind.NEW_PAGE, inline=True),
    DirectiveSyntax(DirectiveKind.END_PAGE, bare=True),
    DirectiveSyntax(DirectiveKind.ACTION, inline=True, block=True),
)


@dataclass(frozen=True)
class Directive:
    kind: DirectiveKind
    payload: str = ""
    start: int = 0
    end: int = 0


@dataclass(frozen=True)
class ParseResult:
    text: str
    pending: str = ""


DirectiveCallback = Callable[[Directive], None]


class TagParser:
    """Stateless directive scanner.

    Any state between calls lives in the caller, which must re-present
    ``ParseResult.pending`` concatenated with the next input.
    """

    def __init__(
        self,
        syntax: Iterable[DirectiveSyntax] = DEFAULT_SYNTAX,
        *,
        max_pending: int = 512,
    ) -> None:
        self._syntax = {item.kind.value: item for item in syntax}
        self._closers = {
            f"{_END_PREFIX}{name}": item for name, item in self._syntax.items() if item.block
        }
        self._tokens = tuple(self._syntax) + tuple(self._closers)
        self.max_pending = max(16, int(max_pending))

    def parse(
        self,
        buffer: str,
        on_directive: Optional[DirectiveCallback] = None,
        *,
        final: bool = False,
    ) -> ParseResult:
        out: list[str] = []
        pos = 0
        length = len(buffer)

        while pos < length:
            bracket = buffer.find("[", pos)
            if bracket < 0:
                out.append(buffer[pos:])
                break
            out.append(buffer[pos:bracket])

            outcome, consumed_to, directive = self._match_at(buffer, bracket, final=final)
            if outcome == "pending":
                return ParseResult("".join(out), buffer[bracket:])
            if outcome == "match" and directive is not None:
                if on_directive is not None:
                    on_directive(directive)
                pos = consumed_to
                continue
            out.append("[")
            pos = bracket + 1

        return ParseResult("".join(out), "")

    def _is_token_prefix(self, name: str) -> bool:
        return any(token.startswith(name) for token in self._tokens)

    def _match_at(
        self,
        buffer: str,
        start: int,
        *,
        final: bool,
    ) -> tuple[str, int, Optional[Directive]]:
        """Classify the bracket at ``start`` as match, pending or literal."""
        length = len(buffer)
        window_end = start + self.max_pending
        cursor = start + 1
        while cursor < length and buffer[cursor] in _NAME_CHARS and cursor < window_end:
            cursor += 1
        name = buffer[start + 1 : cursor]

        if cursor >= length:
            if not final and self._is_token_prefix(name):
                return "pending", start, None
            return "literal", start, None

        syntax = self._syntax.get(name)
        if syntax is None:
            return "literal", start, None

        delimiter = buffer[cursor]
        if delimiter == ":" and syntax.inline:
            return self._match_inline(buffer, start, cursor + 1, syntax, window_end, final=final)
        if delimiter == "]":
            if syntax.bare:
                end = cursor + 1
                return "match", end, Directive(syntax.kind, "", start, end)
            if syntax.block:
                return self._match_block(buffer, start, cursor + 1, syntax, window_end, final=final)
        return "literal", start, None

    def _match_inline(
        self,
        buffer: str,
        start: int,
        payload_start: int,
        syntax: DirectiveSyntax,
        window_end: int,
        *,
        final: bool,
    ) -> tuple[str, int, Optional[Directive]]:
        limit = min(len(buffer), window_end)
        for index in range(payload_start, limit):
            char = buffer[index]
            if char == "]":
                payload = buffer[payload_start:index].strip()
                end = index + 1
                return "match", end, Directive(syntax.kind, payload, start, end)
            if char == "\n":
                return "literal", start, None
        if not final and len(buffer) < window_end:
            return "pending", start, None
        return "literal", start, None

    def _match_block(
        self,
        buffer: str,
        start: int,
        body_start: int,
        syntax: DirectiveSyntax,
        window_end: int,
        *,
        final: bool,
    ) -> tuple[str, int, Optional[Directive]]:
        closer = f"[{_END_PREFIX}{syntax.kind.value}]"
        close_at = buffer.find(closer, body_start, window_end)
        if close_at >= 0:
            payload = buffer[body_start:close_at].strip()
            end = close_at + len(closer)
            return "match", end, Directive(syntax.kind, payload, start, end)
        if not final and len(buffer) < window_end:
            return "pending", start, None
        return "literal", start, None


def strip_directives(
    text: str,
    on_directive: Optional[DirectiveCallback] = None,
    *,
    parser: Optional[TagParser] = None,
) -> str:
    """Remove every complete directive from ``text``; incomplete syntax is kept."""
    resolved = parser or TagParser()
    return resolved.parse(text, on_directive, final=True).text


__all__ = [
    "DirectiveKind",
    "DirectiveSyntax",
    "DEFAULT_SYNTAX",
    "Directive",
    "ParseResult",
    "TagParser",
    "strip_directives",
]
