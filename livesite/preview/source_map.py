"""Source offsets for editable elements.

BeautifulSoup's ``html.parser`` builder discards source positions for end
tags, so edits coming back from the preview could not be spliced into the
original text. ``build_source_map`` runs the same stdlib tokenizer bs4 uses
and records where every element of interest starts, where its inner HTML
begins and ends, and where its end tag finishes. Indices line up with
``soup.find_all(tags)`` over the same source.
"""

from __future__ import annotations

from dataclasses import dataclass
from html.parser import HTMLParser
from typing import Iterable, List, Optional, Tuple

VOID_ELEMENTS = frozenset(
    {
        "area", "base", "br", "col", "embed", "hr", "img", "input",
        "link", "meta", "param", "source", "track", "wbr",
    }
)


@dataclass
class ElementSpan:
    tag: str
    start: int
    inner_start: int
    inner_end: Optional[int] = None
    end: Optional[int] = None

    @property
    def patchable(self) -> bool:
        return self.inner_end is not None and self.end is not None

    def shift(self, delta: int) -> None:
        self.start += delta
        self.inner_start += delta
        if self.inner_end is not None:
            self.inner_end += delta
        if self.end is not None:
            self.end += delta


class _SpanCollector(HTMLParser):
    def __init__(self, source: str, tags: Iterable[str]) -> None:
        super().__init__(convert_charrefs=True)
        self._source = source
        self._tags = frozenset(tag.lower() for tag in tags)
        self._line_starts = [0]
        for index, char in enumerate(source):
            if char == "\n":
                self._line_starts.append(index + 1)
        self._stack: List[Tuple[str, Optional[ElementSpan]]] = []
        self.spans: List[ElementSpan] = []

    def _offset(self) -> int:
        line, column = self.getpos()
        return self._line_starts[line - 1] + column

    def handle_starttag(self, tag, attrs):
        start = self._offset()
        raw = self.get_starttag_text() or ""
        span = None
        if tag in self._tags:
            span = ElementSpan(tag=tag, start=start, inner_start=start + len(raw))
            self.spans.append(span)
        if tag not in VOID_ELEMENTS:
            self._stack.append((tag, span))

    def handle_startendtag(self, tag, attrs):
        # Self-closing elements have no inner HTML to patch.
        if tag in self._tags:
            start = self._offset()
            raw = self.get_starttag_text() or ""
            self.spans.append(ElementSpan(tag=tag, start=start, inner_start=start + len(raw)))

    def handle_endtag(self, tag):
        match_index = None
        for index in range(len(self._stack) - 1, -1, -1):
            if self._stack[index][0] == tag:
                match_index = index
                break
        if match_index is None:
            return
        _, span = self._stack[match_index]
        del self._stack[match_index:]
        if span is None:
            return
        end_start = self._offset()
        close = self._source.find(">", end_start)
        span.inner_end = end_start
        span.end = (close + 1) if close >= 0 else len(self._source)


def build_source_map(source: str, tags: Iterable[str]) -> List[ElementSpan]:
    collector = _SpanCollector(source or "", tags)
    collector.feed(source or "")
    collector.close()
    return collector.spans


__all__ = ["ElementSpan", "VOID_ELEMENTS", "build_source_map"]
