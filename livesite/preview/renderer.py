"""Preview rendering for the active project file.

A render takes the canonical content of the active file and produces an
isolated document: author script is stripped, references to other project
files are resolved to sandbox addresses, text-bearing elements are made
editable with stable ``data-sync-id`` values, and the bridge script is
injected. Every render supersedes the previous one; edits are always
checked against ``PreviewRenderer.current``.
"""

from __future__ import annotations

import html as html_lib
import logging
import mimetypes
import re
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Tuple
from uuid import uuid4

from bs4 import BeautifulSoup

from ..config import Settings, get_settings
from ..exceptions import SandboxAccessError
from ..project.store import ProjectFileStore
from .bridge import BRIDGE_MARKER, EDITABLE_STYLE, EDITABLE_TAGS, build_bridge_script
from .sandbox import Sandbox, SandboxHandle
from .sanitize import sanitize_html, sanitize_soup
from .source_map import ElementSpan, build_source_map

logger = logging.getLogger(__name__)

REFERENCE_ATTRS = ("href", "src", "action", "poster")
PAGE_TARGET_ATTR = "data-page-target"
SYNC_ID_ATTR = "data-sync-id"
EDITABLE_ATTR = "contenteditable"

_CSS_URL_RE = re.compile(r"url\(\s*(['\"]?)([^'\")]+)\1\s*\)")
_CSS_IMPORT_RE = re.compile(r"@import\s+(['\"])([^'\"]+)\1")
# a srcset candidate URL runs to the next whitespace and never ends in a comma
_SRCSET_URL_RE = re.compile(r"(^|,)(\s*)([^\s,](?:\S*[^\s,])?)")
_META_REFRESH_RE = re.compile(r"^(\s*\d+\s*;\s*url\s*=\s*)(['\"]?)([^'\"]+)\2\s*$", re.IGNORECASE)


@dataclass
class SyncTarget:
    sync_id: int
    tag: str
    span: Optional[ElementSpan] = None
    valid: bool = True

    @property
    def patchable(self) -> bool:
        return self.valid and self.span is not None and self.span.patchable


@dataclass
class RenderRecord:
    render_id: str
    file_name: str
    revision: int
    source: str
    html: str = ""
    handle: Optional[SandboxHandle] = None
    targets: List[SyncTarget] = field(default_factory=list)
    addresses: Dict[str, str] = field(default_factory=dict)
    live_edit: bool = True
    code_view: bool = False


def split_reference(value: str) -> Tuple[str, str]:
    """Split ``value`` into a bare path and its ``?query#fragment`` suffix."""
    cut = len(value)
    for marker in ("?", "#"):
        index = value.find(marker)
        if index != -1:
            cut = min(cut, index)
    return value[:cut], value[cut:]


def normalize_reference(value: str) -> str:
    path, _ = split_reference((value or "").strip())
    while path.startswith("./"):
        path = path[2:]
    return path.lstrip("/")


def build_code_view(name: str, content: str) -> str:
    escaped = html_lib.escape(content or "")
    title = html_lib.escape(name)
    return (
        "<!DOCTYPE html><html><head><meta charset=\"utf-8\">"
        f"<title>{title}</title>"
        "<style>body{margin:0;background:#0f172a;color:#e2e8f0;}"
        "pre{margin:0;padding:24px;font:13px/1.6 ui-monospace,monospace;white-space:pre-wrap;}"
        "</style></head>"
        f"<body><pre><code>{escaped}</code></pre></body></html>"
    )


class PreviewRenderer:
    def __init__(
        self,
        sandbox: Sandbox,
        *,
        settings: Optional[Settings] = None,
        editable_tags: Iterable[str] = EDITABLE_TAGS,
        on_render: Optional[Callable[[RenderRecord], None]] = None,
    ) -> None:
        self.sandbox = sandbox
        self._settings = settings or get_settings()
        self.page_extensions = tuple(ext.lower() for ext in self._settings.page_extensions)
        self.editable_tags = tuple(editable_tags)
        self.current: Optional[RenderRecord] = None
        self.render_count = 0
        self.on_render = on_render

    def is_page(self, name: str) -> bool:
        suffix = PurePosixPath(name).suffix.lower()
        return suffix == "" or suffix in self.page_extensions

    def render_from(self, store: ProjectFileStore) -> Optional[RenderRecord]:
        active = store.active_file
        revision = store.revision(active) if active else 0
        return self.render(store.snapshot(), active, revision=revision)

    def render(
        self,
        files: Mapping[str, str],
        active_file: Optional[str],
        *,
        revision: int = 0,
    ) -> Optional[RenderRecord]:
        content = files.get(active_file, "") if active_file else ""
        if not content or not content.strip():
            # Nothing to show yet; earlier sync ids must not survive.
            self.current = None
            return None

        render_id = uuid4().hex[:12]
        self.render_count += 1
        record = RenderRecord(
            render_id=render_id,
            file_name=active_file,
            revision=revision,
            source=content,
        )

        if not self.is_page(active_file):
            record.code_view = True
            record.live_edit = False
            record.html = build_code_view(active_file, content)
            record.handle = self.sandbox.render(record.html)
            self.current = record
            self._notify(record)
            return record

        soup = BeautifulSoup(content, "html.parser")
        sanitize_soup(soup)
        record.addresses = self._resolve_references(soup, files, active_file)
        record.targets = self._mark_editable(soup, content)
        try:
            self._inject_bridge(soup, render_id)
        except SandboxAccessError as exc:
            logger.warning("Live editing disabled for %s: %s", active_file, exc)
            record.live_edit = False
            record.targets = []

        record.html = str(soup)
        record.handle = self.sandbox.render(record.html)
        self.current = record
        self._notify(record)
        logger.debug(
            "Rendered %s (render %s, %s editable elements)",
            active_file,
            render_id,
            len(record.targets),
        )
        return record

    def _notify(self, record: RenderRecord) -> None:
        if self.on_render is not None:
            self.on_render(record)

    def _reference_lookup(self, files: Mapping[str, str], active_file: str) -> Dict[str, str]:
        lookup: Dict[str, str] = {}
        for name in files:
            if name == active_file:
                continue
            lookup.setdefault(name, name)
            if self.is_page(name):
                path = PurePosixPath(name)
                stem = str(path.with_suffix("")) if path.suffix else name
                lookup.setdefault(stem, name)
                for ext in self.page_extensions:
                    lookup.setdefault(stem + ext, name)
        return lookup

    def _address_for(self, name: str, files: Mapping[str, str], cache: Dict[str, str]) -> str:
        if name in cache:
            return cache[name]
        content = files.get(name, "")
        if self.is_page(name):
            address = self.sandbox.address(name, sanitize_html(content), "text/html")
        else:
            media_type = mimetypes.guess_type(name)[0] or "text/plain"
            address = self.sandbox.address(name, content, media_type)
        cache[name] = address
        return address

    def _resolve_references(self, soup: BeautifulSoup, files: Mapping[str, str], active_file: str) -> Dict[str, str]:
        lookup = self._reference_lookup(files, active_file)
        if not lookup:
            return {}
        cache: Dict[str, str] = {}

        def address(value: str) -> Optional[str]:
            name = lookup.get(normalize_reference(value))
            return self._address_for(name, files, cache) if name is not None else None

        def resolve_css(text: str) -> str:
            def replace_url(match: re.Match) -> str:
                resolved = address(match.group(2))
                if resolved is None:
                    return match.group(0)
                return f"url({match.group(1)}{resolved}{match.group(1)})"

            def replace_import(match: re.Match) -> str:
                resolved = address(match.group(2))
                if resolved is None:
                    return match.group(0)
                return f"@import {match.group(1)}{resolved}{match.group(1)}"

            return _CSS_IMPORT_RE.sub(replace_import, _CSS_URL_RE.sub(replace_url, text))

        def resolve_srcset(value: str) -> str:
            def replace(match: re.Match) -> str:
                resolved = address(match.group(3))
                if resolved is None:
                    return match.group(0)
                return f"{match.group(1)}{match.group(2)}{resolved}"

            return _SRCSET_URL_RE.sub(replace, value)

        def resolve_meta(value: str) -> str:
            refresh = _META_REFRESH_RE.match(value)
            if refresh is not None:
                resolved = address(refresh.group(3))
                if resolved is None:
                    return value
                return f"{refresh.group(1)}{resolved}"
            return address(value) or value

        for tag in soup.find_all(True):
            for attr in REFERENCE_ATTRS:
                value = tag.get(attr)
                if not isinstance(value, str):
                    continue
                name = lookup.get(normalize_reference(value))
                if name is None:
                    continue
                if tag.name == "a" and attr == "href" and self.is_page(name):
                    tag[PAGE_TARGET_ATTR] = value
                tag[attr] = self._address_for(name, files, cache)
            srcset = tag.get("srcset")
            if isinstance(srcset, str) and srcset.strip():
                tag["srcset"] = resolve_srcset(srcset)
            if tag.name == "meta":
                content = tag.get("content")
                if isinstance(content, str) and content.strip():
                    tag["content"] = resolve_meta(content)
            style_attr = tag.get("style")
            if isinstance(style_attr, str) and "url(" in style_attr:
                tag["style"] = resolve_css(style_attr)

        for style in soup.find_all("style"):
            text = style.string
            if text and ("url(" in text or "@import" in text):
                style.string = resolve_css(str(text))

        return {address: name for name, address in cache.items()}

    def _mark_editable(self, soup: BeautifulSoup, source: str) -> List[SyncTarget]:
        elements = soup.find_all(list(self.editable_tags))
        spans = build_source_map(source, self.editable_tags)
        aligned = len(spans) == len(elements) and all(
            span.tag == element.name for span, element in zip(spans, elements)
        )
        if not aligned:
            logger.warning(
                "Source offsets disagree with parsed document (%s spans, %s elements); edits disabled",
                len(spans),
                len(elements),
            )
        targets = []
        for index, element in enumerate(elements):
            element[EDITABLE_ATTR] = "true"
            element[SYNC_ID_ATTR] = str(index)
            targets.append(SyncTarget(sync_id=index, tag=element.name, span=spans[index] if aligned else None))
        return targets

    def _inject_bridge(self, soup: BeautifulSoup, render_id: str) -> None:
        if not getattr(self.sandbox, "allows_scripts", False):
            raise SandboxAccessError("Sandbox does not allow the editing bridge to run")

        style = soup.new_tag("style")
        style[BRIDGE_MARKER] = "true"
        style.string = EDITABLE_STYLE
        if soup.head is not None:
            soup.head.append(style)
        else:
            soup.insert(0, style)

        script = soup.new_tag("script")
        script[BRIDGE_MARKER] = "true"
        script.string = build_bridge_script(render_id, self.page_extensions)
        container = soup.body or soup.find("html") or soup
        container.append(script)


__all__ = [
    "REFERENCE_ATTRS",
    "PAGE_TARGET_ATTR",
    "SYNC_ID_ATTR",
    "EDITABLE_ATTR",
    "SyncTarget",
    "RenderRecord",
    "PreviewRenderer",
    "build_code_view",
    "normalize_reference",
    "split_reference",
]
