from .bridge import EDITABLE_TAGS, build_bridge_script
from .reconciler import EditOutcome, EditReconciler, EditStatus, clean_edit_content
from .renderer import PreviewRenderer, RenderRecord, SyncTarget
from .sandbox import InMemorySandbox, Sandbox, SandboxHandle
from .sanitize import sanitize_fragment, sanitize_html, sanitize_soup
from .source_map import ElementSpan, build_source_map

__all__ = [
    "EDITABLE_TAGS",
    "build_bridge_script",
    "EditOutcome",
    "EditReconciler",
    "EditStatus",
    "clean_edit_content",
    "PreviewRenderer",
    "RenderRecord",
    "SyncTarget",
    "InMemorySandbox",
    "Sandbox",
    "SandboxHandle",
    "sanitize_fragment",
    "sanitize_html",
    "sanitize_soup",
    "ElementSpan",
    "build_source_map",
]
