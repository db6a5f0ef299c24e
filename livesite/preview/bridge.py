"""Script injected into every rendered preview page.

The bridge is the only code that runs inside the sandbox. It reports
blurred edits, intercepts clicks on internal page links, and relays
runtime errors and console output to the host as plain messages.
"""

from __future__ import annotations

import json
from typing import Iterable

EDITABLE_TAGS = ("h1", "h2", "h3", "h4", "h5", "h6", "p", "span", "a", "li", "button")

SYNC_TEXT = "SYNC_TEXT"
SWITCH_PAGE_INTERNAL = "SWITCH_PAGE_INTERNAL"
IFRAME_ERROR = "IFRAME_ERROR"
CONSOLE_LOG = "CONSOLE_LOG"

BRIDGE_MARKER = "data-livesite-bridge"

EDITABLE_STYLE = (
    '[contenteditable="true"]:hover { outline: 1px dashed rgba(16, 185, 129, 0.6); cursor: text; }\n'
    '[contenteditable="true"]:focus { outline: 2px solid #10b981; border-radius: 4px; }'
)

_BRIDGE_TEMPLATE = """
(function () {
  var RENDER_ID = %(render_id)s;
  var PAGE_EXTENSIONS = %(extensions)s;

  function post(message) {
    try { window.parent.postMessage(message, "*"); } catch (err) {}
  }

  document.querySelectorAll("[data-sync-id]").forEach(function (el) {
    el.addEventListener("blur", function () {
      post({
        type: "%(sync)s",
        syncId: parseInt(el.getAttribute("data-sync-id"), 10),
        newContent: el.innerHTML,
        renderId: RENDER_ID
      });
    });
  });

  function pageName(link) {
    var explicit = link.getAttribute("data-page-target");
    var href = (explicit || link.getAttribute("href") || "").split("#")[0].split("?")[0];
    for (var i = 0; i < PAGE_EXTENSIONS.length; i++) {
      var ext = PAGE_EXTENSIONS[i];
      if (href.length > ext.length && href.slice(-ext.length).toLowerCase() === ext) {
        return href.slice(0, -ext.length).replace(/^\\.?\\//, "");
      }
    }
    return explicit ? href.replace(/^\\.?\\//, "") : null;
  }

  document.addEventListener("click", function (event) {
    var link = event.target && event.target.closest ? event.target.closest("a") : null;
    if (!link) { return; }
    var name = pageName(link);
    if (!name) { return; }
    event.preventDefault();
    post({ type: "%(switch)s", pageName: name });
  }, true);

  window.addEventListener("error", function (event) {
    post({
      type: "%(error)s",
      error: { msg: event.message, line: event.lineno, col: event.colno }
    });
  });

  ["log", "warn", "error"].forEach(function (level) {
    var original = console[level];
    console[level] = function () {
      var parts = Array.prototype.slice.call(arguments).map(function (arg) {
        try { return typeof arg === "string" ? arg : JSON.stringify(arg); } catch (err) { return String(arg); }
      });
      post({ type: "%(console)s", logType: level, message: parts.join(" ") });
      return original.apply(console, arguments);
    };
  });
})();
"""


def build_bridge_script(render_id: str, page_extensions: Iterable[str]) -> str:
    extensions = [ext.lower() for ext in page_extensions]
    return _BRIDGE_TEMPLATE % {
        "render_id": json.dumps(render_id),
        "extensions": json.dumps(extensions),
        "sync": SYNC_TEXT,
        "switch": SWITCH_PAGE_INTERNAL,
        "error": IFRAME_ERROR,
        "console": CONSOLE_LOG,
    }


__all__ = [
    "EDITABLE_TAGS",
    "SYNC_TEXT",
    "SWITCH_PAGE_INTERNAL",
    "IFRAME_ERROR",
    "CONSOLE_LOG",
    "BRIDGE_MARKER",
    "EDITABLE_STYLE",
    "build_bridge_script",
]
