from __future__ import annotations

import re
from typing import Union

from bs4 import BeautifulSoup, Tag

URL_ATTRS = ("href", "src", "action", "formaction", "poster", "xlink:href")
_SCRIPT_URL_RE = re.compile(r"^\s*(?:javascript|vbscript)\s*:", re.IGNORECASE)
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x20]+")


def _is_script_url(value: object) -> bool:
    if not isinstance(value, str):
        return False
    return bool(_SCRIPT_URL_RE.match(_CONTROL_CHARS_RE.sub("", value)))


def sanitize_soup(soup: Union[BeautifulSoup, Tag]) -> int:
    """Strip author script from a parsed document in place.

    Removes every ``<script>`` element, every ``on*`` event-handler
    attribute, and ``javascript:`` URLs. Returns the number of removals.
    """
    removed = 0
    for script in soup.find_all("script"):
        script.decompose()
        removed += 1
    for tag in soup.find_all(True):
        for attr in list(tag.attrs):
            lowered = attr.lower()
            if lowered.startswith("on"):
                del tag.attrs[attr]
                removed += 1
            elif lowered in URL_ATTRS and _is_script_url(tag.attrs.get(attr)):
                del tag.attrs[attr]
                removed += 1
    return removed


def sanitize_html(html: str) -> str:
    if not html:
        return ""
    soup = BeautifulSoup(html, "html.parser")
    sanitize_soup(soup)
    return str(soup)


def sanitize_fragment(fragment: str) -> str:
    """Sanitize inner HTML; plain text passes through untouched."""
    if not fragment or "<" not in fragment:
        return fragment or ""
    return sanitize_html(fragment)


__all__ = ["URL_ATTRS", "sanitize_soup", "sanitize_html", "sanitize_fragment"]
