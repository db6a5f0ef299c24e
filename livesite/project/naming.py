from __future__ import annotations

import random
import re
from typing import Optional

_ADJECTIVES = ("prestige", "elara", "vanta", "aurum", "velvet", "onyx", "luxe", "monarch", "ethereal", "ivory")
_NOUNS = ("studio", "folio", "estate", "manor", "vault", "atlas", "domain", "crest", "sphere", "pillar")
_SLUG_RE = re.compile(r"[^a-z0-9-]+")


def generate_display_name(rng: Optional[random.Random] = None) -> str:
    """Readable ``adjective-noun-NN`` name for a freshly created project."""
    source = rng or random
    return f"{source.choice(_ADJECTIVES)}-{source.choice(_NOUNS)}-{source.randrange(99)}"


def slugify(name: str) -> str:
    slug = re.sub(r"\s+", "-", (name or "").strip().lower())
    return _SLUG_RE.sub("", slug).strip("-")


__all__ = ["generate_display_name", "slugify"]
