from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..config import Settings, get_settings

FIX_PROMPT_TEMPLATE = "FIX ERROR: {details}. Ensure all tags are closed and the framework structure is valid."
RUNTIME_FIX_TEMPLATE = (
    "FIX RUNTIME ERROR: {message}. Return the complete corrected page and keep "
    "everything that is not related to the error unchanged."
)


def build_fix_prompt(details: Optional[str]) -> str:
    cleaned = (details or "").strip().rstrip(".") or "Deployment audit reported corrupt files"
    return FIX_PROMPT_TEMPLATE.format(details=cleaned)


def build_runtime_fix_prompt(message: str) -> str:
    cleaned = (message or "").strip().rstrip(".") or "Unknown runtime error"
    return RUNTIME_FIX_TEMPLATE.format(message=cleaned)


@dataclass
class SelfHealingPolicy:
    """Bounds automatic repair of corrupt deployments.

    ``max_attempts`` counts corrective generations, not deploy calls; a
    deployment is tried at most ``max_attempts + 1`` times. The delay
    doubles after each repair and is zero by default.
    """

    max_attempts: int = 3
    delay_seconds: float = 0.0

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "SelfHealingPolicy":
        resolved = settings or get_settings()
        return cls(
            max_attempts=max(0, int(resolved.self_heal_max_attempts)),
            delay_seconds=max(0.0, float(resolved.self_heal_delay_seconds)),
        )

    def allows(self, attempt: int) -> bool:
        return attempt <= self.max_attempts

    def delay_for(self, attempt: int) -> float:
        if self.delay_seconds <= 0:
            return 0.0
        return self.delay_seconds * (2 ** (attempt - 1))


__all__ = [
    "FIX_PROMPT_TEMPLATE",
    "RUNTIME_FIX_TEMPLATE",
    "build_fix_prompt",
    "build_runtime_fix_prompt",
    "SelfHealingPolicy",
]
