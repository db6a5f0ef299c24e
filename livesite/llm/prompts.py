from __future__ import annotations

from typing import Dict, List

from ..stream.transport import GenerationRequest

SYSTEM_PROMPT = """You are a world-class web developer.
TASK: Build the website the user describes as one or more self-contained HTML files.

OUTPUT FORMAT:
- Start every file with [NEW_PAGE: name] on its own line, where name is a short
  lowercase file name without extension (landing, about, pricing). The first
  file must be named landing.
- End every file with [END_PAGE].
- Between files you may report progress with [ACTION: short description].
- Link between pages with <a href="name.html">.
- Output ONLY the tagged HTML. NO markdown fences, NO explanations.
"""

REFINE_INSTRUCTIONS = """Modify the provided HTML only as the user's request asks.
Return the complete modified page, wrapped in [NEW_PAGE: {page}] ... [END_PAGE].
Current HTML:
---
{current}
---
"""

RESUME_INSTRUCTIONS = """The page below was cut off. Continue it exactly where it stops.
Do not repeat anything that is already there and do not emit [NEW_PAGE] for it.
Partial HTML:
---
{current}
---
"""


def build_generation_messages(request: GenerationRequest) -> List[Dict[str, str]]:
    messages = [{"role": "system", "content": SYSTEM_PROMPT}]
    if request.partial_code:
        template = RESUME_INSTRUCTIONS if request.resume else REFINE_INSTRUCTIONS
        page = request.page_name or "landing"
        messages.append(
            {"role": "system", "content": template.format(page=page, current=request.partial_code)}
        )
    messages.append({"role": "user", "content": request.prompt.strip()})
    return messages


__all__ = ["SYSTEM_PROMPT", "build_generation_messages"]
