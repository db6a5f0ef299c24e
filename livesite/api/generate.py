from __future__ import annotations

import json
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from ..exceptions import GenerationServiceError, describe_error
from ..llm.generation import LLMGenerator
from ..stream.transport import GenerationRequest

router = APIRouter(prefix="/api", tags=["generate"])

logger = logging.getLogger(__name__)

MIN_PROMPT_LENGTH = 5


def get_generator() -> LLMGenerator:
    try:
        return LLMGenerator()
    except GenerationServiceError as exc:
        raise HTTPException(status_code=503, detail=describe_error(exc)) from exc


def _sse(payload: dict) -> str:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


@router.post("/generate")
async def generate(payload: GenerationRequest, generator: LLMGenerator = Depends(get_generator)):
    if len(payload.prompt.strip()) < MIN_PROMPT_LENGTH:
        raise HTTPException(status_code=400, detail="Prompt is too short")

    async def event_stream() -> AsyncGenerator[str, None]:
        try:
            async for text in generator.stream(payload):
                yield _sse({"text": text})
            yield _sse({"status": "completed"})
        except GenerationServiceError as exc:
            logger.warning("Generation failed: %s", exc.with_trace())
            yield _sse({"status": "error", "message": describe_error(exc)})
        yield "data: [DONE]\n\n"

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache"},
    )
