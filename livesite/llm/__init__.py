from .generation import LLMGenerator
from .prompts import build_generation_messages
from .retry import with_retry

__all__ = ["LLMGenerator", "build_generation_messages", "with_retry"]
