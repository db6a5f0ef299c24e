from .controller import DeployOutcome, GenerationSessionController, SessionOutcome, SessionState
from .healing import SelfHealingPolicy, build_fix_prompt, build_runtime_fix_prompt

__all__ = [
    "DeployOutcome",
    "GenerationSessionController",
    "SessionOutcome",
    "SessionState",
    "SelfHealingPolicy",
    "build_fix_prompt",
    "build_runtime_fix_prompt",
]
