from enum import Enum


class EventType(str, Enum):
    # Stream events
    CONTENT_DELTA = "content_delta"
    FILE_SWITCH = "file_switch"
    ACTION_LOG = "action_log"
    SESSION_STATE = "session_state"

    # Preview events
    PREVIEW_READY = "preview_ready"
    EDIT_APPLIED = "edit_applied"
    EDIT_REJECTED = "edit_rejected"
    CONSOLE_LOG = "console_log"
    SANDBOX_ERROR = "sandbox_error"

    # Repair and deployment events
    HEAL_ATTEMPT = "heal_attempt"
    DEPLOYMENT = "deployment"

    ERROR = "error"
    DONE = "done"

