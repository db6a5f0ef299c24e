from __future__ import annotations

from typing import Optional
from uuid import uuid4


def new_trace_id() -> str:
    return uuid4().hex


class TrackedError(Exception):
    def __init__(self, message: str, *, error_type: str, trace_id: str | None = None) -> None:
        self.error_type = error_type
        self.trace_id = trace_id or new_trace_id()
        super().__init__(message)

    def with_trace(self) -> str:
        return f"{self.args[0]} (trace_id={self.trace_id})"


class TransportError(TrackedError):
    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        trace_id: str | None = None,
    ) -> None:
        self.status_code = status_code
        super().__init__(message, error_type="transport", trace_id=trace_id)


class StreamTimeoutError(TrackedError):
    def __init__(self, message: str, *, trace_id: str | None = None) -> None:
        super().__init__(message, error_type="timeout", trace_id=trace_id)


class SandboxAccessError(TrackedError):
    def __init__(self, message: str, *, trace_id: str | None = None) -> None:
        super().__init__(message, error_type="sandbox_access", trace_id=trace_id)


class DeploymentError(TrackedError):
    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        trace_id: str | None = None,
    ) -> None:
        self.status_code = status_code
        super().__init__(message, error_type="deployment", trace_id=trace_id)


class SelfHealingExhaustedError(TrackedError):
    def __init__(
        self,
        message: str,
        *,
        attempts: int,
        details: Optional[str] = None,
        trace_id: str | None = None,
    ) -> None:
        self.attempts = attempts
        self.details = details
        super().__init__(message, error_type="self_healing_exhausted", trace_id=trace_id)


class PersistenceError(TrackedError):
    def __init__(self, message: str, *, trace_id: str | None = None) -> None:
        super().__init__(message, error_type="persistence", trace_id=trace_id)


class GenerationServiceError(TrackedError):
    def __init__(self, message: str, *, retryable: bool = False, trace_id: str | None = None) -> None:
        self.retryable = retryable
        super().__init__(message, error_type="generation_service", trace_id=trace_id)


class SessionBusyError(TrackedError):
    def __init__(self, message: str = "A generation is already running", *, trace_id: str | None = None) -> None:
        super().__init__(message, error_type="session_busy", trace_id=trace_id)


def describe_error(exc: BaseException) -> str:
    """User-facing text for an error; never a stack trace."""
    if isinstance(exc, TrackedError):
        return str(exc.args[0]) if exc.args else exc.error_type
    message = str(exc).strip()
    if message:
        return f"{type(exc).__name__}: {message}"
    return type(exc).__name__


__all__ = [
    "new_trace_id",
    "TrackedError",
    "TransportError",
    "StreamTimeoutError",
    "SandboxAccessError",
    "DeploymentError",
    "SelfHealingExhaustedError",
    "PersistenceError",
    "GenerationServiceError",
    "SessionBusyError",
    "describe_error",
]
