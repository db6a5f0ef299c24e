"""Structured JSON logging for livesite.

Generation runs, sandbox traffic, and dropped edits are logged as
single-line JSON so a session can be replayed from the log file.
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any


class JSONFormatter(logging.Formatter):
    """Formats log records as single-line JSON."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if hasattr(record, "data"):
            entry["data"] = record.data  # type: ignore[attr-defined]
        if record.exc_info and record.exc_info[1]:
            entry["error"] = str(record.exc_info[1])
        return json.dumps(entry, ensure_ascii=False, default=str)


def setup_logging(
    log_dir: Path | None = None,
    level: int | str = logging.INFO,
) -> logging.Logger:
    """Configure structured logging for the livesite package.

    Args:
        log_dir: Directory for log files. If None, logs to stderr only.
        level: Logging level.

    Returns:
        The root 'livesite' logger.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logger = logging.getLogger("livesite")
    logger.setLevel(level)

    # Avoid duplicate handlers on repeated calls
    if logger.handlers:
        return logger

    fmt = JSONFormatter()

    if log_dir:
        log_dir.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(log_dir / "livesite.jsonl", encoding="utf-8")
        fh.setFormatter(fmt)
        fh.setLevel(level)
        logger.addHandler(fh)

    sh = logging.StreamHandler()
    sh.setFormatter(fmt)
    sh.setLevel(logging.WARNING)
    logger.addHandler(sh)

    return logger


class GenerationRunLogger:
    """Context manager for logging a single generation run."""

    def __init__(self, *, project_id: str | None, resume: bool = False):
        self.project_id = project_id
        self.resume = resume
        self.start_time = 0.0
        self._logger = logging.getLogger("livesite.session")

    def __enter__(self) -> GenerationRunLogger:
        self.start_time = time.monotonic()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        pass

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.start_time

    def finished(self, state: str, *, files: int, actions: int) -> None:
        self._logger.info(
            "generation_run",
            extra={"data": {
                "project_id": self.project_id,
                "resume": self.resume,
                "state": state,
                "elapsed_s": round(self.elapsed, 3),
                "files": files,
                "actions": actions,
            }},
        )

    def failed(self, error: str, *, partial_chars: int = 0) -> None:
        self._logger.warning(
            "generation_run_error",
            extra={"data": {
                "project_id": self.project_id,
                "resume": self.resume,
                "elapsed_s": round(self.elapsed, 3),
                "error": error,
                "partial_chars": partial_chars,
            }},
        )


def log_sandbox_message(message_type: str, accepted: bool, reason: str | None = None) -> None:
    """Log one message relayed from the preview sandbox."""
    logger = logging.getLogger("livesite.sandbox")
    logger.info(
        "sandbox_message",
        extra={"data": {
            "type": message_type,
            "accepted": accepted,
            "reason": reason,
        }},
    )
