from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Dict, Iterator, List, Mapping, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class ProjectState(BaseModel):
    id: Optional[str] = None
    files: Dict[str, str] = Field(default_factory=dict)
    active_file: Optional[str] = None
    display_name: Optional[str] = None


class ProjectFileStore:
    """Canonical ``name -> content`` map plus the active-file pointer.

    Every operation is synchronous and completes without yielding, so the
    stream path and the edit path never interleave inside one mutation.
    """

    def __init__(
        self,
        files: Optional[Mapping[str, str]] = None,
        *,
        active_file: Optional[str] = None,
        project_id: Optional[str] = None,
        display_name: Optional[str] = None,
        default_entry_file: str = "landing",
    ) -> None:
        self._files: Dict[str, str] = {}
        self._revisions: Dict[str, int] = {}
        self.project_id = project_id
        self.display_name = display_name
        self.default_entry_file = default_entry_file
        self.streaming_file: Optional[str] = None
        self._active_file: Optional[str] = None
        for name, content in (files or {}).items():
            self._files[name] = content or ""
            self._revisions[name] = 1
        if active_file and active_file in self._files:
            self._active_file = active_file
        elif self._files:
            self._active_file = (
                default_entry_file if default_entry_file in self._files else next(iter(self._files))
            )

    @property
    def active_file(self) -> Optional[str]:
        return self._active_file

    def __contains__(self, name: object) -> bool:
        return name in self._files

    def __len__(self) -> int:
        return len(self._files)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._files))

    def names(self) -> List[str]:
        return list(self._files)

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self._files.get(name, default)

    def active_content(self) -> str:
        if self._active_file is None:
            return ""
        return self._files.get(self._active_file, "")

    def revision(self, name: str) -> int:
        return self._revisions.get(name, 0)

    def _touch(self, name: str) -> None:
        self._revisions[name] = self._revisions.get(name, 0) + 1
        if self._active_file is None:
            self._active_file = name

    def set_file_content(self, name: str, content: str) -> None:
        """Replace a file's content, creating the file if needed."""
        self._files[name] = content or ""
        self._touch(name)

    def append_or_create(self, name: str, delta: str) -> str:
        """Append to ``name``; a new file is placed after all existing ones."""
        if name not in self._files:
            self._files[name] = ""
            logger.debug("Created file %s at position %s", name, len(self._files) - 1)
        if delta:
            self._files[name] += delta
        self._touch(name)
        return self._files[name]

    def switch_active(self, name: str) -> bool:
        if name not in self._files:
            logger.debug("Ignoring switch to unknown file %s", name)
            return False
        self._active_file = name
        return True

    def is_streaming(self, name: Optional[str]) -> bool:
        return name is not None and self.streaming_file == name

    def snapshot(self) -> Mapping[str, str]:
        """Read-only copy of the file map for persistence and export."""
        return MappingProxyType(dict(self._files))

    def to_state(self) -> ProjectState:
        return ProjectState(
            id=self.project_id,
            files=dict(self._files),
            active_file=self._active_file,
            display_name=self.display_name,
        )

    @classmethod
    def from_state(cls, state: ProjectState, *, default_entry_file: str = "landing") -> "ProjectFileStore":
        return cls(
            state.files,
            active_file=state.active_file,
            project_id=state.id,
            display_name=state.display_name,
            default_entry_file=default_entry_file,
        )


__all__ = ["ProjectState", "ProjectFileStore"]
