"""Packaging a project's files for download or for a local directory.

File names come from model output, so every name is checked before it
becomes a path: absolute names, drive prefixes and ``..`` segments are
skipped instead of written.
"""

from __future__ import annotations

import io
import logging
import zipfile
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import List, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

INDEX_FILE = "index.html"


@dataclass
class ExportResult:
    archive: bytes = b""
    files: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)


def export_path(name: str, *, extension: str = ".html", entry_file: Optional[str] = None) -> Optional[str]:
    """Relative path ``name`` is written to, or None when it is unsafe.

    The entry file becomes ``index.html``. Names without a suffix get
    ``extension``.
    """
    if entry_file is not None and name == entry_file:
        return INDEX_FILE
    cleaned = (name or "").strip().replace("\\", "/")
    if not cleaned or ":" in cleaned:
        return None
    path = PurePosixPath(cleaned)
    if path.is_absolute() or ".." in path.parts or not path.parts:
        return None
    if not path.suffix:
        path = path.with_name(f"{path.name}{extension}")
    return path.as_posix()


def _planned_paths(
    files: Mapping[str, str],
    *,
    extension: str,
    entry_file: Optional[str],
) -> Tuple[List[Tuple[str, str, str]], List[str]]:
    planned: List[Tuple[str, str, str]] = []
    skipped: List[str] = []
    used = set()
    for name, content in files.items():
        path = export_path(name, extension=extension, entry_file=entry_file)
        if path is None or path in used:
            logger.warning("Skipping file %r: unsafe or duplicate export path", name)
            skipped.append(name)
            continue
        used.add(path)
        planned.append((name, path, content))
    return planned, skipped


def build_archive(
    files: Mapping[str, str],
    *,
    extension: str = ".html",
    entry_file: Optional[str] = None,
) -> ExportResult:
    planned, skipped = _planned_paths(files, extension=extension, entry_file=entry_file)
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
        for _, path, content in planned:
            archive.writestr(path, content)
    return ExportResult(
        archive=buffer.getvalue(),
        files=[path for _, path, _ in planned],
        skipped=skipped,
    )


def write_site(
    files: Mapping[str, str],
    out_dir: Path,
    *,
    extension: str = ".html",
    entry_file: Optional[str] = None,
) -> ExportResult:
    """Write ``files`` under ``out_dir``; nothing is written outside it."""
    root = out_dir.resolve()
    root.mkdir(parents=True, exist_ok=True)
    planned, skipped = _planned_paths(files, extension=extension, entry_file=entry_file)
    written: List[str] = []
    for name, path, content in planned:
        target = (root / path).resolve()
        if not target.is_relative_to(root):
            logger.warning("Skipping file %r: %s is outside %s", name, target, root)
            skipped.append(name)
            continue
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        written.append(path)
    return ExportResult(files=written, skipped=skipped)


__all__ = ["INDEX_FILE", "ExportResult", "export_path", "build_archive", "write_site"]
