from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Dict, List, Mapping, Optional, Protocol
from uuid import uuid4

from sqlalchemy.orm import Session as DbSession

from ..db.database import Database
from ..db.models import Project
from ..db.utils import project_session
from ..project.store import ProjectState

logger = logging.getLogger(__name__)


class ProjectRecord(ProjectState):
    prompt: Optional[str] = None
    activity_log: List[str] = []
    owner_id: Optional[str] = None
    last_deployment_url: Optional[str] = None


class ProjectPersistence(Protocol):
    async def save(
        self,
        project_id: Optional[str],
        files: Mapping[str, str],
        *,
        prompt: Optional[str] = None,
        activity_log: Optional[List[str]] = None,
        active_file: Optional[str] = None,
        display_name: Optional[str] = None,
        owner_id: Optional[str] = None,
    ) -> str: ...

    async def load(self, project_id: str) -> Optional[ProjectRecord]: ...

    async def record_deployment(self, project_id: str, url: str) -> None: ...


def _to_record(project: Project) -> ProjectRecord:
    return ProjectRecord(
        id=project.id,
        files=dict(project.files or {}),
        active_file=project.active_file,
        display_name=project.display_name,
        prompt=project.prompt,
        activity_log=list(project.activity_log or []),
        owner_id=project.owner_id,
        last_deployment_url=project.last_deployment_url,
    )


class SqlProjectRepository:
    """Keyed upsert of a project's file map."""

    def __init__(self, db: DbSession) -> None:
        self.db = db

    def save(
        self,
        project_id: Optional[str],
        files: Mapping[str, str],
        *,
        prompt: Optional[str] = None,
        activity_log: Optional[List[str]] = None,
        active_file: Optional[str] = None,
        display_name: Optional[str] = None,
        owner_id: Optional[str] = None,
    ) -> Project:
        record = self.db.get(Project, project_id) if project_id else None
        if record is None:
            record = Project(id=project_id or uuid4().hex, created_at=datetime.utcnow())
        record.files = dict(files)
        record.activity_log = list(activity_log or [])
        if prompt is not None:
            record.prompt = prompt
        if active_file is not None:
            record.active_file = active_file
        if display_name is not None:
            record.display_name = display_name
        if owner_id is not None:
            record.owner_id = owner_id
        record.updated_at = datetime.utcnow()
        self.db.add(record)
        self.db.flush()
        return record

    def get(self, project_id: str) -> Optional[Project]:
        return self.db.get(Project, project_id)

    def set_deployment_url(self, project_id: str, url: str) -> Optional[Project]:
        record = self.db.get(Project, project_id)
        if record is None:
            return None
        record.last_deployment_url = url
        record.updated_at = datetime.utcnow()
        self.db.add(record)
        return record

    def list_projects(self, *, owner_id: Optional[str] = None, limit: int = 20) -> List[Project]:
        query = self.db.query(Project)
        if owner_id is not None:
            query = query.filter(Project.owner_id == owner_id)
        return query.order_by(Project.updated_at.desc()).limit(limit).all()


class AsyncProjectStore:
    """Runs ``SqlProjectRepository`` calls in a worker thread."""

    def __init__(self, database: Optional[Database] = None) -> None:
        self._database = database

    def _save_sync(self, project_id, files, kwargs) -> str:
        with project_session(self._database, commit=True, action="save project") as db:
            return SqlProjectRepository(db).save(project_id, files, **kwargs).id

    def _load_sync(self, project_id: str) -> Optional[ProjectRecord]:
        with project_session(self._database, action=f"load project {project_id}") as db:
            record = SqlProjectRepository(db).get(project_id)
            return _to_record(record) if record is not None else None

    def _record_deployment_sync(self, project_id: str, url: str) -> None:
        with project_session(self._database, commit=True, action="record deployment") as db:
            SqlProjectRepository(db).set_deployment_url(project_id, url)

    async def save(
        self,
        project_id: Optional[str],
        files: Mapping[str, str],
        **kwargs,
    ) -> str:
        return await asyncio.to_thread(self._save_sync, project_id, dict(files), kwargs)

    async def load(self, project_id: str) -> Optional[ProjectRecord]:
        return await asyncio.to_thread(self._load_sync, project_id)

    async def record_deployment(self, project_id: str, url: str) -> None:
        await asyncio.to_thread(self._record_deployment_sync, project_id, url)


class InMemoryProjectPersistence:
    def __init__(self) -> None:
        self.projects: Dict[str, ProjectRecord] = {}
        self.save_calls = 0

    async def save(
        self,
        project_id: Optional[str],
        files: Mapping[str, str],
        *,
        prompt: Optional[str] = None,
        activity_log: Optional[List[str]] = None,
        active_file: Optional[str] = None,
        display_name: Optional[str] = None,
        owner_id: Optional[str] = None,
    ) -> str:
        self.save_calls += 1
        resolved_id = project_id or uuid4().hex
        existing = self.projects.get(resolved_id)
        self.projects[resolved_id] = ProjectRecord(
            id=resolved_id,
            files=dict(files),
            active_file=active_file,
            display_name=display_name or (existing.display_name if existing else None),
            prompt=prompt,
            activity_log=list(activity_log or []),
            owner_id=owner_id,
            last_deployment_url=existing.last_deployment_url if existing else None,
        )
        return resolved_id

    async def load(self, project_id: str) -> Optional[ProjectRecord]:
        record = self.projects.get(project_id)
        return record.model_copy(deep=True) if record is not None else None

    async def record_deployment(self, project_id: str, url: str) -> None:
        record = self.projects.get(project_id)
        if record is not None:
            record.last_deployment_url = url


__all__ = [
    "ProjectRecord",
    "ProjectPersistence",
    "SqlProjectRepository",
    "AsyncProjectStore",
    "InMemoryProjectPersistence",
]
