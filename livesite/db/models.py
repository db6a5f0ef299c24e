from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, Index, String, Text

from .base import Base


class Project(Base):
    """One generated site: the file map plus what produced it."""

    __tablename__ = "projects"

    id = Column(String, primary_key=True)
    owner_id = Column(String, nullable=True)
    display_name = Column(String, nullable=True)
    prompt = Column(Text, nullable=True)
    files = Column(JSON, nullable=False, default=dict)
    activity_log = Column(JSON, nullable=False, default=list)
    active_file = Column(String, nullable=True)
    last_deployment_url = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (Index("ix_projects_owner_updated", "owner_id", "updated_at"),)


__all__ = ["Project"]
