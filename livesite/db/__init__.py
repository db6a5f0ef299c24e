from .base import Base
from .database import Database, get_database, reset_database
from .migrations import init_db
from .models import Project
from .utils import project_session

__all__ = [
    "Base",
    "Database",
    "get_database",
    "reset_database",
    "init_db",
    "Project",
    "project_session",
]
