from __future__ import annotations

from sqlalchemy import inspect, text

from .base import Base
from .database import Database, get_database
from .models import Project  # noqa: F401  registers the table


def init_db(database: Database | None = None) -> None:
    db_instance = database or get_database()
    Base.metadata.create_all(bind=db_instance.engine)
    migrate_v02_project_columns(db_instance)


def migrate_v02_project_columns(database: Database | None = None) -> None:
    db_instance = database or get_database()
    engine = db_instance.engine
    inspector = inspect(engine)
    if "projects" not in inspector.get_table_names():
        return
    columns = {column["name"] for column in inspector.get_columns("projects")}
    column_defs = {
        "display_name": "VARCHAR",
        "activity_log": "JSON",
        "active_file": "VARCHAR",
        "last_deployment_url": "VARCHAR",
    }

    with engine.begin() as connection:
        for column, ddl_type in column_defs.items():
            if column in columns:
                continue
            connection.execute(text(f"ALTER TABLE projects ADD COLUMN {column} {ddl_type}"))


__all__ = ["init_db", "migrate_v02_project_columns"]
