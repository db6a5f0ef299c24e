from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session as DbSession

from ..exceptions import PersistenceError
from .database import Database, get_database

logger = logging.getLogger(__name__)


@contextmanager
def project_session(
    database: Optional[Database] = None,
    *,
    commit: bool = False,
    action: str = "access projects",
) -> Generator[DbSession, None, None]:
    """Open a session on the project database.

    With ``commit=True`` the work is committed when the block exits cleanly.
    Any database failure rolls back and surfaces as ``PersistenceError`` so
    callers above the storage layer never see SQLAlchemy types.
    """
    db_instance = database or get_database()
    session = db_instance.session()
    try:
        yield session
        if commit:
            session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.warning("Could not %s: %s", action, exc)
        raise PersistenceError(f"Could not {action}: {exc}") from exc
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


__all__ = ["project_session"]
