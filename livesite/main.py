from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from . import __version__
from .api import generate_router, workspaces_router
from .config import get_settings
from .db.database import get_database
from .db.migrations import init_db
from .log import setup_logging
from .services.workspace import WorkspaceRegistry

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI):
    settings = get_settings()
    setup_logging(Path(settings.log_dir) if settings.log_dir else None, settings.log_level)
    init_db(get_database())
    if getattr(app.state, "registry", None) is None:
        app.state.registry = WorkspaceRegistry(settings=settings)
    yield


def create_app() -> FastAPI:
    app = FastAPI(title="Livesite API", version=__version__, lifespan=_lifespan)

    settings = get_settings()
    allow_origins = settings.cors_allow_origins or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials="*" not in allow_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(generate_router)
    app.include_router(workspaces_router)

    @app.get("/health")
    def health() -> dict:
        checks: dict[str, str] = {}
        overall = "ok"

        try:
            with get_database().session() as session:
                session.execute(text("SELECT 1"))
            checks["database"] = "ok"
        except Exception as exc:
            checks["database"] = f"error: {exc}"
            overall = "degraded"

        checks["api_key"] = "ok" if get_settings().openai_api_key else "missing"
        if checks["api_key"] != "ok":
            overall = "degraded"

        return {"status": overall, "checks": checks}

    return app


__all__ = ["create_app"]
