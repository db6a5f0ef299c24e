from .generate import router as generate_router
from .workspaces import router as workspaces_router

__all__ = ["generate_router", "workspaces_router"]
