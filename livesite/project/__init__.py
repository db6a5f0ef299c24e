from .store import ProjectFileStore, ProjectState
from .naming import generate_display_name, slugify

__all__ = ["ProjectFileStore", "ProjectState", "generate_display_name", "slugify"]
