from .deployment import CORRUPT_FILES_DETECTED, DeployRequest, DeployResult, DeploymentAuditor, HttpDeploymentClient
from .export import ExportResult, build_archive, export_path, write_site
from .persistence import (
    AsyncProjectStore,
    InMemoryProjectPersistence,
    ProjectPersistence,
    ProjectRecord,
    SqlProjectRepository,
)

__all__ = [
    "CORRUPT_FILES_DETECTED",
    "DeployRequest",
    "DeployResult",
    "DeploymentAuditor",
    "HttpDeploymentClient",
    "ExportResult",
    "build_archive",
    "export_path",
    "write_site",
    "AsyncProjectStore",
    "InMemoryProjectPersistence",
    "ProjectPersistence",
    "ProjectRecord",
    "SqlProjectRepository",
]
