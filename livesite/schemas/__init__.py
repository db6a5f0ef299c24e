from .sandbox import (
    ConsoleLog,
    NavigationRequest,
    SandboxError,
    SandboxMessage,
    SyncEdit,
    parse_sandbox_message,
)
from .workspace import (
    CreateWorkspaceRequest,
    DeployWorkspaceRequest,
    HealRequest,
    SwitchActiveRequest,
    WorkspaceGenerateRequest,
)

__all__ = [
    "ConsoleLog",
    "NavigationRequest",
    "SandboxError",
    "SandboxMessage",
    "SyncEdit",
    "parse_sandbox_message",
    "CreateWorkspaceRequest",
    "DeployWorkspaceRequest",
    "HealRequest",
    "SwitchActiveRequest",
    "WorkspaceGenerateRequest",
]
