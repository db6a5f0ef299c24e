from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict
from typing import Any, AsyncGenerator, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import HTMLResponse, Response, StreamingResponse

from ..events import ErrorEvent
from ..exceptions import SessionBusyError, describe_error
from ..schemas.workspace import (
    CreateWorkspaceRequest,
    DeployWorkspaceRequest,
    HealRequest,
    SwitchActiveRequest,
    WorkspaceGenerateRequest,
)
from ..project.naming import slugify
from ..services.deployment import DeploymentAuditor, HttpDeploymentClient
from ..services.workspace import Workspace, WorkspaceRegistry

router = APIRouter(prefix="/api/workspaces", tags=["workspaces"])

logger = logging.getLogger(__name__)


def get_registry(request: Request) -> WorkspaceRegistry:
    registry = getattr(request.app.state, "registry", None)
    if registry is None:
        registry = WorkspaceRegistry()
        request.app.state.registry = registry
    return registry


def get_deployer(request: Request) -> DeploymentAuditor:
    deployer = getattr(request.app.state, "deployer", None)
    if deployer is None:
        deployer = HttpDeploymentClient()
        request.app.state.deployer = deployer
    return deployer


def _get_workspace(registry: WorkspaceRegistry, workspace_id: str) -> Workspace:
    workspace = registry.get(workspace_id)
    if workspace is None:
        raise HTTPException(status_code=404, detail="Workspace not found")
    return workspace


@router.post("")
async def create_workspace(
    payload: Optional[CreateWorkspaceRequest] = None,
    registry: WorkspaceRegistry = Depends(get_registry),
) -> Dict[str, Any]:
    project_id = payload.project_id if payload is not None else None
    try:
        workspace = await registry.create(project_id=project_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="Project not found") from exc
    return workspace.describe()


@router.get("/{workspace_id}")
def get_workspace(workspace_id: str, registry: WorkspaceRegistry = Depends(get_registry)) -> Dict[str, Any]:
    return _get_workspace(registry, workspace_id).describe()


@router.delete("/{workspace_id}")
def close_workspace(workspace_id: str, registry: WorkspaceRegistry = Depends(get_registry)) -> Dict[str, Any]:
    if not registry.remove(workspace_id):
        raise HTTPException(status_code=404, detail="Workspace not found")
    return {"closed": True}


@router.get("/{workspace_id}/files")
def list_files(workspace_id: str, registry: WorkspaceRegistry = Depends(get_registry)) -> Dict[str, Any]:
    workspace = _get_workspace(registry, workspace_id)
    store = workspace.store
    files = [
        {
            "name": name,
            "size": len(store.get(name) or ""),
            "active": name == store.active_file,
            "streaming": store.is_streaming(name),
        }
        for name in store.names()
    ]
    return {"files": files, "active_file": store.active_file}


@router.get("/{workspace_id}/files/{name}")
def get_file(workspace_id: str, name: str, registry: WorkspaceRegistry = Depends(get_registry)) -> Dict[str, Any]:
    workspace = _get_workspace(registry, workspace_id)
    if name not in workspace.store:
        raise HTTPException(status_code=404, detail="File not found")
    return {"name": name, "content": workspace.store.get(name) or ""}


@router.post("/{workspace_id}/generate")
async def generate(
    workspace_id: str,
    payload: WorkspaceGenerateRequest,
    request: Request,
    registry: WorkspaceRegistry = Depends(get_registry),
):
    workspace = _get_workspace(registry, workspace_id)
    if workspace.controller.is_running:
        raise HTTPException(status_code=409, detail="A generation is already running")
    if payload.display_name:
        workspace.store.display_name = payload.display_name

    emitter = workspace.emitter
    start_index = emitter.cursor
    task = workspace.start_generation(payload.prompt, resume=payload.resume)

    async def event_stream() -> AsyncGenerator[str, None]:
        index = start_index
        while True:
            if await request.is_disconnected():
                return
            events, index = emitter.events_since(index)
            for event in events:
                yield event.to_sse()
            if task.done():
                break
            await asyncio.wait({task}, timeout=0.05)

        events, index = emitter.events_since(index)
        for event in events:
            yield event.to_sse()
        if not task.cancelled() and task.exception() is not None:
            exc = task.exception()
            logger.error("Generation task failed: %s", exc)
            yield ErrorEvent(message=describe_error(exc), workspace_id=workspace.id).to_sse()
        yield "data: [DONE]\n\n"

    return StreamingResponse(event_stream(), media_type="text/event-stream")


@router.post("/{workspace_id}/abort")
def abort(workspace_id: str, registry: WorkspaceRegistry = Depends(get_registry)) -> Dict[str, Any]:
    workspace = _get_workspace(registry, workspace_id)
    return {"cancelled": workspace.controller.cancel(), "state": workspace.controller.state.value}


@router.get("/{workspace_id}/preview", response_class=HTMLResponse)
def preview(workspace_id: str, registry: WorkspaceRegistry = Depends(get_registry)):
    workspace = _get_workspace(registry, workspace_id)
    html = workspace.preview_html()
    if html is None:
        raise HTTPException(status_code=404, detail="Nothing to preview yet")
    return HTMLResponse(content=html)


@router.get("/{workspace_id}/export")
def export_project(workspace_id: str, registry: WorkspaceRegistry = Depends(get_registry)) -> Response:
    """Download every file as a zip; the entry file is renamed to index.html."""
    workspace = _get_workspace(registry, workspace_id)
    if not len(workspace.store):
        raise HTTPException(status_code=404, detail="Nothing to export yet")
    result = workspace.export()
    filename = slugify(workspace.store.display_name or "") or "site"
    headers = {"Content-Disposition": f"attachment; filename={filename}.zip"}
    return Response(content=result.archive, media_type="application/zip", headers=headers)


@router.post("/{workspace_id}/messages")
def relay_message(
    workspace_id: str,
    message: Dict[str, Any],
    registry: WorkspaceRegistry = Depends(get_registry),
) -> Dict[str, Any]:
    workspace = _get_workspace(registry, workspace_id)
    return workspace.relay(message).to_dict()


@router.post("/{workspace_id}/active")
def switch_active(
    workspace_id: str,
    payload: SwitchActiveRequest,
    registry: WorkspaceRegistry = Depends(get_registry),
) -> Dict[str, Any]:
    workspace = _get_workspace(registry, workspace_id)
    switched = workspace.switch_active(payload.name)
    return {"switched": switched, **workspace.describe()}


@router.post("/{workspace_id}/deploy")
async def deploy(
    workspace_id: str,
    payload: Optional[DeployWorkspaceRequest] = None,
    registry: WorkspaceRegistry = Depends(get_registry),
    deployer: DeploymentAuditor = Depends(get_deployer),
) -> Dict[str, Any]:
    workspace = _get_workspace(registry, workspace_id)
    body = payload or DeployWorkspaceRequest()
    outcome = await workspace.controller.deploy_with_healing(
        deployer,
        slug=body.slug,
        custom_domain=body.custom_domain,
    )
    return asdict(outcome)


@router.post("/{workspace_id}/heal")
async def heal(
    workspace_id: str,
    payload: HealRequest,
    registry: WorkspaceRegistry = Depends(get_registry),
) -> Dict[str, Any]:
    workspace = _get_workspace(registry, workspace_id)
    try:
        outcome = await workspace.controller.heal_runtime_error(payload.message)
    except SessionBusyError as exc:
        raise HTTPException(status_code=409, detail=describe_error(exc)) from exc
    return {
        "state": outcome.state.value,
        "error": outcome.error,
        "files": sorted(outcome.files),
        "active_file": outcome.active_file,
    }
