from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class CreateWorkspaceRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    project_id: Optional[str] = Field(default=None, alias="projectId")


class WorkspaceGenerateRequest(BaseModel):
    prompt: str = Field(min_length=1)
    resume: bool = False
    display_name: Optional[str] = Field(default=None, alias="displayName")

    model_config = ConfigDict(populate_by_name=True)


class SwitchActiveRequest(BaseModel):
    name: str


class DeployWorkspaceRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    slug: Optional[str] = None
    custom_domain: Optional[str] = Field(default=None, alias="customDomain")


class HealRequest(BaseModel):
    message: str = Field(min_length=1)


__all__ = [
    "CreateWorkspaceRequest",
    "WorkspaceGenerateRequest",
    "SwitchActiveRequest",
    "DeployWorkspaceRequest",
    "HealRequest",
]
