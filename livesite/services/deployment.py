from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Protocol

import httpx
from pydantic import BaseModel, ConfigDict, Field

from ..config import Settings, get_settings
from ..exceptions import DeploymentError

logger = logging.getLogger(__name__)

CORRUPT_FILES_DETECTED = "CORRUPT_FILES_DETECTED"


class DeployRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    project_id: Optional[str] = Field(default=None, alias="projectId")
    slug: Optional[str] = None
    custom_domain: Optional[str] = Field(default=None, alias="customDomain")
    files: Dict[str, str] = Field(default_factory=dict)
    attempt: int = 1


class DeployResult(BaseModel):
    ok: bool
    url: Optional[str] = None
    error: Optional[str] = None
    details: Optional[str] = None

    @property
    def needs_repair(self) -> bool:
        return not self.ok and self.error == CORRUPT_FILES_DETECTED


class DeploymentAuditor(Protocol):
    """Deploys a file snapshot, auditing it for structural corruption first."""

    async def deploy(self, request: DeployRequest) -> DeployResult: ...


def _error_message(body: Any, status_code: int) -> str:
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            return str(error.get("message") or error.get("code") or f"Deployment failed ({status_code})")
        message = body.get("message") or body.get("details") or error
        if message:
            return str(message)
    return f"Deployment failed with status {status_code}"


class HttpDeploymentClient:
    def __init__(
        self,
        *,
        settings: Optional[Settings] = None,
        url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._url = url or self._settings.deploy_url
        self._client = client
        self._headers = headers or {}

    async def deploy(self, request: DeployRequest) -> DeployResult:
        if not self._url:
            raise DeploymentError("Deployment endpoint is not configured")
        owns_client = self._client is None
        client = self._client or httpx.AsyncClient(timeout=self._settings.deploy_timeout_seconds)
        try:
            response = await client.post(
                self._url,
                json=request.model_dump(by_alias=True),
                headers=self._headers,
            )
        except httpx.HTTPError as exc:
            raise DeploymentError(f"Deployment request failed: {exc}") from exc
        finally:
            if owns_client:
                await client.aclose()

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.status_code == 422 and isinstance(body, dict) and body.get("error") == CORRUPT_FILES_DETECTED:
            details = body.get("details")
            if isinstance(details, (list, tuple)):
                details = "; ".join(str(item) for item in details)
            logger.info("Deployment audit rejected attempt %s: %s", request.attempt, details)
            return DeployResult(ok=False, error=CORRUPT_FILES_DETECTED, details=str(details or ""))

        if response.is_success:
            url = None
            if isinstance(body, dict):
                url = body.get("deploymentUrl") or body.get("previewUrl") or body.get("url")
            return DeployResult(ok=True, url=url)

        raise DeploymentError(_error_message(body, response.status_code), status_code=response.status_code)


__all__ = [
    "CORRUPT_FILES_DETECTED",
    "DeployRequest",
    "DeployResult",
    "DeploymentAuditor",
    "HttpDeploymentClient",
]
