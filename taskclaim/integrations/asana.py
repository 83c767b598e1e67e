"""Asana task tracker client."""

from typing import Any, Dict, Optional

import httpx

from .base import OwnerCandidate, TaskTracker, TenantRegistry
from ..errors import CollaboratorUnavailable
from ..utils.logger import get_app_logger
from ..utils.retry import call_with_retry


class AsanaTaskTracker(TaskTracker):
    """Task-tracking collaborator backed by the Asana REST API.

    Every request is retried on its own, so a failed comment never repeats
    the assignee update before it.
    """

    def __init__(
        self,
        tenants: TenantRegistry,
        http: httpx.AsyncClient,
        api_base: str = "https://app.asana.com/api/1.0",
        retry_options: Optional[Dict[str, Any]] = None
    ):
        self.tenants = tenants
        self.http = http
        self.api_base = api_base.rstrip("/")
        self.retry_options = retry_options or {}
        self.logger = get_app_logger()

    async def _request(self, tenant_id: str, method: str, path: str, data: Dict[str, Any]) -> bool:
        """
        Send one request on behalf of a tenant, retrying transient failures.

        Returns:
            True on 2xx, False on permanent (4xx) errors or missing credentials

        Raises:
            CollaboratorUnavailable: On transport errors or HTTP 429/5xx after the last attempt
        """
        tenant = self.tenants.get_tenant(tenant_id)
        if tenant is None or not tenant.task_api_token:
            self.logger.warning(f"No Asana token configured for tenant {tenant_id}")
            return False

        async def attempt() -> httpx.Response:
            try:
                response = await self.http.request(
                    method,
                    f"{self.api_base}{path}",
                    json={"data": data},
                    headers={"Authorization": f"Bearer {tenant.task_api_token}"},
                )
            except httpx.HTTPError as e:
                raise CollaboratorUnavailable("asana", f"{method} {path}: {e}") from e
            if response.status_code == 429 or response.status_code >= 500:
                raise CollaboratorUnavailable("asana", f"{method} {path}: HTTP {response.status_code}")
            return response

        response = await call_with_retry(
            attempt, description=f"asana {method} {path}", **self.retry_options
        )
        if response.status_code >= 400:
            self.logger.error(f"Asana rejected {method} {path}: HTTP {response.status_code} {response.text}")
            return False
        return True

    async def confirm_owner(self, tenant_id: str, task_id: str, candidate: OwnerCandidate) -> bool:
        reassigned = True
        if candidate.email:
            # Asana accepts an email address as assignee
            reassigned = await self._request(
                tenant_id, "PUT", f"/tasks/{task_id}", {"assignee": candidate.email}
            )

        commented = await self._request(
            tenant_id,
            "POST",
            f"/tasks/{task_id}/stories",
            {"text": f"Ownership confirmed by {candidate.owner_name}."},
        )
        if reassigned and commented:
            self.logger.info(f"Asana task {task_id} confirmed for {candidate.owner_name}")
        return reassigned and commented

    async def report_unassignable(self, tenant_id: str, task_id: str, reason: str) -> bool:
        return await self._request(
            tenant_id,
            "POST",
            f"/tasks/{task_id}/stories",
            {"text": f"No owner could be determined for this task: {reason}"},
        )
