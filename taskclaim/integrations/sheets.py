"""Google Sheets task-owner mapping client."""

from typing import Dict, List, Optional
from urllib.parse import quote

import httpx

from .base import OwnerMapping, SheetClient, TenantRegistry, match_owner_rows
from ..errors import CollaboratorUnavailable
from ..utils.logger import get_app_logger

# Accepted header spellings, first match wins
TASK_NAME_HEADERS = ("Task Name", "task_name", "taskName")
OWNER_HEADERS = ("Recommended Developer", "recommended_developer", "Assignee", "assignee", "Owner", "owner")
PRIORITY_HEADERS = ("Priority", "priority")
ESTIMATE_HEADERS = ("Estimated Hours", "estimated_hours", "estimatedHours", "Estimate")

# Placeholder owner values written by the sheet's own tooling
NO_OWNER_VALUES = {"", "no developers available", "no match"}


def _pick(row: Dict[str, str], headers) -> Optional[str]:
    for header in headers:
        value = row.get(header)
        if value and value.strip():
            return value.strip()
    return None


def _parse_hours(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def parse_owner_rows(values: List[List[str]]) -> List[OwnerMapping]:
    """
    Turn a values range (header row first) into owner mappings.

    Rows without a task name or with a placeholder owner are skipped.
    """
    if not values:
        return []

    headers = [str(h).strip() for h in values[0]]
    rows: List[OwnerMapping] = []
    for raw in values[1:]:
        row = {header: str(raw[i]) if i < len(raw) else "" for i, header in enumerate(headers)}
        task_name = _pick(row, TASK_NAME_HEADERS)
        owner = _pick(row, OWNER_HEADERS)
        if not task_name or not owner or owner.casefold() in NO_OWNER_VALUES:
            continue
        rows.append(OwnerMapping(
            task_name=task_name,
            owner_name=owner,
            priority=_pick(row, PRIORITY_HEADERS),
            estimated_hours=_parse_hours(_pick(row, ESTIMATE_HEADERS)),
        ))
    return rows


class GoogleSheetsClient(SheetClient):
    """Reads the tenant's mapping tab through the Sheets v4 values endpoint.

    The sheet is fetched on every lookup so edits show up immediately.
    """

    def __init__(
        self,
        tenants: TenantRegistry,
        http: httpx.AsyncClient,
        api_base: str = "https://sheets.googleapis.com/v4",
        tab: str = "Ticket Queue"
    ):
        self.tenants = tenants
        self.http = http
        self.api_base = api_base.rstrip("/")
        self.tab = tab
        self.logger = get_app_logger()

    async def fetch_rows(self, tenant_id: str) -> List[OwnerMapping]:
        """
        Fetch and parse all mapping rows of a tenant's sheet.

        Raises:
            CollaboratorUnavailable: On transport errors or HTTP 429/5xx
        """
        tenant = self.tenants.get_tenant(tenant_id)
        if tenant is None or not tenant.sheet_id:
            self.logger.warning(f"No sheet configured for tenant {tenant_id}")
            return []

        url = f"{self.api_base}/spreadsheets/{tenant.sheet_id}/values/{quote(self.tab, safe='')}"
        params = {"key": tenant.sheet_api_key} if tenant.sheet_api_key else None
        try:
            response = await self.http.get(url, params=params)
        except httpx.HTTPError as e:
            raise CollaboratorUnavailable("sheets", str(e)) from e

        if response.status_code == 429 or response.status_code >= 500:
            raise CollaboratorUnavailable("sheets", f"HTTP {response.status_code}")
        if response.status_code >= 400:
            self.logger.error(
                f"Sheet {tenant.sheet_id} not readable for tenant {tenant_id}: HTTP {response.status_code}"
            )
            return []

        rows = parse_owner_rows(response.json().get("values", []))
        self.logger.debug(f"Loaded {len(rows)} owner rows for tenant {tenant_id}")
        return rows

    async def lookup_owner(self, tenant_id: str, task_name: str) -> Optional[OwnerMapping]:
        rows = await self.fetch_rows(tenant_id)
        match = match_owner_rows(rows, task_name)
        if match is None:
            self.logger.info(f"No unambiguous owner row for task '{task_name}' (tenant {tenant_id})")
        return match
