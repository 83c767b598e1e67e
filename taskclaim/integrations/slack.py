"""Slack Web API chat client."""

from typing import Any, Dict, List, Optional

import httpx

from .base import ChatClient, SendResult, TenantRegistry
from ..errors import CollaboratorUnavailable
from ..utils.logger import get_app_logger

# Slack error codes that mean "try again later" rather than "no"
_TRANSIENT_ERRORS = {
    "ratelimited",
    "service_unavailable",
    "internal_error",
    "fatal_error",
    "request_timeout",
}


def _normalize_name(name: str) -> str:
    return " ".join(name.split()).casefold()


class SlackChatClient(ChatClient):
    """Chat collaborator backed by the Slack Web API, one bot token per tenant."""

    def __init__(
        self,
        tenants: TenantRegistry,
        http: httpx.AsyncClient,
        api_base: str = "https://slack.com/api"
    ):
        self.tenants = tenants
        self.http = http
        self.api_base = api_base.rstrip("/")
        self.logger = get_app_logger()

    def _token(self, tenant_id: str) -> Optional[str]:
        tenant = self.tenants.get_tenant(tenant_id)
        if tenant is None or not tenant.chat_bot_token:
            self.logger.warning(f"No Slack bot token configured for tenant {tenant_id}")
            return None
        return tenant.chat_bot_token

    async def _call(
        self,
        token: str,
        method: str,
        payload: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Call a Web API method.

        Returns:
            Decoded response body (``ok`` may be False for permanent errors)

        Raises:
            CollaboratorUnavailable: On transport errors, HTTP 429/5xx or transient Slack errors
        """
        url = f"{self.api_base}/{method}"
        headers = {"Authorization": f"Bearer {token}"}
        try:
            if payload is None:
                response = await self.http.get(url, params=params, headers=headers)
            else:
                response = await self.http.post(url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise CollaboratorUnavailable("slack", f"{method}: {e}") from e

        if response.status_code == 429 or response.status_code >= 500:
            raise CollaboratorUnavailable("slack", f"{method}: HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise CollaboratorUnavailable("slack", f"{method}: invalid JSON response") from e

        if not data.get("ok") and data.get("error") in _TRANSIENT_ERRORS:
            raise CollaboratorUnavailable("slack", f"{method}: {data.get('error')}")
        return data

    async def send_direct_message(self, tenant_id: str, user_ref: str, message: str) -> SendResult:
        token = self._token(tenant_id)
        if token is None:
            return SendResult(ok=False, error="tenant_not_configured")

        opened = await self._call(token, "conversations.open", payload={"users": user_ref})
        if not opened.get("ok"):
            self.logger.warning(f"Could not open DM with {user_ref}: {opened.get('error')}")
            return SendResult(ok=False, error=opened.get("error", "unknown_error"))

        channel_id = opened["channel"]["id"]
        posted = await self._call(
            token, "chat.postMessage", payload={"channel": channel_id, "text": message}
        )
        if not posted.get("ok"):
            self.logger.warning(f"Slack rejected message to {user_ref}: {posted.get('error')}")
            return SendResult(ok=False, error=posted.get("error", "unknown_error"))

        return SendResult(ok=True, handle=posted.get("ts"))

    async def resolve_user_by_name(self, tenant_id: str, name: str) -> Optional[str]:
        token = self._token(tenant_id)
        if token is None:
            return None

        wanted = _normalize_name(name)
        if not wanted:
            return None

        matches: List[str] = []
        cursor = None
        while True:
            params: Dict[str, Any] = {"limit": 200}
            if cursor:
                params["cursor"] = cursor
            page = await self._call(token, "users.list", params=params)
            if not page.get("ok"):
                self.logger.warning(f"users.list failed for tenant {tenant_id}: {page.get('error')}")
                return None

            for member in page.get("members", []):
                if member.get("deleted") or member.get("is_bot"):
                    continue
                profile = member.get("profile") or {}
                names = {
                    _normalize_name(value)
                    for value in (
                        member.get("name"),
                        member.get("real_name"),
                        profile.get("display_name"),
                        profile.get("real_name"),
                    )
                    if value
                }
                if wanted in names:
                    matches.append(member["id"])

            cursor = (page.get("response_metadata") or {}).get("next_cursor")
            if not cursor:
                break

        if len(matches) > 1:
            self.logger.warning(f"Slack name '{name}' matches {len(matches)} users, treating as unknown")
            return None
        return matches[0] if matches else None

    async def resolve_user_by_email(self, tenant_id: str, email: str) -> Optional[str]:
        token = self._token(tenant_id)
        if token is None:
            return None

        data = await self._call(token, "users.lookupByEmail", params={"email": email.strip()})
        if not data.get("ok"):
            self.logger.info(f"No Slack user for {email}: {data.get('error')}")
            return None
        return data["user"]["id"]
