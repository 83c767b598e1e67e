"""Google Sheets client tests."""

import httpx
import pytest

from taskclaim.errors import CollaboratorUnavailable
from taskclaim.integrations.base import OwnerMapping, match_owner_rows
from taskclaim.integrations.sheets import GoogleSheetsClient, parse_owner_rows

VALUES = [
    ["Task Name", "Recommended Developer", "Priority", "Estimated Hours"],
    ["Q3 Report", "Alex Kim", "High", "6"],
    ["Budget", "No developers available", "Low", ""],
    ["", "Sam Lee"],
    ["Roadmap", "Blair Doe", "Medium", "n/a"],
]


def _client(tenant_repo, handler) -> GoogleSheetsClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GoogleSheetsClient(tenant_repo, http, "https://sheets.test/v4", "Ticket Queue")


class TestParseOwnerRows:
    """SUT: parse_owner_rows"""

    def test_skips_placeholders_and_blank_names(self):
        rows = parse_owner_rows(VALUES)
        assert [r.task_name for r in rows] == ["Q3 Report", "Roadmap"]
        assert rows[0] == OwnerMapping("Q3 Report", "Alex Kim", "High", 6.0)
        assert rows[1].estimated_hours is None

    def test_alternate_headers(self):
        rows = parse_owner_rows([["task_name", "assignee"], ["Q3 Report", "alex@acme.test"]])
        assert rows == [OwnerMapping("Q3 Report", "alex@acme.test")]

    def test_empty(self):
        assert parse_owner_rows([]) == []


class TestMatchOwnerRows:
    """SUT: match_owner_rows"""

    def test_exact_case_insensitive(self):
        rows = [OwnerMapping("Q3 Report", "Alex Kim")]
        assert match_owner_rows(rows, " q3  report ").owner_name == "Alex Kim"

    def test_no_fuzzy_match(self):
        rows = [OwnerMapping("Q3 Report", "Alex Kim")]
        assert match_owner_rows(rows, "Q3 Reports") is None

    def test_conflicting_owners_ambiguous(self):
        rows = [OwnerMapping("Q3 Report", "Alex Kim"), OwnerMapping("q3 report", "Sam Lee")]
        assert match_owner_rows(rows, "Q3 Report") is None

    def test_duplicate_rows_same_owner(self):
        rows = [OwnerMapping("Q3 Report", "Alex Kim"), OwnerMapping("Q3 Report", "alex kim")]
        assert match_owner_rows(rows, "Q3 Report").owner_name == "Alex Kim"


class TestGoogleSheetsClient:
    """SUT: GoogleSheetsClient"""

    async def test_lookup_owner(self, tenant_repo):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"values": VALUES})

        mapping = await _client(tenant_repo, handler).lookup_owner("acme", "Q3 Report")

        assert mapping.owner_name == "Alex Kim"
        assert seen[0].url.path == "/v4/spreadsheets/sheet-acme/values/Ticket Queue"
        assert seen[0].url.params["key"] == "key"

    async def test_missing_task(self, tenant_repo):
        def handler(request):
            return httpx.Response(200, json={"values": VALUES})

        assert await _client(tenant_repo, handler).lookup_owner("acme", "Budget") is None

    async def test_server_error_is_transient(self, tenant_repo):
        def handler(request):
            return httpx.Response(503)

        with pytest.raises(CollaboratorUnavailable):
            await _client(tenant_repo, handler).lookup_owner("acme", "Q3 Report")

    async def test_forbidden_means_no_rows(self, tenant_repo):
        def handler(request):
            return httpx.Response(403, json={"error": {"message": "denied"}})

        assert await _client(tenant_repo, handler).fetch_rows("acme") == []

    async def test_unknown_tenant(self, tenant_repo):
        def handler(request):
            raise AssertionError("no request expected")

        assert await _client(tenant_repo, handler).fetch_rows("initech") == []
