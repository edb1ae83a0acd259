"""Shared fakes for gateway tests."""

import pytest

from gateway.core.config import Config
from gateway.tools.client import ApiResponse

START_MS = 1_760_000_000_000


class FakeClock:
    """Manually advanced clock in epoch milliseconds."""

    def __init__(self, start_ms: int = START_MS):
        self.now = start_ms

    def now_ms(self) -> int:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += int(seconds * 1000)


class FakeClient:
    """Stands in for CrmClient: records calls and replays queued responses."""

    def __init__(self, responses=None, location_id: str = "LOC1"):
        self.location_id = location_id
        self.responses = list(responses or [])
        self.calls = []
        self.closed = False

    def queue(self, *responses) -> None:
        self.responses.extend(responses)

    async def request(self, method, path, query=None, body=None):
        self.calls.append({"method": method, "path": path, "query": query, "body": body})
        if self.responses:
            response = self.responses.pop(0)
            if isinstance(response, Exception):
                raise response
            return response
        return ApiResponse(ok=True, status=200, data={})

    async def close(self) -> None:
        self.closed = True


def ok(data=None, status: int = 200) -> ApiResponse:
    return ApiResponse(ok=True, status=status, data=data if data is not None else {})


def failed(status: int, error: str = "upstream failed", endpoint: str = "/x", response=None) -> ApiResponse:
    details = {"endpoint": endpoint, "status": status}
    if response is not None:
        details["response"] = response
    return ApiResponse(ok=False, status=status, error=error, details=details)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_client():
    return FakeClient()


@pytest.fixture
def config():
    return Config(
        crm_api_token="pit-test-token",
        crm_location_id="LOC1",
        proposal_ttl_seconds=300,
        proposal_store_path="",
        dry_run=False,
        followup_assignee="",
        followup_contact_id="",
        audit_database_url="",
    )
