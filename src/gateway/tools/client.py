"""Downstream HTTP client for the LeadConnector business API.

Every tool handler talks to the API through ``CrmClient.request``, which never
raises for HTTP or transport failures. It returns an ``ApiResponse`` carrying
either the decoded body or a short error message plus safe details, and the
handler decides whether the failure is fatal.

Provides:
- ApiResponse: Outcome of one downstream call
- CrmClient: aiohttp client with auth headers, timeout and error mapping
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any

import aiohttp
import structlog

from gateway.core.config import Config
from gateway.core.errors import ExecutionError

logger = structlog.get_logger()

BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})
MAX_TEXT_ERROR_LENGTH = 200
MAX_TEXT_DETAIL_LENGTH = 2000


@dataclass
class ApiResponse:
    """Outcome of a downstream call."""

    ok: bool
    status: int
    data: Any = None
    error: str = ""
    details: dict[str, Any] = field(default_factory=dict)

    def unwrap(self) -> Any:
        """Return the body, or raise ExecutionError for a failed call."""
        if self.ok:
            return self.data
        raise self.to_error()

    def to_error(self) -> ExecutionError:
        return ExecutionError(
            self.error or f"GHL API error ({self.status})",
            status=self.status,
            endpoint=self.details.get("endpoint", ""),
            response=self.details.get("response"),
        )


def _query_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class CrmClient:
    """Authenticated client for the downstream API.

    The aiohttp session is created on first use and must be released with
    ``close()``.

    Args:
        base_url: API base URL
        token: Private integration token sent as a bearer credential
        api_version: Value of the ``Version`` header
        location_id: Default location for location-scoped calls
        timeout_seconds: Total timeout applied to every call
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        api_version: str = "2021-07-28",
        location_id: str = "",
        timeout_seconds: float = 30,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.api_version = api_version
        self.location_id = location_id
        self.timeout_seconds = timeout_seconds
        self._session: aiohttp.ClientSession | None = None

    @classmethod
    def from_config(cls, config: Config) -> "CrmClient":
        return cls(
            base_url=config.crm_api_base,
            token=config.crm_api_token,
            api_version=config.crm_api_version,
            location_id=config.crm_location_id,
            timeout_seconds=config.request_timeout_seconds,
        )

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds)
            )
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def request(
        self,
        method: str,
        path: str,
        query: dict[str, Any] | None = None,
        body: dict[str, Any] | None = None,
    ) -> ApiResponse:
        """Make one authenticated call.

        Args:
            method: HTTP method
            path: API path, e.g. ``/contacts/search``
            query: Query parameters; ``None`` values are dropped
            body: JSON body, sent for POST, PUT and PATCH only

        Returns:
            ApiResponse. Timeouts map to 504, transport failures to 502 and a
            missing token to 500.
        """
        method = method.upper()
        log = logger.bind(method=method, endpoint=path)

        if not self.token:
            return ApiResponse(
                ok=False,
                status=500,
                error="GHL_PIT_TOKEN not configured",
                details={"endpoint": path, "status": 500},
            )

        params = {
            key: _query_value(value)
            for key, value in (query or {}).items()
            if value is not None
        }
        headers = {
            "Authorization": f"Bearer {self.token}",
            "Version": self.api_version,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        kwargs: dict[str, Any] = {"params": params, "headers": headers}
        if body is not None and method in BODY_METHODS:
            kwargs["json"] = body

        try:
            session = self._get_session()
            async with session.request(method, f"{self.base_url}{path}", **kwargs) as response:
                if "application/json" in (response.headers.get("Content-Type") or ""):
                    try:
                        data = await response.json(content_type=None)
                    except ValueError:
                        data = await response.text()
                else:
                    data = await response.text()
                status = response.status
        except asyncio.TimeoutError:
            log.warning("downstream_timeout", timeout=self.timeout_seconds)
            return ApiResponse(
                ok=False,
                status=504,
                error="Request timeout",
                details={"endpoint": path, "status": 504, "timeout": self.timeout_seconds},
            )
        except aiohttp.ClientError as e:
            log.warning("downstream_unreachable", error_type=type(e).__name__)
            return ApiResponse(
                ok=False,
                status=502,
                error="Upstream request failed",
                details={"endpoint": path, "status": 502},
            )

        if 200 <= status < 300:
            log.debug("downstream_ok", status=status)
            return ApiResponse(ok=True, status=status, data=data)

        message = f"GHL API error ({status})"
        if isinstance(data, dict) and data.get("message"):
            message = str(data["message"])
        elif isinstance(data, str) and data and len(data) < MAX_TEXT_ERROR_LENGTH:
            message = data

        details: dict[str, Any] = {"endpoint": path, "status": status}
        if isinstance(data, (dict, list)):
            details["response"] = data
        elif isinstance(data, str) and len(data) <= MAX_TEXT_DETAIL_LENGTH:
            details["response"] = data

        log.info("downstream_error", status=status)
        return ApiResponse(ok=False, status=status, error=message, details=details)
