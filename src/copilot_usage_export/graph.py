"""Microsoft Graph client for Copilot usage reports.

Async HTTP client that acquires an app-only token with the client
credentials flow and fetches Copilot usage reports from the Graph beta
reports endpoints, following ``@odata.nextLink`` pages until exhausted.

Typical usage::

    import asyncio
    from copilot_usage_export.graph import GraphClient

    async def main():
        async with GraphClient(tenant_id, client_id, client_secret) as graph:
            records = await graph.fetch_report("UserDetail", 30)

    asyncio.run(main())
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from copilot_usage_export.config import GRAPH_BASE_URL, VALID_PERIODS
from copilot_usage_export.types import ReportKind

logger = logging.getLogger(__name__)

LOGIN_URL = "https://login.microsoftonline.com/{tenant_id}/oauth2/v2.0/token"
GRAPH_SCOPE = "https://graph.microsoft.com/.default"
DEFAULT_TIMEOUT = 120.0  # seconds -- report generation can be slow for large tenants
MAX_PAGES = 1000

# Report type name -> Graph beta reports function.
REPORT_FUNCTIONS: dict[str, str] = {
    "UserDetail": "getMicrosoft365CopilotUsageUserDetail",
    "UserCountSummary": "getMicrosoft365CopilotUserCountSummary",
    "UserCountTrend": "getMicrosoft365CopilotUserCountTrend",
}


class GraphError(Exception):
    """Raised when Microsoft Graph or the token endpoint returns an error.

    Attributes:
        status_code: HTTP status code, or 0 for transport failures.
        detail: Error detail string from the response body.
    """

    def __init__(self, status_code: int, detail: str) -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"Graph API error {status_code}: {detail}")


class ReportFetcher(Protocol):
    """Anything that can fetch raw report records for a report type."""

    async def fetch_report(self, report_type: str, period_days: int) -> list[dict[str, Any]]:
        """Return raw report records, or an empty list when there is no data."""
        ...


def report_function(report_type: str) -> str:
    """Map a report type name to its Graph reports function.

    Args:
        report_type: Report type name (e.g. "UserDetail").

    Returns:
        Function name like ``getMicrosoft365CopilotUsageUserDetail``.
        Known names match case-insensitively.
        Unknown names map to ``getMicrosoft365Copilot<Name>``.
    """
    name = ReportKind.canonical_name(report_type)
    return REPORT_FUNCTIONS.get(name, f"getMicrosoft365Copilot{name}")


def period_param(period_days: int) -> str:
    """Convert a lookback period in days to the Graph period code.

    Args:
        period_days: One of 7, 30, 90, 180.

    Returns:
        Period code like ``"D30"``.

    Raises:
        ValueError: If the period is not supported by the reports API.
    """
    if period_days not in VALID_PERIODS:
        raise ValueError(
            f"Unsupported period {period_days} days. "
            f"Use one of: {', '.join(str(p) for p in VALID_PERIODS)}."
        )
    return f"D{period_days}"


class GraphClient:
    """Async client for Microsoft Graph with app-only authentication.

    Uses ``httpx.AsyncClient`` for connection pooling. Entering the
    context acquires an access token; exiting always closes the pool.

    Args:
        tenant_id: Entra ID tenant ID.
        client_id: App registration client ID.
        client_secret: App registration client secret.
        base_url: Graph root URL. Defaults to the public cloud.
        timeout: Request timeout in seconds. Defaults to 120s.
    """

    def __init__(
        self,
        tenant_id: str,
        client_id: str,
        client_secret: str,
        *,
        base_url: str = GRAPH_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        if not (tenant_id and client_id and client_secret):
            raise ValueError(
                "Graph credentials are required. Set COPILOT_EXPORT_TENANT_ID, "
                "COPILOT_EXPORT_CLIENT_ID and COPILOT_EXPORT_CLIENT_SECRET, "
                "or add them to ~/.copilot-usage-export/config.toml"
            )
        self._tenant_id = tenant_id
        self._client_id = client_id
        self._client_secret = client_secret
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> GraphClient:
        self._client = httpx.AsyncClient(timeout=httpx.Timeout(self._timeout))
        try:
            token = await self._acquire_token()
        except BaseException:
            await self.__aexit__()
            raise
        self._client.headers["Authorization"] = f"Bearer {token}"
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def _require_client(self) -> httpx.AsyncClient:
        if not self._client:
            raise RuntimeError("Client not initialized. Use 'async with' context manager.")
        return self._client

    async def _acquire_token(self) -> str:
        """Request an app-only access token.

        Returns:
            The bearer access token.

        Raises:
            GraphError: If the token endpoint rejects the credentials or
                cannot be reached.
        """
        client = self._require_client()
        try:
            resp = await client.post(
                LOGIN_URL.format(tenant_id=self._tenant_id),
                data={
                    "grant_type": "client_credentials",
                    "client_id": self._client_id,
                    "client_secret": self._client_secret,
                    "scope": GRAPH_SCOPE,
                },
            )
        except httpx.HTTPError as exc:
            raise GraphError(0, f"Token request failed: {exc}") from exc

        if resp.status_code != 200:
            raise GraphError(resp.status_code, extract_error(resp))

        token = resp.json().get("access_token")
        if not token:
            raise GraphError(resp.status_code, "Token response did not contain access_token")
        logger.debug("Acquired Graph access token for tenant %s", self._tenant_id)
        return str(token)

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send an authenticated request to Graph.

        Relative URLs are resolved against the Graph root.

        Args:
            method: HTTP method.
            url: Absolute URL or path such as ``/v1.0/sites/{id}/drives``.
            **kwargs: Passed through to ``httpx.AsyncClient.request``.

        Returns:
            The raw response. Status codes are not checked here.

        Raises:
            GraphError: On timeout or transport failure.
            RuntimeError: If used outside a context manager.
        """
        client = self._require_client()
        target = url if url.startswith("http") else f"{self._base_url}{url}"
        try:
            return await client.request(method, target, **kwargs)
        except httpx.TimeoutException as exc:
            raise GraphError(0, f"Request timed out after {self._timeout}s: {target}") from exc
        except httpx.HTTPError as exc:
            raise GraphError(0, f"Request failed: {exc}") from exc

    async def get_json(self, url: str) -> dict[str, Any]:
        """GET a URL and decode the JSON body.

        Raises:
            GraphError: If the response is not 200 or not a JSON object.
        """
        resp = await self.request("GET", url)
        if resp.status_code != 200:
            raise GraphError(resp.status_code, extract_error(resp))
        try:
            data = resp.json()
        except ValueError as exc:
            raise GraphError(resp.status_code, f"Invalid JSON in response: {exc}") from exc
        if not isinstance(data, dict):
            raise GraphError(resp.status_code, "Expected a JSON object in response")
        return data

    async def fetch_report(self, report_type: str, period_days: int) -> list[dict[str, Any]]:
        """Fetch all records of a Copilot usage report.

        Args:
            report_type: Report type name (e.g. "UserDetail").
            period_days: Lookback period in days (7, 30, 90, or 180).

        Returns:
            Raw report records across all pages. Empty when the report
            has no data.

        Raises:
            GraphError: If any page request fails.
            ValueError: If the period is unsupported.
        """
        period = period_param(period_days)
        url: str | None = (
            f"/beta/reports/{report_function(report_type)}"
            f"(period='{period}')?$format=application/json"
        )

        records: list[dict[str, Any]] = []
        pages = 0
        while url and pages < MAX_PAGES:
            payload = await self.get_json(url)
            value = payload.get("value", [])
            if isinstance(value, list):
                records.extend(value)
            pages += 1
            url = payload.get("@odata.nextLink")

        if url:
            logger.warning(
                "Stopped %s after %d pages; remaining pages were not fetched",
                report_type,
                MAX_PAGES,
            )
        logger.debug(
            "Fetched %d %s record(s) in %d page(s)", len(records), report_type, pages
        )
        return records


def extract_error(resp: httpx.Response) -> str:
    """Extract error detail from a non-2xx Graph or token response.

    Args:
        resp: The httpx response object.

    Returns:
        Human-readable error description.
    """
    try:
        body = resp.json()
        error = body.get("error", {})
        if isinstance(error, dict):
            return str(error.get("message", str(body)))
        description = body.get("error_description")
        if description:
            return str(description)
        return str(error)
    except Exception:
        return str(resp.text[:500])
