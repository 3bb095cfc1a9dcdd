"""Xero API client.

Thin async wrapper over the Xero accounting and payroll REST APIs.
Handles authentication headers, tenant selection, retries and error mapping.
"""

from typing import Any, Optional

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from shared.config import XeroSettings
from shared.logging import get_logger
from xero.auth import XeroTokenProvider
from xero.errors import (
    XeroAPIError,
    XeroAuthError,
    XeroConnectionError,
    XeroNotFoundError,
    XeroRateLimitError,
    XeroServerError,
    XeroValidationError,
)

logger = get_logger(__name__)


API_PATHS = {
    "accounting": "/api.xro/2.0",
    "payroll": "/payroll.xro/2.0",
}


def _error_detail(response: httpx.Response) -> str:
    """Pull a readable message out of a Xero error response."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or response.reason_phrase

    if not isinstance(body, dict):
        return str(body)[:200]

    messages: list[str] = []
    for key in ("Message", "Detail", "detail", "title", "message"):
        if body.get(key):
            messages.append(str(body[key]))
            break

    for element in body.get("Elements") or []:
        for error in element.get("ValidationErrors") or []:
            if error.get("Message"):
                messages.append(error["Message"])

    problem = body.get("problem")
    if isinstance(problem, dict) and problem.get("detail"):
        messages.append(str(problem["detail"]))

    return "; ".join(messages) or response.reason_phrase


class XeroClient:
    """
    Client for the Xero API.

    The client is stateless apart from its HTTP connection pool and the
    resolved tenant id, and is shared by every operation handler.
    """

    def __init__(
        self,
        token_provider: XeroTokenProvider,
        api_base: str = "https://api.xero.com",
        tenant_id: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> None:
        """
        Initialize Xero Client.

        Args:
            token_provider: Source of access tokens
            api_base: Xero API base URL
            tenant_id: Organisation tenant id; resolved from /connections if omitted
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.api_base = api_base.rstrip("/")
        self.token_provider = token_provider
        self.timeout = timeout
        self._tenant_id = tenant_id
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_settings(cls, settings: XeroSettings) -> "XeroClient":
        """Build a client from XERO_* settings."""
        provider = XeroTokenProvider(
            client_id=settings.client_id,
            client_secret=settings.client_secret,
            bearer_token=settings.client_bearer_token,
            scopes=settings.scopes,
            identity_url=settings.identity_url,
            timeout=settings.timeout_seconds,
        )
        return cls(
            token_provider=provider,
            api_base=settings.api_base,
            tenant_id=settings.tenant_id,
            timeout=settings.timeout_seconds,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.api_base,
                timeout=self.timeout,
                transport=self._transport,
                headers={"Accept": "application/json"},
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "XeroClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _auth_headers(self) -> dict[str, str]:
        token = await self.token_provider.get_token()
        return {"Authorization": f"Bearer {token}"}

    async def get_tenant_id(self) -> str:
        """
        Get the organisation tenant id.

        Raises:
            XeroAuthError: If the connection has no organisation tenant
        """
        if self._tenant_id:
            return self._tenant_id

        client = await self._get_client()
        try:
            response = await client.get("/connections", headers=await self._auth_headers())
        except httpx.TransportError as e:
            raise XeroConnectionError(f"Cannot connect to Xero: {e}")

        if response.status_code in (401, 403):
            raise XeroAuthError("Xero rejected the access token", status_code=response.status_code)
        if response.status_code >= 400:
            raise XeroAPIError(
                f"Failed to list Xero connections: {_error_detail(response)}",
                status_code=response.status_code,
            )

        connections = response.json() or []
        for connection in connections:
            if connection.get("tenantType", "ORGANISATION") == "ORGANISATION":
                self._tenant_id = connection["tenantId"]
                logger.info("Xero tenant resolved", tenant_id=self._tenant_id)
                return self._tenant_id

        raise XeroAuthError("No Xero organisation is connected to these credentials")

    @retry(
        retry=retry_if_exception_type((XeroConnectionError, XeroRateLimitError, XeroServerError)),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True
    )
    async def request(
        self,
        method: str,
        path: str,
        *,
        api: str = "accounting",
        params: Optional[dict[str, Any]] = None,
        json: Optional[Any] = None
    ) -> Any:
        """
        Send a request to the Xero API.

        Args:
            method: HTTP method
            path: Resource path below the API root (e.g. /Invoices)
            api: "accounting" or "payroll"
            params: Query parameters; None values are dropped
            json: JSON body

        Returns:
            Decoded JSON response (empty dict for empty bodies)

        Raises:
            XeroAPIError: Or one of its subclasses on failure
        """
        if api not in API_PATHS:
            raise ValueError(f"Unknown Xero API '{api}'")

        url = f"{API_PATHS[api]}{path}"
        query = {k: v for k, v in (params or {}).items() if v is not None}
        headers = await self._auth_headers()
        headers["xero-tenant-id"] = await self.get_tenant_id()

        logger.debug("Xero request", method=method, url=url, params=query)

        client = await self._get_client()
        try:
            response = await client.request(method, url, params=query, json=json, headers=headers)
        except httpx.TransportError as e:
            logger.error("Xero connection failed", url=url, error=str(e))
            raise XeroConnectionError(f"Cannot connect to Xero: {e}")

        self._raise_for_status(response)

        if not response.content:
            return {}
        return response.json()

    def _raise_for_status(self, response: httpx.Response) -> None:
        status = response.status_code
        if status < 400:
            return

        detail = _error_detail(response)
        logger.warning("Xero request failed", status_code=status, detail=detail)

        if status == 401:
            self.token_provider.invalidate()
            raise XeroAuthError(f"Xero authentication failed: {detail}", status_code=status)
        if status == 403:
            raise XeroAuthError(f"Xero denied access: {detail}", status_code=status)
        if status == 404:
            raise XeroNotFoundError(f"Xero resource not found: {detail}", status_code=status)
        if status == 429:
            raise XeroRateLimitError("Xero API rate limit reached", status_code=status)
        if status >= 500:
            raise XeroServerError(f"Xero server error: {detail}", status_code=status)
        if status == 400:
            raise XeroValidationError(f"Xero rejected the request: {detail}", status_code=status)
        raise XeroAPIError(f"Xero request failed (HTTP {status}): {detail}", status_code=status)

    async def get(self, path: str, **kwargs: Any) -> Any:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs: Any) -> Any:
        return await self.request("POST", path, **kwargs)

    async def put(self, path: str, **kwargs: Any) -> Any:
        return await self.request("PUT", path, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> Any:
        return await self.request("DELETE", path, **kwargs)
