"""Xero credential handling.

Supplies access tokens to the API client, either from a pre-issued bearer
token or through the OAuth2 client-credentials grant of a Xero custom
connection.
"""

import asyncio
import time
from typing import Optional

import httpx

from shared.logging import get_logger
from xero.errors import XeroAuthError, XeroConnectionError

logger = get_logger(__name__)

# Refresh this many seconds before the token actually expires
EXPIRY_MARGIN_SECONDS = 60


class XeroTokenProvider:
    """
    Access token source for the Xero API.

    Client-credentials tokens are cached until shortly before they expire.
    """

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        bearer_token: Optional[str] = None,
        scopes: str = "",
        identity_url: str = "https://identity.xero.com/connect/token",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.bearer_token = bearer_token
        self.scopes = scopes
        self.identity_url = identity_url
        self.timeout = timeout
        self._transport = transport

        self._access_token: Optional[str] = None
        self._expires_at = 0.0
        self._lock = asyncio.Lock()

    @property
    def configured(self) -> bool:
        return bool(self.bearer_token or (self.client_id and self.client_secret))

    async def get_token(self) -> str:
        """
        Get a valid access token.

        Raises:
            XeroAuthError: If no credentials are configured or the grant fails
        """
        if self.bearer_token:
            return self.bearer_token

        if not (self.client_id and self.client_secret):
            raise XeroAuthError(
                "Xero credentials are not configured. Set XERO_CLIENT_ID and "
                "XERO_CLIENT_SECRET, or XERO_CLIENT_BEARER_TOKEN."
            )

        async with self._lock:
            if self._access_token and time.monotonic() < self._expires_at:
                return self._access_token
            return await self._request_token()

    async def _request_token(self) -> str:
        """Run the client-credentials grant. Caller holds the lock."""
        data = {"grant_type": "client_credentials"}
        if self.scopes:
            data["scope"] = self.scopes

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    self.identity_url,
                    data=data,
                    auth=(self.client_id or "", self.client_secret or ""),
                )
        except httpx.TransportError as e:
            raise XeroConnectionError(f"Cannot reach Xero identity server: {e}")

        if response.status_code != 200:
            logger.error(
                "Xero token request failed",
                status_code=response.status_code,
                body=response.text[:200]
            )
            raise XeroAuthError(
                f"Failed to obtain Xero access token (HTTP {response.status_code})",
                status_code=response.status_code,
            )

        payload = response.json()
        token = payload.get("access_token")
        if not token:
            raise XeroAuthError("Xero identity server returned no access token")

        expires_in = float(payload.get("expires_in", 1800))
        self._access_token = token
        self._expires_at = time.monotonic() + max(expires_in - EXPIRY_MARGIN_SECONDS, 0)

        logger.info("Xero access token acquired", expires_in=expires_in)
        return token

    def invalidate(self) -> None:
        """Forget the cached token so the next call requests a new one."""
        self._access_token = None
        self._expires_at = 0.0
