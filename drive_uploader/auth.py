"""
Module for acquiring access tokens for the storage service.
"""
import asyncio
import logging
import time
from typing import Callable, Optional, Protocol, runtime_checkable

import httpx

from .errors import AuthError, HttpError, NetworkError

logger = logging.getLogger(__name__)

DEFAULT_AUTHORITY = "https://login.microsoftonline.com"
DEFAULT_SCOPE = "https://graph.microsoft.com/.default"

# Refresh tokens this many seconds before they expire
EXPIRY_SKEW = 60


@runtime_checkable
class AuthProvider(Protocol):
    """Interface for access token sources."""

    async def get_access_token(self) -> str:
        ...


class StaticTokenAuth:
    """Auth provider for a token that was issued elsewhere."""

    def __init__(self, token: str):
        if not token:
            raise AuthError("Access token cannot be empty")
        self._token = token

    async def get_access_token(self) -> str:
        return self._token


class ClientCredentialsAuth:
    """OAuth2 client-credentials token exchange with an in-memory cache.

    Callers that arrive while a token request is in flight share that request
    instead of starting another one.
    """

    def __init__(self, client_id: str, client_secret: str, tenant_id: str,
                 authority: str = DEFAULT_AUTHORITY,
                 scope: str = DEFAULT_SCOPE,
                 http_client: Optional[httpx.AsyncClient] = None,
                 clock: Callable[[], float] = time.monotonic):
        """Initialize the auth provider.

        Args:
            client_id: Application (client) ID
            client_secret: Client secret
            tenant_id: Directory (tenant) ID
            authority: Base URL of the token service
            scope: Scope requested for the token
            http_client: Optional shared HTTP client
            clock: Monotonic clock used for expiry checks
        """
        if not client_id or not client_secret or not tenant_id:
            raise AuthError("client_id, client_secret and tenant_id must be set")

        self.token_url = f"{authority.rstrip('/')}/{tenant_id}/oauth2/v2.0/token"
        self._client_id = client_id
        self._client_secret = client_secret
        self._scope = scope
        self._http_client = http_client
        self._clock = clock

        self._token: Optional[str] = None
        self._expires_at = 0.0
        self._pending: Optional[asyncio.Future] = None

    def _cached_token(self) -> Optional[str]:
        if self._token and self._clock() < self._expires_at:
            return self._token
        return None

    async def get_access_token(self) -> str:
        """Return a valid access token, fetching one if needed.

        Raises:
            AuthError: If the credentials are rejected or the response is malformed
            NetworkError: If the token endpoint cannot be reached
            HttpError: If the token endpoint is throttling or failing (429, 5xx)
        """
        token = self._cached_token()
        if token:
            return token

        if self._pending is None:
            self._pending = asyncio.ensure_future(self._fetch_token())
            self._pending.add_done_callback(self._clear_pending)

        # Shield so one cancelled caller does not abort the shared request
        return await asyncio.shield(self._pending)

    def _clear_pending(self, future: asyncio.Future) -> None:
        if self._pending is future:
            self._pending = None

    async def _fetch_token(self) -> str:
        data = {
            "client_id": self._client_id,
            "client_secret": self._client_secret,
            "scope": self._scope,
            "grant_type": "client_credentials",
        }
        logger.debug(f"Requesting access token from {self.token_url}")

        try:
            if self._http_client is not None:
                response = await self._http_client.post(self.token_url, data=data)
            else:
                async with httpx.AsyncClient(timeout=30) as client:
                    response = await client.post(self.token_url, data=data)
        except httpx.TransportError as e:
            raise NetworkError(f"Error acquiring token: {e}") from e

        if response.status_code == 429 or response.is_server_error:
            raise HttpError(
                response.status_code,
                f"Token endpoint unavailable: {response.status_code} {response.reason_phrase}",
                response.text,
            )
        if response.is_error:
            raise AuthError(
                f"Failed to acquire access token: {response.status_code} {response.text}"
            )

        try:
            payload = response.json()
            token = payload["access_token"]
            expires_in = int(payload.get("expires_in", 3600))
        except (ValueError, KeyError, TypeError) as e:
            raise AuthError(f"Malformed token response: {e}") from e

        self._token = token
        self._expires_at = self._clock() + max(expires_in - EXPIRY_SKEW, 0)
        logger.info("Access token acquired")
        return token
