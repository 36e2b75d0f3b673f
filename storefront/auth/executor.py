"""
Authenticated request executor.

Every call to the backend goes through AuthenticatedRequestExecutor:
- attaches the current access token as a bearer credential
- on 401 refreshes the token pair once and retries the original call once
- coalesces concurrent refreshes into one in-flight task shared by all
  callers, so one expiry produces one refresh call and one token write
- converts transport failures into NetworkError
"""

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Optional, Union

import httpx

from storefront.auth.tokens import TokenManager
from storefront.errors import (
    ERROR_UNEXPECTED_RESPONSE,
    NetworkError,
    RemoteError,
    SessionExpired,
)
from storefront.logging import get_logger, sanitize_string_for_logging

logger = get_logger(__name__)

REFRESH_PATH = "/auth/refresh-token"

SessionExpiredHook = Callable[[], Union[None, Awaitable[None]]]


def read_envelope(response: httpx.Response) -> dict:
    """
    Unwrap a {success, data, message} response.

    Returns:
        The "data" member (empty dict when absent)

    Raises:
        RemoteError: non-2xx status, non-JSON body or success == False
    """
    try:
        payload = response.json()
    except ValueError:
        raise RemoteError(ERROR_UNEXPECTED_RESPONSE, status_code=response.status_code)

    if not isinstance(payload, dict):
        raise RemoteError(ERROR_UNEXPECTED_RESPONSE, status_code=response.status_code)

    if response.is_error or not payload.get("success", False):
        raise RemoteError(payload.get("message") or ERROR_UNEXPECTED_RESPONSE, status_code=response.status_code)

    data = payload.get("data")
    return data if isinstance(data, dict) else {}


class AuthenticatedRequestExecutor:
    """Issues backend requests with bearer auth and transparent token refresh."""

    def __init__(
        self,
        base_url: str,
        token_manager: TokenManager,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
        on_session_expired: Optional[SessionExpiredHook] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.tokens = token_manager
        self.timeout = timeout
        self.on_session_expired = on_session_expired

        # HTTP client (lazy init unless injected)
        self._http_client = http_client
        self._refresh_task: Optional[asyncio.Task] = None

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Lazy creation of shared httpx client with timeouts."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout, connect=5.0),
                limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
            )
        return self._http_client

    async def aclose(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def _send(
        self,
        method: str,
        path: str,
        json: Any = None,
        params: Optional[dict] = None,
        token: Optional[str] = None,
    ) -> httpx.Response:
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        client = await self._get_http_client()
        try:
            return await client.request(
                method,
                f"{self.base_url}{path}",
                json=json,
                params=params,
                headers=headers,
            )
        except httpx.TransportError as e:
            logger.warning("%s %s failed: %s", method, path, e)
            raise NetworkError() from e

    async def request(
        self,
        method: str,
        path: str,
        json: Any = None,
        params: Optional[dict] = None,
        auth: bool = True,
        refresh: bool = True,
    ) -> httpx.Response:
        """
        Issue a request, refreshing the session at most once on 401.

        Args:
            method: HTTP method
            path: Path relative to the API base URL
            json: Optional JSON body
            params: Optional query parameters
            auth: Attach the bearer token (False for public calls)
            refresh: Refresh and retry on 401 (False for fire-once calls like logout)

        Returns:
            The response of the original call or of its single retry

        Raises:
            NetworkError: transport failure
            SessionExpired: the refresh attempt failed and the session was cleared
        """
        if not auth:
            return await self._send(method, path, json=json, params=params)

        token = self.tokens.access_token
        response = await self._send(method, path, json=json, params=params, token=token)
        if not refresh or token is None or response.status_code != httpx.codes.UNAUTHORIZED:
            # Guest requests carry no token and are never refreshed
            return response

        logger.info("%s %s returned 401, refreshing session", method, path)
        fresh_token = await self._refresh_after(token)
        return await self._send(method, path, json=json, params=params, token=fresh_token)

    async def _refresh_after(self, stale_token: Optional[str]) -> str:
        """Return an access token newer than stale_token, refreshing if needed."""
        current = self.tokens.access_token
        if current != stale_token:
            # Rotated (or cleared) while our request was in flight
            if current is None:
                raise SessionExpired()
            return current

        if self._refresh_task is None:
            self._refresh_task = asyncio.create_task(self._refresh())
        # Shielded: one cancelled waiter must not cancel the refresh for the others
        return await asyncio.shield(self._refresh_task)

    async def _refresh(self) -> str:
        try:
            refresh_token = self.tokens.refresh_token
            if not refresh_token:
                logger.info("No refresh token stored, ending session")
                await self._expire_session()
                raise SessionExpired()

            try:
                response = await self._send("POST", REFRESH_PATH, json={"refreshToken": refresh_token})
                data = read_envelope(response)
                self.tokens.set(data.get("token") or "", data.get("refreshToken") or "")
            except (NetworkError, RemoteError, ValueError) as e:
                logger.warning("Token refresh failed: %s", sanitize_string_for_logging(str(e)))
                await self._expire_session()
                raise SessionExpired() from e

            logger.info("Session tokens rotated")
            return self.tokens.access_token
        finally:
            self._refresh_task = None

    async def _expire_session(self) -> None:
        if self.on_session_expired is None:
            self.tokens.clear()
            return
        result = self.on_session_expired()
        if inspect.isawaitable(result):
            await result
