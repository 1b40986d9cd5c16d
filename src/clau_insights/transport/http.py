"""
REST + event-stream HTTP client for the CLAU backend.
"""

import logging
from typing import Any, AsyncIterator, Callable, Optional

import httpx

from clau_insights.errors import (
    AuthError,
    ClauError,
    HttpError,
    PolicyError,
    RateLimitError,
    ServerError,
    TransportError,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:5000"
DEFAULT_TIMEOUT_S = 300.0
SESSION_HEADER = "X-Session-Id"

# default for session_id arguments: send whatever session is adopted now
CURRENT_SESSION: Any = object()


class HttpClient:
    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        token: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT_S,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._session_id: Optional[str] = None
        self._on_unauthorized: Optional[Callable[[], None]] = None
        self._on_session_header: Optional[Callable[[str], None]] = None
        self._client = httpx.AsyncClient(
            base_url=f"{self._base_url}/api",
            headers={"User-Agent": "clau-insights/0.1.0", "Accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    @property
    def token(self) -> Optional[str]:
        return self._token

    def set_token(self, token: Optional[str]) -> None:
        self._token = token

    def set_session_id(self, session_id: Optional[str]) -> None:
        self._session_id = session_id

    def on_unauthorized(self, callback: Optional[Callable[[], None]]) -> None:
        """Called after a 401 has cleared the bearer token."""
        self._on_unauthorized = callback

    def on_session_header(self, callback: Optional[Callable[[str], None]]) -> None:
        """Called with the X-Session-Id the backend attaches to a response."""
        self._on_session_header = callback

    def _headers(
        self,
        authenticated: bool = True,
        accept: Optional[str] = None,
        session_id: Any = CURRENT_SESSION,
    ) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if authenticated and self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        if session_id is CURRENT_SESSION:
            session_id = self._session_id
        if session_id:
            headers[SESSION_HEADER] = session_id
        if accept:
            headers["Accept"] = accept
        return headers

    @staticmethod
    def _unwrap(json_data: Any) -> Any:
        """Unwrap the standard envelope: { "success": true, "data": <actual_data> }"""
        if isinstance(json_data, dict) and "data" in json_data:
            if json_data.get("success") is False:
                raise ClauError("api_error", json_data.get("message") or "API returned error status", json_data)
            return json_data["data"]
        return json_data

    @staticmethod
    def _error_body(resp: httpx.Response) -> dict[str, Any]:
        try:
            body = resp.json()
        except ValueError:
            return {"message": resp.text[:200]} if resp.text else {}
        return body if isinstance(body, dict) else {}

    def _observe(self, resp: httpx.Response) -> None:
        session_id = resp.headers.get(SESSION_HEADER)
        if session_id and self._on_session_header:
            self._on_session_header(session_id)
        if resp.status_code == 401:
            self._token = None
            if self._on_unauthorized:
                self._on_unauthorized()

    def _raise_for_status(self, resp: httpx.Response) -> None:
        if resp.status_code < 400:
            return
        body = self._error_body(resp)
        message = body.get("message") or f"HTTP {resp.status_code}"
        if resp.status_code == 401:
            raise AuthError(message, details=body)
        if resp.status_code == 403:
            raise PolicyError(message, details=body)
        if resp.status_code == 429:
            raise RateLimitError(message, details=body)
        if resp.status_code >= 500:
            raise ServerError(resp.status_code, message, details=body)
        raise HttpError(resp.status_code, message, details=body)

    async def request(
        self,
        method: str,
        path: str,
        body: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, str]] = None,
        authenticated: bool = True,
        session_id: Any = CURRENT_SESSION,
    ) -> Any:
        """Make one call. Pass ``session_id`` to pin the session header (None sends none)."""
        try:
            resp = await self._client.request(
                method, path, json=body, params=params,
                headers=self._headers(authenticated, session_id=session_id),
            )
        except httpx.TimeoutException as e:
            raise TransportError(f"{method} {path} timed out: {e}") from e
        except httpx.TransportError as e:
            raise TransportError(f"{method} {path} failed: {e}") from e
        self._observe(resp)
        self._raise_for_status(resp)
        if not resp.content:
            return None
        try:
            return self._unwrap(resp.json())
        except ValueError as e:
            raise TransportError(f"{method} {path} returned a non-JSON body") from e

    async def get(self, path: str, params: Optional[dict[str, str]] = None, authenticated: bool = True) -> Any:
        return await self.request("GET", path, params=params, authenticated=authenticated)

    async def post(
        self,
        path: str,
        body: Optional[dict[str, Any]] = None,
        authenticated: bool = True,
        session_id: Any = CURRENT_SESSION,
    ) -> Any:
        return await self.request("POST", path, body=body, authenticated=authenticated, session_id=session_id)

    async def delete(self, path: str, body: Optional[dict[str, Any]] = None, authenticated: bool = True) -> Any:
        return await self.request("DELETE", path, body=body, authenticated=authenticated)

    async def open_stream(
        self,
        path: str,
        params: Optional[dict[str, str]] = None,
        session_id: Any = CURRENT_SESSION,
    ) -> httpx.Response:
        """Open a long-lived GET. The caller owns the response and must aclose() it."""
        request = self._client.build_request(
            "GET", path, params=params, headers=self._headers(accept="text/event-stream", session_id=session_id),
        )
        try:
            resp = await self._client.send(request, stream=True)
        except httpx.TimeoutException as e:
            raise TransportError(f"stream {path} timed out: {e}") from e
        except httpx.TransportError as e:
            raise TransportError(f"stream {path} failed: {e}") from e
        self._observe(resp)
        if resp.status_code >= 400:
            await resp.aread()
            await resp.aclose()
            self._raise_for_status(resp)
        return resp

    @staticmethod
    async def iter_lines(resp: httpx.Response) -> AsyncIterator[str]:
        """Yield body lines, turning mid-stream network failures into TransportError."""
        try:
            async for line in resp.aiter_lines():
                yield line
        except httpx.TimeoutException as e:
            raise TransportError(f"stream read timed out: {e}") from e
        except (httpx.TransportError, httpx.StreamError) as e:
            raise TransportError(f"stream dropped: {e}") from e

    async def close(self) -> None:
        await self._client.aclose()
