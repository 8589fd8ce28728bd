"""
adtsync.integrations.adt.session - Session/Auth Layer
=======================================================

AdtSession wraps an ``httpx.AsyncClient`` and turns every call into an
authenticated, CSRF-protected ADT request. All remote calls of the
TransportManager and the ArtifactSynchronizer go through ``send()``.

Request Augmentation:
    every request         → basic authentication, ``sap-client`` parameter
    POST/PUT/DELETE/PATCH → ``X-CSRF-Token`` header

CSRF Token Lifecycle:

    first mutating call ──→ GET /sap/bc/adt/discovery (X-CSRF-Token: Fetch)
                                │
                                ↓ token cached for the session
    later mutating calls ──→ reuse cached token
                                │
    403 + "x-csrf-token: Required"
                                ↓
                          refetch once per session, retry once
                                │
                          rejected again → AuthenticationError

The token fetch is guarded by an asyncio.Lock, so uploads running
concurrently share a single fetch. The session cookie returned with the
token is kept by the httpx client.

A session is a per-operation value: open it at the start of an upload,
close it at the end.

Usage:
    >>> async with AdtSession(config.conn, config.auth) as session:
    ...     response = await session.send("POST", "/sap/bc/adt/cts/transports", content=payload)
"""

from __future__ import annotations

import asyncio
from typing import Any, Iterable, Mapping, Optional

import httpx
import structlog

from adtsync.core.config import AuthConfig, ConnectionConfig
from adtsync.core.exceptions import AuthenticationError, RemoteProtocolError


logger = structlog.get_logger()


DISCOVERY_PATH = "/sap/bc/adt/discovery"
CSRF_HEADER = "X-CSRF-Token"
MUTATING_METHODS = frozenset({"POST", "PUT", "DELETE", "PATCH"})


class AdtSession:
    """Authenticated, token-protected HTTP session against an ABAP server.

    Attributes:
        _connection: Server address, client and TLS settings.
        _client: The underlying httpx.AsyncClient.
        _csrf_token: Cached anti-forgery token (None until first needed).
        _token_lock: Serializes token fetches.
    """

    def __init__(
        self,
        connection: ConnectionConfig,
        credentials: AuthConfig,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Create the session.

        Args:
            connection: Connection context.
            credentials: User and password for basic authentication.
            transport: Optional httpx transport, e.g. the MockAdtServer
                transport in tests. Defaults to a real network transport.
        """
        self._connection = connection
        self._logger = logger.bind(component="adt_session", server=connection.server)

        if not connection.use_strict_ssl:
            self._logger.warning("tls_verification_disabled")

        self._client = httpx.AsyncClient(
            base_url=connection.server,
            auth=httpx.BasicAuth(
                credentials.user,
                credentials.password.get_secret_value(),
            ),
            verify=connection.use_strict_ssl,
            timeout=httpx.Timeout(connection.timeout_seconds),
            transport=transport,
        )
        self._csrf_token: Optional[str] = None
        self._token_lock = asyncio.Lock()
        self._token_refreshed = False

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def __aenter__(self) -> AdtSession:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client and forget the token."""
        self._csrf_token = None
        await self._client.aclose()

    @property
    def has_token(self) -> bool:
        return self._csrf_token is not None

    # =========================================================================
    # Requests
    # =========================================================================

    async def send(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Mapping[str, str]] = None,
        content: Optional[bytes] = None,
        headers: Optional[Mapping[str, str]] = None,
        allowed_statuses: Iterable[int] = (),
    ) -> httpx.Response:
        """Send a request with authentication and, when mutating, a CSRF token.

        Args:
            method: HTTP verb.
            path: Path below the server base URL (already URL-encoded).
            params: Query parameters; ``sap-client`` is added automatically.
            content: Request body.
            headers: Extra request headers.
            allowed_statuses: Non-2xx statuses the caller handles itself
                (e.g. 404 for existence checks).

        Returns:
            The httpx.Response (2xx or one of allowed_statuses).

        Raises:
            AuthenticationError: Credentials rejected (401), or the CSRF
                token rejected again after the session's single refresh.
            RemoteProtocolError: Any other unexpected status or a network
                failure.
        """
        method = method.upper()
        request_headers = dict(headers or {})
        mutating = method in MUTATING_METHODS

        if mutating:
            request_headers[CSRF_HEADER] = await self._ensure_token()

        response = await self._request(method, path, params, content, request_headers)

        if mutating and _is_token_rejection(response):
            stale = request_headers[CSRF_HEADER]
            self._logger.info("csrf_token_rejected", method=method, path=path)
            request_headers[CSRF_HEADER] = await self._refresh_token(stale)

            response = await self._request(method, path, params, content, request_headers)
            if _is_token_rejection(response):
                raise AuthenticationError(
                    message=f"CSRF token rejected after refresh: {method} {path}",
                    status_code=response.status_code,
                    error_code="CSRF_TOKEN_REJECTED",
                )

        self._check_status(method, path, response, allowed_statuses)
        return response

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Mapping[str, str]],
        content: Optional[bytes],
        headers: Mapping[str, str],
    ) -> httpx.Response:
        query = dict(params or {})
        if self._connection.client:
            query.setdefault("sap-client", self._connection.client)

        self._logger.debug("adt_request", method=method, path=path)
        try:
            return await self._client.request(
                method,
                path,
                params=query,
                content=content,
                headers=headers,
            )
        except httpx.HTTPError as e:
            raise RemoteProtocolError(
                message=f"{method} {path} failed: {e}",
                error_code="NETWORK_ERROR",
            ) from e

    @staticmethod
    def _check_status(
        method: str,
        path: str,
        response: httpx.Response,
        allowed_statuses: Iterable[int],
    ) -> None:
        if response.status_code == 401:
            raise AuthenticationError(
                message=f"Credentials rejected: {method} {path}",
                status_code=401,
            )
        if response.is_success or response.status_code in tuple(allowed_statuses):
            return
        raise RemoteProtocolError(
            message=f"{method} {path} failed with HTTP {response.status_code}",
            status_code=response.status_code,
            response_body=response.text,
        )

    # =========================================================================
    # CSRF Token
    # =========================================================================

    async def _ensure_token(self) -> str:
        async with self._token_lock:
            if self._csrf_token is None:
                self._csrf_token = await self._fetch_token()
            return self._csrf_token

    async def _refresh_token(self, stale: str) -> str:
        """Replace a rejected token.

        A session refetches its token at most once. If another request
        already refreshed the token while this one was in flight, the newer
        token is reused; a rejection after the refresh raises.

        Raises:
            AuthenticationError: The one refresh of this session is used up.
        """
        async with self._token_lock:
            if self._csrf_token is not None and self._csrf_token != stale:
                return self._csrf_token
            if self._token_refreshed:
                raise AuthenticationError(
                    message="CSRF token rejected again after the session refreshed it",
                    status_code=403,
                    error_code="CSRF_TOKEN_REJECTED",
                )
            self._csrf_token = await self._fetch_token()
            self._token_refreshed = True
            return self._csrf_token

    async def _fetch_token(self) -> str:
        response = await self._request(
            "GET",
            DISCOVERY_PATH,
            None,
            None,
            {CSRF_HEADER: "Fetch", "Accept": "*/*"},
        )
        self._check_status("GET", DISCOVERY_PATH, response, ())

        token = response.headers.get(CSRF_HEADER)
        if not token or token.lower() == "required":
            raise AuthenticationError(
                message="Server did not issue a CSRF token",
                status_code=response.status_code,
                error_code="CSRF_TOKEN_MISSING",
            )

        self._logger.debug("csrf_token_fetched")
        return token


def _is_token_rejection(response: httpx.Response) -> bool:
    return (
        response.status_code == 403
        and response.headers.get(CSRF_HEADER, "").lower() == "required"
    )
