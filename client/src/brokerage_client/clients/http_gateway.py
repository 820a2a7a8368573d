"""
HTTP gateway for the brokerage REST API.

Every outbound call goes through :class:`RequestGateway`.  Before a
request is dispatched the gateway asks its authentication provider for
credential headers; after the response arrives it maps failures onto
the client's error taxonomy:

* ``401`` tears down the session (clears the store and invokes the
  ``on_unauthorized`` callback, which sends the user back to the login
  entry point) and then raises :class:`SessionExpiredError`.  Teardown
  completes before the exception reaches any caller.
* any other ``>= 400`` status raises :class:`ApiError` carrying the
  backend's message unmodified.
* connection problems raise :class:`TransportError`.
* a success body that cannot be decoded raises
  :class:`ResponseFormatError`.

Requests are never retried and no client-side timeout is configured
beyond aiohttp's default.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

import aiohttp
from aiohttp import ClientResponse

from ..errors import ApiError, ResponseFormatError, SessionExpiredError, TransportError
from ..models import Identity
from .auth_providers import AuthProvider, SessionCredentialsProvider

if TYPE_CHECKING:
    from ..services.session_store import SessionStore

logger = logging.getLogger(__name__)

UnauthorizedCallback = Callable[[], None]


def _extract_message(body: Any) -> str:
    if isinstance(body, dict):
        for key in ("message", "error", "detail"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    if isinstance(body, str):
        return body
    return ""


class RequestGateway:
    """Single choke point for calls to the brokerage backend."""

    def __init__(
        self,
        session_store: SessionStore,
        *,
        base_url: str = "http://localhost:8080/api",
        health_url: Optional[str] = None,
        auth_provider: Optional[AuthProvider] = None,
        on_unauthorized: Optional[UnauthorizedCallback] = None,
    ) -> None:
        """Construct the gateway.

        Args:
            session_store: Store holding the live identity.  Cleared when
                the backend answers 401.
            base_url: Base URL of the ``/api`` routes.
            health_url: Root for routes outside ``/api`` (``/health``).
                Defaults to ``base_url`` without its ``/api`` suffix.
            auth_provider: Source of credential headers; defaults to the
                identity held by ``session_store``.
            on_unauthorized: Called after the session is torn down, to
                return the user to the unauthenticated entry point.
        """
        self.session_store = session_store
        self.base_url = base_url.rstrip("/")
        if health_url is None:
            health_url = self.base_url[: -len("/api")] if self.base_url.endswith("/api") else self.base_url
        self.health_url = health_url.rstrip("/")
        self.auth_provider = auth_provider or SessionCredentialsProvider()
        self.on_unauthorized = on_unauthorized

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, str]] = None,
        payload: Optional[Dict[str, Any]] = None,
        root: Optional[str] = None,
    ) -> Any:
        """Send one request and return the decoded JSON body.

        ``root`` overrides the base URL for routes that do not live under
        ``/api``.
        """
        url = f"{root or self.base_url}{path}"
        # Credentials are resolved before the request starts; the identity
        # read here is the one a 401 will be attributed to.
        sent_as = self.session_store.current()
        headers = {"Content-Type": "application/json"}
        headers.update(await self.auth_provider.get_headers(method, path, sent_as))
        body = json.dumps(payload) if payload is not None else None
        logger.debug("%s %s params=%s", method, url, params)
        try:
            async with aiohttp.ClientSession() as session:
                async with session.request(
                    method, url, headers=headers, params=params, data=body
                ) as resp:
                    await self._handle_response_errors(resp, sent_as)
                    return await self._decode(resp)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.error("Request %s %s failed: %s", method, url, exc)
            raise TransportError(f"{method} {path} failed: {exc}") from exc

    async def get(self, path: str, params: Optional[Dict[str, str]] = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, payload: Dict[str, Any]) -> Any:
        return await self.request("POST", path, payload=payload)

    async def delete(self, path: str) -> Any:
        return await self.request("DELETE", path)

    @staticmethod
    async def _decode(resp: ClientResponse, errors: str = "strict") -> Any:
        try:
            text = await resp.text(errors=errors)
        except (UnicodeDecodeError, LookupError) as exc:
            raise ResponseFormatError(f"Undecodable response body: {exc}") from exc
        if not text:
            return None
        try:
            return json.loads(text)
        except ValueError:
            return text

    async def _handle_response_errors(self, resp: ClientResponse, sent_as: Optional[Identity]) -> None:
        if resp.status < 400:
            return
        if resp.status == 401:
            # Teardown must not depend on the body being readable.
            self.teardown(sent_as)
        # Error bodies are only shown to the user; undecodable bytes are replaced.
        try:
            body = await self._decode(resp, errors="replace")
        except ResponseFormatError:
            body = None
        message = _extract_message(body) or resp.reason or f"HTTP {resp.status}"
        if resp.status == 401:
            raise SessionExpiredError(message)
        # Avoid logging full response bodies; truncate to prevent leakage
        logger.warning("REST API error %s: %s", resp.status, message[:200])
        raise ApiError(resp.status, message, body)

    def teardown(self, sent_as: Optional[Identity]) -> None:
        """Clear the session after a 401 and redirect to login.

        Skipped when the store already holds a different identity than
        the one the rejected request carried: that identity logged in
        after the request was sent and is not the one being rejected.
        """
        current = self.session_store.current()
        if current is not None and current != sent_as:
            logger.info("Ignoring 401 for a superseded session; %s is logged in", current.username)
            return
        logger.warning("Backend rejected credentials; clearing session")
        self.session_store.clear()
        if self.on_unauthorized is not None:
            self.on_unauthorized()
