"""
Authentication provider abstractions for the brokerage API.

These classes encapsulate the logic for constructing HTTP headers for
an outgoing request.  Separating auth concerns from the HTTP gateway
allows the credential source to change without modifying the gateway.

The backend authenticates every request individually: there is no
token, the stored username and password travel in the ``Username`` and
``Password`` headers on each call.
"""
from __future__ import annotations

from typing import Dict, Optional

from ..models import Identity

USERNAME_HEADER = "Username"
PASSWORD_HEADER = "Password"


class AuthProvider:
    """Abstract base class for authentication providers."""

    async def get_headers(
        self, method: str, path: str, identity: Optional[Identity]
    ) -> Dict[str, str]:
        """Return credential headers for the given request.

        ``identity`` is the live session the gateway read for this request
        (``None`` when logged out).  Subclasses must implement this method.
        """
        raise NotImplementedError


class SessionCredentialsProvider(AuthProvider):
    """Credentials taken from the live identity in the session store.

    Returns no headers while nobody is logged in, in which case only the
    login call is expected to succeed.
    """

    def headers_for(self, identity: Optional[Identity]) -> Dict[str, str]:
        if identity is None or not identity.username or not identity.password:
            return {}
        return {USERNAME_HEADER: identity.username, PASSWORD_HEADER: identity.password}

    async def get_headers(
        self, method: str, path: str, identity: Optional[Identity]
    ) -> Dict[str, str]:
        return self.headers_for(identity)
