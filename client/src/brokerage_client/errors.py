"""
Exception hierarchy for the brokerage client.

Every failure surfaced by the client derives from :class:`BrokerageError`
so presentation code can report errors uniformly.  The categories are:

* authentication: login rejected (:class:`AuthenticationError`) or any
  call answered with 401 (:class:`SessionExpiredError`);
* validation/business: the backend refused a request and said why
  (:class:`ApiError`), or the client refused it before sending
  (:class:`InvalidRequestError`, :class:`OrderStateError`);
* transport: the backend could not be reached (:class:`TransportError`)
  or answered with something unreadable (:class:`ResponseFormatError`).

None of these are retried by the client.
"""

from __future__ import annotations

from typing import Any, Optional


class BrokerageError(Exception):
    """Base class for all client errors."""


class AuthenticationError(BrokerageError):
    """Credentials were rejected."""


class SessionExpiredError(AuthenticationError):
    """A call was answered with 401; the local session has been torn down."""


class ApiError(BrokerageError):
    """Non-authentication error response from the backend.

    ``message`` is the backend's own text, passed through unmodified so it
    can be shown to the user as-is.
    """

    def __init__(self, status: int, message: str, body: Any = None) -> None:
        super().__init__(message)
        self.status = status
        self.message = message
        self.body = body

    def __str__(self) -> str:
        return self.message


class TransportError(BrokerageError):
    """The request never produced an HTTP response."""


class ResponseFormatError(BrokerageError):
    """The backend answered with a payload the client cannot interpret."""


class InvalidRequestError(BrokerageError, ValueError):
    """Input rejected locally before any network call."""


class OrderStateError(BrokerageError):
    """A cancel or match was attempted on an order that does not allow it."""

    def __init__(self, order_id: int, message: Optional[str] = None) -> None:
        super().__init__(message or f"Order {order_id} cannot be changed")
        self.order_id = order_id
