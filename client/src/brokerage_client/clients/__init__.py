"""
Client utilities for talking to the brokerage backend.

This package provides the HTTP gateway that every request passes
through, the authentication providers that supply its credential
headers, and the typed API built on top of it.
"""

from .auth_providers import AuthProvider, SessionCredentialsProvider  # noqa: F401
from .brokerage_api import BrokerageApi  # noqa: F401
from .http_gateway import RequestGateway  # noqa: F401
