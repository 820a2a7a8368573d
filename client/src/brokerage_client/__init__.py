"""
Client for the brokerage trading backend.

The package is layered the way requests flow through it:

* :mod:`brokerage_client.services.session_store` keeps the logged-in
  identity;
* :mod:`brokerage_client.clients.http_gateway` sends every request,
  attaching that identity's credentials and tearing the session down
  when the backend answers 401;
* :mod:`brokerage_client.clients.brokerage_api` exposes one typed method
  per backend resource;
* :mod:`brokerage_client.services.coordinator` keeps view state in sync
  by refetching after every mutation.
"""

from .clients import BrokerageApi, RequestGateway  # noqa: F401
from .config import ClientConfig  # noqa: F401
from .services import ConsistencyCoordinator, FileSessionStore, InMemorySessionStore  # noqa: F401

__version__ = "0.1.0"
