"""
Typed operations for the brokerage backend.

``BrokerageApi`` turns the REST resources (auth, orders, assets) into
methods returning the models from :mod:`brokerage_client.models`.  Each
method is a thin pass-through over :class:`RequestGateway`: it validates
its input, lets the gateway attach credentials and map HTTP errors, and
parses the response.  Business rules (balances, reservations, order
state transitions) are enforced by the backend only.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from ..errors import (
    ApiError,
    AuthenticationError,
    BrokerageError,
    InvalidRequestError,
    ResponseFormatError,
)
from ..models import AssetHolding, Identity, Order, OrderFilter, OrderRequest
from .http_gateway import RequestGateway

if TYPE_CHECKING:
    from ..services.session_store import SessionStore

logger = logging.getLogger(__name__)

#: Instruments offered when the catalog cannot be fetched.
FALLBACK_INSTRUMENTS = ["AAPL", "GOOGL", "MSFT", "NVDA", "TSLA"]

DEFAULT_LOGIN_ERROR = "Login failed"

M = TypeVar("M", bound=BaseModel)


def _parse(model: Type[M], data: Any) -> M:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise ResponseFormatError(f"Unexpected {model.__name__} payload: {exc}") from exc


def _parse_list(model: Type[M], data: Any) -> List[M]:
    if not isinstance(data, list):
        raise ResponseFormatError(f"Expected a list of {model.__name__}, got {type(data).__name__}")
    return [_parse(model, item) for item in data]


class BrokerageApi:
    """Asynchronous client for the brokerage REST API."""

    def __init__(self, gateway: RequestGateway) -> None:
        self.gateway = gateway

    @property
    def session_store(self) -> SessionStore:
        return self.gateway.session_store

    def current_identity(self) -> Optional[Identity]:
        return self.session_store.current()

    def _is_admin(self) -> bool:
        return self.session_store.is_administrator()

    # Authentication

    async def login(self, username: str, password: str) -> Identity:
        """Authenticate and persist the resulting identity.

        Raises:
            AuthenticationError: the backend rejected the credentials or
                answered without a user id.
        """
        if not username or not username.strip() or not password:
            raise InvalidRequestError("Username and password are required")
        try:
            data = await self.gateway.post("/auth/login", {"username": username, "password": password})
        except (ApiError, AuthenticationError) as exc:
            message = getattr(exc, "message", None) or str(exc) or DEFAULT_LOGIN_ERROR
            logger.info("Login rejected for %s: %s", username, message)
            raise AuthenticationError(message) from exc
        if not isinstance(data, dict):
            raise AuthenticationError(DEFAULT_LOGIN_ERROR)
        # The backend names the id field either userId or customerId.
        user_id = data.get("userId", data.get("customerId"))
        if user_id is None:
            raise AuthenticationError(data.get("message") or DEFAULT_LOGIN_ERROR)
        try:
            identity = Identity(
                username=username,
                password=password,
                user_id=user_id,
                is_admin=bool(data.get("isAdmin")),
                message=data.get("message"),
            )
        except ValidationError as exc:
            raise AuthenticationError(DEFAULT_LOGIN_ERROR) from exc
        self.session_store.save(identity)
        logger.info("Logged in as %s (id=%s, admin=%s)", username, identity.user_id, identity.is_admin)
        return identity

    def logout(self) -> None:
        self.session_store.clear()
        logger.info("Logged out")

    # Orders

    async def list_orders(self, order_filter: Optional[OrderFilter] = None) -> List[Order]:
        """Return orders matching ``order_filter``.

        ``user_id`` is only sent for administrators; a customer's results
        are scoped to the customer by the backend whatever is requested.
        """
        order_filter = order_filter or OrderFilter()
        params = order_filter.to_params(include_user=self._is_admin())
        data = await self.gateway.get("/orders", params=params or None)
        return _parse_list(Order, data)

    async def create_order(self, request: OrderRequest | Dict[str, Any]) -> Order:
        if not isinstance(request, OrderRequest):
            try:
                request = OrderRequest.model_validate(request)
            except ValidationError as exc:
                raise InvalidRequestError(str(exc)) from exc
        data = await self.gateway.post("/orders", request.to_payload())
        order = _parse(Order, data)
        logger.info("Created order %s: %s %s %s @ %s", order.id, order.order_side.value,
                    order.size, order.asset_name, order.price)
        return order

    async def cancel_order(self, order_id: int) -> Order:
        data = await self.gateway.delete(f"/orders/{int(order_id)}")
        return _parse(Order, data)

    async def list_pending_orders(self) -> List[Order]:
        data = await self.gateway.get("/orders/pending")
        return _parse_list(Order, data)

    async def match_order(self, order_id: int) -> Order:
        data = await self.gateway.post("/orders/match", {"orderId": int(order_id)})
        return _parse(Order, data)

    # Assets

    async def list_assets(self, user_id: Optional[int] = None) -> List[AssetHolding]:
        """Return holdings.

        For a customer ``user_id`` is never sent: the backend derives the
        owner from the credentials.  An administrator must name the
        customer.
        """
        params: Dict[str, str] = {}
        if user_id is not None and self._is_admin():
            params["userId"] = str(int(user_id))
        data = await self.gateway.get("/assets", params=params or None)
        return _parse_list(AssetHolding, data)

    async def list_available_instruments(self) -> List[str]:
        """Return tradable asset names, or a fixed fallback list on failure.

        The list only populates order forms, so every failure degrades to
        :data:`FALLBACK_INSTRUMENTS`.  A 401 has already torn the session
        down in the gateway by the time the fallback is returned.
        """
        try:
            data = await self.gateway.get("/assets/available")
        except BrokerageError as exc:
            logger.warning("Failed to fetch available assets, using fallback: %s", exc)
            return list(FALLBACK_INSTRUMENTS)
        if not isinstance(data, list) or not all(isinstance(name, str) for name in data):
            logger.warning("Unexpected available assets payload, using fallback")
            return list(FALLBACK_INSTRUMENTS)
        return data

    # Service endpoints outside /api

    async def get_health(self) -> Dict[str, Any]:
        data = await self.gateway.request("GET", "/health", root=self.gateway.health_url)
        if not isinstance(data, dict):
            raise ResponseFormatError("Unexpected health payload")
        return data

    async def get_api_info(self) -> Dict[str, Any]:
        data = await self.gateway.request("GET", "/", root=self.gateway.health_url)
        if not isinstance(data, dict):
            raise ResponseFormatError("Unexpected API info payload")
        return data
