"""
Consistency coordinator for brokerage views.

The backend offers no push channel, so the coordinator keeps view state
coherent by refetching: after every successful create, cancel or match
it re-issues the list calls for the current role and replaces the
in-memory collections wholesale.  Records are never patched locally;
statuses and usable balances shown to the user always come from the
server.

Derived views (the set of known customers, filtered order lists, the
selected customer's holdings) are recomputed from the fetched
collections, never maintained incrementally.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Dict, List, Optional

from ..clients.brokerage_api import BrokerageApi
from ..errors import AuthenticationError, InvalidRequestError, OrderStateError
from ..models import AssetHolding, Capabilities, Identity, Order, OrderRequest

logger = logging.getLogger(__name__)


def _normalise_filter(value: object) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


async def _gather_all(*calls: Awaitable[Any]) -> List[Any]:
    """Await every call, then raise the first failure if any failed."""
    results = await asyncio.gather(*calls, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return results


def distinct_customers(orders: List[Order]) -> List[int]:
    """Sorted distinct customer ids appearing in ``orders``."""
    return sorted({order.user_id for order in orders})


def filter_orders(
    orders: List[Order],
    customer: Optional[object] = None,
    instrument: Optional[str] = None,
) -> List[Order]:
    """Orders matching every active filter.

    An empty or ``None`` filter value places no constraint on its field.
    Customer values may be ints or numeric strings (as a form would
    supply them).
    """
    customer_key = _normalise_filter(customer)
    instrument_key = _normalise_filter(instrument)
    customer_id: Optional[int] = None
    if customer_key is not None:
        try:
            customer_id = int(customer_key)
        except ValueError:
            raise InvalidRequestError(f"Invalid customer id: {customer!r}") from None
    return [
        order
        for order in orders
        if (customer_id is None or order.user_id == customer_id)
        and (instrument_key is None or order.asset_name == instrument_key)
    ]


class ConsistencyCoordinator:
    """Holds the collections views render and keeps them in sync."""

    def __init__(self, api: BrokerageApi) -> None:
        self.api = api
        self.orders: List[Order] = []
        self.pending_orders: List[Order] = []
        self.assets: List[AssetHolding] = []
        self.customers: List[int] = []
        self.instruments: List[str] = []
        self.selected_customer: Optional[int] = None
        self.customer_assets: List[AssetHolding] = []

    @property
    def identity(self) -> Identity:
        identity = self.api.current_identity()
        if identity is None:
            raise AuthenticationError("Not logged in")
        return identity

    @property
    def capabilities(self) -> Capabilities:
        return self.identity.capabilities

    # Loading

    async def load(self) -> None:
        """Load the collections for the logged-in role."""
        if self.capabilities.can_view_all_customers:
            await self.load_admin_view()
        else:
            await self.load_customer_view()

    async def load_admin_view(self) -> None:
        """Fetch all orders and pending orders together.

        Both calls finish before anything is assigned or raised; nothing
        is assigned unless both succeed.
        """
        orders, pending = await _gather_all(
            self.api.list_orders(),
            self.api.list_pending_orders(),
        )
        self._replace_orders(orders)
        self.pending_orders = pending

    async def load_customer_view(self) -> None:
        orders, assets = await _gather_all(
            self.api.list_orders(),
            self.api.list_assets(),
        )
        self._replace_orders(orders)
        self.assets = assets

    async def load_instruments(self) -> List[str]:
        self.instruments = await self.api.list_available_instruments()
        return self.instruments

    async def refresh(self) -> None:
        """Resynchronise every collection the current role displays."""
        await self.load()
        if self.selected_customer is not None and self.capabilities.can_view_all_customers:
            await self._fetch_customer_assets(self.selected_customer)

    def _replace_orders(self, orders: List[Order]) -> None:
        previous: Dict[int, Order] = {order.id: order for order in self.orders}
        for order in orders:
            before = previous.get(order.id)
            if before is not None and before.is_terminal and order.status != before.status:
                # The server stays authoritative; only report the oddity.
                logger.warning(
                    "Order %s changed from terminal status %s to %s",
                    order.id, before.status.value, order.status.value,
                )
        self.orders = orders
        self.customers = distinct_customers(orders)

    # Mutations

    async def create_order(self, request: OrderRequest) -> Order:
        order = await self.api.create_order(request)
        await self.refresh()
        return order

    async def cancel_order(self, order_id: int) -> Order:
        known = self.find_order(order_id)
        if known is not None and not self.capabilities.can_cancel(known):
            if known.is_terminal:
                reason = f"Order {order_id} is {known.status.value} and cannot be cancelled"
            else:
                reason = f"Order {order_id} belongs to another customer"
            raise OrderStateError(order_id, reason)
        order = await self.api.cancel_order(order_id)
        await self.refresh()
        return order

    async def match_order(self, order_id: int) -> Order:
        if not self.capabilities.can_match_orders:
            raise OrderStateError(order_id, "Only administrators can match orders")
        known = self.find_order(order_id)
        if known is not None and not known.is_pending:
            raise OrderStateError(
                order_id, f"Order {order_id} is {known.status.value} and cannot be matched"
            )
        order = await self.api.match_order(order_id)
        await self.refresh()
        return order

    # Derived views

    def find_order(self, order_id: int) -> Optional[Order]:
        for order in self.orders:
            if order.id == order_id:
                return order
        for order in self.pending_orders:
            if order.id == order_id:
                return order
        return None

    def filtered_orders(
        self, customer: Optional[object] = None, instrument: Optional[str] = None
    ) -> List[Order]:
        return filter_orders(self.orders, customer=customer, instrument=instrument)

    def cancellable(self) -> List[Order]:
        caps = self.capabilities
        return [order for order in self.orders if caps.can_cancel(order)]

    def matchable(self) -> List[Order]:
        caps = self.capabilities
        return [order for order in self.pending_orders if caps.can_match(order)]

    async def select_customer(self, customer_id: Optional[object]) -> List[AssetHolding]:
        """Switch the customer whose holdings are shown.

        The previous customer's holdings are dropped immediately; passing
        ``None`` or an empty value clears the selection.
        """
        if not self.capabilities.can_view_all_customers:
            raise InvalidRequestError("Only administrators can select a customer")
        key = _normalise_filter(customer_id)
        self.customer_assets = []
        if key is None:
            self.selected_customer = None
            return []
        try:
            self.selected_customer = int(key)
        except ValueError:
            self.selected_customer = None
            raise InvalidRequestError(f"Invalid customer id: {customer_id!r}") from None
        return await self._fetch_customer_assets(self.selected_customer)

    async def _fetch_customer_assets(self, customer_id: int) -> List[AssetHolding]:
        assets = await self.api.list_assets(customer_id)
        if self.selected_customer != customer_id:
            # Selection moved on while the request was in flight.
            logger.debug("Discarding holdings for deselected customer %s", customer_id)
            return []
        self.customer_assets = assets
        return assets
