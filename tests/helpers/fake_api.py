"""Recording stand-in for ``BrokerageApi`` used by coordinator tests.

The fake keeps server-side state as plain model lists and records each
call in ``calls`` so tests can assert which list operations a mutation
triggered.  Any method name placed in ``failures`` raises the mapped
exception instead of answering.
"""

from __future__ import annotations

import asyncio
from typing import Dict, List, Optional

from brokerage_client.errors import BrokerageError
from brokerage_client.models import AssetHolding, Identity, Order, OrderRequest, OrderStatus


def make_order(order_id: int, user_id: int, asset: str = "AAPL", status: str = "PENDING",
               side: str = "BUY", size: float = 1.0, price: float = 10.0) -> Order:
    return Order(
        id=order_id,
        user_id=user_id,
        asset_name=asset,
        order_side=side,
        size=size,
        price=price,
        status=status,
    )


class RecordingApi:
    def __init__(self, identity: Optional[Identity]) -> None:
        self.identity = identity
        self.orders: List[Order] = []
        self.holdings: Dict[int, List[AssetHolding]] = {}
        self.calls: List[str] = []
        self.failures: Dict[str, BrokerageError] = {}
        self.gates: Dict[str, asyncio.Event] = {}

    def current_identity(self) -> Optional[Identity]:
        return self.identity

    async def _enter(self, name: str) -> None:
        self.calls.append(name)
        gate = self.gates.get(name)
        if gate is not None:
            await gate.wait()
        if name in self.failures:
            raise self.failures[name]

    async def list_orders(self, order_filter=None) -> List[Order]:
        await self._enter("list_orders")
        return list(self.orders)

    async def list_pending_orders(self) -> List[Order]:
        await self._enter("list_pending_orders")
        return [o for o in self.orders if o.status is OrderStatus.PENDING]

    async def list_assets(self, user_id: Optional[int] = None) -> List[AssetHolding]:
        await self._enter("list_assets")
        owner = user_id if user_id is not None else self.identity.user_id
        return list(self.holdings.get(owner, []))

    async def list_available_instruments(self) -> List[str]:
        await self._enter("list_available_instruments")
        return ["AAPL", "TSLA"]

    async def create_order(self, request: OrderRequest) -> Order:
        await self._enter("create_order")
        order = make_order(
            max((o.id for o in self.orders), default=0) + 1,
            request.user_id,
            request.asset_name,
            side=request.side.value,
            size=request.size,
            price=request.price,
        )
        self.orders.append(order)
        return order

    def _set_status(self, order_id: int, status: str) -> Order:
        for index, order in enumerate(self.orders):
            if order.id == order_id:
                updated = order.model_copy(update={"status": OrderStatus(status)})
                self.orders[index] = updated
                return updated
        raise BrokerageError(f"Order {order_id} not found")

    async def cancel_order(self, order_id: int) -> Order:
        await self._enter("cancel_order")
        return self._set_status(order_id, "CANCELLED")

    async def match_order(self, order_id: int) -> Order:
        await self._enter("match_order")
        return self._set_status(order_id, "MATCHED")
