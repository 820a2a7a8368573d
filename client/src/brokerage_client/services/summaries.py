"""Aggregates shown on dashboards, computed from server-provided records."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from ..models import AssetHolding, Order, OrderStatus


@dataclass(frozen=True)
class PortfolioSummary:
    cash_total: float
    cash_usable: float
    cash_reserved: float
    stock_count: int
    holdings_count: int
    total_reserved: float


@dataclass(frozen=True)
class OrderBookSummary:
    total_orders: int
    pending_orders: int
    matched_orders: int
    cancelled_orders: int
    active_customers: int


def cash_holding(assets: List[AssetHolding]) -> Optional[AssetHolding]:
    for asset in assets:
        if asset.is_cash:
            return asset
    return None


def stock_holdings(assets: List[AssetHolding]) -> List[AssetHolding]:
    return [asset for asset in assets if not asset.is_cash]


def usable_amount(assets: List[AssetHolding], asset_name: str) -> float:
    """Usable size of ``asset_name``, zero when it is not held."""
    for asset in assets:
        if asset.asset_name == asset_name:
            return asset.usable_size
    return 0.0


def summarise_portfolio(assets: List[AssetHolding]) -> PortfolioSummary:
    cash = cash_holding(assets)
    return PortfolioSummary(
        cash_total=cash.size if cash else 0.0,
        cash_usable=cash.usable_size if cash else 0.0,
        cash_reserved=cash.reserved if cash else 0.0,
        stock_count=len(stock_holdings(assets)),
        holdings_count=len(assets),
        total_reserved=sum(asset.reserved for asset in assets),
    )


def summarise_orders(orders: List[Order], pending: Optional[List[Order]] = None) -> OrderBookSummary:
    """Counts for an order list.

    ``pending`` is the backend's own pending list when the caller has
    one; otherwise pending orders are counted from ``orders``.
    """
    if pending is None:
        pending_count = sum(1 for order in orders if order.status is OrderStatus.PENDING)
    else:
        pending_count = len(pending)
    return OrderBookSummary(
        total_orders=len(orders),
        pending_orders=pending_count,
        matched_orders=sum(1 for order in orders if order.status is OrderStatus.MATCHED),
        cancelled_orders=sum(1 for order in orders if order.status is OrderStatus.CANCELLED),
        active_customers=len({order.user_id for order in orders}),
    )


def recent_orders(orders: List[Order], limit: int = 5) -> List[Order]:
    """The first ``limit`` orders in the order the backend returned them."""
    return list(orders[:limit])
