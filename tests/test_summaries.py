from brokerage_client.models import AssetHolding
from brokerage_client.services.summaries import (
    cash_holding,
    recent_orders,
    stock_holdings,
    summarise_orders,
    summarise_portfolio,
    usable_amount,
)
from tests.helpers.fake_api import make_order


def _assets():
    return [
        AssetHolding(asset_name="TRY", size=1000, usable_size=850),
        AssetHolding(asset_name="AAPL", size=10, usable_size=4),
        AssetHolding(asset_name="TSLA", size=2, usable_size=2),
    ]


def test_portfolio_summary_splits_cash_and_stock():
    summary = summarise_portfolio(_assets())
    assert summary.cash_total == 1000
    assert summary.cash_usable == 850
    assert summary.cash_reserved == 150
    assert summary.stock_count == 2
    assert summary.holdings_count == 3
    assert summary.total_reserved == 156


def test_portfolio_without_cash():
    assets = [AssetHolding(asset_name="AAPL", size=1, usable_size=1)]
    summary = summarise_portfolio(assets)
    assert cash_holding(assets) is None
    assert summary.cash_total == 0.0
    assert summary.stock_count == 1


def test_usable_amount_lookup():
    assets = _assets()
    assert usable_amount(assets, "AAPL") == 4
    assert usable_amount(assets, "MSFT") == 0.0
    assert [a.asset_name for a in stock_holdings(assets)] == ["AAPL", "TSLA"]


def test_order_book_counts():
    orders = [
        make_order(1, 2),
        make_order(2, 3, status="MATCHED"),
        make_order(3, 3, status="CANCELLED"),
        make_order(4, 4),
    ]
    book = summarise_orders(orders)
    assert (book.total_orders, book.pending_orders, book.matched_orders) == (4, 2, 1)
    assert book.cancelled_orders == 1
    assert book.active_customers == 3
    # The backend's pending list wins when supplied.
    assert summarise_orders(orders, pending=[orders[0]]).pending_orders == 1


def test_recent_orders_keeps_backend_order():
    orders = [make_order(i, 2) for i in range(1, 8)]
    assert [o.id for o in recent_orders(orders)] == [1, 2, 3, 4, 5]
    assert recent_orders([], limit=3) == []
