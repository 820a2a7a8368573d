#!/usr/bin/env python
"""
Command line front end for the brokerage client.

Each sub-command builds the client from environment configuration (see
:mod:`brokerage_client.config`), performs one operation and prints the
result.  Mutations go through the consistency coordinator, so the lists
printed after ``create``, ``cancel`` and ``match`` are freshly fetched
from the backend.

Examples::

    brokerage-client login --username admin
    brokerage-client orders --customer 2 --asset AAPL
    brokerage-client create --customer 2 --asset AAPL --side BUY --size 10 --price 150
    brokerage-client match 17
"""

from __future__ import annotations

import argparse
import asyncio
import getpass
import logging
import sys
from datetime import datetime
from typing import List, Optional

from .clients.brokerage_api import BrokerageApi
from .clients.http_gateway import RequestGateway
from .config import ClientConfig
from .errors import BrokerageError, InvalidRequestError
from .models import AssetHolding, Order, OrderFilter, OrderRequest
from .services.coordinator import ConsistencyCoordinator, filter_orders
from .services.health import check_health, wait_until_healthy
from .services.session_store import FileSessionStore, SessionStore
from .services.summaries import recent_orders, summarise_orders, summarise_portfolio

logger = logging.getLogger(__name__)


def notify_session_expired() -> None:
    print(
        "Not authenticated: the backend rejected the credentials. "
        "Run 'brokerage-client login' to sign in.",
        file=sys.stderr,
    )


def build_api(config: ClientConfig, session_store: Optional[SessionStore] = None) -> BrokerageApi:
    store = session_store or FileSessionStore(config.session_file)
    gateway = RequestGateway(
        store,
        base_url=config.api_url,
        health_url=config.health_url,
        on_unauthorized=notify_session_expired,
    )
    return BrokerageApi(gateway)


def format_order(order: Order) -> str:
    created = order.create_date.strftime("%Y-%m-%d %H:%M") if order.create_date else "-"
    return (
        f"#{order.id:<5} customer={order.user_id:<4} {order.order_side.value:<4} "
        f"{order.asset_name:<6} size={order.size:<10g} price={order.price:<10g} "
        f"{order.status.value:<9} {created}"
    )


def format_holding(asset: AssetHolding) -> str:
    line = f"{asset.asset_name:<6} size={asset.size:<12g} usable={asset.usable_size:<12g}"
    if asset.reserved > 0:
        line += f" reserved={asset.reserved:g}"
    return line


def _print_orders(orders: List[Order]) -> None:
    if not orders:
        print("No orders found")
        return
    for order in orders:
        print(format_order(order))


def _print_holdings(assets: List[AssetHolding]) -> None:
    if not assets:
        print("No assets found")
        return
    for asset in assets:
        print(format_holding(asset))


async def _cmd_login(api: BrokerageApi, args: argparse.Namespace, config: ClientConfig) -> None:
    username = args.username or config.username or input("Username: ")
    password = args.password or config.password or getpass.getpass("Password: ")
    identity = await api.login(username, password)
    role = "administrator" if identity.is_admin else "customer"
    print(f"Logged in as {identity.username} ({role}, id {identity.user_id})")


async def _cmd_whoami(api: BrokerageApi, args: argparse.Namespace, config: ClientConfig) -> None:
    identity = api.current_identity()
    if identity is None:
        print("Not logged in")
        return
    role = "administrator" if identity.is_admin else "customer"
    print(f"{identity.username} ({role}, id {identity.user_id})")


async def _cmd_orders(api: BrokerageApi, args: argparse.Namespace, config: ClientConfig) -> None:
    if args.start or args.end:
        order_filter = OrderFilter(user_id=args.customer, start_date=args.start, end_date=args.end)
        orders = await api.list_orders(order_filter)
        _print_orders(filter_orders(orders, instrument=args.asset))
        return
    coordinator = ConsistencyCoordinator(api)
    await coordinator.load()
    _print_orders(coordinator.filtered_orders(customer=args.customer, instrument=args.asset))


async def _cmd_pending(api: BrokerageApi, args: argparse.Namespace, config: ClientConfig) -> None:
    _print_orders(await api.list_pending_orders())


async def _cmd_assets(api: BrokerageApi, args: argparse.Namespace, config: ClientConfig) -> None:
    coordinator = ConsistencyCoordinator(api)
    if coordinator.capabilities.can_view_all_customers:
        if args.customer is None:
            raise InvalidRequestError("Administrators must pass --customer")
        _print_holdings(await coordinator.select_customer(args.customer))
    else:
        _print_holdings(await api.list_assets())


async def _cmd_instruments(api: BrokerageApi, args: argparse.Namespace, config: ClientConfig) -> None:
    for name in await api.list_available_instruments():
        print(name)


async def _cmd_create(api: BrokerageApi, args: argparse.Namespace, config: ClientConfig) -> None:
    coordinator = ConsistencyCoordinator(api)
    customer = args.customer if args.customer is not None else coordinator.identity.user_id
    try:
        request = OrderRequest(
            user_id=customer, asset_name=args.asset, side=args.side, size=args.size, price=args.price
        )
    except ValueError as exc:
        raise InvalidRequestError(str(exc)) from exc
    await coordinator.load()
    order = await coordinator.create_order(request)
    print(f"Created order #{order.id} for customer {order.user_id}")
    _print_orders(coordinator.orders)


async def _cmd_cancel(api: BrokerageApi, args: argparse.Namespace, config: ClientConfig) -> None:
    coordinator = ConsistencyCoordinator(api)
    await coordinator.load()
    order = await coordinator.cancel_order(args.order_id)
    print(f"Order #{order.id} is {order.status.value}")
    _print_orders(coordinator.orders)


async def _cmd_match(api: BrokerageApi, args: argparse.Namespace, config: ClientConfig) -> None:
    coordinator = ConsistencyCoordinator(api)
    await coordinator.load()
    order = await coordinator.match_order(args.order_id)
    print(f"Order #{order.id} is {order.status.value}")
    _print_orders(coordinator.pending_orders)


async def _cmd_summary(api: BrokerageApi, args: argparse.Namespace, config: ClientConfig) -> None:
    coordinator = ConsistencyCoordinator(api)
    await coordinator.load()
    if coordinator.capabilities.can_view_all_customers:
        book = summarise_orders(coordinator.orders, coordinator.pending_orders)
        print(f"Total orders:     {book.total_orders}")
        print(f"Pending orders:   {book.pending_orders}")
        print(f"Matched orders:   {book.matched_orders}")
        print(f"Active customers: {book.active_customers}")
        if args.customer is None:
            return
        assets = await coordinator.select_customer(args.customer)
        print(f"\nCustomer {args.customer}:")
    else:
        assets = coordinator.assets
    portfolio = summarise_portfolio(assets)
    print(f"Cash (TRY):       {portfolio.cash_total:g} (usable {portfolio.cash_usable:g}, "
          f"reserved {portfolio.cash_reserved:g})")
    print(f"Stock holdings:   {portfolio.stock_count}")
    if not coordinator.capabilities.can_view_all_customers:
        print("\nRecent orders:")
        _print_orders(recent_orders(coordinator.orders))


async def _cmd_health(api: BrokerageApi, args: argparse.Namespace, config: ClientConfig) -> None:
    if args.wait:
        status = await wait_until_healthy(api, attempts=args.wait)
    else:
        status = await check_health(api)
    print(f"Backend {status.get('status')} at {status.get('timestamp', '-')}")


COMMANDS = {
    "login": _cmd_login,
    "whoami": _cmd_whoami,
    "orders": _cmd_orders,
    "pending": _cmd_pending,
    "assets": _cmd_assets,
    "instruments": _cmd_instruments,
    "create": _cmd_create,
    "cancel": _cmd_cancel,
    "match": _cmd_match,
    "summary": _cmd_summary,
    "health": _cmd_health,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="brokerage-client", description="Brokerage backend client.")
    sub = parser.add_subparsers(dest="command", required=True)

    login = sub.add_parser("login", help="Log in and store the session.")
    login.add_argument("--username")
    login.add_argument("--password")
    sub.add_parser("logout", help="Forget the stored session.")
    sub.add_parser("whoami", help="Show the logged-in user.")

    orders = sub.add_parser("orders", help="List orders.")
    orders.add_argument("--customer", type=int, help="Customer id (administrators only).")
    orders.add_argument("--asset", help="Only orders for this instrument.")
    orders.add_argument("--start", type=datetime.fromisoformat, help="ISO start date-time.")
    orders.add_argument("--end", type=datetime.fromisoformat, help="ISO end date-time.")

    sub.add_parser("pending", help="List pending orders (administrators only).")

    assets = sub.add_parser("assets", help="List asset holdings.")
    assets.add_argument("--customer", type=int, help="Customer id (required for administrators).")

    sub.add_parser("instruments", help="List tradable instruments.")

    create = sub.add_parser("create", help="Create an order.")
    create.add_argument("--customer", type=int, help="Customer id; defaults to the logged-in user.")
    create.add_argument("--asset", required=True)
    create.add_argument("--side", required=True, choices=["BUY", "SELL", "buy", "sell"])
    create.add_argument("--size", required=True, type=float)
    create.add_argument("--price", required=True, type=float)

    cancel = sub.add_parser("cancel", help="Cancel a pending order.")
    cancel.add_argument("order_id", type=int)
    match = sub.add_parser("match", help="Match a pending order (administrators only).")
    match.add_argument("order_id", type=int)

    summary = sub.add_parser("summary", help="Dashboard totals.")
    summary.add_argument("--customer", type=int, help="Also summarise this customer's holdings.")

    health = sub.add_parser("health", help="Check backend health.")
    health.add_argument("--wait", type=int, default=0, metavar="ATTEMPTS",
                        help="Poll until healthy, up to ATTEMPTS times.")
    return parser


async def run(args: argparse.Namespace, config: ClientConfig, api: Optional[BrokerageApi] = None) -> int:
    api = api or build_api(config)
    if args.command == "logout":
        api.logout()
        print("Logged out")
        return 0
    try:
        await COMMANDS[args.command](api, args, config)
    except BrokerageError as exc:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    config = ClientConfig.from_env()
    logging.basicConfig(level=config.log_level)
    args = build_parser().parse_args(argv)
    try:
        return asyncio.run(run(args, config))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
