"""
Domain models for brokerage entities using Pydantic.  These models
provide validation and serialization for identities, orders and asset
holdings exchanged with the brokerage backend.  Field names follow
Python conventions; the camelCase names used on the wire are declared
as aliases so payloads can be parsed and produced without manual
mapping.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

#: Asset name of the cash (currency) holding.
CASH_ASSET = "TRY"


class OrderSide(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    MATCHED = "MATCHED"
    CANCELLED = "CANCELLED"


TERMINAL_STATUSES = frozenset({OrderStatus.MATCHED, OrderStatus.CANCELLED})


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class Capabilities(BaseModel):
    """Role-dependent permissions derived from an :class:`Identity`.

    Views consult these flags instead of branching on ``is_admin``
    themselves.  The backend enforces the same rules; the flags only
    decide what the client offers and which parameters it sends.
    """

    model_config = ConfigDict(frozen=True)

    user_id: int
    is_admin: bool

    @property
    def can_view_all_customers(self) -> bool:
        return self.is_admin

    @property
    def can_filter_by_customer(self) -> bool:
        return self.is_admin

    @property
    def can_view_pending(self) -> bool:
        return self.is_admin

    @property
    def can_match_orders(self) -> bool:
        return self.is_admin

    def can_cancel(self, order: "Order") -> bool:
        return order.is_pending and (self.is_admin or order.user_id == self.user_id)

    def can_match(self, order: "Order") -> bool:
        return order.is_pending and self.can_match_orders


class Identity(_WireModel):
    """The authenticated user and the credentials resent on every call."""

    username: str
    password: str
    user_id: int = Field(..., alias="userId")
    is_admin: bool = Field(False, alias="isAdmin")
    message: Optional[str] = None

    @property
    def capabilities(self) -> Capabilities:
        return Capabilities(user_id=self.user_id, is_admin=self.is_admin)

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)

    def __repr__(self) -> str:
        # Keep the password out of logs and tracebacks.
        return (
            f"Identity(username={self.username!r}, user_id={self.user_id}, "
            f"is_admin={self.is_admin})"
        )

    __str__ = __repr__


class Order(_WireModel):
    """An order as reported by the backend."""

    id: int
    user_id: int = Field(..., alias="userId")
    asset_name: str = Field(..., alias="assetName")
    order_side: OrderSide = Field(..., alias="orderSide")
    size: float = Field(..., gt=0)
    price: float = Field(..., gt=0)
    status: OrderStatus
    create_date: Optional[datetime] = Field(None, alias="createDate")

    @property
    def is_pending(self) -> bool:
        return self.status is OrderStatus.PENDING

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def notional(self) -> float:
        return self.size * self.price


class AssetHolding(_WireModel):
    """A holding of one asset for one customer.

    Holdings are computed by the backend; the client only reads them.
    ``usable_size`` is the part of ``size`` not locked by the owner's own
    pending orders.
    """

    asset_name: str = Field(..., alias="assetName")
    size: float = Field(..., ge=0)
    usable_size: float = Field(..., ge=0, alias="usableSize")
    id: Optional[int] = None
    customer_id: Optional[int] = Field(None, alias="customerId")

    @model_validator(mode="after")
    def _usable_within_size(self) -> "AssetHolding":
        if self.usable_size > self.size:
            raise ValueError(
                f"usableSize {self.usable_size} exceeds size {self.size} for {self.asset_name}"
            )
        return self

    @property
    def reserved(self) -> float:
        return self.size - self.usable_size

    @property
    def is_cash(self) -> bool:
        return self.asset_name == CASH_ASSET


class OrderRequest(_WireModel):
    """Request to create a new order."""

    user_id: int = Field(..., alias="userId", description="Customer the order belongs to")
    asset_name: str = Field(..., alias="assetName", min_length=1, description="Instrument name, e.g. AAPL")
    side: OrderSide = Field(..., description="Order side")
    size: float = Field(..., gt=0, description="Order quantity")
    price: float = Field(..., gt=0, description="Limit price")

    @field_validator("asset_name")
    @classmethod
    def _strip_asset_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("asset name is required")
        return value

    @field_validator("side", mode="before")
    @classmethod
    def _upper_side(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class OrderFilter(_WireModel):
    """Optional constraints for listing orders."""

    user_id: Optional[int] = Field(None, alias="userId")
    start_date: Optional[datetime] = Field(None, alias="startDate")
    end_date: Optional[datetime] = Field(None, alias="endDate")

    def to_params(self, include_user: bool = True) -> Dict[str, str]:
        params: Dict[str, str] = {}
        if include_user and self.user_id is not None:
            params["userId"] = str(self.user_id)
        if self.start_date is not None:
            params["startDate"] = self.start_date.isoformat()
        if self.end_date is not None:
            params["endDate"] = self.end_date.isoformat()
        return params
