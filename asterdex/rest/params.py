"""
AsterDEX Client - Request Parameter Types.

============================================================
PURPOSE
============================================================
Typed request builders for the operation families that carry more
than a symbol, with the per-order-type validation rules.

Each type converts to the exchange's camelCase parameter mapping via
to_params(); validation runs on that mapping so dict callers get the
same checks as typed callers.

============================================================
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from asterdex.constants import MAX_BATCH_ORDERS
from asterdex.errors import ValidationError
from asterdex.rest.base import validate_required, with_optional


Number = Union[int, float, Decimal, str]


# ============================================================
# ENUMS
# ============================================================

class OrderSide(Enum):
    BUY = "BUY"
    SELL = "SELL"


class OrderType(Enum):
    LIMIT = "LIMIT"
    MARKET = "MARKET"
    STOP = "STOP"
    STOP_LOSS = "STOP_LOSS"
    TAKE_PROFIT = "TAKE_PROFIT"
    STOP_MARKET = "STOP_MARKET"
    TAKE_PROFIT_MARKET = "TAKE_PROFIT_MARKET"
    TRAILING_STOP_MARKET = "TRAILING_STOP_MARKET"


class TimeInForce(Enum):
    GTC = "GTC"
    IOC = "IOC"
    FOK = "FOK"
    GTX = "GTX"


class PositionSide(Enum):
    BOTH = "BOTH"
    LONG = "LONG"
    SHORT = "SHORT"


def _enum_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


# ============================================================
# ORDER VALIDATION
# ============================================================

_BASE_ORDER_FIELDS = ("symbol", "side", "type")


def validate_spot_order(params: Mapping[str, Any]) -> None:
    """
    Per-type required fields for spot orders.

    Raises:
        ValidationError: Naming the missing field
    """
    validate_required(params, _BASE_ORDER_FIELDS)
    order_type = _enum_value(params["type"])

    if order_type == "LIMIT":
        validate_required(params, ("timeInForce", "quantity", "price"))
    elif order_type == "MARKET":
        if not params.get("quantity") and not params.get("quoteOrderQty"):
            raise ValidationError(
                "Either quantity or quoteOrderQty is required for MARKET orders",
                field="quantity",
            )
    elif order_type in ("STOP", "TAKE_PROFIT"):
        validate_required(params, ("quantity", "price", "stopPrice"))
    elif order_type in ("STOP_MARKET", "TAKE_PROFIT_MARKET"):
        validate_required(params, ("quantity", "stopPrice"))


def validate_futures_order(params: Mapping[str, Any]) -> None:
    """
    Per-type required fields for futures orders.

    Conditional market orders may omit quantity when closePosition is set.

    Raises:
        ValidationError: Naming the missing field
    """
    validate_required(params, _BASE_ORDER_FIELDS)
    order_type = _enum_value(params["type"])
    closes_position = _is_true(params.get("closePosition"))

    if order_type == "LIMIT":
        validate_required(params, ("timeInForce", "quantity", "price"))
    elif order_type == "MARKET":
        validate_required(params, ("quantity",))
    elif order_type in ("STOP", "TAKE_PROFIT"):
        validate_required(params, ("quantity", "price", "stopPrice"))
    elif order_type in ("STOP_MARKET", "TAKE_PROFIT_MARKET"):
        validate_required(params, ("stopPrice",))
        if not closes_position:
            validate_required(params, ("quantity",))
    elif order_type == "TRAILING_STOP_MARKET":
        validate_required(params, ("callbackRate",))
        if not closes_position:
            validate_required(params, ("quantity",))


def validate_batch_orders(orders: Sequence[Mapping[str, Any]]) -> None:
    """1..MAX_BATCH_ORDERS orders, each a valid futures order."""
    if not isinstance(orders, (list, tuple)) or not orders:
        raise ValidationError("batchOrders must be a non-empty list", field="batchOrders")
    if len(orders) > MAX_BATCH_ORDERS:
        raise ValidationError(
            f"Maximum {MAX_BATCH_ORDERS} orders allowed in a batch", field="batchOrders"
        )
    for order in orders:
        validate_futures_order(order)


def require_order_reference(order_id: Optional[int], orig_client_order_id: Optional[str]) -> None:
    """Order lookups need an order id or a client order id."""
    if not order_id and not orig_client_order_id:
        raise ValidationError(
            "Either orderId or origClientOrderId must be provided", field="orderId"
        )


def _is_true(value: Any) -> bool:
    if isinstance(value, str):
        return value.lower() == "true"
    return bool(value)


# ============================================================
# ORDER TYPES
# ============================================================

@dataclass
class SpotOrderRequest:
    """New spot order."""

    symbol: str
    side: Union[OrderSide, str]
    type: Union[OrderType, str]
    quantity: Optional[Number] = None
    quote_order_qty: Optional[Number] = None
    price: Optional[Number] = None
    time_in_force: Optional[Union[TimeInForce, str]] = None
    stop_price: Optional[Number] = None
    new_client_order_id: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_params(self) -> Dict[str, Any]:
        params = {
            "symbol": self.symbol,
            "side": _enum_value(self.side),
            "type": _enum_value(self.type),
        }
        with_optional(
            params,
            quantity=self.quantity,
            quoteOrderQty=self.quote_order_qty,
            price=self.price,
            timeInForce=_enum_value(self.time_in_force),
            stopPrice=self.stop_price,
            newClientOrderId=self.new_client_order_id,
        )
        params.update(self.extra)
        return params


@dataclass
class FuturesOrderRequest:
    """New futures order."""

    symbol: str
    side: Union[OrderSide, str]
    type: Union[OrderType, str]
    quantity: Optional[Number] = None
    price: Optional[Number] = None
    time_in_force: Optional[Union[TimeInForce, str]] = None
    stop_price: Optional[Number] = None
    position_side: Optional[Union[PositionSide, str]] = None
    reduce_only: Optional[bool] = None
    close_position: Optional[bool] = None
    callback_rate: Optional[Number] = None
    activation_price: Optional[Number] = None
    working_type: Optional[str] = None
    price_protect: Optional[bool] = None
    new_client_order_id: Optional[str] = None
    new_order_resp_type: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_params(self) -> Dict[str, Any]:
        params = {
            "symbol": self.symbol,
            "side": _enum_value(self.side),
            "type": _enum_value(self.type),
        }
        with_optional(
            params,
            quantity=self.quantity,
            price=self.price,
            timeInForce=_enum_value(self.time_in_force),
            stopPrice=self.stop_price,
            positionSide=_enum_value(self.position_side),
            reduceOnly=self.reduce_only,
            closePosition=self.close_position,
            callbackRate=self.callback_rate,
            activationPrice=self.activation_price,
            workingType=self.working_type,
            priceProtect=self.price_protect,
            newClientOrderId=self.new_client_order_id,
            newOrderRespType=self.new_order_resp_type,
        )
        params.update(self.extra)
        return params


# ============================================================
# TRANSFER TYPES
# ============================================================

@dataclass
class TransferRequest:
    """Asset transfer between spot and futures wallets."""

    asset: str
    amount: Number
    kind_type: str
    """FUTURE_SPOT or SPOT_FUTURE."""

    client_tran_id: str

    def to_params(self) -> Dict[str, Any]:
        return {
            "asset": self.asset,
            "amount": self.amount,
            "kindType": self.kind_type,
            "clientTranId": self.client_tran_id,
        }


ParamsLike = Union[Mapping[str, Any], SpotOrderRequest, FuturesOrderRequest, TransferRequest]


def as_params(request: ParamsLike) -> Dict[str, Any]:
    """Normalize a typed request or mapping into a parameter dict."""
    if hasattr(request, "to_params"):
        return request.to_params()
    return dict(request)


def as_params_list(requests: Sequence[ParamsLike]) -> List[Dict[str, Any]]:
    return [as_params(request) for request in requests]
