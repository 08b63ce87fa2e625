"""
AsterDEX Client - REST.

Routing-table clients for the spot and futures services.
"""

from asterdex.rest.base import BaseRestClient, Endpoint, validate_required
from asterdex.rest.futures import FuturesClient, FuturesEndpoints
from asterdex.rest.params import (
    FuturesOrderRequest,
    OrderSide,
    OrderType,
    PositionSide,
    SpotOrderRequest,
    TimeInForce,
    TransferRequest,
    validate_batch_orders,
    validate_futures_order,
    validate_spot_order,
)
from asterdex.rest.spot import SpotClient, SpotEndpoints


__all__ = [
    "BaseRestClient",
    "Endpoint",
    "validate_required",
    "FuturesClient",
    "FuturesEndpoints",
    "SpotClient",
    "SpotEndpoints",
    "FuturesOrderRequest",
    "SpotOrderRequest",
    "TransferRequest",
    "OrderSide",
    "OrderType",
    "PositionSide",
    "TimeInForce",
    "validate_batch_orders",
    "validate_futures_order",
    "validate_spot_order",
]
