"""
Data models for the Table Order engine.

This module contains dataclasses for:
- MenuVersion / MenuItem: published menus and the snapshot embedded in orders
- Order: the order row and its lifecycle (OrderStatus)
- FrozenOrder: immutable snapshot handed to print job threads
- PrintJob: tracked printer delivery
- PaymentCallback: normalized provider webhook

Every stored model round-trips through to_dict() / from_dict() using the
camelCase attribute names of the store.
"""

from .menu import MenuVersion, MenuItem, MenuOption, OptionChoice, MenuStatus, OptionType
from .order import (
    Order,
    OrderItem,
    SelectedOption,
    CustomerInfo,
    OrderStatus,
    FrozenOrder,
)
from .print_job import PrintJob, PrintJobStatus, PrintType
from .payment import (
    PaymentCallback,
    PaymentStatus,
    PaymentRequest,
    PaymentResponse,
    RefundResult,
)

__all__ = [
    # Menu models
    "MenuVersion",
    "MenuItem",
    "MenuOption",
    "OptionChoice",
    "MenuStatus",
    "OptionType",
    # Order models
    "Order",
    "OrderItem",
    "SelectedOption",
    "CustomerInfo",
    "OrderStatus",
    "FrozenOrder",
    # Print models
    "PrintJob",
    "PrintJobStatus",
    "PrintType",
    # Payment models
    "PaymentCallback",
    "PaymentStatus",
    "PaymentRequest",
    "PaymentResponse",
    "RefundResult",
]
