"""
Order data models.

An order flows through a one-way lifecycle:

    CREATED -> PAID -> COOKING -> READY -> COMPLETED
       \\         \\        \\        \\
        +---------+--------+--------+--> CANCELLED

COMPLETED and CANCELLED are terminal. Orders are never deleted;
cancellation is a state, not a removal.

Thread Safety:
    - Order is a plain mutable dataclass used on the request path
    - Use Order.freeze() to create an immutable snapshot for print threads
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, List, Optional, Tuple


class OrderStatus(Enum):
    """
    Status of an order.

    Lifecycle:
        CREATED -> PAID -> COOKING -> READY -> COMPLETED
        any non-terminal -> CANCELLED
    """

    CREATED = "CREATED"
    """Cart submitted and priced; waiting for payment."""

    PAID = "PAID"
    """Payment provider confirmed the charge."""

    COOKING = "COOKING"
    """Kitchen accepted the order."""

    READY = "READY"
    """Waiting for pickup; auto-completed after the pickup window."""

    COMPLETED = "COMPLETED"
    """Picked up (or auto-completed). Terminal."""

    CANCELLED = "CANCELLED"
    """Cancelled with refund info attached. Terminal."""

    def can_transition_to(self, target: "OrderStatus") -> bool:
        if target is OrderStatus.CANCELLED:
            return self in CANCELLABLE_STATUSES
        return FORWARD_TRANSITIONS.get(self) is target


FORWARD_TRANSITIONS: Dict[OrderStatus, OrderStatus] = {
    OrderStatus.CREATED: OrderStatus.PAID,
    OrderStatus.PAID: OrderStatus.COOKING,
    OrderStatus.COOKING: OrderStatus.READY,
    OrderStatus.READY: OrderStatus.COMPLETED,
}

CANCELLABLE_STATUSES = frozenset({
    OrderStatus.CREATED,
    OrderStatus.PAID,
    OrderStatus.COOKING,
    OrderStatus.READY,
})

# Refund is capped once the kitchen has started on the order
PREP_STARTED_STATUSES = frozenset({OrderStatus.COOKING, OrderStatus.READY})


@dataclass(frozen=True)
class SelectedOption:
    """A choice the customer picked for one option group of an item."""

    option_id: str
    choice_id: str
    name: str
    price_modifier: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "optionId": self.option_id,
            "choiceId": self.choice_id,
            "name": self.name,
            "priceModifier": self.price_modifier,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SelectedOption":
        return cls(
            option_id=data.get("optionId", ""),
            choice_id=data.get("choiceId", ""),
            name=data.get("name", ""),
            price_modifier=data.get("priceModifier", 0.0),
        )


@dataclass(frozen=True)
class OrderItem:
    """
    One order line.

    On input, price is the line total the client claims. After validation
    it is the line total recomputed from the menu snapshot.
    """

    menu_item_id: str
    name: str
    price: float
    quantity: int
    selected_options: Tuple[SelectedOption, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "menuItemId": self.menu_item_id,
            "name": self.name,
            "price": self.price,
            "quantity": self.quantity,
            "selectedOptions": [o.to_dict() for o in self.selected_options],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OrderItem":
        return cls(
            menu_item_id=data.get("menuItemId", ""),
            name=data.get("name", ""),
            price=data.get("price", 0.0),
            quantity=data.get("quantity", 0),
            selected_options=tuple(
                SelectedOption.from_dict(o) for o in data.get("selectedOptions", [])
            ),
        )


@dataclass(frozen=True)
class CustomerInfo:
    phone: Optional[str] = None
    email: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in (("phone", self.phone), ("email", self.email)) if v}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["CustomerInfo"]:
        if not data:
            return None
        return cls(phone=data.get("phone"), email=data.get("email"))


@dataclass
class Order:
    """
    An order as stored in the orders collection.

    Created once by the lifecycle manager; later mutated only through
    status-guarded conditional updates (payment reconciliation, owner
    status changes, the auto-completion sweep, cancellation).
    """

    order_id: str
    restaurant_id: str
    menu_snapshot: Dict[str, Any]
    items: List[OrderItem]
    status: OrderStatus
    total_amount: float
    created_at: str
    updated_at: str
    expires_at: Optional[int] = None
    customer_info: Optional[CustomerInfo] = None
    payment_info: Optional[Dict[str, Any]] = None
    payment_failure_info: Optional[Dict[str, Any]] = None
    refund_info: Optional[Dict[str, Any]] = None
    auto_completed_at: Optional[str] = None

    @property
    def key(self) -> Dict[str, str]:
        return {"restaurantId": self.restaurant_id, "orderId": self.order_id}

    @property
    def short_id(self) -> str:
        """First 8 characters of the id, upper-cased, as printed on tickets."""
        return self.order_id[:8].upper()

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "orderId": self.order_id,
            "restaurantId": self.restaurant_id,
            "menuSnapshot": self.menu_snapshot,
            "items": [i.to_dict() for i in self.items],
            "status": self.status.value,
            "totalAmount": self.total_amount,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        optional = {
            "expiresAt": self.expires_at,
            "customerInfo": self.customer_info.to_dict() if self.customer_info else None,
            "paymentInfo": self.payment_info,
            "paymentFailureInfo": self.payment_failure_info,
            "refundInfo": self.refund_info,
            "autoCompletedAt": self.auto_completed_at,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Order":
        return cls(
            order_id=data["orderId"],
            restaurant_id=data["restaurantId"],
            menu_snapshot=data.get("menuSnapshot", {}),
            items=[OrderItem.from_dict(i) for i in data.get("items", [])],
            status=OrderStatus(data.get("status", OrderStatus.CREATED.value)),
            total_amount=data.get("totalAmount", 0.0),
            created_at=data.get("createdAt", ""),
            updated_at=data.get("updatedAt", ""),
            expires_at=data.get("expiresAt"),
            customer_info=CustomerInfo.from_dict(data.get("customerInfo")),
            payment_info=data.get("paymentInfo"),
            payment_failure_info=data.get("paymentFailureInfo"),
            refund_info=data.get("refundInfo"),
            auto_completed_at=data.get("autoCompletedAt"),
        )

    def to_summary(self) -> Dict[str, Any]:
        """Projection returned by getOrder."""
        summary = {
            "orderId": self.order_id,
            "restaurantId": self.restaurant_id,
            "status": self.status.value,
            "items": [i.to_dict() for i in self.items],
            "totalAmount": self.total_amount,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        if self.payment_info:
            summary["paymentInfo"] = self.payment_info
        return summary

    def freeze(self) -> "FrozenOrder":
        """
        Create an immutable snapshot of the fields a printed ticket needs.

        Print jobs run in their own thread, possibly for a minute or more
        of retries; they render from this snapshot, never from the row.
        """
        payment = self.payment_info or {}
        return FrozenOrder(
            order_id=self.order_id,
            restaurant_id=self.restaurant_id,
            short_id=self.short_id,
            status=self.status.value,
            created_at=self.created_at,
            items=tuple(self.items),
            total_amount=self.total_amount,
            customer_phone=self.customer_info.phone if self.customer_info else None,
            payment_method=payment.get("method"),
            paid_amount=payment.get("amount"),
        )


@dataclass(frozen=True)
class FrozenOrder:
    """Immutable order snapshot handed to print job threads."""

    order_id: str
    restaurant_id: str
    short_id: str
    status: str
    created_at: str
    items: Tuple[OrderItem, ...] = field(default_factory=tuple)
    total_amount: float = 0.0
    customer_phone: Optional[str] = None
    payment_method: Optional[str] = None
    paid_amount: Optional[float] = None
