"""
Order lifecycle manager.

Owns the order state machine and the request-path operations on it:
create, get, list, cancel, owner status changes, and starting a payment.

Consistency Model:
    There is no lock around an order. Every mutation after creation is a
    conditional update guarded by the status the caller expects to find
    (compare-and-swap on the row). Losing that race on a request path
    surfaces as ConflictError (409) and is never retried here: the caller
    decided based on a state that no longer exists.

    Creation is the one unconditional write. Order ids are fresh uuid4
    values generated here, so no existing row can be overwritten; a caller
    that ever supplies its own ids must add an attribute_not_exists guard.

Flow (create):
    1. Resolve the restaurant's CONFIRMED menu (404 if none)
    2. Re-price every line from the menu (422 / 410 on mismatch)
    3. Embed the full menu snapshot, status CREATED, cart TTL
    4. Persist; return summary with the payment redirect URL
"""

from __future__ import annotations

import uuid
from typing import Any, Dict, List, Optional

from core.exceptions import (
    ConditionFailedError,
    ConflictError,
    NotFoundError,
    OrderEngineError,
    ProviderNotConfiguredError,
    ValidationError,
)
from core.store import Attr, Store
from core.timeutil import epoch_seconds_from_now, round2, utc_now_iso
from models.order import (
    CustomerInfo,
    Order,
    OrderItem,
    OrderStatus,
    PREP_STARTED_STATUSES,
)
from models.payment import PaymentRequest, PaymentResponse
from services.menu_service import MenuService
from services.payment_providers import PaymentProviderRegistry
from services.price_validator import PriceValidator
from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

ORDERS = "orders"


class OrderService:
    """
    Order lifecycle manager.

    Attributes:
        cart_ttl_minutes: Minutes an unpaid order stays before expiry
        refund_cap_percent: Refund ceiling once the kitchen has started
    """

    def __init__(
        self,
        store: Store,
        menu_service: MenuService,
        price_validator: Optional[PriceValidator] = None,
        providers: Optional[PaymentProviderRegistry] = None,
        cart_ttl_minutes: int = 10,
        refund_cap_percent: float = 5,
        payment_base_url: str = "https://example.com",
    ):
        self._store = store
        self._menus = menu_service
        self._validator = price_validator or PriceValidator()
        self._providers = providers
        self.cart_ttl_minutes = cart_ttl_minutes
        self.refund_cap_percent = refund_cap_percent
        self._payment_base_url = payment_base_url.rstrip("/")

    # =========================================================================
    # CREATE / READ
    # =========================================================================

    def create_order(
        self,
        restaurant_id: str,
        items: List[OrderItem],
        customer_info: Optional[CustomerInfo] = None,
    ) -> Dict[str, Any]:
        """
        Price and persist a new order.

        Nothing is written unless every line validates.

        Args:
            restaurant_id: Restaurant the order is placed with
            items: Requested lines with client-declared prices
            customer_info: Optional contact details

        Returns:
            {orderId, status, totalAmount, paymentUrl, createdAt}

        Raises:
            ValidationError: Missing restaurant id or empty cart
            NotFoundError: Restaurant has no confirmed menu
            UnprocessableEntityError: Unknown item/option/choice or price mismatch
            GoneError: Item not available
        """
        if not restaurant_id or not items:
            raise ValidationError("Restaurant ID and items are required")

        menu = self._menus.get_confirmed_menu(restaurant_id)
        priced = self._validator.validate(menu, items)

        now = utc_now_iso()
        order = Order(
            order_id=str(uuid.uuid4()),
            restaurant_id=restaurant_id,
            menu_snapshot=menu.snapshot(),
            items=priced.items,
            status=OrderStatus.CREATED,
            total_amount=priced.total_amount,
            created_at=now,
            updated_at=now,
            expires_at=epoch_seconds_from_now(minutes=self.cart_ttl_minutes),
            customer_info=customer_info,
        )

        self._store.put(ORDERS, order.to_dict())
        logger.info(
            f"Order {order.order_id[:8]} created for restaurant {restaurant_id}: "
            f"{len(order.items)} lines, total {order.total_amount} (menu {menu.version})"
        )

        return {
            "orderId": order.order_id,
            "status": order.status.value,
            "totalAmount": order.total_amount,
            "paymentUrl": self.payment_url(order.order_id),
            "createdAt": order.created_at,
        }

    def payment_url(self, order_id: str) -> str:
        return f"{self._payment_base_url}/payment?orderId={order_id}"

    def get_order(self, order_id: str, restaurant_id: str) -> Order:
        """
        Load an order.

        Raises:
            NotFoundError: If the order does not exist for this restaurant
        """
        row = self._store.get(ORDERS, {"restaurantId": restaurant_id, "orderId": order_id})
        if row is None:
            raise NotFoundError("Order not found", {"order_id": order_id})
        return Order.from_dict(row)

    def list_orders(
        self,
        restaurant_id: str,
        status: Optional[OrderStatus] = None,
        limit: Optional[int] = None,
    ) -> List[Order]:
        """Orders of a restaurant, newest first, optionally by status."""
        if status is not None:
            rows = self._store.query(
                ORDERS,
                {"restaurantId": restaurant_id, "status": status.value},
                index="restaurantId-status-index",
                sort_by="createdAt",
                descending=True,
                limit=limit,
            )
        else:
            rows = self._store.query(
                ORDERS,
                {"restaurantId": restaurant_id},
                sort_by="createdAt",
                descending=True,
                limit=limit,
            )
        return [Order.from_dict(r) for r in rows]

    # =========================================================================
    # CANCEL
    # =========================================================================

    def refund_amount(self, order: Order) -> float:
        """
        Refund owed on cancellation.

        Full refund before the kitchen starts; capped at refund_cap_percent
        of the total once the order is COOKING or READY.
        """
        amount = order.total_amount
        if order.status in PREP_STARTED_STATUSES:
            amount = min(amount, order.total_amount * (self.refund_cap_percent / 100))
        return round2(amount)

    def cancel_order(self, order_id: str, restaurant_id: str) -> Dict[str, Any]:
        """
        Cancel an order and attach refund info.

        Returns:
            {orderId, status, refundAmount, refundMethod}

        Raises:
            NotFoundError: Order does not exist
            ValidationError: Order is already COMPLETED or CANCELLED
            ConflictError: Order reached a terminal state concurrently
        """
        order = self.get_order(order_id, restaurant_id)

        if order.status is OrderStatus.COMPLETED:
            raise ValidationError("Cannot cancel completed order")
        if order.status is OrderStatus.CANCELLED:
            raise ValidationError("Order is already cancelled")

        refund = self.refund_amount(order)
        now = utc_now_iso()
        refund_info = {
            "amount": refund,
            "processedAt": now,
            "reason": "Customer cancellation",
        }

        # Guard against the sweep or the owner completing it since our read
        guard = (
            Attr("orderId").exists()
            & Attr("status").ne(OrderStatus.COMPLETED.value)
            & Attr("status").ne(OrderStatus.CANCELLED.value)
        )
        try:
            self._store.update(
                ORDERS,
                order.key,
                {
                    "status": OrderStatus.CANCELLED.value,
                    "updatedAt": now,
                    "refundInfo": refund_info,
                },
                condition=guard,
            )
        except ConditionFailedError:
            logger.info(f"Cancel of order {order_id[:8]} lost race: order completed concurrently")
            raise ConflictError(
                "Order was completed or cancelled concurrently",
                {"order_id": order_id},
            )

        logger.info(
            f"Order {order_id[:8]} cancelled from {order.status.value}, refund {refund}"
        )

        if order.payment_info and refund > 0:
            self._refund_with_provider(order, refund_info)

        return {
            "orderId": order_id,
            "status": OrderStatus.CANCELLED.value,
            "refundAmount": refund,
            "refundMethod": (order.payment_info or {}).get("method") or "original",
        }

    def _refund_with_provider(self, order: Order, refund_info: Dict[str, Any]) -> None:
        """
        Ask the payment provider to return the money.

        Best-effort and after the fact: the cancellation is already
        committed, and a provider failure only marks refundInfo FAILED for
        manual follow-up.
        """
        payment = order.payment_info or {}
        outcome = dict(refund_info)
        try:
            if self._providers is None:
                raise ProviderNotConfiguredError(payment.get("method", ""))
            provider = self._providers.get(payment.get("method", ""))
            result = provider.cancel_payment(payment.get("transactionId", ""), refund_info["amount"])
            outcome.update({"status": result.status, "refundId": result.refund_id})
        except OrderEngineError as e:
            logger.error(f"Provider refund failed for order {order.order_id[:8]}: {e}")
            outcome.update({"status": "FAILED", "error": e.message})
        except Exception as e:
            logger.error(f"Provider refund crashed for order {order.order_id[:8]}: {e}", exc_info=True)
            outcome.update({"status": "FAILED", "error": str(e) or type(e).__name__})

        try:
            self._store.update(
                ORDERS,
                order.key,
                {"refundInfo": outcome},
                condition=Attr("status").eq(OrderStatus.CANCELLED.value),
            )
        except ConditionFailedError:
            logger.warning(f"Order {order.order_id[:8]} left CANCELLED before refund was recorded")

    # =========================================================================
    # STATUS CHANGES
    # =========================================================================

    def advance_status(
        self,
        order_id: str,
        restaurant_id: str,
        target: OrderStatus,
    ) -> Order:
        """
        Move an order one step forward (owner action).

        Accepted edges: PAID -> COOKING, COOKING -> READY, READY -> COMPLETED.
        PAID is reached only through payment reconciliation and CANCELLED
        only through cancel_order.

        Raises:
            NotFoundError: Order does not exist
            ValidationError: Not a forward edge from the current status
            ConflictError: Status changed concurrently
        """
        if target in (OrderStatus.CREATED, OrderStatus.PAID, OrderStatus.CANCELLED):
            raise ValidationError(f"Status {target.value} cannot be set directly")

        order = self.get_order(order_id, restaurant_id)
        if not order.status.can_transition_to(target):
            raise ValidationError(
                f"Cannot move order from {order.status.value} to {target.value}"
            )

        try:
            row = self._store.update(
                ORDERS,
                order.key,
                {"status": target.value, "updatedAt": utc_now_iso()},
                condition=Attr("status").eq(order.status.value),
            )
        except ConditionFailedError:
            logger.info(f"Status change of order {order_id[:8]} lost race")
            raise ConflictError(
                "Order status has already been updated",
                {"order_id": order_id, "expected": order.status.value},
            )

        logger.info(f"Order {order_id[:8]} moved {order.status.value} -> {target.value}")
        return Order.from_dict(row)

    # =========================================================================
    # PAYMENT
    # =========================================================================

    def start_payment(
        self,
        order_id: str,
        restaurant_id: str,
        provider_name: str,
        return_url: str,
        cancel_url: str,
    ) -> PaymentResponse:
        """
        Open a payment with a provider for an unpaid order.

        Raises:
            NotFoundError: Order or provider unknown
            ValidationError: Order is no longer CREATED
        """
        order = self.get_order(order_id, restaurant_id)
        if order.status is not OrderStatus.CREATED:
            raise ValidationError(f"Order is {order.status.value}, payment not allowed")
        if self._providers is None:
            raise ProviderNotConfiguredError(provider_name)

        provider = self._providers.get(provider_name)
        first = order.items[0].name if order.items else "Order"
        product_name = first if len(order.items) <= 1 else f"{first} and {len(order.items) - 1} more"

        response = provider.create_payment(PaymentRequest(
            order_id=order.order_id,
            amount=order.total_amount,
            product_name=product_name,
            return_url=return_url,
            cancel_url=cancel_url,
            customer_phone=order.customer_info.phone if order.customer_info else None,
        ))
        logger.info(f"Payment {response.transaction_id} opened with {provider_name} for order {order_id[:8]}")
        return response
