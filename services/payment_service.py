"""
Payment reconciler.

Applies payment-provider webhooks to orders. Webhooks arrive
asynchronously, possibly more than once, and may race a customer's
cancellation; the only arbiter is the store's conditional write.

Flow:
    1. Parse the raw webhook through the provider's adapter (400 if malformed)
    2. Verify authenticity with that provider (401, nothing touched)
    3. Find the order by orderId through the orderId index
    4. SUCCESS: CREATED -> PAID guarded by status == CREATED
       FAILED:  record paymentFailureInfo, status unchanged

A duplicate SUCCESS delivery fails the guard and surfaces as 409; the
first delivery already did the work.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Mapping

from core.exceptions import (
    ConditionFailedError,
    ConflictError,
    InternalError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from core.store import Attr, Store
from core.timeutil import utc_now_iso
from models.order import Order, OrderStatus
from models.payment import PaymentCallback, PaymentStatus
from services.payment_providers import PaymentProviderRegistry
from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

ORDERS = "orders"


class PaymentService:
    """Verifies and reconciles payment callbacks."""

    def __init__(self, store: Store, providers: PaymentProviderRegistry):
        self._store = store
        self._providers = providers

    def handle_callback(
        self,
        provider_name: str,
        raw_body: bytes,
        headers: Mapping[str, str],
    ) -> Dict[str, Any]:
        """
        Entry point for POST /payment/callback/<provider>.

        Returns:
            {success, orderId, status} with the order's status after reconciling

        Raises:
            NotFoundError: Unknown provider or order
            ValidationError: Body is not a JSON object or lacks an order id
            UnauthorizedError: Authenticity check failed
            ConflictError: Order was no longer CREATED (e.g. duplicate delivery)
        """
        provider = self._providers.get(provider_name)

        try:
            body = json.loads(raw_body or b"{}")
        except ValueError:
            raise ValidationError("Callback body is not valid JSON", {"provider": provider_name})
        if not isinstance(body, dict):
            raise ValidationError("Callback body must be a JSON object", {"provider": provider_name})

        callback = provider.parse_callback(body, headers)
        self.verify(callback)
        order = self.reconcile(callback)

        return {
            "success": True,
            "orderId": order.order_id,
            "status": order.status.value,
        }

    def verify(self, callback: PaymentCallback) -> None:
        """
        Raises:
            UnauthorizedError: If the provider rejects the callback
        """
        provider = self._providers.get(callback.provider)
        if not provider.verify_callback(callback):
            logger.warning(
                f"Rejected {callback.provider} callback for order {callback.order_id[:8]}: "
                f"authenticity check failed"
            )
            raise UnauthorizedError(callback.provider)

    def find_order(self, order_id: str) -> Order:
        """
        Locate an order by id alone; callbacks carry no restaurantId.

        Raises:
            NotFoundError: No order with this id
            InternalError: More than one order with this id
        """
        rows = self._store.query(ORDERS, {"orderId": order_id}, index="orderId-index", limit=2)
        if not rows:
            raise NotFoundError("Order not found", {"order_id": order_id})
        if len(rows) > 1:
            logger.error(f"Order id {order_id} is not unique across restaurants")
            raise InternalError("Order id is not unique", {"order_id": order_id})
        return Order.from_dict(rows[0])

    def reconcile(self, callback: PaymentCallback) -> Order:
        """
        Apply a verified callback to its order.

        Returns:
            The order as stored after the update

        Raises:
            NotFoundError: Order does not exist
            ConflictError: SUCCESS for an order that is no longer CREATED
        """
        order = self.find_order(callback.order_id)
        now = utc_now_iso()

        if callback.amount and abs(callback.amount - order.total_amount) > 0.01:
            logger.warning(
                f"Callback amount {callback.amount} differs from order total "
                f"{order.total_amount} for order {order.order_id[:8]}"
            )

        if callback.status is PaymentStatus.SUCCESS:
            try:
                row = self._store.update(
                    ORDERS,
                    order.key,
                    {
                        "status": OrderStatus.PAID.value,
                        "updatedAt": now,
                        "paymentInfo": {
                            "method": callback.provider,
                            "transactionId": callback.transaction_id,
                            "paidAt": now,
                            "amount": callback.amount,
                        },
                    },
                    condition=Attr("status").eq(OrderStatus.CREATED.value),
                    remove=["expiresAt"],
                )
            except ConditionFailedError:
                logger.info(
                    f"Duplicate or late SUCCESS callback for order {order.order_id[:8]} "
                    f"(status {order.status.value})"
                )
                raise ConflictError(
                    "Order status has already been updated",
                    {"order_id": order.order_id, "transaction_id": callback.transaction_id},
                )
            logger.info(f"Order {order.order_id[:8]} PAID via {callback.provider} ({callback.transaction_id})")
            return Order.from_dict(row)

        # Failure leaves the cart payable until its TTL runs out
        row = self._store.update(
            ORDERS,
            order.key,
            {
                "paymentFailureInfo": {
                    "provider": callback.provider,
                    "transactionId": callback.transaction_id,
                    "failedAt": now,
                    "reason": "Payment processing failed",
                },
            },
        )
        logger.info(f"Payment failure recorded for order {order.order_id[:8]} via {callback.provider}")
        return Order.from_dict(row)
