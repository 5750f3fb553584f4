"""
Customer notifications.

Notifications are fire-and-forget: they follow a committed state change
and their failure must never undo it. Outbound SMS/email delivery is an
external service; LogNotifier records what would be sent.
"""

from __future__ import annotations

from models.order import Order
from logging_config import get_logger


# Module logger
logger = get_logger(__name__)


class Notifier:
    """Capability for telling a customer about their order."""

    def order_completed(self, order: Order) -> None:
        raise NotImplementedError


class LogNotifier(Notifier):
    """Writes the would-be SMS/email to the log."""

    def order_completed(self, order: Order) -> None:
        message = f"Your order #{order.short_id} is ready for pickup!"
        logger.info(f"Sending completion notification for order {order.order_id}")

        customer = order.customer_info
        if customer and customer.phone:
            logger.info(f"Would send SMS to {customer.phone}: {message}")
        if customer and customer.email:
            logger.info(f"Would send email to {customer.email}: {message}")
