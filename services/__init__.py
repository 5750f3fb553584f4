"""
Services layer for the Table Order engine.

This module contains the business logic services:
- MenuService: Confirmed menu resolution and publishing
- PriceValidator: Re-pricing of order lines from the menu snapshot
- OrderService: Order lifecycle (create, cancel, status changes)
- PaymentService: Payment webhook verification and reconciliation
- AutoCompletionSweeper / AutoCompletionScheduler: READY -> COMPLETED sweep
- PrintService: Print jobs with thread-per-job delivery

Thread Model:
    Main Thread (Flask)
    ├── AutoComplete thread (sweep loop)
    └── Print threads (one per print job)

No service holds a lock around order state; the store's conditional
writes decide every race.
"""

from .menu_service import MenuService
from .price_validator import PriceValidator, PricedOrder
from .order_service import OrderService
from .payment_providers import (
    PaymentProvider,
    NaverPayProvider,
    KakaoPayProvider,
    PaymentProviderRegistry,
)
from .payment_service import PaymentService
from .notifier import Notifier, LogNotifier
from .auto_completion import AutoCompletionSweeper, AutoCompletionScheduler, SweepReport
from .print_service import PrintService

__all__ = [
    "MenuService",
    "PriceValidator",
    "PricedOrder",
    "OrderService",
    "PaymentProvider",
    "NaverPayProvider",
    "KakaoPayProvider",
    "PaymentProviderRegistry",
    "PaymentService",
    "Notifier",
    "LogNotifier",
    "AutoCompletionSweeper",
    "AutoCompletionScheduler",
    "SweepReport",
    "PrintService",
]
