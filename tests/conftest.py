"""
Shared fixtures for the Table Order engine tests.

Every service is exercised against the in-memory store; payment
providers, the printer transport and the notifier are mocks.
"""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from app import create_app
from core.store import InMemoryStore
from core.timeutil import to_iso, utc_now
from models.order import OrderItem, OrderStatus, SelectedOption
from services.menu_service import MenuService
from services.order_service import OrderService
from services.payment_providers import PaymentProviderRegistry


RESTAURANT_ID = "rest-1"


MENU_ITEMS = [
    {
        "id": "burger",
        "name": "Bulgogi Burger",
        "description": "House burger",
        "price": 10000,
        "available": True,
        "options": [
            {
                "id": "size",
                "name": "Size",
                "type": "size",
                "required": True,
                "choices": [
                    {"id": "regular", "name": "Regular", "priceModifier": 0},
                    {"id": "large", "name": "Large", "priceModifier": 2000},
                ],
            },
            {
                "id": "extras",
                "name": "Extras",
                "type": "addon",
                "required": False,
                "choices": [
                    {"id": "cheese", "name": "Cheese", "priceModifier": 500},
                ],
            },
        ],
    },
    {
        "id": "cola",
        "name": "Cola",
        "description": "",
        "price": 2000,
        "available": True,
        "options": [],
    },
    {
        "id": "special",
        "name": "Seasonal Special",
        "description": "",
        "price": 15000,
        "available": False,
        "options": [],
    },
]


def burger_line(size="regular", modifier=0, quantity=1, price=None):
    """A burger line as a client would submit it."""
    if price is None:
        price = (10000 + modifier) * quantity
    return OrderItem(
        menu_item_id="burger",
        name="Bulgogi Burger",
        price=price,
        quantity=quantity,
        selected_options=(
            SelectedOption(option_id="size", choice_id=size, name=size, price_modifier=modifier),
        ),
    )


def minutes_ago(minutes: float) -> str:
    return to_iso(utc_now() - timedelta(minutes=minutes))


# Fixtures

@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def menu_service(store):
    return MenuService(store)


@pytest.fixture
def confirmed_menu(menu_service):
    """Publish and confirm the test menu for RESTAURANT_ID."""
    return menu_service.publish(RESTAURANT_ID, MENU_ITEMS, confirm=True)


@pytest.fixture
def provider():
    """A mock payment provider registered as 'naverpay'."""
    mock = MagicMock()
    mock.name = "naverpay"
    return mock


@pytest.fixture
def registry(provider):
    return PaymentProviderRegistry([provider])


@pytest.fixture
def order_service(store, menu_service, confirmed_menu, registry):
    return OrderService(
        store,
        menu_service,
        providers=registry,
        cart_ttl_minutes=10,
        refund_cap_percent=5,
        payment_base_url="https://pay.example.com",
    )


@pytest.fixture
def place_order(order_service):
    """Create an order and return its id."""
    def _place(*lines):
        summary = order_service.create_order(RESTAURANT_ID, list(lines) or [burger_line()])
        return summary["orderId"]
    return _place


@pytest.fixture
def force_state(store):
    """Write status (and optional extra attributes) straight to an order row."""
    def _force(order_id, status: OrderStatus, **attributes):
        changes = {"status": status.value}
        changes.update(attributes)
        store.update("orders", {"restaurantId": RESTAURANT_ID, "orderId": order_id}, changes)
    return _force


@pytest.fixture
def app(store):
    app = create_app("config.TestingConfig", store=store, http_session=MagicMock())
    yield app
    app.config["PRINT_SERVICE"].shutdown()


@pytest.fixture
def client(app):
    return app.test_client()
