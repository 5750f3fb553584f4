"""
Unit tests for ESC/POS receipt and kitchen ticket rendering.
"""

import pytest

from models.order import FrozenOrder, OrderItem, SelectedOption
from models.print_job import PrintType
from modules.escpos import (
    EscPosFormatter,
    format_currency,
    format_kitchen_ticket,
    format_local_time,
    format_order_receipt,
    render_payloads,
)


# Fixtures

@pytest.fixture
def order():
    return FrozenOrder(
        order_id="3f2a9c1e-0000-4000-8000-000000000000",
        restaurant_id="rest-1",
        short_id="3F2A9C1E",
        status="PAID",
        created_at="2026-10-19T03:30:00.000+00:00",
        items=(
            OrderItem(
                menu_item_id="burger",
                name="Bulgogi Burger",
                price=24000,
                quantity=2,
                selected_options=(SelectedOption("size", "large", "Large", 2000),),
            ),
            OrderItem(menu_item_id="cola", name="Cola", price=2000, quantity=1),
        ),
        total_amount=26000,
        customer_phone="010-1234-5678",
        payment_method="naverpay",
        paid_amount=26000,
    )


class TestFormatter:
    """Test raw control sequences."""

    def test_control_bytes(self):
        printer = EscPosFormatter()
        printer.initialize().set_bold(True).set_align("center").set_font_size("large")
        printer.cut_paper().open_cash_drawer()

        assert printer.getvalue() == (
            b"\x1b@" b"\x1bE\x01" b"\x1ba\x01" b"\x1d!\x11" b"\x1dVB\x00" b"\x1bp\x00\x19\xfa"
        )

    def test_text_is_utf8(self):
        printer = EscPosFormatter().line("불고기")
        assert printer.getvalue() == "불고기\n".encode("utf-8")

    def test_clear(self):
        printer = EscPosFormatter().line("x")
        printer.clear()
        assert printer.getvalue() == b""

    def test_unknown_alignment(self):
        with pytest.raises(ValueError):
            EscPosFormatter().set_align("justify")


class TestHelpers:

    def test_currency(self):
        assert format_currency(12000) == "₩12,000"
        assert format_currency(12000.0) == "₩12,000"

    def test_local_time_is_kst(self):
        assert format_local_time("2026-10-19T03:30:00.000+00:00") == "2026-10-19 12:30:00"

    def test_local_time_empty(self):
        assert format_local_time("") == ""


class TestLayouts:
    """Test receipt and kitchen ticket content."""

    def test_receipt(self, order):
        data = format_order_receipt(order).decode("utf-8", errors="replace")

        assert data.startswith("\x1b@")
        assert "ORDER RECEIPT" in data
        assert "Order #: 3F2A9C1E" in data
        assert "Date: 2026-10-19 12:30:00" in data
        assert "Bulgogi Burger x2" in data
        assert "  - Large (+2,000)" in data
        assert "TOTAL: ₩26,000" in data
        assert "Payment: NAVERPAY" in data
        assert "Thank you for your order!" in data
        assert data.endswith("\x1dVB\x00")

    def test_unpaid_receipt_has_no_payment_block(self, order):
        unpaid = FrozenOrder(
            order_id=order.order_id,
            restaurant_id=order.restaurant_id,
            short_id=order.short_id,
            status="CREATED",
            created_at=order.created_at,
            items=order.items,
        )
        assert b"Payment:" not in format_order_receipt(unpaid)

    def test_kitchen_ticket(self, order):
        data = format_kitchen_ticket(order).decode("utf-8")

        assert "KITCHEN TICKET" in data
        assert "Time: 2026-10-19 12:30:00" in data
        assert "  * Large" in data
        assert "Customer: 010-1234-5678" in data
        assert "₩" not in data

    @pytest.mark.parametrize("print_type, titles", [
        (PrintType.RECEIPT, [b"ORDER RECEIPT"]),
        (PrintType.KITCHEN, [b"KITCHEN TICKET"]),
        (PrintType.BOTH, [b"ORDER RECEIPT", b"KITCHEN TICKET"]),
    ])
    def test_render_payloads(self, order, print_type, titles):
        payloads = render_payloads(order, print_type)
        assert len(payloads) == len(titles)
        for payload, title in zip(payloads, titles):
            assert title in payload
