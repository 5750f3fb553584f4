"""
ESC/POS thermal printer formatting.

Renders an order into the binary control stream understood by common
80mm thermal printers: UTF-8 text interleaved with raw control bytes.

Control set:
    ESC @          initialize
    GS ! 0x11/0x00 double / normal size
    ESC E 1/0      bold on / off
    ESC a 0/1/2    align left / center / right
    GS V B 0       partial cut
    ESC p 0 25 250 cash drawer pulse

Two independent layouts exist: the customer receipt (prices and payment)
and the kitchen ticket (large item lines, options, no prices).
"""

from __future__ import annotations

from datetime import timedelta, timezone, tzinfo
from typing import List, Optional, Union

from core.timeutil import parse_timestamp
from models.order import FrozenOrder


ESC = 0x1B
GS = 0x1D

LINE_WIDTH = 32

# Tickets are read in the restaurant, so times print in local time
KST = timezone(timedelta(hours=9), "KST")

_ALIGN_CODES = {"left": 0x00, "center": 0x01, "right": 0x02}


class EscPosFormatter:
    """Accumulates text and control commands into one payload."""

    def __init__(self, encoding: str = "utf-8"):
        self._chunks: List[bytes] = []
        self._encoding = encoding

    def _command(self, *codes: int) -> "EscPosFormatter":
        self._chunks.append(bytes(codes))
        return self

    def write(self, data: Union[str, bytes]) -> "EscPosFormatter":
        if isinstance(data, str):
            data = data.encode(self._encoding)
        self._chunks.append(data)
        return self

    def initialize(self) -> "EscPosFormatter":
        return self._command(ESC, 0x40)

    def set_font_size(self, size: str) -> "EscPosFormatter":
        return self._command(GS, 0x21, 0x11 if size == "large" else 0x00)

    def set_bold(self, enabled: bool) -> "EscPosFormatter":
        return self._command(ESC, 0x45, 0x01 if enabled else 0x00)

    def set_align(self, align: str) -> "EscPosFormatter":
        if align not in _ALIGN_CODES:
            raise ValueError(f"Unknown alignment: {align}")
        return self._command(ESC, 0x61, _ALIGN_CODES[align])

    def line(self, text: str = "") -> "EscPosFormatter":
        return self.write(text + "\n")

    def separator(self, char: str = "-", width: int = LINE_WIDTH) -> "EscPosFormatter":
        return self.line(char * width)

    def cut_paper(self) -> "EscPosFormatter":
        return self._command(GS, 0x56, 0x42, 0x00)

    def open_cash_drawer(self) -> "EscPosFormatter":
        return self._command(ESC, 0x70, 0x00, 0x19, 0xFA)

    def getvalue(self) -> bytes:
        return b"".join(self._chunks)

    def clear(self) -> None:
        self._chunks = []


def _number(amount: float) -> str:
    """Whole amounts print without decimals."""
    if float(amount).is_integer():
        return f"{int(amount):,}"
    return f"{amount:,.2f}"


def format_currency(amount: float) -> str:
    return f"₩{_number(amount)}"


def format_local_time(value: str, tz: tzinfo = KST) -> str:
    moment = parse_timestamp(value)
    if moment is None:
        return ""
    return moment.astimezone(tz).strftime("%Y-%m-%d %H:%M:%S")


def _header(printer: EscPosFormatter, title: str) -> None:
    printer.initialize()
    printer.set_align("center").set_font_size("large").set_bold(True)
    printer.line(title)
    printer.line()
    printer.set_font_size("normal").set_bold(False).set_align("left")


def format_order_receipt(order: FrozenOrder, tz: tzinfo = KST) -> bytes:
    """
    Customer receipt: order header, priced lines with option modifiers,
    total, and payment details when the order is paid.
    """
    printer = EscPosFormatter()
    _header(printer, "ORDER RECEIPT")

    printer.line(f"Order #: {order.short_id}")
    printer.line(f"Date: {format_local_time(order.created_at, tz)}")
    printer.line(f"Status: {order.status}")
    if order.customer_phone:
        printer.line(f"Phone: {order.customer_phone}")

    printer.line().separator().line()
    printer.set_bold(True).line("ITEMS:").set_bold(False).line()

    total = 0.0
    for item in order.items:
        printer.line(f"{item.name} x{item.quantity}")
        for option in item.selected_options:
            sign = "+" if option.price_modifier > 0 else ""
            printer.line(f"  - {option.name} ({sign}{_number(option.price_modifier)})")
        printer.line(f"  {format_currency(item.price)}")
        printer.line()
        total += item.price

    printer.separator().line()
    printer.set_bold(True).set_font_size("large")
    printer.line(f"TOTAL: {format_currency(total)}")

    if order.payment_method:
        printer.set_font_size("normal")
        printer.line(f"Payment: {order.payment_method.upper()}")
        printer.line(f"Paid: {format_currency(order.paid_amount or 0)}")

    printer.line().line()
    printer.set_align("center").set_bold(False).set_font_size("normal")
    printer.line("Thank you for your order!")
    printer.line().line()
    printer.cut_paper()
    return printer.getvalue()


def format_kitchen_ticket(order: FrozenOrder, tz: tzinfo = KST) -> bytes:
    """Kitchen ticket: large item lines and their options, no prices."""
    printer = EscPosFormatter()
    _header(printer, "KITCHEN TICKET")

    printer.line(f"Order #: {order.short_id}")
    printer.line(f"Time: {format_local_time(order.created_at, tz)}")
    printer.line().separator().line()

    for item in order.items:
        printer.set_bold(True).set_font_size("large")
        printer.line(f"{item.name} x{item.quantity}")
        printer.set_font_size("normal").set_bold(False)
        for option in item.selected_options:
            printer.line(f"  * {option.name}")
        printer.line()

    if order.customer_phone:
        printer.separator().line()
        printer.line(f"Customer: {order.customer_phone}")

    printer.line().line()
    printer.cut_paper()
    return printer.getvalue()


def render_payloads(order: FrozenOrder, print_type, tz: Optional[tzinfo] = None) -> List[bytes]:
    """Payloads required by a PrintType, receipt first."""
    tz = tz or KST
    payloads = []
    if print_type.includes_receipt:
        payloads.append(format_order_receipt(order, tz))
    if print_type.includes_kitchen:
        payloads.append(format_kitchen_ticket(order, tz))
    return payloads
