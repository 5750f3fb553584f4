"""
Price validator.

Re-derives every order line from the menu snapshot and rejects any line
whose client-declared price differs from the menu-derived one. The
client's numbers are only ever compared, never stored: the totals
persisted on an order come from the menu.

    line total = round2((base price + sum of chosen modifiers) * quantity)
    order total = round2(sum of line totals)

Both the per-choice modifier and the line total tolerate 0.01 of drift
for client-side floating point rounding. Non-finite numbers never match.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

from core.exceptions import GoneError, UnprocessableEntityError
from core.timeutil import round2
from models.menu import MenuVersion
from models.order import OrderItem, SelectedOption
from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

PRICE_TOLERANCE = 0.01


@dataclass(frozen=True)
class PricedOrder:
    """Validated lines and their total."""

    items: List[OrderItem]
    total_amount: float


class PriceValidator:
    """Validates requested order lines against a menu snapshot."""

    def __init__(self, tolerance: float = PRICE_TOLERANCE):
        self.tolerance = tolerance

    def validate(self, menu: MenuVersion, requested: List[OrderItem]) -> PricedOrder:
        """
        Validate and price every requested line.

        Args:
            menu: The CONFIRMED menu version the order will embed
            requested: Lines as submitted by the client

        Returns:
            PricedOrder with menu-derived line totals

        Raises:
            UnprocessableEntityError: Unknown item/option/choice, or price mismatch
            GoneError: Item exists but is not available
        """
        validated = [self.validate_line(menu, line) for line in requested]
        total = round2(sum(line.price for line in validated))
        return PricedOrder(items=validated, total_amount=total)

    def validate_line(self, menu: MenuVersion, line: OrderItem) -> OrderItem:
        menu_item = menu.find_item(line.menu_item_id)
        if menu_item is None:
            raise UnprocessableEntityError(f"Menu item {line.menu_item_id} not found")
        if not menu_item.available:
            raise GoneError(f"Menu item {menu_item.name} is not available")

        unit_price = menu_item.price
        options: List[SelectedOption] = []

        for selected in line.selected_options:
            option = menu_item.find_option(selected.option_id)
            if option is None:
                raise UnprocessableEntityError(
                    f"Option {selected.option_id} not found for item {menu_item.name}"
                )
            choice = option.find_choice(selected.choice_id)
            if choice is None:
                raise UnprocessableEntityError(
                    f"Choice {selected.choice_id} not found for option {option.name}"
                )
            if not self._within_tolerance(selected.price_modifier, choice.price_modifier):
                logger.warning(
                    f"Modifier mismatch on {menu_item.id}/{option.id}/{choice.id}: "
                    f"client {selected.price_modifier}, menu {choice.price_modifier}"
                )
                raise UnprocessableEntityError("Price modifier mismatch")

            unit_price += choice.price_modifier
            # Stored names come from the menu, not the client
            options.append(SelectedOption(
                option_id=option.id,
                choice_id=choice.id,
                name=choice.name,
                price_modifier=choice.price_modifier,
            ))

        expected = round2(unit_price * line.quantity)
        if not self._within_tolerance(line.price, expected):
            logger.warning(
                f"Price mismatch on {menu_item.id}: client {line.price}, menu {expected}"
            )
            raise UnprocessableEntityError(f"Price mismatch for item {menu_item.name}")

        return OrderItem(
            menu_item_id=line.menu_item_id,
            name=menu_item.name,
            price=expected,
            quantity=line.quantity,
            selected_options=tuple(options),
        )

    def _within_tolerance(self, declared: float, expected: float) -> bool:
        # Written as <= so NaN on either side never matches
        return abs(declared - expected) <= self.tolerance
