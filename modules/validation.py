"""
Request body validation.

Turns raw JSON bodies into the typed inputs the services accept. Every
problem found in a body is collected and reported together as one
ValidationError (400), so a client sees all of its mistakes at once.
Free-text fields are stripped of markup with bleach before they are
stored or printed.
"""

import math
import re
import uuid
from typing import Any, Dict, List, Optional, Tuple

import bleach

from core.exceptions import ValidationError
from models.menu import OptionType
from models.order import CustomerInfo, OrderItem, SelectedOption


MAX_QUANTITY = 99
MAX_NAME_LENGTH = 100
MAX_OPTION_NAME_LENGTH = 50
MAX_DESCRIPTION_LENGTH = 500

PHONE_PATTERN = re.compile(r"^[0-9+\-\s()]{10,20}$")
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def sanitize_text(text: Optional[str], max_length: Optional[int] = None) -> str:
    """Strip whitespace and any HTML from user-supplied text."""
    if not text:
        return ""
    text = text.strip()
    text = bleach.clean(text, tags=[], strip=True)
    if max_length and len(text) > max_length:
        text = text[:max_length]
    return text


def _is_number(value: Any) -> bool:
    """Finite int or float; rejects bool, NaN and Infinity."""
    if isinstance(value, bool):
        return False
    return isinstance(value, int) or (isinstance(value, float) and math.isfinite(value))


def _is_text(value: Any) -> bool:
    return isinstance(value, str) and value.strip() != ""


def _raise_if(errors: List[str]) -> None:
    if errors:
        raise ValidationError(", ".join(errors), {"errors": errors})


def require_restaurant_id(value: Optional[str]) -> str:
    if not _is_text(value):
        raise ValidationError("Restaurant ID is required")
    return value.strip()


def require_order_id(value: Any) -> str:
    """Order ids are engine-generated UUIDs."""
    if not _is_text(value):
        raise ValidationError("Order ID is required")
    try:
        uuid.UUID(value)
    except ValueError:
        raise ValidationError("Order ID must be a UUID")
    return value


def require_json_object(body: Any) -> Dict[str, Any]:
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


# =============================================================================
# ORDERS
# =============================================================================

def parse_customer_info(data: Any) -> Optional[CustomerInfo]:
    if data is None:
        return None
    if not isinstance(data, dict):
        raise ValidationError("customerInfo must be an object")

    errors = []
    phone = data.get("phone")
    email = data.get("email")
    if phone is not None and not (isinstance(phone, str) and PHONE_PATTERN.match(phone)):
        errors.append("customerInfo.phone is not a valid phone number")
    if email is not None and not (isinstance(email, str) and EMAIL_PATTERN.match(email)):
        errors.append("customerInfo.email is not a valid email address")
    _raise_if(errors)

    if not phone and not email:
        return None
    return CustomerInfo(
        phone=sanitize_text(phone) or None,
        email=sanitize_text(email) or None,
    )


def _parse_selected_option(data: Any, where: str, errors: List[str]) -> Optional[SelectedOption]:
    if not isinstance(data, dict):
        errors.append(f"{where} must be an object")
        return None
    for name in ("optionId", "choiceId", "name"):
        if not _is_text(data.get(name)):
            errors.append(f"{where}.{name} is required")
    if not _is_number(data.get("priceModifier")):
        errors.append(f"{where}.priceModifier must be a number")
        return None
    return SelectedOption(
        option_id=str(data.get("optionId", "")),
        choice_id=str(data.get("choiceId", "")),
        name=sanitize_text(data.get("name"), MAX_OPTION_NAME_LENGTH),
        price_modifier=data["priceModifier"],
    )


def _parse_order_item(data: Any, where: str, errors: List[str]) -> Optional[OrderItem]:
    if not isinstance(data, dict):
        errors.append(f"{where} must be an object")
        return None

    before = len(errors)
    if not _is_text(data.get("menuItemId")):
        errors.append(f"{where}.menuItemId is required")
    if not _is_text(data.get("name")):
        errors.append(f"{where}.name is required")

    price = data.get("price")
    if not _is_number(price) or price < 0:
        errors.append(f"{where}.price must be a non-negative number")

    quantity = data.get("quantity")
    if not isinstance(quantity, int) or isinstance(quantity, bool) or not 1 <= quantity <= MAX_QUANTITY:
        errors.append(f"{where}.quantity must be an integer between 1 and {MAX_QUANTITY}")

    raw_options = data.get("selectedOptions") or []
    if not isinstance(raw_options, list):
        errors.append(f"{where}.selectedOptions must be a list")
        raw_options = []
    options = [
        _parse_selected_option(o, f"{where}.selectedOptions[{i}]", errors)
        for i, o in enumerate(raw_options)
    ]

    if len(errors) > before:
        return None
    return OrderItem(
        menu_item_id=data["menuItemId"],
        name=sanitize_text(data["name"], MAX_NAME_LENGTH),
        price=price,
        quantity=quantity,
        selected_options=tuple(options),
    )


def parse_order_request(body: Any) -> Tuple[str, List[OrderItem], Optional[CustomerInfo]]:
    """
    Validate a POST /order body.

    Returns:
        (restaurant_id, items, customer_info)

    Raises:
        ValidationError: Listing every problem in the body
    """
    body = require_json_object(body)
    errors: List[str] = []

    restaurant_id = body.get("restaurantId")
    if not _is_text(restaurant_id):
        errors.append("restaurantId is required")

    raw_items = body.get("items")
    if not isinstance(raw_items, list) or not raw_items:
        errors.append("items must be a non-empty list")
        raw_items = []

    items = [_parse_order_item(item, f"items[{i}]", errors) for i, item in enumerate(raw_items)]
    _raise_if(errors)

    customer_info = parse_customer_info(body.get("customerInfo"))
    return restaurant_id.strip(), items, customer_info


# =============================================================================
# MENUS
# =============================================================================

def _parse_menu_option(data: Any, where: str, errors: List[str]) -> Dict[str, Any]:
    if not isinstance(data, dict):
        errors.append(f"{where} must be an object")
        return {}
    if not _is_text(data.get("id")):
        errors.append(f"{where}.id is required")
    if not _is_text(data.get("name")):
        errors.append(f"{where}.name is required")

    option_types = [t.value for t in OptionType]
    if data.get("type") not in option_types:
        errors.append(f"{where}.type must be one of {', '.join(option_types)}")

    choices = data.get("choices")
    if not isinstance(choices, list) or not choices:
        errors.append(f"{where}.choices must be a non-empty list")
        choices = []

    parsed_choices = []
    for i, choice in enumerate(choices):
        at = f"{where}.choices[{i}]"
        if not isinstance(choice, dict):
            errors.append(f"{at} must be an object")
            continue
        if not _is_text(choice.get("id")):
            errors.append(f"{at}.id is required")
        if not _is_text(choice.get("name")):
            errors.append(f"{at}.name is required")
        if not _is_number(choice.get("priceModifier")):
            errors.append(f"{at}.priceModifier must be a number")
        parsed_choices.append({
            "id": choice.get("id"),
            "name": sanitize_text(choice.get("name"), MAX_OPTION_NAME_LENGTH),
            "priceModifier": choice.get("priceModifier"),
        })

    return {
        "id": data.get("id"),
        "name": sanitize_text(data.get("name"), MAX_OPTION_NAME_LENGTH),
        "type": data.get("type"),
        "required": bool(data.get("required", False)),
        "choices": parsed_choices,
    }


def parse_menu_items(body: Any) -> List[Dict[str, Any]]:
    """
    Validate a POST /menu body.

    Returns:
        Menu items in stored (camelCase) shape

    Raises:
        ValidationError: Listing every problem in the body
    """
    body = require_json_object(body)
    errors: List[str] = []

    raw_items = body.get("items")
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("items must be a non-empty list")

    items = []
    for i, data in enumerate(raw_items):
        where = f"items[{i}]"
        if not isinstance(data, dict):
            errors.append(f"{where} must be an object")
            continue
        if not _is_text(data.get("id")):
            errors.append(f"{where}.id is required")
        if not _is_text(data.get("name")):
            errors.append(f"{where}.name is required")
        price = data.get("price")
        if not _is_number(price) or price < 0:
            errors.append(f"{where}.price must be a non-negative number")

        raw_options = data.get("options") or []
        if not isinstance(raw_options, list):
            errors.append(f"{where}.options must be a list")
            raw_options = []

        item = {
            "id": data.get("id"),
            "name": sanitize_text(data.get("name"), MAX_NAME_LENGTH),
            "description": sanitize_text(data.get("description"), MAX_DESCRIPTION_LENGTH),
            "price": price,
            "available": bool(data.get("available", True)),
            "options": [
                _parse_menu_option(o, f"{where}.options[{j}]", errors)
                for j, o in enumerate(raw_options)
            ],
        }
        if data.get("imageUrl"):
            item["imageUrl"] = str(data["imageUrl"])
        items.append(item)

    _raise_if(errors)
    return items
