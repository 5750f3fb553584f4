"""
Order routes.

Handles:
- POST   /order                           - Create and price an order
- GET    /order/<orderId>?restaurantId=   - Order summary
- DELETE /order/<orderId>?restaurantId=   - Cancel with refund
- PUT    /order/<orderId>/status          - Owner status change
- GET    /orders?restaurantId=&status=    - Restaurant order list
- POST   /order/<orderId>/payment         - Open a provider payment
"""

from flask import Blueprint, current_app, jsonify, request

from core.exceptions import ValidationError
from models.order import OrderStatus
from modules.validation import (
    parse_order_request,
    require_json_object,
    require_restaurant_id,
)
from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

orders_bp = Blueprint("orders", __name__)

MAX_LIST_LIMIT = 100


def _order_service():
    return current_app.config["ORDER_SERVICE"]


def _json_body():
    body = request.get_json(silent=True)
    if body is None:
        raise ValidationError("Request body must be valid JSON")
    return require_json_object(body)


def _parse_status(value) -> OrderStatus:
    try:
        return OrderStatus(str(value).upper())
    except ValueError:
        raise ValidationError(f"Unknown order status: {value}")


@orders_bp.route("/order", methods=["POST"])
def create_order():
    restaurant_id, items, customer_info = parse_order_request(_json_body())
    summary = _order_service().create_order(restaurant_id, items, customer_info)
    return jsonify(summary), 201


@orders_bp.route("/order/<order_id>", methods=["GET"])
def get_order(order_id: str):
    restaurant_id = require_restaurant_id(request.args.get("restaurantId"))
    order = _order_service().get_order(order_id, restaurant_id)
    return jsonify(order.to_summary())


@orders_bp.route("/order/<order_id>", methods=["DELETE"])
def cancel_order(order_id: str):
    restaurant_id = require_restaurant_id(request.args.get("restaurantId"))
    return jsonify(_order_service().cancel_order(order_id, restaurant_id))


@orders_bp.route("/order/<order_id>/status", methods=["PUT"])
def update_status(order_id: str):
    restaurant_id = require_restaurant_id(request.args.get("restaurantId"))
    body = _json_body()
    if not body.get("status"):
        raise ValidationError("status is required")

    order = _order_service().advance_status(order_id, restaurant_id, _parse_status(body["status"]))
    return jsonify(order.to_summary())


@orders_bp.route("/orders", methods=["GET"])
def list_orders():
    restaurant_id = require_restaurant_id(request.args.get("restaurantId"))

    status = request.args.get("status")
    limit = request.args.get("limit", type=int)
    if limit is not None and not 1 <= limit <= MAX_LIST_LIMIT:
        raise ValidationError(f"limit must be between 1 and {MAX_LIST_LIMIT}")

    orders = _order_service().list_orders(
        restaurant_id,
        status=_parse_status(status) if status else None,
        limit=limit,
    )
    return jsonify({"orders": [o.to_summary() for o in orders], "count": len(orders)})


@orders_bp.route("/order/<order_id>/payment", methods=["POST"])
def start_payment(order_id: str):
    restaurant_id = require_restaurant_id(request.args.get("restaurantId"))
    body = _json_body()

    missing = [name for name in ("provider", "returnUrl", "cancelUrl") if not body.get(name)]
    if missing:
        raise ValidationError(", ".join(f"{name} is required" for name in missing))

    response = _order_service().start_payment(
        order_id,
        restaurant_id,
        body["provider"],
        body["returnUrl"],
        body["cancelUrl"],
    )
    return jsonify(response.to_dict())
