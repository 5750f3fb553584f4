"""
Menu routes.

Handles:
- GET  /menu?restaurantId=            - The CONFIRMED menu orders are priced against
- POST /menu?restaurantId=&confirm=   - Publish a new version (optionally confirm it)
"""

from flask import Blueprint, current_app, jsonify, request

from core.exceptions import ValidationError
from modules.validation import parse_menu_items, require_restaurant_id
from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

menus_bp = Blueprint("menus", __name__)


@menus_bp.route("/menu", methods=["GET"])
def get_menu():
    restaurant_id = require_restaurant_id(request.args.get("restaurantId"))
    menu = current_app.config["MENU_SERVICE"].get_confirmed_menu(restaurant_id)
    return jsonify(menu.to_dict())


@menus_bp.route("/menu", methods=["POST"])
def publish_menu():
    restaurant_id = require_restaurant_id(request.args.get("restaurantId"))
    body = request.get_json(silent=True)
    if body is None:
        raise ValidationError("Invalid JSON in request body")

    confirm = request.args.get("confirm", "false").lower() in ("1", "true", "yes")
    menu = current_app.config["MENU_SERVICE"].publish(
        restaurant_id, parse_menu_items(body), confirm=confirm
    )
    return jsonify(menu.to_dict()), 201
