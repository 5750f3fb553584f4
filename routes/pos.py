"""
POS printing routes.

Handles:
- POST /pos/print?restaurantId=      - Queue a print job for an order
- POST /pos/reprint?restaurantId=    - Queue a fresh job for the same order
- GET  /pos/print/<jobId>?orderId=   - Poll print job status

Print requests return 201 as soon as the PENDING job is recorded;
delivery happens on the job's own thread.
"""

from flask import Blueprint, current_app, jsonify, request

from core.exceptions import ValidationError
from modules.validation import require_json_object, require_order_id, require_restaurant_id
from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

pos_bp = Blueprint("pos", __name__, url_prefix="/pos")


def _print_request():
    body = request.get_json(silent=True)
    if body is None:
        raise ValidationError("Invalid JSON in request body")
    order_id = require_order_id(require_json_object(body).get("orderId"))
    restaurant_id = require_restaurant_id(request.args.get("restaurantId"))
    return order_id, restaurant_id


@pos_bp.route("/print", methods=["POST"])
def print_order():
    order_id, restaurant_id = _print_request()
    job = current_app.config["PRINT_SERVICE"].print_order(order_id, restaurant_id)
    return jsonify(job), 201


@pos_bp.route("/reprint", methods=["POST"])
def reprint_order():
    order_id, restaurant_id = _print_request()
    job = current_app.config["PRINT_SERVICE"].reprint_order(order_id, restaurant_id)
    return jsonify(job), 201


@pos_bp.route("/print/<job_id>", methods=["GET"])
def print_status(job_id: str):
    order_id = request.args.get("orderId")
    if not order_id:
        raise ValidationError("Order ID is required")
    return jsonify(current_app.config["PRINT_SERVICE"].get_print_status(job_id, order_id))
