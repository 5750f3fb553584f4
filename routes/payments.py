"""
Payment webhook route.

Handles:
- POST /payment/callback/<provider> - Provider payment notification

The raw body is handed to the reconciler untouched: NaverPay's signature
covers fields of the body, so nothing may re-serialize it first.
"""

from flask import Blueprint, current_app, jsonify, request

from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

payments_bp = Blueprint("payments", __name__)


@payments_bp.route("/payment/callback/<provider>", methods=["POST"])
def payment_callback(provider: str):
    logger.info(f"Payment callback received from {provider}")
    payment_service = current_app.config["PAYMENT_SERVICE"]
    result = payment_service.handle_callback(provider, request.get_data(), request.headers)
    return jsonify(result)
