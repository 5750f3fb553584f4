"""
Operational routes.

Handles:
- /health - Health check endpoint
"""

from flask import Blueprint, current_app

from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

api_bp = Blueprint("api", __name__)


@api_bp.route("/health", methods=["GET"])
def health():
    """Health check endpoint with service status."""
    health_status = {
        "status": "ok",
        "environment": current_app.config.get("ENVIRONMENT", "unknown"),
        "checks": {}
    }

    # Check store
    store = current_app.config.get("STORE")
    try:
        store.scan("menus", limit=1)
        health_status["checks"]["store"] = "ok"
    except Exception as e:
        logger.error(f"Health check: store unavailable: {e}")
        health_status["checks"]["store"] = "unavailable"
        health_status["status"] = "degraded"

    # Check auto-completion scheduler (absent when scheduled externally)
    scheduler = current_app.config.get("AUTO_COMPLETION_SCHEDULER")
    if scheduler is None:
        health_status["checks"]["auto_completion"] = "external"
    elif scheduler.is_running:
        health_status["checks"]["auto_completion"] = "running"
    else:
        health_status["checks"]["auto_completion"] = "not_running"
        health_status["status"] = "degraded"

    # Payment providers
    providers = current_app.config.get("PAYMENT_PROVIDERS")
    health_status["checks"]["payment_providers"] = providers.available if providers else []

    # Printer
    health_status["checks"]["printer"] = (
        "endpoint" if current_app.config.get("POS_PRINTER_ENDPOINT") else "log_only"
    )

    status_code = 200 if health_status["status"] == "ok" else 503
    return health_status, status_code
