"""
Table Order engine - Flask Application Entry Point.

This is a slim app factory that:
1. Loads configuration and sets up thread-aware logging
2. Builds the store, payment providers and services
3. Starts the auto-completion scheduler (separate thread)
4. Registers route blueprints and the problem-document error handlers
5. Registers the `flask auto-complete` command for external schedulers

ARCHITECTURE:
    Main Thread
    ├── Flask request handling (create / cancel / callbacks / print requests)
    └── Cleanup on shutdown

    AutoComplete Thread (background)
    └── Sweep loop, one pass every AUTO_COMPLETE_INTERVAL_SECONDS

    Print Threads (one per print job)
    └── Up to 3 delivery attempts with backoff

Threads share no order state in memory. Every mutation of an order goes
through a status-guarded conditional write on the store.
"""

from __future__ import annotations

import atexit
import json
import logging
import os
from typing import Optional

import click
import requests
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from logging_config import setup_logging, get_logger
from core.exceptions import OrderEngineError, InternalError
from core.store import InMemoryStore, Store
from models.print_job import PrintType
from services.menu_service import MenuService
from services.price_validator import PriceValidator
from services.order_service import OrderService
from services.payment_providers import PaymentProviderRegistry
from services.payment_service import PaymentService
from services.auto_completion import AutoCompletionScheduler, AutoCompletionSweeper
from services.notifier import Notifier, LogNotifier
from services.print_service import PrintService
from routes import register_blueprints


# Module logger (configured after setup_logging)
logger = get_logger(__name__)

PROBLEM_MIMETYPE = "application/problem+json"


def _problem_response(problem: dict, status: int):
    response = jsonify(problem)
    response.status_code = status
    response.mimetype = PROBLEM_MIMETYPE
    return response


def create_app(
    config_object: str = "config.Config",
    store: Optional[Store] = None,
    notifier: Optional[Notifier] = None,
    http_session: Optional[requests.Session] = None,
) -> Flask:
    """
    Application factory - creates and configures Flask app.

    Args:
        config_object: Import path of the configuration class
        store: Backing store (in-memory store when omitted)
        notifier: Customer notifier (logging notifier when omitted)
        http_session: Session used for payment provider calls

    Returns:
        Configured Flask application
    """
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Configure logging
    log_level = logging.DEBUG if app.config.get("DEBUG") else logging.INFO
    root_logger = setup_logging(log_level=log_level, log_dir=app.config.get("LOG_DIR"))

    # Set Flask's logger to use our configured logger
    app.logger.handlers = root_logger.handlers
    app.logger.setLevel(log_level)

    logger.info(f"Starting Table Order engine in {app.config.get('ENVIRONMENT')} mode")

    # =========================================================================
    # SERVICES INITIALIZATION
    # =========================================================================

    if store is None:
        store = InMemoryStore()
        logger.info("Using in-memory store")
    app.config["STORE"] = store

    providers = PaymentProviderRegistry.from_config(app.config, session=http_session)
    app.config["PAYMENT_PROVIDERS"] = providers

    menu_service = MenuService(store)
    app.config["MENU_SERVICE"] = menu_service

    app.config["ORDER_SERVICE"] = OrderService(
        store,
        menu_service,
        price_validator=PriceValidator(),
        providers=providers,
        cart_ttl_minutes=app.config["CART_TTL_MINUTES"],
        refund_cap_percent=app.config["REFUND_CAP_PERCENT"],
        payment_base_url=app.config["PAYMENT_BASE_URL"],
    )
    app.config["PAYMENT_SERVICE"] = PaymentService(store, providers)

    print_service = PrintService(
        store,
        print_type=PrintType(app.config["POS_PRINT_TYPE"]),
        endpoint=app.config.get("POS_PRINTER_ENDPOINT"),
        timeout_seconds=app.config["PRINTER_TIMEOUT_SECONDS"],
        retry_delays=app.config["PRINT_RETRY_DELAYS"],
        ttl_hours=app.config["PRINT_JOB_TTL_HOURS"],
    )
    app.config["PRINT_SERVICE"] = print_service

    sweeper = AutoCompletionSweeper(
        store,
        notifier=notifier or LogNotifier(),
        auto_complete_minutes=app.config["AUTO_COMPLETE_MINUTES"],
        max_workers=app.config["SWEEP_MAX_WORKERS"],
    )
    app.config["AUTO_COMPLETION_SWEEPER"] = sweeper

    scheduler = None
    interval = app.config["AUTO_COMPLETE_INTERVAL_SECONDS"]
    if interval > 0 and not app.config.get("TESTING"):
        scheduler = AutoCompletionScheduler(sweeper, interval_seconds=interval)
        scheduler.start()
    else:
        logger.info("Auto-completion scheduler disabled; run `flask auto-complete` externally")
    app.config["AUTO_COMPLETION_SCHEDULER"] = scheduler

    # =========================================================================
    # CLEANUP REGISTRATION
    # =========================================================================

    def cleanup():
        """Cleanup on application shutdown."""
        logger.info("Shutting down...")

        if scheduler:
            scheduler.stop()

        # Wait for print threads
        print_service.shutdown()

        logger.info("Shutdown complete")

    atexit.register(cleanup)

    # =========================================================================
    # REGISTER BLUEPRINTS
    # =========================================================================

    register_blueprints(app)

    # =========================================================================
    # CLI
    # =========================================================================

    @app.cli.command("auto-complete")
    def auto_complete_command():
        """Run one auto-completion sweep and print the counts."""
        report = sweeper.run_once()
        click.echo(json.dumps(report.to_dict()))

    # =========================================================================
    # ERROR HANDLERS
    # =========================================================================

    @app.errorhandler(OrderEngineError)
    def handle_engine_error(e: OrderEngineError):
        if e.status_code >= 500:
            logger.error(f"{e.title}: {e}")
        else:
            logger.info(f"{e.status_code} {e.title}: {e}")
        return _problem_response(e.to_problem(), e.status_code)

    @app.errorhandler(HTTPException)
    def handle_http_error(e: HTTPException):
        return _problem_response({
            "type": f"https://httpstatuses.com/{e.code}",
            "title": e.name,
            "status": e.code,
            "detail": e.description,
        }, e.code)

    @app.errorhandler(Exception)
    def handle_unexpected_error(e: Exception):
        logger.error(f"Unhandled error: {e}", exc_info=True)
        error = InternalError("An unexpected error occurred")
        return _problem_response(error.to_problem(), error.status_code)

    logger.info("Application initialized successfully")
    return app


if __name__ == "__main__":
    app = create_app()
    debug_mode = os.environ.get("FLASK_DEBUG", "1") == "1"
    app.run(debug=debug_mode, use_reloader=False)
