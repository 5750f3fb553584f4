"""
Flask route blueprints for the Table Order engine.

This module contains all route handlers organized by functionality:
- orders: Order create / get / cancel / status / list / payment start
- payments: Payment provider webhooks
- pos: Print job queueing and status
- menus: Confirmed menu lookup and publishing
- api: Health check

Routes only parse requests and call services. Errors raised by services
are rendered as problem documents by the handler registered in create_app().
"""

from .orders import orders_bp
from .payments import payments_bp
from .pos import pos_bp
from .menus import menus_bp
from .api import api_bp

__all__ = [
    "orders_bp",
    "payments_bp",
    "pos_bp",
    "menus_bp",
    "api_bp",
]


def register_blueprints(app):
    """
    Register all blueprints with the Flask app.

    Args:
        app: Flask application instance
    """
    app.register_blueprint(orders_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(pos_bp)
    app.register_blueprint(menus_bp)
    app.register_blueprint(api_bp)
