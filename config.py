"""
Configuration for the Table Order engine.

All knobs are read from the environment (a .env file is loaded first).
Defaults match the behavior ordering clients and restaurant owners expect:
a 10 minute cart, 30 minute pickup window, and a 5% refund once the
kitchen has started cooking.
"""

import os

from dotenv import load_dotenv

# Load .env file early so environment variables are available for Config class
load_dotenv(override=True)


def _int_env(name: str, default: int) -> int:
    return int(os.environ.get(name, str(default)))


def _float_env(name: str, default: float) -> float:
    return float(os.environ.get(name, str(default)))


def _delays_env(name: str, default: str) -> tuple:
    raw = os.environ.get(name, default)
    return tuple(float(part) for part in raw.split(",") if part.strip())


class Config:
    """Default configuration for the Flask application."""

    # Flask settings
    SECRET_KEY = os.environ.get("FLASK_SECRET_KEY", "dev-secret-key")
    ENVIRONMENT = os.environ.get("FLASK_ENV", "development")
    DEBUG = os.environ.get("FLASK_DEBUG", "1") == "1"
    TESTING = False

    # Rotating engine and error logs are written here when set
    LOG_DIR = os.environ.get("LOG_DIR") or None

    # ==========================================================================
    # Order lifecycle
    # ==========================================================================
    # CART_TTL_MINUTES: unpaid orders get expiresAt = now + TTL; an external
    #   expiry mechanism removes abandoned carts. Cleared on payment.
    # AUTO_COMPLETE_MINUTES: READY orders untouched for this long are
    #   force-completed by the sweep.
    # REFUND_CAP_PERCENT: refund ceiling (percent of total) once an order
    #   is COOKING or READY.
    # ==========================================================================
    CART_TTL_MINUTES = _int_env("CART_TTL_MINUTES", 10)
    AUTO_COMPLETE_MINUTES = _int_env("AUTO_COMPLETE_MINUTES", 30)
    REFUND_CAP_PERCENT = _float_env("REFUND_CAP_PERCENT", 5)

    # Auto-completion scheduler (0 disables the in-process thread; use the
    # `flask auto-complete` command from an external scheduler instead)
    AUTO_COMPLETE_INTERVAL_SECONDS = _float_env("AUTO_COMPLETE_INTERVAL_SECONDS", 60)
    SWEEP_MAX_WORKERS = _int_env("SWEEP_MAX_WORKERS", 8)

    # ==========================================================================
    # Printing
    # ==========================================================================
    # POS_PRINT_TYPE: 'receipt', 'kitchen' or 'both'
    # POS_PRINTER_ENDPOINT: HTTP endpoint accepting raw ESC/POS bytes.
    #   Unset in development: payloads are written to the log instead.
    # ==========================================================================
    POS_PRINT_TYPE = os.environ.get("POS_PRINT_TYPE", "kitchen")
    POS_PRINTER_ENDPOINT = os.environ.get("POS_PRINTER_ENDPOINT") or None
    PRINTER_TIMEOUT_SECONDS = _float_env("PRINTER_TIMEOUT_SECONDS", 10)
    PRINT_RETRY_DELAYS = _delays_env("PRINT_RETRY_DELAYS", "0,15,30")
    PRINT_JOB_TTL_HOURS = _int_env("PRINT_JOB_TTL_HOURS", 24)

    # ==========================================================================
    # Payments
    # ==========================================================================
    PAYMENT_BASE_URL = os.environ.get("PAYMENT_BASE_URL", "https://example.com")

    NAVERPAY_CLIENT_ID = os.environ.get("NAVERPAY_CLIENT_ID")
    NAVERPAY_CLIENT_SECRET = os.environ.get("NAVERPAY_CLIENT_SECRET")
    NAVERPAY_BASE_URL = os.environ.get(
        "NAVERPAY_BASE_URL", "https://dev.apis.naver.com/naverpay-partner"
    )

    KAKAOPAY_CID = os.environ.get("KAKAOPAY_CID")
    KAKAOPAY_SECRET_KEY = os.environ.get("KAKAOPAY_SECRET_KEY")
    KAKAOPAY_BASE_URL = os.environ.get("KAKAOPAY_BASE_URL", "https://kapi.kakao.com")

    PAYMENT_HTTP_TIMEOUT_SECONDS = _float_env("PAYMENT_HTTP_TIMEOUT_SECONDS", 10)


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False
    TESTING = False
    LOG_DIR = os.environ.get("LOG_DIR", "logs")


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    TESTING = False


class TestingConfig(Config):
    """Testing configuration."""
    DEBUG = False
    TESTING = True
    AUTO_COMPLETE_INTERVAL_SECONDS = 0
    PRINT_RETRY_DELAYS = (0, 0, 0)
    POS_PRINTER_ENDPOINT = None
    NAVERPAY_CLIENT_ID = "test-naver-client"
    NAVERPAY_CLIENT_SECRET = "test-naver-secret"
    KAKAOPAY_CID = "TC0ONETIME"
    KAKAOPAY_SECRET_KEY = "test-kakao-secret"
