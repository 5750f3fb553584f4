"""
Logging for the Table Order engine.

Orders are mutated by three kinds of actor: request threads (customers,
owners and payment webhooks), the auto-completion sweep, and one thread
per print job. Every log line is tagged with the actor and the thread
name, so a lost compare-and-swap can be traced back to whoever won it.

Log Format:
    2026-10-19 10:15:30 [INFO    ] [request:Thread-3] table_order.services.order_service - Order a1b2c3d4 created
    2026-10-19 10:15:31 [INFO    ] [sweep:AutoComplete-worker_0] table_order.services.auto_completion - Order a1b2c3d4 auto-completed
    2026-10-19 10:15:32 [WARNING ] [print:Print-9f8e7d6c] table_order.print_job.9f8e7d6c - [order A1B2C3D4] Attempt 1/3 failed

Usage:
    setup_logging(log_level=logging.INFO, log_dir=Path("logs"))

    logger = get_logger(__name__)
    job_logger = get_job_logger(job_id, order_short_id)
"""

import logging
import sys
import threading
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union


APP_NAMESPACE = "table_order"

LOG_FORMAT = "%(asctime)s [%(levelname)-8s] [%(actor)s:%(thread_name)s] %(name)s - %(message)s"

# Thread name prefixes of the background actors
ACTOR_PREFIXES = (
    ("AutoComplete", "sweep"),
    ("Print-", "print"),
)


def actor_for_thread(thread_name: str) -> str:
    """Map a thread name to the actor that owns it; anything else is a request."""
    for prefix, actor in ACTOR_PREFIXES:
        if thread_name.startswith(prefix):
            return actor
    return "request"


class ActorContextFilter(logging.Filter):
    """Adds actor and thread_name to each record. Never drops a record."""

    def filter(self, record: logging.LogRecord) -> bool:
        name = threading.current_thread().name
        record.thread_name = name
        record.actor = actor_for_thread(name)
        return True


def _handler(handler: logging.Handler, level: int, formatter: logging.Formatter) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    handler.addFilter(ActorContextFilter())
    return handler


def setup_logging(
    log_level: int = logging.INFO,
    log_dir: Optional[Union[str, Path]] = None,
) -> logging.Logger:
    """
    Configure the engine's root logger.

    Console output is always on. When log_dir is given, a rotating
    engine log and a separate ERROR-only log are written there; the error
    log is where lost refunds and failed print jobs end up.

    Returns:
        The configured "table_order" logger
    """
    logger = logging.getLogger(APP_NAMESPACE)
    logger.setLevel(log_level)
    logger.propagate = False

    # The app factory runs once per test
    logger.handlers.clear()

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    logger.addHandler(_handler(logging.StreamHandler(sys.stdout), log_level, formatter))

    if log_dir:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        for filename, level in ((f"{APP_NAMESPACE}.log", log_level), (f"{APP_NAMESPACE}_error.log", logging.ERROR)):
            file_handler = RotatingFileHandler(
                filename=log_dir / filename,
                maxBytes=10 * 1024 * 1024,  # 10 MB per file
                backupCount=5,
                encoding="utf-8",
            )
            logger.addHandler(_handler(file_handler, level, formatter))
        logger.info(f"File logging enabled in {log_dir}")

    logger.info(f"Logging configured at level {logging.getLevelName(log_level)}")
    return logger


def get_logger(name: str) -> logging.Logger:
    """Child logger under the engine namespace, e.g. table_order.services.order_service."""
    if not name.startswith(APP_NAMESPACE):
        name = f"{APP_NAMESPACE}.{name}"
    return logging.getLogger(name)


class _OrderAdapter(logging.LoggerAdapter):
    def process(self, msg, kwargs):
        return f"[order {self.extra['order']}] {msg}", kwargs


def get_job_logger(job_id: str, order_short_id: Optional[str] = None) -> Union[logging.Logger, logging.LoggerAdapter]:
    """
    Logger for one print job, named after the first 8 characters of its id.

    With order_short_id, every message is prefixed with the order it prints.
    """
    logger = logging.getLogger(f"{APP_NAMESPACE}.print_job.{job_id[:8]}")
    if order_short_id:
        return _OrderAdapter(logger, {"order": order_short_id})
    return logger


def set_thread_name(name: str) -> None:
    """Rename the current thread; the name decides the actor tag."""
    threading.current_thread().name = name
