"""
Printer transport.

Delivers one ESC/POS payload to the restaurant printer bridge as a raw
binary POST. With no endpoint configured (development) the payload is
written to the log instead and counts as delivered.
"""

from typing import Optional

import requests

from core.exceptions import PrinterError
from logging_config import get_logger


logger = get_logger(__name__)


def send_to_printer(
    payload: bytes,
    endpoint: Optional[str],
    timeout: float = 10.0,
    session: Optional[requests.Session] = None,
) -> None:
    """
    POST a payload to the printer endpoint.

    Raises:
        PrinterError: Connection failure or non-2xx response
    """
    if not endpoint:
        logger.info(
            "No POS printer endpoint configured, printing to log:\n"
            "--- POS PRINT START ---\n"
            f"{payload.decode('ascii', errors='replace')}\n"
            "--- POS PRINT END ---"
        )
        return

    http = session or requests
    try:
        response = http.post(
            endpoint,
            data=payload,
            headers={
                "Content-Type": "application/octet-stream",
                "X-Print-Type": "ESCPOS",
            },
            timeout=timeout,
        )
    except requests.RequestException as e:
        raise PrinterError(f"POS printer unreachable: {e}") from e

    if not response.ok:
        raise PrinterError(
            f"POS printer request failed: {response.status_code} {response.reason}",
            status_code=response.status_code,
        )
