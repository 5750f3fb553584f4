"""Helper modules for the Table Order engine."""

__all__ = [
    "escpos",
    "printer_client",
    "validation",
]
