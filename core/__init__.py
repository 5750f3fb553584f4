"""
Core module for the Table Order engine.

Contains fundamental infrastructure components:
- exceptions: Custom exception hierarchy (problem-document rendering)
- store: Key-value store contract with conditional writes, and an
  in-memory implementation
- timeutil: UTC timestamps and 2-decimal money rounding
"""

from .exceptions import (
    OrderEngineError,
    ValidationError,
    UnauthorizedError,
    NotFoundError,
    ProviderNotConfiguredError,
    ConflictError,
    GoneError,
    UnprocessableEntityError,
    InternalError,
    ConditionFailedError,
    PrinterError,
)
from .store import Attr, Condition, Store, InMemoryStore

__all__ = [
    "OrderEngineError",
    "ValidationError",
    "UnauthorizedError",
    "NotFoundError",
    "ProviderNotConfiguredError",
    "ConflictError",
    "GoneError",
    "UnprocessableEntityError",
    "InternalError",
    "ConditionFailedError",
    "PrinterError",
    "Attr",
    "Condition",
    "Store",
    "InMemoryStore",
]
