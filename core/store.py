"""
Key-value store contract and in-memory implementation.

The engine never holds a lock around order state. Every cross-actor race
is resolved by the store's row-level conditional write: a mutation is
applied only if a predicate over the row's current state holds, otherwise
the store raises ConditionFailedError and writes nothing.

Collections and keys:
    menus     (restaurantId, version)
    orders    (restaurantId, orderId)
    pos-jobs  (orderId, jobId)
    users     (userId)

Conditions are small predicate objects built with Attr:

    Attr("status").eq("CREATED")
    Attr("status").ne("COMPLETED")
    Attr("status").eq("READY") & Attr("updatedAt").lt(cutoff)

Usage:
    store = InMemoryStore()
    store.put("orders", order_dict)
    store.update(
        "orders",
        {"restaurantId": rid, "orderId": oid},
        {"status": "PAID"},
        condition=Attr("status").eq("CREATED"),
        remove=["expiresAt"],
    )
"""

from __future__ import annotations

import threading
from copy import deepcopy
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from core.exceptions import ConditionFailedError
from logging_config import get_logger


# Module logger
logger = get_logger(__name__)


TABLE_KEYS: Dict[str, Tuple[str, ...]] = {
    "menus": ("restaurantId", "version"),
    "orders": ("restaurantId", "orderId"),
    "pos-jobs": ("orderId", "jobId"),
    "users": ("userId",),
}

TABLE_INDEXES: Dict[str, Dict[str, Tuple[str, ...]]] = {
    "menus": {
        "restaurantId-status-index": ("restaurantId", "status"),
    },
    "orders": {
        "orderId-index": ("orderId",),
        "restaurantId-status-index": ("restaurantId", "status"),
        "status-index": ("status",),
    },
    "pos-jobs": {},
    "users": {},
}

_MISSING = object()


# =============================================================================
# CONDITIONS
# =============================================================================

class Condition:
    """Predicate over a single stored item."""

    def evaluate(self, item: Dict[str, Any]) -> bool:
        raise NotImplementedError

    def __and__(self, other: "Condition") -> "Condition":
        return AllOf((self, other))


class Comparison(Condition):
    """Compare one attribute against a value."""

    _OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
        "=": lambda a, b: a == b,
        "<>": lambda a, b: a != b,
        "<": lambda a, b: a < b,
        "<=": lambda a, b: a <= b,
        ">": lambda a, b: a > b,
        ">=": lambda a, b: a >= b,
    }

    def __init__(self, attribute: str, operator: str, value: Any):
        if operator not in self._OPERATORS:
            raise ValueError(f"Unsupported operator: {operator}")
        self.attribute = attribute
        self.operator = operator
        self.value = value

    def evaluate(self, item: Dict[str, Any]) -> bool:
        current = item.get(self.attribute, _MISSING)
        if current is _MISSING:
            # A missing attribute is "not equal" to anything and not ordered
            return self.operator == "<>"
        try:
            return self._OPERATORS[self.operator](current, self.value)
        except TypeError:
            return False

    def __repr__(self) -> str:
        return f"{self.attribute} {self.operator} {self.value!r}"


class Exists(Condition):
    def __init__(self, attribute: str, present: bool = True):
        self.attribute = attribute
        self.present = present

    def evaluate(self, item: Dict[str, Any]) -> bool:
        return (self.attribute in item) == self.present

    def __repr__(self) -> str:
        fn = "attribute_exists" if self.present else "attribute_not_exists"
        return f"{fn}({self.attribute})"


class AllOf(Condition):
    def __init__(self, conditions: Iterable[Condition]):
        self.conditions = tuple(conditions)

    def evaluate(self, item: Dict[str, Any]) -> bool:
        return all(c.evaluate(item) for c in self.conditions)

    def __repr__(self) -> str:
        return " AND ".join(repr(c) for c in self.conditions)


class Attr:
    """Builder for conditions on one attribute."""

    def __init__(self, name: str):
        self.name = name

    def eq(self, value: Any) -> Condition:
        return Comparison(self.name, "=", value)

    def ne(self, value: Any) -> Condition:
        return Comparison(self.name, "<>", value)

    def lt(self, value: Any) -> Condition:
        return Comparison(self.name, "<", value)

    def lte(self, value: Any) -> Condition:
        return Comparison(self.name, "<=", value)

    def gt(self, value: Any) -> Condition:
        return Comparison(self.name, ">", value)

    def gte(self, value: Any) -> Condition:
        return Comparison(self.name, ">=", value)

    def exists(self) -> Condition:
        return Exists(self.name, True)

    def not_exists(self) -> Condition:
        return Exists(self.name, False)


# =============================================================================
# STORE CONTRACT
# =============================================================================

class Store:
    """
    Contract of the external key-value store.

    Implementations must make put/update with a condition atomic per row:
    evaluate the condition against the current row and apply the write in
    one step, raising ConditionFailedError otherwise.
    """

    def get(self, table: str, key: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def put(
        self,
        table: str,
        item: Dict[str, Any],
        condition: Optional[Condition] = None,
    ) -> None:
        raise NotImplementedError

    def update(
        self,
        table: str,
        key: Dict[str, Any],
        changes: Dict[str, Any],
        condition: Optional[Condition] = None,
        remove: Optional[Iterable[str]] = None,
    ) -> Dict[str, Any]:
        raise NotImplementedError

    def query(
        self,
        table: str,
        key: Dict[str, Any],
        index: Optional[str] = None,
        filter: Optional[Condition] = None,
        sort_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def scan(
        self,
        table: str,
        filter: Optional[Condition] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        raise NotImplementedError


class InMemoryStore(Store):
    """
    Thread-safe in-memory implementation of the store contract.

    Used for development and as the fake collaborator in tests. A single
    lock serializes each operation, which makes every conditional write a
    true compare-and-swap. Items are deep-copied on the way in and out so
    callers can never mutate stored rows by reference.
    """

    def __init__(self):
        self._tables: Dict[str, Dict[Tuple[Any, ...], Dict[str, Any]]] = {
            name: {} for name in TABLE_KEYS
        }
        self._lock = threading.Lock()

    def _table(self, table: str) -> Dict[Tuple[Any, ...], Dict[str, Any]]:
        if table not in self._tables:
            raise KeyError(f"Unknown table: {table}")
        return self._tables[table]

    @staticmethod
    def _key_of(table: str, item: Dict[str, Any]) -> Tuple[Any, ...]:
        try:
            return tuple(item[attr] for attr in TABLE_KEYS[table])
        except KeyError as e:
            raise ValueError(f"Missing key attribute {e} for table {table}") from e

    def get(self, table: str, key: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        with self._lock:
            item = self._table(table).get(self._key_of(table, key))
            return deepcopy(item) if item is not None else None

    def put(
        self,
        table: str,
        item: Dict[str, Any],
        condition: Optional[Condition] = None,
    ) -> None:
        row_key = self._key_of(table, item)
        with self._lock:
            rows = self._table(table)
            if condition is not None and not condition.evaluate(rows.get(row_key, {})):
                raise ConditionFailedError(table, dict(zip(TABLE_KEYS[table], row_key)), condition)
            rows[row_key] = deepcopy(item)

    def update(
        self,
        table: str,
        key: Dict[str, Any],
        changes: Dict[str, Any],
        condition: Optional[Condition] = None,
        remove: Optional[Iterable[str]] = None,
    ) -> Dict[str, Any]:
        row_key = self._key_of(table, key)
        with self._lock:
            rows = self._table(table)
            current = rows.get(row_key)
            if condition is not None and not condition.evaluate(current or {}):
                raise ConditionFailedError(table, key, condition)

            # Unconditional updates upsert, like the backing store does
            updated = deepcopy(current) if current is not None else dict(key)
            updated.update(deepcopy(changes))
            for attr in remove or ():
                updated.pop(attr, None)
            rows[row_key] = updated
            return deepcopy(updated)

    def query(
        self,
        table: str,
        key: Dict[str, Any],
        index: Optional[str] = None,
        filter: Optional[Condition] = None,
        sort_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        if index is None:
            allowed = TABLE_KEYS[table][:1]
        else:
            if index not in TABLE_INDEXES[table]:
                raise KeyError(f"Unknown index {index} on table {table}")
            allowed = TABLE_INDEXES[table][index]

        unknown = set(key) - set(allowed)
        if not key or unknown:
            raise ValueError(f"Query key {sorted(key)} does not match {allowed}")

        with self._lock:
            matches = [
                deepcopy(item)
                for item in self._table(table).values()
                if all(item.get(attr) == value for attr, value in key.items())
                and (filter is None or filter.evaluate(item))
            ]
        return self._order_and_limit(matches, sort_by, descending, limit)

    def scan(
        self,
        table: str,
        filter: Optional[Condition] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        with self._lock:
            matches = [
                deepcopy(item)
                for item in self._table(table).values()
                if filter is None or filter.evaluate(item)
            ]
        return self._order_and_limit(matches, None, False, limit)

    @staticmethod
    def _order_and_limit(
        items: List[Dict[str, Any]],
        sort_by: Optional[str],
        descending: bool,
        limit: Optional[int],
    ) -> List[Dict[str, Any]]:
        if sort_by:
            items.sort(key=lambda i: i.get(sort_by) or "", reverse=descending)
        if limit is not None:
            items = items[:limit]
        return items

    def clear(self) -> None:
        with self._lock:
            for rows in self._tables.values():
                rows.clear()
        logger.info("In-memory store cleared")
