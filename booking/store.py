"""Document-store contract the booking core runs against.

The core needs only insert, filtered query, partial update by id, a
server-assigned timestamp and a transaction that serializes writers on the
charger. db.store.SqlAlchemyDocumentStore is the durable implementation;
InMemoryDocumentStore backs tests and local experiments.
"""

from __future__ import annotations

import copy
import logging
import operator
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, ContextManager, Iterable, Iterator, NamedTuple, Protocol

logger = logging.getLogger(__name__)

BOOKINGS = "bookings"
USERS = "users"
COLLECTIONS = (BOOKINGS, USERS)

OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}


class _ServerTimestamp:
    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


# Placeholder replaced by the store's own clock at write time.
SERVER_TIMESTAMP = _ServerTimestamp()


class Filter(NamedTuple):
    field: str
    op: str
    value: Any


def where(field: str, op: str, value: Any) -> Filter:
    if op not in OPERATORS:
        raise ValueError(f"Unsupported operator {op!r}.")
    return Filter(field, op, value)


class DocumentStore(Protocol):
    def insert(self, collection: str, record: dict[str, Any]) -> str: ...

    def query(
        self,
        collection: str,
        filters: Iterable[Filter] = (),
        *,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]: ...

    def update_fields(self, collection: str, record_id: str, fields: dict[str, Any]) -> None: ...

    def transaction(self) -> ContextManager["DocumentStore"]: ...


def _check_collection(collection: str) -> None:
    if collection not in COLLECTIONS:
        raise ValueError(f"Unknown collection {collection!r}.")


def _sort_key(field: str):
    # None sorts first, matching SQL NULLS FIRST on ascending order.
    def key(record: dict[str, Any]):
        value = record.get(field)
        return (value is not None, value)

    return key


class InMemoryDocumentStore:
    """Dict-backed store with the same semantics as the SQL implementation.

    transaction() holds a process-wide lock and restores the previous data if
    the block raises, so a failed check-then-write leaves nothing behind.
    """

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._data: dict[str, dict[str, dict[str, Any]]] = {name: {} for name in COLLECTIONS}
        self._data_lock = threading.Lock()
        self._tx_lock = threading.Lock()

    def _resolve(self, fields: dict[str, Any]) -> dict[str, Any]:
        now = self._clock()
        return {key: (now if value is SERVER_TIMESTAMP else value) for key, value in fields.items()}

    def insert(self, collection: str, record: dict[str, Any]) -> str:
        _check_collection(collection)
        values = self._resolve(record)
        record_id = str(values.get("id") or uuid.uuid4())
        values["id"] = record_id
        with self._data_lock:
            if record_id in self._data[collection]:
                raise ValueError(f"Duplicate id {record_id!r} in {collection}.")
            self._data[collection][record_id] = values
        return record_id

    def query(
        self,
        collection: str,
        filters: Iterable[Filter] = (),
        *,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        _check_collection(collection)
        filters = list(filters)
        with self._data_lock:
            rows = [
                dict(record)
                for record in self._data[collection].values()
                if all(self._matches(record, item) for item in filters)
            ]
        if order_by:
            rows.sort(key=_sort_key(order_by), reverse=descending)
        if limit is not None:
            rows = rows[:limit]
        return rows

    @staticmethod
    def _matches(record: dict[str, Any], item: Filter) -> bool:
        value = record.get(item.field)
        if value is None:
            return item.op == "==" and item.value is None
        return OPERATORS[item.op](value, item.value)

    def update_fields(self, collection: str, record_id: str, fields: dict[str, Any]) -> None:
        _check_collection(collection)
        values = self._resolve(fields)
        values.pop("id", None)
        with self._data_lock:
            record = self._data[collection].get(record_id)
            if record is None:
                raise KeyError(f"No {collection} record with id {record_id!r}.")
            record.update(values)

    @contextmanager
    def transaction(self) -> Iterator["InMemoryDocumentStore"]:
        with self._tx_lock:
            with self._data_lock:
                snapshot = copy.deepcopy(self._data)
            try:
                yield self
            except BaseException:
                with self._data_lock:
                    self._data = snapshot
                logger.debug("In-memory transaction rolled back")
                raise
