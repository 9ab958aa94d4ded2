"""SQLAlchemy implementation of the booking document-store contract."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterable, Iterator

from sqlalchemy import inspect, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.sql import func

from booking.errors import StoreUnavailableError
from booking.models import Booking, Charger, User
from booking.store import BOOKINGS, OPERATORS, SERVER_TIMESTAMP, USERS, Filter
from db.session import DEFAULT_CHARGER_ID

logger = logging.getLogger(__name__)

MODELS = {
    BOOKINGS: Booking,
    USERS: User,
}


def _model_for(collection: str):
    try:
        return MODELS[collection]
    except KeyError:
        raise ValueError(f"Unknown collection {collection!r}.") from None


def _resolve(fields: dict[str, Any]) -> dict[str, Any]:
    return {key: (func.now() if value is SERVER_TIMESTAMP else value) for key, value in fields.items()}


def _to_record(obj) -> dict[str, Any]:
    return {attr.key: getattr(obj, attr.key) for attr in inspect(obj).mapper.column_attrs}


class SqlAlchemyDocumentStore:
    """Collections map onto ORM tables; records travel as plain dicts.

    Outside transaction() every call runs in its own short session. Inside,
    all calls share the transaction's session, which already holds the
    charger row lock.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        *,
        charger_id: str = DEFAULT_CHARGER_ID,
        session: Session | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._charger_id = charger_id
        self._session = session

    @contextmanager
    def _session_scope(self) -> Iterator[Session]:
        if self._session is not None:
            yield self._session
            return

        with self._session_factory() as db:
            try:
                with db.begin():
                    yield db
            except SQLAlchemyError as exc:
                logger.exception("Booking store operation failed")
                raise StoreUnavailableError("Database error while accessing bookings.") from exc

    def insert(self, collection: str, record: dict[str, Any]) -> str:
        model = _model_for(collection)
        with self._session_scope() as db:
            obj = model(**_resolve(record))
            db.add(obj)
            db.flush()
            return obj.id

    def query(
        self,
        collection: str,
        filters: Iterable[Filter] = (),
        *,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        model = _model_for(collection)
        # Rows touched by update_fields earlier in the same session must not be served stale.
        stmt = select(model).execution_options(populate_existing=True)
        for item in filters:
            column = getattr(model, item.field)
            stmt = stmt.where(OPERATORS[item.op](column, item.value))
        if order_by:
            column = getattr(model, order_by)
            stmt = stmt.order_by(column.desc() if descending else column.asc())
        if limit is not None:
            stmt = stmt.limit(limit)

        with self._session_scope() as db:
            return [_to_record(obj) for obj in db.scalars(stmt)]

    def update_fields(self, collection: str, record_id: str, fields: dict[str, Any]) -> None:
        model = _model_for(collection)
        values = _resolve(fields)
        values.pop("id", None)
        with self._session_scope() as db:
            result = db.execute(
                update(model)
                .where(model.id == record_id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise KeyError(f"No {collection} record with id {record_id!r}.")

    @contextmanager
    def transaction(self) -> Iterator["SqlAlchemyDocumentStore"]:
        if self._session is not None:
            raise RuntimeError("Nested booking transactions are not supported.")

        with self._session_factory() as db:
            try:
                with db.begin():
                    locked = db.execute(
                        update(Charger)
                        .where(Charger.id == self._charger_id)
                        .values(version=Charger.version + 1)
                        .execution_options(synchronize_session=False)
                    )
                    if locked.rowcount == 0:
                        raise StoreUnavailableError(
                            f"Charger {self._charger_id!r} is not provisioned; run init_db first."
                        )
                    yield SqlAlchemyDocumentStore(
                        self._session_factory,
                        charger_id=self._charger_id,
                        session=db,
                    )
            except SQLAlchemyError as exc:
                logger.exception("Booking transaction failed")
                raise StoreUnavailableError("Database error while updating bookings.") from exc
