"""Core booking lifecycle: availability, create, cancel, reschedule and lookups."""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any, Callable, NamedTuple, Optional

from pydantic import BaseModel, ValidationError

from booking.availability import ACTIVE_STATUS, find_conflicts, occupied_hours, overlap_filters
from booking.civil_time import (
    civil_midnight,
    day_range,
    ensure_aware,
    month_range,
    parse_time_slot_interval,
    to_civil_iso,
)
from booking.codes import generate_code, normalize_code
from booking.errors import (
    BookingAlreadyCancelledError,
    BookingNotFoundError,
    BookingValidationError,
    SlotUnavailableError,
    StoreUnavailableError,
)
from booking.rules import BookingRules, RuleEngine
from booking.schema import (
    APARTMENT_RE,
    BookingCreateRequest,
    BookingRecord,
    BookingStatus,
    BookingUpdateRequest,
    ScheduleRequest,
    UserRecord,
    UserUpsertRequest,
)
from booking.store import BOOKINGS, SERVER_TIMESTAMP, USERS, DocumentStore, where

logger = logging.getLogger(__name__)

CODE_GENERATION_ATTEMPTS = 5
DEFAULT_UPCOMING_LIMIT = 5

SLOT_TAKEN_MESSAGE = "This time slot is already booked. Please choose another time."


class CreatedBooking(NamedTuple):
    confirmation_code: str
    booking: BookingRecord


def _validate(model_cls: type[BaseModel], payload: dict[str, Any]):
    try:
        return model_cls.model_validate(payload)
    except ValidationError as exc:
        raise BookingValidationError(
            "Invalid booking input.",
            code="invalid_input",
            details={"errors": exc.errors(include_url=False, include_context=False, include_input=False)},
        ) from exc


def _normalize_code(code: str) -> str:
    try:
        return normalize_code(code)
    except ValueError as exc:
        raise BookingValidationError(str(exc), code="invalid_confirmation_code") from exc


def _to_bookings(rows: list[dict[str, Any]]) -> list[BookingRecord]:
    return [BookingRecord.model_validate(row) for row in rows]


class BookingEngine:
    """Owns the booking state machine for the single shared charger.

    Invariant: active bookings never overlap. Every write runs inside
    store.transaction(), so the conflict check and the write it guards are
    atomic with respect to other writers.
    """

    def __init__(
        self,
        store: DocumentStore,
        *,
        rules: BookingRules | None = None,
        clock: Callable[[], datetime] | None = None,
        upcoming_limit: int = DEFAULT_UPCOMING_LIMIT,
        code_factory: Callable[[], str] = generate_code,
    ) -> None:
        self._store = store
        self._rules = rules or BookingRules()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._upcoming_limit = upcoming_limit
        self._code_factory = code_factory

    @property
    def rules(self) -> BookingRules:
        return self._rules

    def now(self) -> datetime:
        return ensure_aware(self._clock())

    # -- availability -------------------------------------------------------

    def check_availability(
        self,
        start_time: datetime,
        end_time: datetime,
        *,
        exclude_id: str | None = None,
        store: DocumentStore | None = None,
    ) -> list[BookingRecord]:
        """Active bookings overlapping [start_time, end_time); read-only."""
        ensure_aware(start_time)
        ensure_aware(end_time)
        if end_time <= start_time:
            raise BookingValidationError("End time must be after start time.", code="invalid_interval")

        rows = (store or self._store).query(
            BOOKINGS,
            overlap_filters(start_time=start_time, end_time=end_time),
            order_by="start_time",
        )
        return find_conflicts(_to_bookings(rows), start_time=start_time, end_time=end_time, exclude_id=exclude_id)

    def check_slot(self, civil_date: str, start_clock: str, end_clock: str) -> tuple[datetime, datetime, list[BookingRecord]]:
        request = _validate(ScheduleRequest, {"date": civil_date, "start_time": start_clock, "end_time": end_clock})
        start_time, end_time = parse_time_slot_interval(request.date, request.time_slot)
        return start_time, end_time, self.check_availability(start_time, end_time)

    def booked_hours(self, civil_date: str | date) -> list[int]:
        day_start, day_end = self._day_range(civil_date)
        rows = self._store.query(BOOKINGS, overlap_filters(start_time=day_start, end_time=day_end))
        return occupied_hours(_to_bookings(rows), civil_date)

    def _enforce_rules(self, start_time: datetime, end_time: datetime) -> None:
        for check in (
            RuleEngine.check_duration(start_time, end_time, self._rules),
            RuleEngine.check_booking_window(start_time, self.now(), self._rules),
        ):
            if not check.allowed:
                raise BookingValidationError(check.reason or "Booking rule violated.", code="booking_rule_violation")

    # -- lifecycle ----------------------------------------------------------

    def create_booking(
        self,
        apartment_number: str,
        full_name: str,
        vehicle_plate: str,
        civil_date: str,
        start_clock: str,
        end_clock: str,
        email: Optional[str] = None,
    ) -> CreatedBooking:
        request = _validate(
            BookingCreateRequest,
            {
                "apartment_number": apartment_number,
                "full_name": full_name,
                "vehicle_plate": vehicle_plate,
                "date": civil_date,
                "start_time": start_clock,
                "end_time": end_clock,
                "email": email,
            },
        )
        start_time, end_time = parse_time_slot_interval(request.date, request.time_slot)
        self._enforce_rules(start_time, end_time)

        # The resident cache is refreshed whether or not the slot turns out to be free.
        self._save_user(request.apartment_number, request.full_name, request.email)

        with self._store.transaction() as tx:
            conflicts = self.check_availability(start_time, end_time, store=tx)
            if conflicts:
                logger.info(
                    "Rejected booking %s on %s: %d conflicting booking(s)",
                    request.time_slot,
                    request.date,
                    len(conflicts),
                )
                raise SlotUnavailableError(SLOT_TAKEN_MESSAGE, conflicts=conflicts, code="slot_unavailable")

            code = self._unused_code(tx)
            record_id = tx.insert(
                BOOKINGS,
                {
                    "confirmation_code": code,
                    "apartment_number": request.apartment_number,
                    "full_name": request.full_name,
                    "vehicle_plate": request.vehicle_plate,
                    "booking_date": civil_midnight(request.date),
                    "time_slot": request.time_slot,
                    "start_time": start_time,
                    "end_time": end_time,
                    "status": ACTIVE_STATUS,
                    "created_at": SERVER_TIMESTAMP,
                },
            )
            booking = self._load_by_id(tx, record_id)

        logger.info(
            "Created booking %s for %s: %s -> %s",
            code,
            booking.apartment_number,
            to_civil_iso(booking.start_time),
            to_civil_iso(booking.end_time),
        )
        return CreatedBooking(confirmation_code=code, booking=booking)

    def get_booking_by_code(self, code: str) -> BookingRecord:
        return self._load_by_code(self._store, _normalize_code(code))

    def cancel_booking(self, code: str) -> BookingRecord:
        normalized = _normalize_code(code)
        with self._store.transaction() as tx:
            booking = self._load_by_code(tx, normalized)
            if not booking.is_active:
                raise BookingAlreadyCancelledError(
                    "This booking has already been cancelled.",
                    code="already_cancelled",
                    details={"confirmation_code": normalized},
                )
            tx.update_fields(
                BOOKINGS,
                booking.id,
                {"status": BookingStatus.CANCELLED.value, "cancelled_at": SERVER_TIMESTAMP},
            )
            cancelled = self._load_by_id(tx, booking.id)

        logger.info("Cancelled booking %s (%s)", normalized, cancelled.time_slot)
        return cancelled

    def update_booking(self, code: str, civil_date: str, start_clock: str, end_clock: str) -> BookingRecord:
        """Reschedule in place; the confirmation code and status are preserved."""
        normalized = _normalize_code(code)
        request = _validate(
            BookingUpdateRequest,
            {"date": civil_date, "start_time": start_clock, "end_time": end_clock},
        )
        start_time, end_time = parse_time_slot_interval(request.date, request.time_slot)
        self._enforce_rules(start_time, end_time)

        with self._store.transaction() as tx:
            booking = self._load_by_code(tx, normalized)
            if not booking.is_active:
                raise BookingAlreadyCancelledError(
                    "Cancelled bookings cannot be rescheduled.",
                    code="already_cancelled",
                    details={"confirmation_code": normalized},
                )

            conflicts = self.check_availability(start_time, end_time, exclude_id=booking.id, store=tx)
            if conflicts:
                logger.info(
                    "Rejected reschedule of %s to %s %s: %d conflicting booking(s)",
                    normalized,
                    request.date,
                    request.time_slot,
                    len(conflicts),
                )
                raise SlotUnavailableError(SLOT_TAKEN_MESSAGE, conflicts=conflicts, code="slot_unavailable")

            tx.update_fields(
                BOOKINGS,
                booking.id,
                {
                    "booking_date": civil_midnight(request.date),
                    "time_slot": request.time_slot,
                    "start_time": start_time,
                    "end_time": end_time,
                },
            )
            updated = self._load_by_id(tx, booking.id)

        logger.info("Rescheduled booking %s from %s to %s", normalized, booking.time_slot, updated.time_slot)
        return updated

    # -- projections --------------------------------------------------------

    def list_bookings_for_day(self, civil_date: str | date) -> list[BookingRecord]:
        day_start, day_end = self._day_range(civil_date)
        return self._active_by_booking_date(day_start, day_end)

    def list_bookings_for_month(self, month: str) -> list[BookingRecord]:
        try:
            month_start, month_end = month_range(month)
        except ValueError as exc:
            raise BookingValidationError(str(exc), code="invalid_month") from exc
        return self._active_by_booking_date(month_start, month_end)

    def list_bookings_for_apartment(self, apartment_number: str) -> list[BookingRecord]:
        if not APARTMENT_RE.match(apartment_number or ""):
            raise BookingValidationError("apartment_number must look like TOWER-UNIT, e.g. 2-101.", code="invalid_apartment")
        rows = self._store.query(
            BOOKINGS,
            [where("apartment_number", "==", apartment_number)],
            order_by="booking_date",
            descending=True,
        )
        return _to_bookings(rows)

    def get_current_booking(self) -> BookingRecord | None:
        now = self.now()
        rows = self._store.query(
            BOOKINGS,
            [
                where("status", "==", ACTIVE_STATUS),
                where("start_time", "<=", now),
                where("end_time", ">", now),
            ],
            order_by="start_time",
        )
        if not rows:
            return None
        if len(rows) > 1:
            logger.error("%d active bookings contain %s; overlap invariant violated", len(rows), to_civil_iso(now))
        return BookingRecord.model_validate(rows[0])

    def list_upcoming(self, limit: int | None = None) -> list[BookingRecord]:
        # Ordered by end so a booking still in progress stays listed until it ends.
        rows = self._store.query(
            BOOKINGS,
            [where("status", "==", ACTIVE_STATUS), where("end_time", ">", self.now())],
            order_by="end_time",
            limit=self._upcoming_limit if limit is None else limit,
        )
        return _to_bookings(rows)

    def _active_by_booking_date(self, range_start: datetime, range_end: datetime) -> list[BookingRecord]:
        rows = self._store.query(
            BOOKINGS,
            [
                where("status", "==", ACTIVE_STATUS),
                where("booking_date", ">=", range_start),
                where("booking_date", "<", range_end),
            ],
            order_by="start_time",
        )
        return _to_bookings(rows)

    @staticmethod
    def _day_range(civil_date: str | date) -> tuple[datetime, datetime]:
        try:
            return day_range(civil_date)
        except ValueError as exc:
            raise BookingValidationError(str(exc), code="invalid_date") from exc

    # -- residents ----------------------------------------------------------

    def upsert_user(self, apartment_number: str, full_name: str, email: Optional[str] = None) -> UserRecord:
        request = _validate(
            UserUpsertRequest,
            {"apartment_number": apartment_number, "full_name": full_name, "email": email},
        )
        return self._save_user(request.apartment_number, request.full_name, request.email)

    def get_user(self, apartment_number: str) -> UserRecord | None:
        rows = self._store.query(
            USERS,
            [where("apartment_number", "==", apartment_number)],
            order_by="created_at",
            limit=1,
        )
        return UserRecord.model_validate(rows[0]) if rows else None

    def _save_user(self, apartment_number: str, full_name: str, email: Optional[str]) -> UserRecord:
        with self._store.transaction() as tx:
            existing = tx.query(
                USERS,
                [where("apartment_number", "==", apartment_number)],
                order_by="created_at",
                limit=1,
            )
            if existing:
                user_id = existing[0]["id"]
                fields: dict[str, Any] = {"full_name": full_name, "updated_at": SERVER_TIMESTAMP}
                if email is not None:
                    fields["email"] = email
                tx.update_fields(USERS, user_id, fields)
            else:
                user_id = tx.insert(
                    USERS,
                    {
                        "apartment_number": apartment_number,
                        "full_name": full_name,
                        "email": email,
                        "created_at": SERVER_TIMESTAMP,
                        "updated_at": SERVER_TIMESTAMP,
                    },
                )
            rows = tx.query(USERS, [where("id", "==", user_id)])

        logger.info("Saved resident %s", apartment_number)
        return UserRecord.model_validate(rows[0])

    # -- helpers ------------------------------------------------------------

    def _unused_code(self, tx: DocumentStore) -> str:
        for _ in range(CODE_GENERATION_ATTEMPTS):
            code = self._code_factory()
            if not tx.query(BOOKINGS, [where("confirmation_code", "==", code)], limit=1):
                return code
            logger.warning("Confirmation code collision on %s; generating another", code)
        raise StoreUnavailableError(
            "Could not allocate a unique confirmation code.",
            code="code_allocation_failed",
        )

    @staticmethod
    def _load_by_id(store: DocumentStore, record_id: str) -> BookingRecord:
        rows = store.query(BOOKINGS, [where("id", "==", record_id)])
        if not rows:
            raise BookingNotFoundError("Booking not found.", code="booking_not_found")
        return BookingRecord.model_validate(rows[0])

    @staticmethod
    def _load_by_code(store: DocumentStore, code: str) -> BookingRecord:
        rows = store.query(BOOKINGS, [where("confirmation_code", "==", code)], order_by="created_at")
        if not rows:
            raise BookingNotFoundError(
                "Booking not found.",
                code="booking_not_found",
                details={"confirmation_code": code},
            )
        if len(rows) > 1:
            logger.warning("%d bookings share confirmation code %s; using the oldest", len(rows), code)
        return BookingRecord.model_validate(rows[0])
