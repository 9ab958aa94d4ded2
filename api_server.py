from __future__ import annotations

import logging
from typing import Literal

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy import Engine

from booking.civil_time import to_civil_iso
from booking.codes import format_code
from booking.engine import BookingEngine
from booking.errors import BookingError, SlotUnavailableError
from booking.schema import (
    ActiveBookingResponse,
    AvailabilityRequest,
    AvailabilityResponse,
    BookingCreateRequest,
    BookingListResponse,
    BookingOut,
    BookingResponse,
    BookingUpdateRequest,
    CalendarResponse,
    CreateBookingResponse,
    DayBookingsResponse,
    UserOut,
    UserResponse,
    UserUpsertRequest,
)
from config import Settings, get_settings
from db.session import create_db_engine, create_session_factory, init_db, validate_db_compatibility
from db.store import SqlAlchemyDocumentStore

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

APP_NAME = settings.app_name
APP_VERSION = settings.app_version


class HealthResponse(BaseModel):
    status: Literal["ok", "error"]
    service: str
    version: str


def build_booking_engine(db_engine: Engine, app_settings: Settings) -> BookingEngine:
    store = SqlAlchemyDocumentStore(
        create_session_factory(db_engine),
        charger_id=app_settings.charger_id,
    )
    return BookingEngine(
        store,
        rules=app_settings.booking_rules(),
        upcoming_limit=app_settings.upcoming_limit,
    )


def get_booking_engine(request: Request) -> BookingEngine:
    engine = getattr(request.app.state, "booking_engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail="Booking service is not initialised.")
    return engine


app = FastAPI(title=APP_NAME, version=APP_VERSION)


@app.on_event("startup")
def startup_checks():
    db_engine = create_db_engine(settings.database_url)
    init_db(db_engine, charger_id=settings.charger_id)
    validate_db_compatibility(db_engine)
    app.state.db_engine = db_engine
    app.state.booking_engine = build_booking_engine(db_engine, settings)
    logger.info("Booking service ready (max %s h per booking)", settings.max_booking_hours)


@app.exception_handler(BookingError)
def handle_booking_error(_, exc: BookingError):
    detail = exc.to_dict()
    if isinstance(exc, SlotUnavailableError):
        detail["details"] = {
            **detail["details"],
            "conflicts": [BookingOut.from_record(booking).model_dump(mode="json") for booking in exc.conflicts],
        }
    return JSONResponse(status_code=exc.status_code, content={"detail": detail})


@app.exception_handler(RequestValidationError)
def handle_request_validation_error(_, exc: RequestValidationError):
    errors = [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg", ""), "type": error.get("type", "")}
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"detail": {"message": "Invalid booking input.", "code": "invalid_input", "details": {"errors": errors}}},
    )


@app.get("/health/live", response_model=HealthResponse)
def health_live():
    return HealthResponse(status="ok", service=APP_NAME, version=APP_VERSION)


@app.get("/health/ready", response_model=HealthResponse)
def health_ready():
    db_engine = getattr(app.state, "db_engine", None)
    if db_engine is None:
        raise HTTPException(status_code=503, detail="Database is not initialised.")
    try:
        validate_db_compatibility(db_engine)
    except Exception as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return HealthResponse(status="ok", service=APP_NAME, version=APP_VERSION)


@app.post("/v1/bookings", response_model=CreateBookingResponse, status_code=201)
def create_booking(request: BookingCreateRequest, engine: BookingEngine = Depends(get_booking_engine)):
    created = engine.create_booking(
        request.apartment_number,
        request.full_name,
        request.vehicle_plate,
        request.date,
        request.start_time,
        request.end_time,
        email=request.email,
    )
    return CreateBookingResponse(
        confirmation_code=created.confirmation_code,
        display_code=format_code(created.confirmation_code),
        booking=BookingOut.from_record(created.booking),
    )


@app.post("/v1/bookings/check-availability", response_model=AvailabilityResponse)
def check_availability(request: AvailabilityRequest, engine: BookingEngine = Depends(get_booking_engine)):
    start_time, end_time, conflicts = engine.check_slot(request.date, request.start_time, request.end_time)
    return AvailabilityResponse(
        available=not conflicts,
        start_time=to_civil_iso(start_time),
        end_time=to_civil_iso(end_time),
        conflicts=[BookingOut.from_record(booking) for booking in conflicts],
    )


@app.get("/v1/bookings/day/{day}", response_model=DayBookingsResponse)
def bookings_for_day(day: str, engine: BookingEngine = Depends(get_booking_engine)):
    bookings = engine.list_bookings_for_day(day)
    return DayBookingsResponse(
        date=day,
        bookings=[BookingOut.from_record(booking) for booking in bookings],
        booked_hours=engine.booked_hours(day),
    )


@app.get("/v1/bookings/calendar", response_model=CalendarResponse)
def bookings_for_month(month: str, engine: BookingEngine = Depends(get_booking_engine)):
    bookings = engine.list_bookings_for_month(month)
    return CalendarResponse(month=month, bookings=[BookingOut.from_record(booking) for booking in bookings])


@app.get("/v1/bookings/active", response_model=ActiveBookingResponse)
def active_booking(engine: BookingEngine = Depends(get_booking_engine)):
    booking = engine.get_current_booking()
    return ActiveBookingResponse(booking=BookingOut.from_record(booking) if booking else None)


@app.get("/v1/bookings/upcoming", response_model=BookingListResponse)
def upcoming_bookings(engine: BookingEngine = Depends(get_booking_engine)):
    return BookingListResponse(bookings=[BookingOut.from_record(booking) for booking in engine.list_upcoming()])


@app.get("/v1/bookings/apartment/{apartment_number}", response_model=BookingListResponse)
def bookings_for_apartment(apartment_number: str, engine: BookingEngine = Depends(get_booking_engine)):
    bookings = engine.list_bookings_for_apartment(apartment_number)
    return BookingListResponse(bookings=[BookingOut.from_record(booking) for booking in bookings])


@app.get("/v1/bookings/{confirmation_code}", response_model=BookingResponse)
def get_booking(confirmation_code: str, engine: BookingEngine = Depends(get_booking_engine)):
    return BookingResponse(booking=BookingOut.from_record(engine.get_booking_by_code(confirmation_code)))


@app.put("/v1/bookings/{confirmation_code}", response_model=BookingResponse)
def update_booking(
    confirmation_code: str,
    request: BookingUpdateRequest,
    engine: BookingEngine = Depends(get_booking_engine),
):
    booking = engine.update_booking(confirmation_code, request.date, request.start_time, request.end_time)
    return BookingResponse(booking=BookingOut.from_record(booking))


@app.post("/v1/bookings/{confirmation_code}/cancel", response_model=BookingResponse)
def cancel_booking(confirmation_code: str, engine: BookingEngine = Depends(get_booking_engine)):
    return BookingResponse(booking=BookingOut.from_record(engine.cancel_booking(confirmation_code)))


@app.get("/v1/users/{apartment_number}", response_model=UserResponse)
def get_user(apartment_number: str, engine: BookingEngine = Depends(get_booking_engine)):
    user = engine.get_user(apartment_number)
    if not user:
        raise HTTPException(status_code=404, detail="Resident not found.")
    return UserResponse(user=UserOut.from_record(user))


@app.post("/v1/users", response_model=UserResponse)
def upsert_user(request: UserUpsertRequest, engine: BookingEngine = Depends(get_booking_engine)):
    user = engine.upsert_user(request.apartment_number, request.full_name, email=request.email)
    return UserResponse(user=UserOut.from_record(user))
