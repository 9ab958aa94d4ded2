"""Pydantic schemas for booking and resident flows."""

from __future__ import annotations

import re
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from booking.civil_time import format_clock, parse_civil_date, parse_clock, to_civil_iso
from booking.codes import format_code

APARTMENT_RE = re.compile(r"^\d+-\d+$")
FULL_NAME_RE = re.compile(r"^[A-Za-zÀ-ÖØ-öø-ÿ\s'.-]+$")
VEHICLE_PLATE_RE = re.compile(r"^[A-Z0-9-]+$")


class BookingStatus(str, Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"


def _check_apartment(value: str) -> str:
    if not APARTMENT_RE.match(value):
        raise ValueError("apartment_number must look like TOWER-UNIT, e.g. 2-101.")
    return value


def _check_full_name(value: str) -> str:
    if not FULL_NAME_RE.match(value):
        raise ValueError("full_name may only contain letters, spaces, apostrophes, periods and hyphens.")
    return value


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _check_clock(value: str) -> str:
    return format_clock(*parse_clock(value))


class ScheduleRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    date: str = Field(min_length=1, description="Civil date, YYYY-MM-DD")
    start_time: str = Field(min_length=1, description="Civil start clock, HH:MM")
    end_time: str = Field(min_length=1, description="Civil end clock, HH:MM")

    @field_validator("date")
    @classmethod
    def validate_date(cls, value: str) -> str:
        parse_civil_date(value)
        return value

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_clock(cls, value: str) -> str:
        return _check_clock(value)

    @property
    def time_slot(self) -> str:
        return f"{self.start_time}-{self.end_time}"


class BookingCreateRequest(ScheduleRequest):
    apartment_number: str = Field(min_length=1, max_length=32)
    full_name: str = Field(min_length=1, max_length=100)
    vehicle_plate: str = Field(min_length=1, max_length=10)
    email: Optional[EmailStr] = None

    @field_validator("apartment_number")
    @classmethod
    def validate_apartment(cls, value: str) -> str:
        return _check_apartment(value)

    @field_validator("full_name")
    @classmethod
    def validate_full_name(cls, value: str) -> str:
        return _check_full_name(value)

    @field_validator("vehicle_plate", mode="before")
    @classmethod
    def normalize_plate(cls, value):
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator("vehicle_plate")
    @classmethod
    def validate_plate(cls, value: str) -> str:
        if not VEHICLE_PLATE_RE.match(value):
            raise ValueError("vehicle_plate may only contain letters, digits and hyphens.")
        return value

    @field_validator("email", mode="before")
    @classmethod
    def blank_email_is_none(cls, value):
        return _blank_to_none(value)


class BookingUpdateRequest(ScheduleRequest):
    pass


class AvailabilityRequest(ScheduleRequest):
    pass


class UserUpsertRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    apartment_number: str = Field(min_length=1, max_length=32)
    full_name: str = Field(min_length=1, max_length=100)
    email: Optional[EmailStr] = None

    @field_validator("apartment_number")
    @classmethod
    def validate_apartment(cls, value: str) -> str:
        return _check_apartment(value)

    @field_validator("full_name")
    @classmethod
    def validate_full_name(cls, value: str) -> str:
        return _check_full_name(value)

    @field_validator("email", mode="before")
    @classmethod
    def blank_email_is_none(cls, value):
        return _blank_to_none(value)


class BookingRecord(BaseModel):
    id: str
    confirmation_code: str
    apartment_number: str
    full_name: str
    vehicle_plate: str = ""
    booking_date: datetime
    time_slot: str
    start_time: datetime
    end_time: datetime
    status: BookingStatus
    created_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status == BookingStatus.ACTIVE


class UserRecord(BaseModel):
    id: str
    apartment_number: str
    full_name: str
    email: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


def _iso(value: Optional[datetime]) -> Optional[str]:
    return to_civil_iso(value) if value is not None else None


class BookingOut(BaseModel):
    id: str
    confirmation_code: str
    display_code: str
    apartment_number: str
    full_name: str
    vehicle_plate: str
    booking_date: str
    time_slot: str
    start_time: str
    end_time: str
    status: BookingStatus
    created_at: Optional[str] = None
    cancelled_at: Optional[str] = None

    @classmethod
    def from_record(cls, record: BookingRecord) -> "BookingOut":
        return cls(
            id=record.id,
            confirmation_code=record.confirmation_code,
            display_code=format_code(record.confirmation_code),
            apartment_number=record.apartment_number,
            full_name=record.full_name,
            vehicle_plate=record.vehicle_plate,
            booking_date=to_civil_iso(record.booking_date),
            time_slot=record.time_slot,
            start_time=to_civil_iso(record.start_time),
            end_time=to_civil_iso(record.end_time),
            status=record.status,
            created_at=_iso(record.created_at),
            cancelled_at=_iso(record.cancelled_at),
        )


class UserOut(BaseModel):
    id: str
    apartment_number: str
    full_name: str
    email: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_record(cls, record: UserRecord) -> "UserOut":
        return cls(
            id=record.id,
            apartment_number=record.apartment_number,
            full_name=record.full_name,
            email=record.email,
            created_at=_iso(record.created_at),
            updated_at=_iso(record.updated_at),
        )


class CreateBookingResponse(BaseModel):
    success: bool = True
    confirmation_code: str
    display_code: str
    booking: BookingOut


class BookingResponse(BaseModel):
    success: bool = True
    booking: BookingOut


class ActiveBookingResponse(BaseModel):
    booking: Optional[BookingOut] = None


class BookingListResponse(BaseModel):
    bookings: list[BookingOut]


class DayBookingsResponse(BaseModel):
    date: str
    bookings: list[BookingOut]
    booked_hours: list[int]


class CalendarResponse(BaseModel):
    month: str
    bookings: list[BookingOut]


class AvailabilityResponse(BaseModel):
    available: bool
    start_time: str
    end_time: str
    conflicts: list[BookingOut]


class UserResponse(BaseModel):
    success: bool = True
    user: UserOut
