"""Overlap checks for charger booking intervals."""

from __future__ import annotations

from datetime import date, datetime
from typing import Iterable

from booking.civil_time import civil_datetime, day_range, next_civil_day, parse_civil_date
from booking.schema import BookingRecord, BookingStatus
from booking.store import Filter, where

ACTIVE_STATUS = BookingStatus.ACTIVE.value


def intervals_overlap(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    """Half-open [start, end) overlap; intervals that only touch do not overlap."""
    return start_a < end_b and start_b < end_a


def overlap_filters(*, start_time: datetime, end_time: datetime) -> list[Filter]:
    return [
        where("status", "==", ACTIVE_STATUS),
        where("start_time", "<", end_time),
        where("end_time", ">", start_time),
    ]


def find_conflicts(
    bookings: Iterable[BookingRecord],
    *,
    start_time: datetime,
    end_time: datetime,
    exclude_id: str | None = None,
) -> list[BookingRecord]:
    return [
        booking
        for booking in bookings
        if booking.is_active
        and booking.id != exclude_id
        and intervals_overlap(start_time, end_time, booking.start_time, booking.end_time)
    ]


def split_into_hours(civil_date: str | date) -> list[tuple[int, datetime, datetime]]:
    day = parse_civil_date(civil_date)
    next_day = next_civil_day(day)
    hours: list[tuple[int, datetime, datetime]] = []
    for hour in range(24):
        start = civil_datetime(day, hour)
        end = civil_datetime(next_day, 0) if hour == 23 else civil_datetime(day, hour + 1)
        hours.append((hour, start, end))
    return hours


def occupied_hours(bookings: Iterable[BookingRecord], civil_date: str | date) -> list[int]:
    """Civil hours of civil_date covered by any active booking.

    Overnight bookings that began the previous evening count toward the
    early hours of civil_date.
    """
    day_start, day_end = day_range(civil_date)
    relevant = [
        booking
        for booking in bookings
        if booking.is_active and intervals_overlap(day_start, day_end, booking.start_time, booking.end_time)
    ]
    return [
        hour
        for hour, slot_start, slot_end in split_into_hours(civil_date)
        if any(intervals_overlap(slot_start, slot_end, booking.start_time, booking.end_time) for booking in relevant)
    ]
