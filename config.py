from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

from booking.rules import MAX_DURATION_HOURS, BookingRules

load_dotenv()

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class Settings:
    app_name: str
    app_version: str
    database_url: str
    log_level: str
    charger_id: str
    max_booking_hours: int
    max_days_advance: int
    min_hours_advance: int
    allow_past_bookings: bool
    upcoming_limit: int

    def booking_rules(self) -> BookingRules:
        return BookingRules(
            max_duration_hours=self.max_booking_hours,
            max_days_advance=self.max_days_advance or None,
            min_hours_advance=self.min_hours_advance,
            allow_past=self.allow_past_bookings,
        )


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name, "").strip().strip('"').strip("'")
    return value or default


def _get_int_env(name: str, default: int) -> int:
    raw = _get_env(name, str(default))
    try:
        value = int(raw)
    except ValueError:
        raise RuntimeError(f"Environment variable {name} must be an integer, got {raw!r}") from None
    if value < 0:
        raise RuntimeError(f"Environment variable {name} must not be negative, got {value}")
    return value


def _get_bool_env(name: str, default: bool) -> bool:
    raw = _get_env(name, "").lower()
    if not raw:
        return default
    if raw in _TRUE_VALUES:
        return True
    if raw in _FALSE_VALUES:
        return False
    raise RuntimeError(f"Environment variable {name} must be a boolean, got {raw!r}")


@lru_cache
def get_settings() -> Settings:
    return Settings(
        app_name="EV Charger Booking API",
        app_version="1.0.0",
        database_url=_get_env("DATABASE_URL", "sqlite:///./charger_bookings.db"),
        log_level=_get_env("LOG_LEVEL", "INFO").upper(),
        charger_id=_get_env("CHARGER_ID", "main"),
        max_booking_hours=_get_int_env("MAX_BOOKING_HOURS", MAX_DURATION_HOURS),
        max_days_advance=_get_int_env("MAX_DAYS_ADVANCE", 30),
        min_hours_advance=_get_int_env("MIN_HOURS_ADVANCE", 2),
        allow_past_bookings=_get_bool_env("ALLOW_PAST_BOOKINGS", False),
        upcoming_limit=_get_int_env("UPCOMING_LIMIT", 5),
    )
