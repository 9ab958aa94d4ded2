import pytest

from config import get_settings

ENV_VARS = (
    "DATABASE_URL",
    "LOG_LEVEL",
    "CHARGER_ID",
    "MAX_BOOKING_HOURS",
    "MAX_DAYS_ADVANCE",
    "MIN_HOURS_ADVANCE",
    "ALLOW_PAST_BOOKINGS",
    "UPCOMING_LIMIT",
)


@pytest.fixture
def fresh_settings(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestSettings:
    """Environment-driven settings and the rules they produce."""

    def test_defaults(self, fresh_settings):
        settings = get_settings()

        assert settings.database_url == "sqlite:///./charger_bookings.db"
        assert settings.max_booking_hours == 24
        assert settings.upcoming_limit == 5

        rules = settings.booking_rules()
        assert rules.max_duration_hours == 24
        assert rules.max_days_advance == 30
        assert rules.min_hours_advance == 2
        assert rules.allow_past is False

    def test_overrides_strip_quotes(self, fresh_settings, monkeypatch):
        monkeypatch.setenv("MAX_BOOKING_HOURS", '"8"')
        monkeypatch.setenv("MAX_DAYS_ADVANCE", "0")
        monkeypatch.setenv("MIN_HOURS_ADVANCE", "0")
        monkeypatch.setenv("ALLOW_PAST_BOOKINGS", "yes")
        monkeypatch.setenv("LOG_LEVEL", "debug")

        settings = get_settings()
        rules = settings.booking_rules()

        assert settings.log_level == "DEBUG"
        assert rules.max_duration_hours == 8
        assert rules.max_days_advance is None
        assert rules.min_hours_advance == 0
        assert rules.allow_past is True

    @pytest.mark.parametrize(
        "name,value",
        [
            ("MAX_BOOKING_HOURS", "eight"),
            ("UPCOMING_LIMIT", "-1"),
            ("MIN_HOURS_ADVANCE", "two"),
            ("ALLOW_PAST_BOOKINGS", "maybe"),
        ],
    )
    def test_malformed_values_fail_loudly(self, fresh_settings, monkeypatch, name, value):
        monkeypatch.setenv(name, value)
        with pytest.raises(RuntimeError, match=name):
            get_settings()
