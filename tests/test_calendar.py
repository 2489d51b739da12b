"""
Tests for services/calendar.py - NSE trading days and candle windows.
"""
import datetime as dt

import pytest

from portfolio_tracker.services.calendar import TradingCalendar, format_candle_range

from conftest import HOLIDAYS, IST


class TestIsTradingDay:
    def test_weekends_holidays_and_weekdays(self, calendar):
        day = dt.date(2024, 1, 1)
        while day < dt.date(2025, 1, 1):
            expected = day.weekday() < 5 and day not in HOLIDAYS
            assert calendar.is_trading_day(day) is expected, day
            day += dt.timedelta(days=1)

    def test_accepts_datetime(self, calendar):
        assert calendar.is_trading_day(dt.datetime(2024, 8, 15, 11, 0, tzinfo=IST)) is False
        assert calendar.is_trading_day(dt.datetime(2024, 8, 16, 11, 0, tzinfo=IST)) is True

    def test_empty_holiday_list_only_skips_weekends(self):
        cal = TradingCalendar()
        assert cal.is_trading_day(dt.date(2024, 8, 15)) is True
        assert cal.is_trading_day(dt.date(2024, 8, 17)) is False


class TestPreviousWorkingDay:
    def test_before_a_holiday(self, calendar):
        assert calendar.previous_working_day(dt.date(2024, 8, 15)) == dt.date(2024, 8, 14)

    def test_skips_holiday(self, calendar):
        # Friday 16th -> Thursday 15th is a holiday -> Wednesday 14th
        assert calendar.previous_working_day(dt.date(2024, 8, 16)) == dt.date(2024, 8, 14)

    def test_skips_weekend(self, calendar):
        assert calendar.previous_working_day(dt.date(2024, 8, 19)) == dt.date(2024, 8, 16)

    def test_skips_weekend_and_holiday_friday(self, calendar):
        # Good Friday 2024-03-29 sits in front of the weekend
        assert calendar.previous_working_day(dt.date(2024, 4, 1)) == dt.date(2024, 3, 28)

    def test_result_is_always_a_trading_day(self, calendar):
        day = dt.date(2024, 1, 1)
        for _ in range(400):
            prev = calendar.previous_working_day(day)
            assert prev < day
            assert calendar.is_trading_day(prev)
            day += dt.timedelta(days=1)


class TestResolveHistoricalRange:
    def test_monday_trading_day(self, calendar):
        now = dt.datetime(2024, 8, 19, 16, 0, tzinfo=IST)
        start, end = calendar.resolve_historical_range(now)
        assert start == dt.datetime(2024, 8, 16, 9, 15, tzinfo=IST)
        assert end == dt.datetime(2024, 8, 19, 15, 30, tzinfo=IST)

    def test_monday_after_holiday_friday(self, calendar):
        now = dt.datetime(2024, 4, 1, 16, 0, tzinfo=IST)
        start, end = calendar.resolve_historical_range(now)
        assert start.date() == dt.date(2024, 3, 28)
        assert end.date() == dt.date(2024, 4, 1)

    def test_saturday_uses_two_previous_working_days(self, calendar):
        now = dt.datetime(2024, 8, 17, 10, 0, tzinfo=IST)
        start, end = calendar.resolve_historical_range(now)
        # Friday 16th is the latest session, Thursday 15th is a holiday
        assert end == dt.datetime(2024, 8, 16, 15, 30, tzinfo=IST)
        assert start == dt.datetime(2024, 8, 14, 9, 15, tzinfo=IST)

    def test_on_a_holiday(self, calendar):
        now = dt.datetime(2024, 8, 15, 12, 0, tzinfo=IST)
        start, end = calendar.resolve_historical_range(now)
        assert start.date() == dt.date(2024, 8, 13)
        assert end.date() == dt.date(2024, 8, 14)

    def test_keeps_timezone(self, calendar):
        start, end = calendar.resolve_historical_range(dt.datetime(2024, 8, 14, 15, 45, tzinfo=IST))
        assert start.tzinfo is IST and end.tzinfo is IST

    @pytest.mark.parametrize(
        "now, expected",
        [
            (dt.datetime(2024, 8, 14, 15, 45), ("2024-08-13 09:15", "2024-08-14 15:30")),
            (dt.datetime(2024, 8, 18, 9, 0), ("2024-08-14 09:15", "2024-08-16 15:30")),
        ],
    )
    def test_candle_format(self, calendar, now, expected):
        assert format_candle_range(calendar.resolve_historical_range(now)) == expected
