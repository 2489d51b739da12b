# portfolio_tracker/services/calendar.py
"""
NSE trading-day arithmetic.

Holidays come from configuration, not from any computed rule, so the same
list always yields the same answer.
"""
from __future__ import annotations

import datetime as dt
from typing import Iterable, Tuple

MARKET_OPEN = dt.time(9, 15)
MARKET_CLOSE = dt.time(15, 30)
CANDLE_TS_FORMAT = "%Y-%m-%d %H:%M"


def _as_date(day: dt.date | dt.datetime) -> dt.date:
    return day.date() if isinstance(day, dt.datetime) else day


class TradingCalendar:
    def __init__(self, holidays: Iterable[dt.date] = ()):
        self.holidays = frozenset(_as_date(h) for h in holidays)

    def is_trading_day(self, day: dt.date | dt.datetime) -> bool:
        day = _as_date(day)
        return day.weekday() < 5 and day not in self.holidays

    def previous_working_day(self, day: dt.date | dt.datetime) -> dt.date:
        """Nearest trading day strictly before `day`."""
        day = _as_date(day) - dt.timedelta(days=1)
        # weekends recur every 7 days and the holiday set is finite
        while not self.is_trading_day(day):
            day -= dt.timedelta(days=1)
        return day

    def resolve_historical_range(self, now: dt.datetime) -> Tuple[dt.datetime, dt.datetime]:
        """
        Window for daily candles whose first row closes the prior session.

        On a trading day: previous working day 09:15 -> today 15:30.
        Otherwise: the two most recent working days before `now`.
        """
        today = now.date()
        if self.is_trading_day(today):
            from_day = self.previous_working_day(today)
            to_day = today
        else:
            to_day = self.previous_working_day(today)
            from_day = self.previous_working_day(to_day)

        tz = now.tzinfo
        return (
            dt.datetime.combine(from_day, MARKET_OPEN, tzinfo=tz),
            dt.datetime.combine(to_day, MARKET_CLOSE, tzinfo=tz),
        )


def format_candle_range(window: Tuple[dt.datetime, dt.datetime]) -> Tuple[str, str]:
    """SmartAPI expects 'YYYY-MM-DD HH:MM' strings."""
    start, end = window
    return start.strftime(CANDLE_TS_FORMAT), end.strftime(CANDLE_TS_FORMAT)
