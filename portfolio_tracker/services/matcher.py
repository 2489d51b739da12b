# portfolio_tracker/services/matcher.py
from __future__ import annotations

from typing import Iterable, NamedTuple, Optional

from portfolio_tracker.models import Holding, TradeRecord


class MatchResult(NamedTuple):
    bought_today: bool
    fill_price: Optional[float] = None
    fill_size: Optional[int] = None


NOT_BOUGHT_TODAY = MatchResult(False)


def match_today_buy(holding: Holding, trades: Iterable[TradeRecord]) -> MatchResult:
    """
    First BUY in today's trade book for the holding's symbol wins.
    Several same-day buys are NOT averaged; only the first fill counts.
    """
    for trade in trades:
        if trade.symbol == holding.symbol and trade.side == "BUY":
            return MatchResult(True, trade.fill_price, trade.fill_size)
    return NOT_BOUGHT_TODAY
