# portfolio_tracker/services/gains.py
from __future__ import annotations

import datetime as dt
from typing import Iterable, List

from portfolio_tracker.models import GainResult, Holding, PortfolioSnapshot
from portfolio_tracker.services.matcher import MatchResult


def round_gain(value: float) -> float:
    return round(value, 2)


def compute_today_gain(holding: Holding, match: MatchResult) -> float:
    """
    Bought today:  (ltp - fill) * fill_size + (ltp - close) * carried_qty
    Held over:     (ltp - close) * quantity

    carried_qty is the part of the position that predates today and only
    counts when positive. A missing or non-positive prior close means no
    carried move.
    """
    ltp = holding.last_traded_price
    close = holding.prior_close if holding.prior_close is not None and holding.prior_close > 0 else ltp

    if match.bought_today:
        fill_price = match.fill_price if match.fill_price is not None else ltp
        fill_size = match.fill_size or 0
        gain = (ltp - fill_price) * fill_size
        carried = holding.quantity - fill_size
        if carried > 0:
            gain += (ltp - close) * carried
        return gain

    return (ltp - close) * holding.quantity


def total_today_gain(gains: Iterable[float]) -> float:
    return sum(gains, 0.0)


def summarize_portfolio(
    account_code: str,
    account_name: str,
    date: dt.date,
    results: List[GainResult],
) -> PortfolioSnapshot:
    holding_value = sum(r.holding.last_traded_price * r.holding.quantity for r in results)
    investment = sum(r.holding.average_price * r.holding.quantity for r in results)
    pnl = sum(r.holding.overall_pnl for r in results)
    pnl_pct = (pnl / investment * 100) if investment > 0 else 0.0

    return PortfolioSnapshot(
        account_code=account_code,
        account_name=account_name,
        date=date,
        total_today_gain=total_today_gain(r.today_gain for r in results),
        total_holding_value=holding_value,
        total_investment=investment,
        total_profit_and_loss=pnl,
        total_pnl_percentage=pnl_pct,
        holdings_count=len(results),
    )
