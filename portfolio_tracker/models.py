# portfolio_tracker/models.py
from __future__ import annotations

import datetime as dt
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict


# ---------------- inputs (read-only snapshots) ----------------

class AccountCredential(BaseModel):
    model_config = ConfigDict(frozen=True)

    account_id: str
    account_name: str = ""
    api_key: str
    login_id: str
    password: str
    totp_seed: str


class Session(BaseModel):
    model_config = ConfigDict(frozen=True)

    auth_token: str
    refresh_token: str = ""
    display_name: str
    account_code: str


class Holding(BaseModel):
    model_config = ConfigDict(frozen=True)

    symbol: str
    exchange: str = ""
    quantity: int = 0
    realised_quantity: int = 0
    authorised_quantity: int = 0
    product: str = ""
    average_price: float = 0.0
    symbol_token: str = ""
    last_traded_price: float = 0.0
    prior_close: Optional[float] = None
    overall_pnl: float = 0.0
    pnl_percentage: float = 0.0


class TradeRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    symbol: str
    side: Literal["BUY", "SELL"]
    fill_price: float
    fill_size: int


# ---------------- derived ----------------

class GainResult(BaseModel):
    symbol: str
    date: dt.date
    today_gain: float          # full precision; rounded only when persisted
    bought_today: bool
    holding: Holding


class PortfolioSnapshot(BaseModel):
    account_code: str
    account_name: str
    date: dt.date
    total_today_gain: float
    total_holding_value: float
    total_investment: float
    total_profit_and_loss: float
    total_pnl_percentage: float
    holdings_count: int


# ---------------- reports (wire shape) ----------------

class LogLine(BaseModel):
    timestamp: str
    message: str


class AccountReport(BaseModel):
    accountId: str
    accountName: str
    status: str
    logs: List[LogLine]


class RunReport(BaseModel):
    message: str
    logs: List[AccountReport]
