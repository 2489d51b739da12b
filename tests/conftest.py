"""
Shared fakes and fixtures for the reconciliation tests.
"""
from __future__ import annotations

import asyncio
import datetime as dt
from zoneinfo import ZoneInfo

import pytest

from portfolio_tracker.errors import CredentialStoreUnavailable, PersistenceWriteError
from portfolio_tracker.models import AccountCredential, Session
from portfolio_tracker.services.calendar import TradingCalendar
from portfolio_tracker.services.reconcile import Reconciler
from portfolio_tracker.services.retry import ResilientCaller

IST = ZoneInfo("Asia/Kolkata")
HOLIDAYS = [dt.date(2024, 3, 29), dt.date(2024, 8, 15), dt.date(2024, 10, 2)]

# Wednesday, a regular trading day
RUN_AT = dt.datetime(2024, 8, 14, 15, 45, tzinfo=IST)


def raw_holding(symbol, quantity=100, ltp=12.0, close=10.0, **extra):
    row = {
        "tradingsymbol": symbol,
        "exchange": "NSE",
        "isin": "INE000000000",
        "t1quantity": 0,
        "realisedquantity": quantity,
        "quantity": quantity,
        "authorisedquantity": 0,
        "product": "DELIVERY",
        "collateralquantity": None,
        "collateraltype": None,
        "haircut": 0,
        "averageprice": 9.5,
        "ltp": ltp,
        "symboltoken": "1234",
        "close": close,
        "profitandloss": 250,
        "pnlpercentage": 26.3,
    }
    row.update(extra)
    return row


def raw_trade(symbol, side="BUY", price=11.0, size=40):
    return {
        "exchange": "NSE",
        "producttype": "DELIVERY",
        "tradingsymbol": symbol,
        "transactiontype": side,
        "fillprice": price,
        "fillsize": str(size),
        "orderid": "240814000000001",
        "fillid": "1",
        "filltime": "10:15:00",
    }


def make_credential(account_id="A100", name="Rahul"):
    return AccountCredential(
        account_id=account_id,
        account_name=name,
        api_key="key",
        login_id=account_id,
        password="1234",
        totp_seed="JBSWY3DPEHPK3PXP",
    )


class FakeBroker:
    """Scripted stand-in for SmartApiClient."""

    def __init__(
        self,
        account_code="A100",
        name="Rahul",
        holdings=None,
        trades=None,
        candles=None,
        login_error=None,
        holdings_errors=(),
        trades_error=None,
        login_delay=0.0,
    ):
        self.account_code = account_code
        self.name = name
        self.holdings = holdings if holdings is not None else []
        self.trades = trades if trades is not None else []
        self.candles = candles if candles is not None else []
        self.login_error = login_error
        self.holdings_errors = list(holdings_errors)
        self.trades_error = trades_error
        self.login_delay = login_delay
        self.candle_params = []
        self.holdings_calls = 0

    async def login(self):
        if self.login_delay:
            await asyncio.sleep(self.login_delay)
        if self.login_error:
            raise self.login_error
        return Session(auth_token="jwt", refresh_token="rt", display_name=self.name, account_code=self.account_code)

    async def get_holdings(self):
        self.holdings_calls += 1
        if self.holdings_errors:
            raise self.holdings_errors.pop(0)
        return self.holdings

    async def get_trade_book(self):
        if self.trades_error:
            raise self.trades_error
        return self.trades

    async def get_candle_data(self, params):
        self.candle_params.append(params)
        return self.candles


class InMemoryStore:
    """PortfolioStore with the same keys and overwrite rules, kept in dicts."""

    def __init__(self, credentials=(), fail_symbols=(), fail_snapshot=False, fail_run_log=False, unreachable=False):
        self.credentials = list(credentials)
        self.fail_symbols = set(fail_symbols)
        self.fail_snapshot = fail_snapshot
        self.fail_run_log = fail_run_log
        self.unreachable = unreachable
        self.stock_gains = {}      # (accountCode, symbol) -> {date: GainResult}
        self.snapshots = {}        # accountCode -> {date: PortfolioSnapshot}
        self.run_logs = {}         # (accountCode, date) -> doc
        self.snapshot_attempts = 0

    async def list_credentials(self):
        if self.unreachable:
            raise CredentialStoreUnavailable("Could not read account credentials: connection refused")
        return list(self.credentials)

    async def save_stock_gain(self, account_code, result):
        if result.symbol in self.fail_symbols:
            raise PersistenceWriteError(f"Could not save {result.symbol}")
        self.stock_gains.setdefault((account_code, result.symbol), {})[result.date] = result

    async def save_portfolio_snapshot(self, snapshot):
        self.snapshot_attempts += 1
        if self.fail_snapshot:
            raise PersistenceWriteError("Could not save portfolio")
        self.snapshots.setdefault(snapshot.account_code, {})[snapshot.date] = snapshot

    async def save_run_log(self, account_code, account_name, date, status, logs):
        if self.fail_run_log:
            raise PersistenceWriteError("Could not save run log")
        self.run_logs[(account_code, date)] = {
            "accountName": account_name,
            "status": status,
            "logs": list(logs),
        }


@pytest.fixture
def calendar():
    return TradingCalendar(HOLIDAYS)


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def caller(sleeps):
    async def fake_sleep(seconds):
        sleeps.append(seconds)

    return ResilientCaller(max_attempts=5, backoff_base=1, sleep=fake_sleep)


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def make_reconciler(store, calendar, caller):
    def _make(brokers, **kwargs):
        """`brokers` maps account_id -> FakeBroker, or is a single FakeBroker."""
        if isinstance(brokers, FakeBroker):
            factory = lambda credential: brokers
        else:
            factory = lambda credential: brokers[credential.account_id]
        kwargs.setdefault("candle_delay", 0)
        kwargs.setdefault("clock", lambda: RUN_AT)
        return Reconciler(kwargs.pop("store", store), factory, calendar, caller, **kwargs)

    return _make

