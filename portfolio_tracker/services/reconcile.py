# portfolio_tracker/services/reconcile.py
"""
Per-account reconciliation pipeline.

    Authenticating -> FetchingHoldings -> FetchingTrades -> Computing
        -> Persisting -> Done

Any fatal error moves the run to Failed. The run log is persisted for the
(account, day) key either way.
"""
from __future__ import annotations

import asyncio
import datetime as dt
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, List, Optional
from zoneinfo import ZoneInfo

from portfolio_tracker.errors import (
    BrokerError,
    HoldingsUnavailable,
    PersistenceWriteError,
    ReconciliationError,
    RetriesExhausted,
    TradeBookUnavailable,
)
from portfolio_tracker.models import (
    AccountCredential,
    AccountReport,
    GainResult,
    Holding,
    PortfolioSnapshot,
    Session,
    TradeRecord,
)
from portfolio_tracker.services.calendar import TradingCalendar, format_candle_range
from portfolio_tracker.services.gains import compute_today_gain, round_gain, summarize_portfolio
from portfolio_tracker.services.mappers import map_holdings, map_trades
from portfolio_tracker.services.matcher import match_today_buy
from portfolio_tracker.services.retry import ResilientCaller
from portfolio_tracker.services.run_log import LogListener, RunLog
from portfolio_tracker.services.smartapi_client import IBrokerClient
from portfolio_tracker.services.store import PortfolioStore

logger = logging.getLogger(__name__)

SUCCESS_STATUS = "Successfully processed portfolio"


class RunState(str, Enum):
    AUTHENTICATING = "Authenticating"
    FETCHING_HOLDINGS = "FetchingHoldings"
    FETCHING_TRADES = "FetchingTrades"
    COMPUTING = "Computing"
    PERSISTING = "Persisting"
    DONE = "Done"
    FAILED = "Failed"


@dataclass
class AccountRun:
    credential: AccountCredential
    today: dt.date
    now: dt.datetime
    run_log: RunLog
    state: RunState = RunState.AUTHENTICATING
    session: Optional[Session] = None

    @property
    def account_code(self) -> str:
        return self.session.account_code if self.session else self.credential.account_id

    @property
    def account_name(self) -> str:
        return self.session.display_name if self.session else self.credential.account_name

    def transition(self, state: RunState) -> None:
        logger.debug("%s: %s -> %s", self.account_code, self.state.value, state.value)
        self.state = state

    def log(self, message: str) -> None:
        self.run_log.log(message)


class Reconciler:
    def __init__(
        self,
        store: PortfolioStore,
        client_factory: Callable[[AccountCredential], IBrokerClient],
        calendar: TradingCalendar,
        caller: ResilientCaller,
        *,
        default_exchange: str = "NSE",
        candle_delay: float = 0.5,
        account_timeout: Optional[float] = None,
        clock: Optional[Callable[[], dt.datetime]] = None,
        tz: str = "Asia/Kolkata",
    ):
        self.store = store
        self.client_factory = client_factory
        self.calendar = calendar
        self.caller = caller
        self.default_exchange = default_exchange
        self.candle_delay = candle_delay
        self.account_timeout = account_timeout
        self.clock = clock or (lambda: dt.datetime.now(ZoneInfo(tz)))

    async def reconcile_account(
        self,
        credential: AccountCredential,
        listeners: Iterable[LogListener] = (),
    ) -> AccountReport:
        now = self.clock()
        run = AccountRun(
            credential=credential,
            today=now.date(),
            now=now,
            run_log=RunLog(self.clock, listeners),
        )

        try:
            await asyncio.wait_for(self._pipeline(run), timeout=self.account_timeout)
            status = SUCCESS_STATUS
        except asyncio.TimeoutError:
            status = self._fail(run, f"timed out after {self.account_timeout:g} seconds while {run.state.value}")
        except ReconciliationError as e:
            status = self._fail(run, str(e))
        except Exception as e:
            logger.exception("Unexpected failure for %s", run.account_code)
            status = self._fail(run, str(e))

        try:
            await self.store.save_run_log(
                run.account_code, run.account_name, run.today, status, run.run_log.entries,
            )
        except PersistenceWriteError as e:
            run.run_log.error(f"Error storing run log for {run.account_code}: {e}")

        return AccountReport(
            accountId=run.account_code,
            accountName=run.account_name,
            status=status,
            logs=list(run.run_log.entries),
        )

    @staticmethod
    def _fail(run: AccountRun, reason: str) -> str:
        run.transition(RunState.FAILED)
        run.run_log.error(f"Error processing portfolio for {run.account_name}: {reason}")
        return f"Error: {reason}"

    # ---------------- pipeline ----------------

    async def _pipeline(self, run: AccountRun) -> None:
        run.transition(RunState.AUTHENTICATING)
        run.log("Logging in and fetching portfolio data...")
        client = self.client_factory(run.credential)
        run.session = await client.login()
        run.log(f"Successfully logged in as {run.session.display_name} with client code {run.session.account_code}")

        run.transition(RunState.FETCHING_HOLDINGS)
        holdings = await self._fetch_holdings(client, run)
        holdings = [await self._with_prior_close(client, h, run) for h in holdings]

        run.transition(RunState.FETCHING_TRADES)
        trades = await self._fetch_trades(client, run)

        run.transition(RunState.COMPUTING)
        results = self._compute(holdings, trades, run)
        snapshot = summarize_portfolio(run.account_code, run.account_name, run.today, results)

        run.transition(RunState.PERSISTING)
        await self._persist(results, snapshot, run)

        run.transition(RunState.DONE)

    async def _fetch_holdings(self, client: IBrokerClient, run: AccountRun) -> List[Holding]:
        run.log(f"Fetching user holdings for {run.account_name} with client code {run.account_code}...")
        try:
            raw = await self.caller.execute(client.get_holdings, log=run.log)
        except (RetriesExhausted, BrokerError) as e:
            raise HoldingsUnavailable(f"Holdings unavailable for {run.account_name}: {e}") from e

        holdings = map_holdings(raw)
        run.log(f"Holdings fetched: {len(holdings)} stocks for {run.account_name}")
        return holdings

    async def _with_prior_close(self, client: IBrokerClient, holding: Holding, run: AccountRun) -> Holding:
        """Fill in a missing previous close from daily candles; best-effort."""
        if holding.prior_close is not None and holding.prior_close > 0:
            return holding

        run.log(f"Fetching OHLC data for {holding.symbol}...")
        from_ts, to_ts = format_candle_range(self.calendar.resolve_historical_range(run.now))
        run.log(f"From date: {from_ts}, To date: {to_ts}")
        params = {
            "exchange": holding.exchange or self.default_exchange,
            "symboltoken": holding.symbol_token,
            "interval": "ONE_DAY",
            "fromdate": from_ts,
            "todate": to_ts,
        }

        async def _fetch():
            if self.candle_delay:
                await asyncio.sleep(self.candle_delay)
            return await client.get_candle_data(params)

        try:
            rows = await self.caller.execute(_fetch, log=run.log)
        except (RetriesExhausted, BrokerError) as e:
            run.run_log.warning(f"Error fetching OHLC data for {holding.symbol}: {e}")
            return holding
        if not rows:
            run.run_log.warning(f"No historical data found for {holding.symbol}")
            return holding
        try:
            close = float(rows[0][4])
        except (IndexError, TypeError, ValueError) as e:
            run.run_log.warning(f"Unreadable candle for {holding.symbol}: {e}")
            return holding

        run.log(f"Previous close for {holding.symbol}: {close}")
        return holding.model_copy(update={"prior_close": close})

    async def _fetch_trades(self, client: IBrokerClient, run: AccountRun) -> List[TradeRecord]:
        """Best-effort: any failure here degrades to an empty trade list."""
        try:
            try:
                raw = await self.caller.execute(client.get_trade_book, log=run.log)
            except Exception as e:
                raise TradeBookUnavailable(str(e)) from e
            trades = map_trades(raw)
        except TradeBookUnavailable as e:
            run.run_log.warning(f"Trade book unavailable, treating all holdings as held from previous days: {e}")
            return []
        run.log(f"Trade book fetched: {len(trades)} trades")
        return trades

    def _compute(self, holdings: List[Holding], trades: List[TradeRecord], run: AccountRun) -> List[GainResult]:
        results = []
        for holding in holdings:
            run.log(f"Processing stock: {holding.symbol}")
            match = match_today_buy(holding, trades)
            gain = compute_today_gain(holding, match)
            if match.bought_today:
                run.log(f"Stock {holding.symbol} was bought today. Calculated today_gain: {gain}")
            else:
                run.log(f"Stock {holding.symbol} was held from previous days. Calculated today_gain: {gain}")
            results.append(GainResult(
                symbol=holding.symbol,
                date=run.today,
                today_gain=gain,
                bought_today=match.bought_today,
                holding=holding,
            ))
        return results

    async def _persist(self, results: List[GainResult], snapshot: PortfolioSnapshot, run: AccountRun) -> None:
        day = run.today.isoformat()
        for result in results:
            try:
                await self.store.save_stock_gain(run.account_code, result)
                run.log(f"Successfully added or updated stock {result.symbol} for {day}")
            except PersistenceWriteError as e:
                run.run_log.error(f"Error adding or updating stock {result.symbol} for {day}: {e}")

        run.log(f"Updating total portfolio for {run.account_code} on {day}")
        try:
            await self.store.save_portfolio_snapshot(snapshot)
            run.log(f"Total portfolio gain today for {run.account_name}: {round_gain(snapshot.total_today_gain)}")
        except PersistenceWriteError as e:
            run.run_log.error(f"Error updating portfolio for {run.account_name}: {e}")
