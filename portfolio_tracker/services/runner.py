# portfolio_tracker/services/runner.py
from __future__ import annotations

import asyncio
import functools
import logging
from typing import Iterable

from portfolio_tracker.models import AccountCredential, AccountReport, RunReport
from portfolio_tracker.services.reconcile import Reconciler
from portfolio_tracker.services.run_log import LogListener
from portfolio_tracker.services.store import PortfolioStore

logger = logging.getLogger(__name__)

COMPLETED_MESSAGE = "Portfolio update process completed successfully"


class ReconciliationRunner:
    """
    Runs every configured account through the Reconciler.

    Accounts run concurrently, capped by a semaphore. Triggered runs are
    serialized so one account never has two pipelines at the same time.
    """

    def __init__(self, store: PortfolioStore, reconciler: Reconciler, *, max_concurrency: int = 4):
        self.store = store
        self.reconciler = reconciler
        self.max_concurrency = max(1, max_concurrency)
        self._run_lock = asyncio.Lock()

    async def run(self, listeners: Iterable[LogListener] = ()) -> RunReport:
        listeners = list(listeners)
        async with self._run_lock:
            logger.info("Starting the portfolio update process for all users...")
            credentials = await self.store.list_credentials()
            logger.info("Loaded %d account(s)", len(credentials))

            semaphore = asyncio.Semaphore(self.max_concurrency)

            async def _one(credential: AccountCredential) -> AccountReport:
                async with semaphore:
                    return await self.reconciler.reconcile_account(credential, listeners)

            reports = await asyncio.gather(*(_one(c) for c in credentials))

        failed = sum(1 for r in reports if r.status.startswith("Error"))
        logger.info("Portfolio update finished: %d ok, %d failed", len(reports) - failed, failed)
        return RunReport(message=COMPLETED_MESSAGE, logs=list(reports))


def build_runner(db, cfg=None, client_factory=None) -> ReconciliationRunner:
    """Wire the production pipeline from settings around an open DB handle."""
    from portfolio_tracker.services.calendar import TradingCalendar
    from portfolio_tracker.services.retry import ResilientCaller
    from portfolio_tracker.services.smartapi_client import SmartApiClient
    from portfolio_tracker.settings import settings

    cfg = cfg or settings
    store = PortfolioStore(db)
    reconciler = Reconciler(
        store,
        client_factory or functools.partial(SmartApiClient, rate_limit_marker=cfg.rate_limit_marker),
        TradingCalendar(cfg.trading_holidays),
        ResilientCaller(
            max_attempts=cfg.max_attempts,
            backoff_base=cfg.backoff_base_seconds,
            rate_limit_marker=cfg.rate_limit_marker,
        ),
        default_exchange=cfg.default_exchange,
        candle_delay=cfg.candle_request_delay_seconds,
        account_timeout=cfg.account_timeout_seconds,
        tz=cfg.timezone,
    )
    return ReconciliationRunner(store, reconciler, max_concurrency=cfg.max_concurrent_accounts)
