# portfolio_tracker/scheduler.py
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
import datetime as dt
import logging
from zoneinfo import ZoneInfo

from portfolio_tracker.services.calendar import TradingCalendar
from portfolio_tracker.services.runner import ReconciliationRunner
from portfolio_tracker.settings import Settings

logger = logging.getLogger(__name__)


class Scheduler:
    def __init__(self, runner: ReconciliationRunner, cfg: Settings):
        self.runner = runner
        self.cfg = cfg
        self.calendar = TradingCalendar(cfg.trading_holidays)
        self.scheduler = AsyncIOScheduler(timezone=cfg.timezone)

    def start(self):
        # Once per weekday after the close; keep only one instance if the previous is still running
        self.scheduler.add_job(
            self.daily_reconciliation_job,
            CronTrigger(
                day_of_week="mon-fri",
                hour=self.cfg.schedule_hour,
                minute=self.cfg.schedule_minute,
                timezone=self.cfg.timezone,
            ),
            id="daily-reconciliation",
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()

    def shutdown(self):
        if getattr(self.scheduler, "running", False):
            self.scheduler.shutdown(wait=False)

    async def daily_reconciliation_job(self):
        today = dt.datetime.now(ZoneInfo(self.cfg.timezone)).date()
        if not self.calendar.is_trading_day(today):
            logger.info("[Scheduler] %s is a market holiday, skipping", today)
            return
        try:
            report = await self.runner.run()
        except Exception:
            logger.exception("[Scheduler] Daily reconciliation failed")
            return
        for account in report.logs:
            logger.info("[Scheduler] %s (%s): %s", account.accountId, account.accountName, account.status)
