# portfolio_tracker/main.py
from contextlib import asynccontextmanager
import asyncio
import datetime as dt
import logging
from zoneinfo import ZoneInfo

from fastapi import FastAPI, Request, Query, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from portfolio_tracker.settings import settings
from portfolio_tracker.db import connect_to_mongo, close_mongo_connection
from portfolio_tracker.logs import configure_logging
from portfolio_tracker.models import LogLine, RunReport
from portfolio_tracker.scheduler import Scheduler
from portfolio_tracker.services.calendar import TradingCalendar, format_candle_range
from portfolio_tracker.services.runner import build_runner
from portfolio_tracker.services.store import PortfolioStore

logger = logging.getLogger(__name__)

ERROR_MESSAGE = "An error occurred while updating portfolios"


# ---------------- helpers & models ----------------

class HealthResponse(BaseModel):
    status: str
    env: str
    version: str
    db_connected: bool

class CalendarResponse(BaseModel):
    day: dt.date
    isTradingDay: bool
    previousWorkingDay: dt.date
    fromDate: str
    toDate: str

# ---------------- lifespan ----------------


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings)
    app.state.mongo_client, app.state.mongodb = connect_to_mongo(settings)
    app.state.runner = build_runner(app.state.mongodb, settings)
    app.state.store = app.state.runner.store

    app.state.scheduler = None
    if settings.scheduler_enabled:
        app.state.scheduler = Scheduler(app.state.runner, settings)
        app.state.scheduler.start()

    logger.info("Server running on http://localhost:%s", settings.port)
    try:
        yield
    finally:
        if app.state.scheduler:
            app.state.scheduler.shutdown()
        close_mongo_connection(app.state.mongo_client)

app = FastAPI(
    title="PortfolioTracker",
    version="0.1.0",
    lifespan=lifespan,
)

# ---------------- trigger ----------------

@app.get("/", response_model=RunReport)
async def update_portfolios(request: Request):
    """
    Reconcile every configured account and return each one's outcome.
    Per-account failures are reported inline; only a pipeline-wide fault
    (e.g. the credential store is unreachable) turns into a 500.
    """
    try:
        return await request.app.state.runner.run()
    except Exception as e:
        logger.exception("An error occurred while iterating through users")
        return JSONResponse({"message": ERROR_MESSAGE, "error": str(e)}, status_code=500)


@app.websocket("/ws/update")
async def stream_update(websocket: WebSocket):
    """
    Same run as GET /, streamed: one {"event": "log"} per line, then a final
    updateComplete (report) or updateError event.
    """
    await websocket.accept()
    queue: asyncio.Queue = asyncio.Queue()
    connected = True
    outcome_sent = False

    def on_log_line(line: LogLine):
        if connected:
            queue.put_nowait({"event": "log", **line.model_dump()})

    def on_done(t: asyncio.Task):
        if not connected and not t.cancelled() and t.exception():
            logger.error("Update run failed after stream client left", exc_info=t.exception())

    task = asyncio.create_task(websocket.app.state.runner.run(listeners=[on_log_line]))
    task.add_done_callback(on_done)
    try:
        while not (task.done() and queue.empty()):
            try:
                event = await asyncio.wait_for(queue.get(), timeout=0.25)
            except asyncio.TimeoutError:
                continue
            await websocket.send_json(event)

        outcome_sent = True
        try:
            report = task.result()
            await websocket.send_json({"event": "updateComplete", **report.model_dump()})
        except Exception as e:
            logger.exception("Streaming update failed")
            await websocket.send_json({"event": "updateError", "message": ERROR_MESSAGE, "error": str(e)})
        await websocket.close()
    except WebSocketDisconnect:
        # the run keeps going; it is not cancellable mid-flight
        connected = False
        while not queue.empty():
            queue.get_nowait()
        if task.done() and not outcome_sent and not task.cancelled() and task.exception():
            logger.error("Update run failed", exc_info=task.exception())
        logger.info("Update stream client disconnected; run continues in background")

# ---------------- health & debug ----------------

@app.get("/healthz", response_model=HealthResponse)
async def healthz(request: Request):
    try:
        await request.app.state.mongodb.command("ping")
        db_ok = True
    except Exception as e:
        logger.warning("Mongo health ping failed: %r", e)
        db_ok = False
    return HealthResponse(
        status="ok",
        env=settings.app_env,
        version="0.1.0",
        db_connected=db_ok,
    )

@app.get("/debug/calendar", response_model=CalendarResponse)
async def debug_calendar(day: dt.date | None = Query(None)):
    """Trading-day check plus the candle window a run on `day` would use."""
    tz = ZoneInfo(settings.timezone)
    now = dt.datetime.now(tz)
    if day:
        now = dt.datetime.combine(day, now.timetz())
    calendar = TradingCalendar(settings.trading_holidays)
    from_ts, to_ts = format_candle_range(calendar.resolve_historical_range(now))
    return CalendarResponse(
        day=now.date(),
        isTradingDay=calendar.is_trading_day(now),
        previousWorkingDay=calendar.previous_working_day(now),
        fromDate=from_ts,
        toDate=to_ts,
    )

@app.get("/debug/run-log")
async def debug_run_log(request: Request, accountCode: str, date: dt.date):
    store: PortfolioStore = request.app.state.store
    doc = await store.get_run_log(accountCode, date.isoformat())
    if not doc:
        return JSONResponse({"error": "No run log for this account/date"}, status_code=404)
    return doc
