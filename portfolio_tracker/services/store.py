# portfolio_tracker/services/store.py
from __future__ import annotations
from typing import List, Dict, Any, Optional
from motor.motor_asyncio import AsyncIOMotorDatabase
import datetime as dt
from datetime import timezone
from decimal import Decimal
from pymongo.errors import PyMongoError

from portfolio_tracker.errors import CredentialStoreUnavailable, PersistenceWriteError
from portfolio_tracker.models import AccountCredential, GainResult, LogLine, PortfolioSnapshot
from portfolio_tracker.mongo_collections import CREDENTIALS, STOCK_GAINS, PORTFOLIO_SNAPSHOTS, RUN_LOGS
from portfolio_tracker.services.gains import round_gain
from portfolio_tracker.services.mappers import map_credential, holding_entry


def _to_mongo_safe(value: Any) -> Any:
    """
    Recursively convert values so MongoDB can encode them.
    - date -> ISO string (entries are keyed by day, not instant)
    - tz-aware datetime -> naive UTC datetime
    - Decimal -> float
    - dict/list -> recurse
    """
    if isinstance(value, dt.datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    if isinstance(value, dt.date):
        return value.isoformat()

    if isinstance(value, Decimal):
        return float(value)

    if isinstance(value, dict):
        return {k: _to_mongo_safe(v) for k, v in value.items()}

    if isinstance(value, list):
        return [_to_mongo_safe(v) for v in value]

    return value


def replace_dated_entry_pipeline(date_str: str, entry: Dict[str, Any], extra: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
    """
    Update pipeline that drops any existing `entries` row for `date_str` and
    appends `entry` in one atomic write. Re-running a day replaces its row.
    """
    fields = {
        "entries": {
            "$concatArrays": [
                {
                    "$filter": {
                        "input": {"$ifNull": ["$entries", []]},
                        "as": "e",
                        "cond": {"$ne": ["$$e.date", date_str]},
                    }
                },
                [{"$literal": entry}],
            ]
        },
        "updatedAt": dt.datetime.now(timezone.utc).replace(tzinfo=None),
    }
    if extra:
        fields.update({k: {"$literal": v} for k, v in extra.items()})
    return [{"$set": fields}]


class PortfolioStore:
    """
    All reads/writes for one run cycle go through one store built around a
    DB handle that the caller owns.
    """

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db

    async def list_credentials(self) -> List[AccountCredential]:
        try:
            docs = await self.db[CREDENTIALS].find().to_list(None)
        except PyMongoError as e:
            raise CredentialStoreUnavailable(f"Could not read account credentials: {e}") from e
        return [map_credential(d) for d in docs]

    async def save_stock_gain(self, account_code: str, result: GainResult) -> None:
        date_str = result.date.isoformat()
        entry = _to_mongo_safe(holding_entry(
            result.holding, date_str, round_gain(result.today_gain), result.bought_today,
        ))
        try:
            await self.db[STOCK_GAINS].update_one(
                {"accountCode": account_code, "symbol": result.symbol},
                replace_dated_entry_pipeline(date_str, entry),
                upsert=True,
            )
        except PyMongoError as e:
            raise PersistenceWriteError(f"Could not save {result.symbol} for {date_str}: {e}") from e

    async def save_portfolio_snapshot(self, snapshot: PortfolioSnapshot) -> None:
        date_str = snapshot.date.isoformat()
        entry = {
            "date": date_str,
            "totalTodayGain": round_gain(snapshot.total_today_gain),
            "totalHoldingValue": round_gain(snapshot.total_holding_value),
            "totalInvestment": round_gain(snapshot.total_investment),
            "totalProfitAndLoss": round_gain(snapshot.total_profit_and_loss),
            "totalPnlPercentage": round_gain(snapshot.total_pnl_percentage),
            "holdingsCount": snapshot.holdings_count,
        }
        try:
            await self.db[PORTFOLIO_SNAPSHOTS].update_one(
                {"accountCode": snapshot.account_code},
                replace_dated_entry_pipeline(date_str, entry, extra={"accountName": snapshot.account_name}),
                upsert=True,
            )
        except PyMongoError as e:
            raise PersistenceWriteError(f"Could not save portfolio for {date_str}: {e}") from e

    async def save_run_log(
        self,
        account_code: str,
        account_name: str,
        date: dt.date,
        status: str,
        logs: List[LogLine],
    ) -> None:
        date_str = date.isoformat()
        doc = {
            "accountCode": account_code,
            "accountName": account_name,
            "date": date_str,
            "status": status,
            "logs": [line.model_dump() for line in logs],
            "updatedAt": dt.datetime.now(timezone.utc).replace(tzinfo=None),
        }
        try:
            await self.db[RUN_LOGS].update_one(
                {"accountCode": account_code, "date": date_str},
                {"$set": doc},
                upsert=True,
            )
        except PyMongoError as e:
            raise PersistenceWriteError(f"Could not save run log for {date_str}: {e}") from e

    async def get_run_log(self, account_code: str, date_str: str) -> Optional[Dict[str, Any]]:
        return await self.db[RUN_LOGS].find_one({"accountCode": account_code, "date": date_str}, {"_id": 0})
