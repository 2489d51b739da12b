# scripts/create_indexes.py
"""
Create/ensure MongoDB indexes for the portfolio tracker.

Run from project root:
  - python scripts/create_indexes.py
  - OR: python -m scripts.create_indexes
"""

import asyncio
import os
import sys

# --- Make sure 'portfolio_tracker' is importable when running this file directly ---
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from portfolio_tracker.db import connect_to_mongo, close_mongo_connection
from portfolio_tracker.settings import settings
from portfolio_tracker.mongo_collections import (
    CREDENTIALS,
    STOCK_GAINS,
    PORTFOLIO_SNAPSHOTS,
    RUN_LOGS,
)


async def ensure_indexes() -> None:
    client, db = connect_to_mongo(settings)
    try:
        # CREDENTIALS (one per broker account)
        await db[CREDENTIALS].create_index("clientId")

        # STOCK_GAINS (one per account + symbol, daily rows inside)
        await db[STOCK_GAINS].create_index([("accountCode", 1), ("symbol", 1)], unique=True)
        await db[STOCK_GAINS].create_index([("accountCode", 1), ("entries.date", -1)])

        # PORTFOLIO_SNAPSHOTS (one per account, daily rows inside)
        await db[PORTFOLIO_SNAPSHOTS].create_index("accountCode", unique=True)

        # RUN_LOGS (one per account + day, overwritten on re-run)
        await db[RUN_LOGS].create_index([("accountCode", 1), ("date", -1)], unique=True)
    finally:
        close_mongo_connection(client)


def main() -> None:
    try:
        asyncio.run(ensure_indexes())
        print("✅ Indexes ensured.")
    except Exception as e:
        print(f"❌ Failed to create indexes: {e}")
        raise


if __name__ == "__main__":
    main()
