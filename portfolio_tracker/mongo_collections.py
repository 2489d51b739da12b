# portfolio_tracker/mongo_collections.py

CREDENTIALS = "account_credentials"
STOCK_GAINS = "stock_gains"
PORTFOLIO_SNAPSHOTS = "portfolio_snapshots"
RUN_LOGS = "run_logs"

# Notes:
# - STOCK_GAINS: one doc per (accountCode, symbol), per-day rows in `entries`.
# - PORTFOLIO_SNAPSHOTS: one doc per accountCode, per-day rows in `entries`.
# - RUN_LOGS: one doc per (accountCode, date).
# - A per-day row is replaced, never duplicated, when a day is re-run.
