# portfolio_tracker/errors.py
"""
Error taxonomy for a reconciliation run.

Fatal to one account's run: AuthenticationError, RetriesExhausted,
HoldingsUnavailable. Logged and skipped: TradeBookUnavailable,
PersistenceWriteError. CredentialStoreUnavailable aborts the whole run.
"""


class ReconciliationError(Exception):
    pass


class AuthenticationError(ReconciliationError):
    pass


class BrokerError(ReconciliationError):
    """Upstream SmartAPI call failed."""


class RateLimitError(BrokerError):
    """Upstream rejected the call for exceeding its access rate."""


class RetriesExhausted(ReconciliationError):
    pass


class HoldingsUnavailable(ReconciliationError):
    pass


class TradeBookUnavailable(ReconciliationError):
    pass


class PersistenceWriteError(ReconciliationError):
    pass


class CredentialStoreUnavailable(ReconciliationError):
    pass
