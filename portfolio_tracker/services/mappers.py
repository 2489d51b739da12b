# portfolio_tracker/services/mappers.py
from __future__ import annotations
from typing import Any, Dict, List, Optional
import logging

from pydantic import ValidationError

from portfolio_tracker.errors import HoldingsUnavailable, TradeBookUnavailable
from portfolio_tracker.models import AccountCredential, Holding, TradeRecord

logger = logging.getLogger(__name__)


def _num(value: Any, default: float = 0.0) -> float:
    if value in (None, ""):
        return default
    return float(value)


def _int(value: Any, default: int = 0) -> int:
    if value in (None, ""):
        return default
    return int(float(value))


def map_credential(doc: Dict[str, Any]) -> AccountCredential:
    # older docs keep apiKey as a one-element list
    api_key = doc.get("apiKey")
    if isinstance(api_key, (list, tuple)):
        api_key = api_key[0] if api_key else ""
    account_id = str(doc.get("accountId") or doc.get("clientId") or "")
    return AccountCredential(
        account_id=account_id,
        account_name=doc.get("accountName") or doc.get("clientName") or "",
        api_key=api_key or "",
        login_id=str(doc.get("loginId") or account_id),
        password=str(doc.get("password") or ""),
        totp_seed=doc.get("totpSeed") or doc.get("totp_secret") or "",
    )


def map_holding(h: Dict[str, Any]) -> Holding:
    close = h.get("close")
    return Holding(
        symbol=h["tradingsymbol"],
        exchange=h.get("exchange") or "",
        quantity=_int(h.get("quantity")),
        realised_quantity=_int(h.get("realisedquantity")),
        authorised_quantity=_int(h.get("authorisedquantity")),
        product=h.get("product") or "",
        average_price=_num(h.get("averageprice")),
        symbol_token=str(h.get("symboltoken") or ""),
        last_traded_price=_num(h.get("ltp")),
        prior_close=_num(close) if close not in (None, "") else None,
        overall_pnl=_num(h.get("profitandloss")),
        pnl_percentage=_num(h.get("pnlpercentage")),
    )


def map_holdings(raw: Optional[List[Dict[str, Any]]]) -> List[Holding]:
    if raw is None:
        raise HoldingsUnavailable("Holdings data is undefined or unavailable")
    if not isinstance(raw, list):
        raise HoldingsUnavailable(f"Unexpected holdings payload: {type(raw).__name__}")
    try:
        return [map_holding(h) for h in raw]
    except (KeyError, TypeError, ValueError, ValidationError) as e:
        raise HoldingsUnavailable(f"Malformed holding row: {e}") from e


def map_trades(raw: Optional[List[Dict[str, Any]]]) -> List[TradeRecord]:
    """Rows that can't be read are dropped; the trade book is best-effort."""
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise TradeBookUnavailable(f"Unexpected trade book payload: {type(raw).__name__}")
    out = []
    for t in raw:
        try:
            out.append(TradeRecord(
                symbol=t["tradingsymbol"],
                side=str(t.get("transactiontype", "")).upper(),
                fill_price=_num(t.get("fillprice")),
                fill_size=_int(t.get("fillsize")),
            ))
        except (KeyError, TypeError, ValueError, ValidationError) as e:
            logger.debug("Skipping unreadable trade row %r: %s", t, e)
    return out


def holding_entry(holding: Holding, date_str: str, today_gain: float, bought_today: bool) -> Dict[str, Any]:
    """Per-day row stored under a stock's `entries`."""
    return {
        "date": date_str,
        "exchange": holding.exchange,
        "quantity": holding.quantity,
        "realisedQuantity": holding.realised_quantity,
        "authorisedQuantity": holding.authorised_quantity,
        "product": holding.product,
        "averagePrice": holding.average_price,
        "symbolToken": holding.symbol_token,
        "lastTradedPrice": holding.last_traded_price,
        "priorClose": holding.prior_close,
        "overallPnL": holding.overall_pnl,
        "pnlPercentage": holding.pnl_percentage,
        "boughtToday": bought_today,
        "todayGain": today_gain,
    }
