"""
Tests for services/mappers.py - SmartAPI payloads to domain models.
"""
import pytest

from portfolio_tracker.errors import HoldingsUnavailable, TradeBookUnavailable
from portfolio_tracker.services.mappers import (
    holding_entry,
    map_credential,
    map_holdings,
    map_trades,
)

from conftest import raw_holding, raw_trade


class TestMapHoldings:
    def test_maps_smartapi_row(self):
        [h] = map_holdings([raw_holding("SBIN-EQ", quantity=25, ltp="812.35", close="805.10")])
        assert h.symbol == "SBIN-EQ"
        assert h.exchange == "NSE"
        assert h.quantity == 25
        assert h.realised_quantity == 25
        assert h.product == "DELIVERY"
        assert h.average_price == 9.5
        assert h.symbol_token == "1234"
        assert h.last_traded_price == pytest.approx(812.35)
        assert h.prior_close == pytest.approx(805.10)
        assert h.overall_pnl == 250
        assert h.pnl_percentage == pytest.approx(26.3)

    def test_missing_close_is_none(self):
        [h] = map_holdings([raw_holding("SBIN-EQ", close=None)])
        assert h.prior_close is None

    def test_empty_list(self):
        assert map_holdings([]) == []

    def test_missing_payload(self):
        with pytest.raises(HoldingsUnavailable, match="undefined or unavailable"):
            map_holdings(None)

    def test_wrong_payload_type(self):
        with pytest.raises(HoldingsUnavailable):
            map_holdings({"tradingsymbol": "SBIN-EQ"})

    def test_malformed_row(self):
        with pytest.raises(HoldingsUnavailable, match="Malformed"):
            map_holdings([{"quantity": 10}])


class TestMapTrades:
    def test_maps_rows(self):
        [t] = map_trades([raw_trade("SBIN-EQ", side="buy", price="801.5", size=10)])
        assert t.symbol == "SBIN-EQ"
        assert t.side == "BUY"
        assert t.fill_price == pytest.approx(801.5)
        assert t.fill_size == 10

    def test_none_is_empty(self):
        assert map_trades(None) == []

    def test_skips_unreadable_rows(self):
        rows = [raw_trade("A"), {"fillprice": 1}, raw_trade("B", side="HOLD"), raw_trade("C", price="n/a")]
        assert [t.symbol for t in map_trades(rows)] == ["A"]

    def test_wrong_payload_type(self):
        with pytest.raises(TradeBookUnavailable):
            map_trades("no trades")


class TestMapCredential:
    def test_legacy_document(self):
        c = map_credential({
            "clientId": "R12345",
            "clientName": "Rahul",
            "apiKey": ["abc", "def"],
            "password": 1234,
            "totp_secret": "SEED",
        })
        assert c.account_id == "R12345"
        assert c.login_id == "R12345"
        assert c.account_name == "Rahul"
        assert c.api_key == "abc"
        assert c.password == "1234"
        assert c.totp_seed == "SEED"

    def test_current_document(self):
        c = map_credential({
            "accountId": "R1",
            "accountName": "Priya",
            "loginId": "P1",
            "apiKey": "key",
            "password": "pw",
            "totpSeed": "S",
        })
        assert (c.account_id, c.login_id, c.api_key, c.totp_seed) == ("R1", "P1", "key", "S")


def test_holding_entry_shape():
    [h] = map_holdings([raw_holding("SBIN-EQ")])
    entry = holding_entry(h, "2024-08-14", 160.0, True)
    assert entry["date"] == "2024-08-14"
    assert entry["todayGain"] == 160.0
    assert entry["boughtToday"] is True
    assert entry["symbolToken"] == "1234"
    assert entry["overallPnL"] == 250
