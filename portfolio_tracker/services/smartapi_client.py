# portfolio_tracker/services/smartapi_client.py
from __future__ import annotations
from typing import Any, Callable, Dict, List, Optional
import asyncio

import pyotp

from portfolio_tracker.errors import AuthenticationError, BrokerError, RateLimitError
from portfolio_tracker.models import AccountCredential, Session

try:
    from SmartApi import SmartConnect
except Exception:
    SmartConnect = None  # optional import so app can still boot without the package


def generate_totp(totp_seed: str) -> str:
    return pyotp.TOTP(totp_seed).now()


class IBrokerClient:
    async def login(self) -> Session: ...
    async def get_holdings(self) -> Optional[List[Dict[str, Any]]]: ...
    async def get_trade_book(self) -> Optional[List[Dict[str, Any]]]: ...
    async def get_candle_data(self, params: Dict[str, Any]) -> List[List[Any]]: ...


class SmartApiClient(IBrokerClient):
    """
    One instance per account run. SmartConnect is blocking (requests), so
    every call is pushed to a worker thread to keep the fan-out concurrent.
    """

    def __init__(self, credential: AccountCredential, rate_limit_marker: str):
        if SmartConnect is None:
            raise RuntimeError("smartapi-python not installed. Run: pip install smartapi-python")
        self.credential = credential
        self.rate_limit_marker = rate_limit_marker
        self.api = SmartConnect(api_key=credential.api_key)

    def _classify(self, message: str) -> BrokerError:
        if self.rate_limit_marker and self.rate_limit_marker.lower() in message.lower():
            return RateLimitError(message)
        return BrokerError(message)

    async def _call(self, fn: Callable[..., Any], *args) -> Dict[str, Any]:
        try:
            response = await asyncio.to_thread(fn, *args)
        except Exception as e:
            # SmartConnect raises on non-JSON bodies, which is how the
            # rate-limit text usually arrives
            raise self._classify(str(e)) from e
        if not isinstance(response, dict):
            raise BrokerError(f"Unexpected response from {fn.__name__}: {response!r}")
        if response.get("status") is False:
            raise self._classify(str(response.get("message") or response.get("errorcode") or "request failed"))
        return response

    async def login(self) -> Session:
        c = self.credential
        try:
            totp = generate_totp(c.totp_seed)
            data = await self._call(self.api.generateSession, c.login_id, c.password, totp)
            tokens = data["data"]
            profile = await self._call(self.api.getProfile, tokens["refreshToken"])
            p = profile["data"]
        except (BrokerError, KeyError, TypeError, ValueError) as e:
            # binascii.Error from a bad TOTP seed is a ValueError
            raise AuthenticationError(f"Error during login: {e}") from e

        return Session(
            auth_token=tokens.get("jwtToken", ""),
            refresh_token=tokens["refreshToken"],
            display_name=str(p.get("name", "")).strip(),
            account_code=p.get("clientcode") or c.account_id,
        )

    async def get_holdings(self) -> Optional[List[Dict[str, Any]]]:
        return (await self._call(self.api.holding)).get("data")

    async def get_trade_book(self) -> Optional[List[Dict[str, Any]]]:
        return (await self._call(self.api.tradeBook)).get("data") or []

    async def get_candle_data(self, params: Dict[str, Any]) -> List[List[Any]]:
        return (await self._call(self.api.getCandleData, params)).get("data") or []
