"""NovaDAX REST adapter: signed requests, market data, balances and market orders.

Implements the three exchange capabilities consumed by the trading job.
Transport problems, non-JSON bodies and malformed numeric fields all surface
as ``ExchangeAPIError`` so the job can report them as upstream failures.
"""
import asyncio
import hashlib
import hmac
import json
import random
import time
from decimal import Decimal, InvalidOperation
from typing import Dict, Optional
from urllib.parse import urlencode

import aiohttp

from .errors import ExchangeAPIError, RateLimitError
from .exchange import BalanceProvider, MarketDataProvider, OrderExecutor
from .logging_setup import logger
from .models import OrderResult, OrderStatus, PriceSnapshot
from .quantize import to_decimal
from .secrets import NovaDaxCredentials

SUCCESS_CODE = "A10000"


class NovaDaxAdapter(MarketDataProvider, BalanceProvider, OrderExecutor):
    """Async NovaDAX adapter using aiohttp with non-blocking rate-limit backoff.

    Features:
    - Request signing (X-Nova-* headers): HMAC-SHA256 over method, path,
      sorted query (GET) or MD5 of the body (POST) and a millisecond timestamp.
    - Market buys by quote value, market sells by base amount.
    - Jittered exponential backoff for 429 (rate-limit) responses.
    - Automatic connection pooling and session reuse.

    Usage:
        async with NovaDaxAdapter(key, secret) as adapter:
            snapshot = await adapter.get_price_snapshot("MOG_BRL")
    """

    def __init__(
        self,
        api_key: str,
        secret: str,
        *,
        base_url: str = "https://api.novadax.com",
        timeout: int = 10,
        max_retries: int = 5,
        max_backoff_seconds: float = 60.0,
    ):
        self.api_key = api_key
        self.secret = secret
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.max_backoff_seconds = max_backoff_seconds
        self.session: Optional[aiohttp.ClientSession] = None

    @classmethod
    def from_credentials(cls, creds: NovaDaxCredentials, **kwargs) -> "NovaDaxAdapter":
        return cls(creds.api_key, creds.api_secret, **kwargs)

    async def __aenter__(self):
        self.session = aiohttp.ClientSession()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self.session:
            await self.session.close()

    def _sign(self, method: str, request_path: str, query: str = "", body: str = "", timestamp: Optional[str] = None) -> Dict[str, str]:
        timestamp = timestamp or str(int(time.time() * 1000))
        method = method.upper()
        if method == "GET":
            sorted_query = "&".join(sorted(query.split("&"))) if query else ""
            message = f"{method}\n{request_path}\n{sorted_query}\n{timestamp}"
        else:
            digest = hashlib.md5(body.encode("utf-8")).hexdigest()
            message = f"{method}\n{request_path}\n{digest}\n{timestamp}"
        signature = hmac.new(self.secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).hexdigest()
        headers = {
            "X-Nova-Access-Key": self.api_key,
            "X-Nova-Timestamp": timestamp,
            "X-Nova-Signature": signature,
        }
        if method != "GET":
            headers["Content-Type"] = "application/json"
        return headers

    @staticmethod
    def _jittered_backoff(attempt: int, base: float = 1.0, max_backoff: float = 60.0) -> float:
        """Compute jittered exponential backoff."""
        delay = min(base * (2 ** attempt), max_backoff)
        jitter = delay * 0.25 * (2 * random.random() - 1)
        return max(0, delay + jitter)

    async def _request(self, method: str, path: str, body: Optional[dict] = None, params: Optional[dict] = None, signed: bool = True, attempt: int = 0):
        """Execute a request with async rate-limit backoff and retry."""
        if not self.session:
            raise ExchangeAPIError("Session not initialized; use 'async with' context manager")

        request_path = path if path.startswith("/") else f"/{path}"
        query = urlencode(params) if params else ""
        body_str = json.dumps(body, separators=(",", ":")) if body is not None else ""
        headers = self._sign(method, request_path, query, body_str) if signed else {}
        url = f"{self.base_url}{request_path}"
        if query:
            url = f"{url}?{query}"

        try:
            async with self.session.request(method, url, headers=headers, data=body_str or None, timeout=aiohttp.ClientTimeout(total=self.timeout)) as resp:
                if resp.status == 429:
                    if attempt >= self.max_retries:
                        raise RateLimitError("Rate limited and max backoff attempts exceeded")
                    backoff = self._jittered_backoff(attempt, max_backoff=self.max_backoff_seconds)
                    logger.warning(f"Rate limited | path={request_path} attempt={attempt + 1} backoff={backoff:.2f}s")
                    await asyncio.sleep(backoff)
                    return await self._request(method, path, body=body, params=params, signed=signed, attempt=attempt + 1)

                text = await resp.text()
                if not (200 <= resp.status < 300):
                    raise ExchangeAPIError(f"{resp.status}: {text}")
                if not text:
                    return None
                try:
                    return json.loads(text)
                except ValueError as e:
                    raise ExchangeAPIError(f"Invalid JSON from {request_path}: {text[:200]!r}") from e

        except asyncio.TimeoutError as e:
            raise ExchangeAPIError(f"Request timeout: {e}")
        except aiohttp.ClientError as e:
            raise ExchangeAPIError(f"Request failed: {e}")

    @staticmethod
    def _decimal(value, field: str) -> Decimal:
        """Parse a numeric payload field; malformed values are exchange errors."""
        try:
            parsed = to_decimal(value or 0)
        except (InvalidOperation, ValueError) as e:
            raise ExchangeAPIError(f"Malformed {field} in response: {value!r}") from e
        if not parsed.is_finite():
            raise ExchangeAPIError(f"Malformed {field} in response: {value!r}")
        return parsed

    @staticmethod
    def _data(res) -> dict:
        if not isinstance(res, dict) or res.get("code") != SUCCESS_CODE:
            raise ExchangeAPIError(f"Unexpected response: {res}")
        return res.get("data")

    async def get_price_snapshot(self, symbol: str) -> PriceSnapshot:
        res = await self._request("GET", "/v1/market/ticker", params={"symbol": symbol.upper()}, signed=False)
        data = self._data(res) or {}
        if not isinstance(data, dict):
            raise ExchangeAPIError(f"Unexpected ticker payload: {data!r}")
        last = self._decimal(data.get("lastPrice"), "lastPrice")
        open_24h = self._decimal(data.get("open24h"), "open24h")
        change = (last - open_24h) / open_24h * 100 if open_24h > 0 else Decimal("0")
        return PriceSnapshot(last_price=last, change_24h=change)

    async def get_available_balance(self, currency: str) -> Decimal:
        res = await self._request("GET", "/v1/account/getBalance")
        wallets = self._data(res) or []
        if not isinstance(wallets, list):
            raise ExchangeAPIError(f"Unexpected balance payload: {wallets!r}")
        for wallet in wallets:
            if isinstance(wallet, dict) and str(wallet.get("currency", "")).upper() == currency.upper():
                return self._decimal(wallet.get("available"), "available")
        return Decimal("0")

    async def _create_market_order(self, body: dict) -> OrderResult:
        res = await self._request("POST", "/v1/orders/create", body=body)
        ok = isinstance(res, dict) and (res.get("code") == SUCCESS_CODE or res.get("success") is True)
        data = res.get("data") if isinstance(res, dict) else None
        data = data if isinstance(data, dict) else {}
        if not ok:
            logger.error(f"Order rejected | symbol={body['symbol']} side={body['side']} response={res}")
            return OrderResult(OrderStatus.FAILED, order_id=data.get("id"), raw=res if isinstance(res, dict) else None)
        price = data.get("price") or data.get("averagePrice")
        try:
            execution_price = self._decimal(price, "price") if price else None
        except ExchangeAPIError as e:
            # The order is live: report it without a price instead of as failed.
            logger.warning(f"Order price unreadable | symbol={body['symbol']} error={e}")
            execution_price = None
        return OrderResult(
            OrderStatus.SUCCESS,
            execution_price=execution_price,
            order_id=data.get("id"),
            raw=res,
        )

    async def execute_buy(self, symbol: str, quote_amount: Decimal) -> OrderResult:
        body = {"symbol": symbol.upper(), "side": "BUY", "type": "MARKET", "value": str(quote_amount)}
        return await self._create_market_order(body)

    async def execute_sell(self, symbol: str, base_amount: Decimal) -> OrderResult:
        body = {"symbol": symbol.upper(), "side": "SELL", "type": "MARKET", "amount": str(base_amount)}
        return await self._create_market_order(body)
