"""Exchange capabilities consumed by the trading job.

The engine needs three things from an exchange: a price snapshot, the
available balance of a currency and the ability to place market orders.
Each is an abstract base class so the NovaDAX adapter and the in-memory
exchange used by tests and demos can be swapped freely.
"""
import itertools
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Dict, List, Optional

from .errors import ExchangeAPIError
from .models import OrderResult, OrderSide, OrderStatus, PriceSnapshot, split_symbol
from .quantize import to_decimal


class MarketDataProvider(ABC):
    @abstractmethod
    async def get_price_snapshot(self, symbol: str) -> PriceSnapshot:
        """Return last price and 24h percentage change.

        Raises:
            ExchangeAPIError: If the ticker cannot be fetched
        """
        pass


class BalanceProvider(ABC):
    @abstractmethod
    async def get_available_balance(self, currency: str) -> Decimal:
        """Return the available (not on hold) balance, 0 for unknown currencies."""
        pass


class OrderExecutor(ABC):
    @abstractmethod
    async def execute_buy(self, symbol: str, quote_amount: Decimal) -> OrderResult:
        """Spend ``quote_amount`` of the quote currency at market."""
        pass

    @abstractmethod
    async def execute_sell(self, symbol: str, base_amount: Decimal) -> OrderResult:
        """Sell ``base_amount`` of the base currency at market."""
        pass


class InMemoryExchange(MarketDataProvider, BalanceProvider, OrderExecutor):
    """Deterministic exchange for tests and demos.

    Orders fill immediately at the current ticker price and move balances.
    ``fail_next`` makes the next order report a failed status, and
    ``raise_next`` makes the next call of any capability raise, so callers can
    exercise their failure paths.

    Example:
        >>> ex = InMemoryExchange()
        >>> ex.set_ticker("MOG_BRL", "100", "5")
        >>> ex.set_balance("BRL", "1000")
    """

    def __init__(self) -> None:
        self.tickers: Dict[str, PriceSnapshot] = {}
        self.balances: Dict[str, Decimal] = {}
        self.orders: List[Dict] = []
        self.fail_next = False
        self.raise_next: Optional[Exception] = None
        self._ids = itertools.count(1)

    def set_ticker(self, symbol: str, last_price, change_24h) -> None:
        self.tickers[symbol.upper()] = PriceSnapshot(to_decimal(last_price), to_decimal(change_24h))

    def set_balance(self, currency: str, amount) -> None:
        self.balances[currency.upper()] = to_decimal(amount)

    def _maybe_raise(self) -> None:
        if self.raise_next is not None:
            exc, self.raise_next = self.raise_next, None
            raise exc

    async def get_price_snapshot(self, symbol: str) -> PriceSnapshot:
        self._maybe_raise()
        try:
            return self.tickers[symbol.upper()]
        except KeyError:
            raise ExchangeAPIError(f"Unknown symbol: {symbol}")

    async def get_available_balance(self, currency: str) -> Decimal:
        self._maybe_raise()
        return self.balances.get(currency.upper(), Decimal("0"))

    def _fill(self, symbol: str, side: OrderSide, amount: Decimal) -> OrderResult:
        self._maybe_raise()
        order_id = f"mem-{next(self._ids)}"
        record = {"order_id": order_id, "symbol": symbol.upper(), "side": side.value, "amount": amount}
        if self.fail_next:
            self.fail_next = False
            record["status"] = OrderStatus.FAILED.value
            self.orders.append(record)
            return OrderResult(OrderStatus.FAILED, order_id=order_id, raw=record)

        base, quote = split_symbol(symbol)
        price = self.tickers[symbol.upper()].last_price
        if side is OrderSide.BUY:
            self.balances[quote] = self.balances.get(quote, Decimal("0")) - amount
            self.balances[base] = self.balances.get(base, Decimal("0")) + amount / price
        else:
            self.balances[base] = self.balances.get(base, Decimal("0")) - amount
            self.balances[quote] = self.balances.get(quote, Decimal("0")) + amount * price
        record.update(status=OrderStatus.SUCCESS.value, price=price)
        self.orders.append(record)
        return OrderResult(OrderStatus.SUCCESS, execution_price=price, order_id=order_id, raw=record)

    async def execute_buy(self, symbol: str, quote_amount: Decimal) -> OrderResult:
        return self._fill(symbol, OrderSide.BUY, quote_amount)

    async def execute_sell(self, symbol: str, base_amount: Decimal) -> OrderResult:
        return self._fill(symbol, OrderSide.SELL, base_amount)
