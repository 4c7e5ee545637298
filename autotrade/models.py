"""Value types shared between the engine and its collaborators."""
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Dict, Optional, Tuple

from .quantize import to_decimal
from .strategies import SellStrategy


class OrderSide(Enum):
    BUY = "buy"
    SELL = "sell"


class OrderStatus(Enum):
    SUCCESS = "success"
    FAILED = "failed"


def split_symbol(symbol: str) -> Tuple[str, str]:
    """Split a ``BASE_QUOTE`` symbol into its currencies.

    Raises:
        ValueError: If the symbol does not contain exactly one underscore
    """
    parts = symbol.upper().split("_")
    if len(parts) != 2 or not all(parts):
        raise ValueError(f"Symbol must look like BASE_QUOTE, got '{symbol}'")
    return parts[0], parts[1]


def _opt_decimal(value) -> Optional[Decimal]:
    return to_decimal(value) if value is not None else None


@dataclass
class SymbolConfig:
    """Per-symbol trading configuration.

    Attributes:
        symbol: Pair identifier such as ``MOG_BRL``
        buy_threshold: 24h change (%) at or below which a buy is considered
        sell_threshold: 24h change (%) at or above which a sell is considered
        last_buy_price: Execution price of the last successful buy
        last_sell_price: Execution price of the last successful sell
        enabled: Disabled symbols never produce a decision
        sell_strategy: Exit profile used for partial sells
        check_interval_seconds: Per-symbol cadence (None uses the scheduler default)

    Invariants:
        - a buy is only legal when sell_threshold < 0
        - a sell is only legal when buy_threshold > 0
    """

    symbol: str
    buy_threshold: Decimal
    sell_threshold: Decimal
    last_buy_price: Optional[Decimal] = None
    last_sell_price: Optional[Decimal] = None
    enabled: bool = True
    sell_strategy: SellStrategy = SellStrategy.SECURITY
    check_interval_seconds: Optional[float] = None

    def __post_init__(self):
        self.symbol = self.symbol.upper()
        self.buy_threshold = to_decimal(self.buy_threshold)
        self.sell_threshold = to_decimal(self.sell_threshold)
        self.last_buy_price = _opt_decimal(self.last_buy_price)
        self.last_sell_price = _opt_decimal(self.last_sell_price)
        self.sell_strategy = SellStrategy.parse(self.sell_strategy)

    @property
    def base_currency(self) -> str:
        return split_symbol(self.symbol)[0]

    @property
    def quote_currency(self) -> str:
        return split_symbol(self.symbol)[1]

    def with_prices(
        self,
        last_buy_price: Optional[Decimal] = None,
        last_sell_price: Optional[Decimal] = None,
    ) -> "SymbolConfig":
        """Copy with the given reference prices replaced (None keeps the current one)."""
        return replace(
            self,
            last_buy_price=last_buy_price if last_buy_price is not None else self.last_buy_price,
            last_sell_price=last_sell_price if last_sell_price is not None else self.last_sell_price,
        )

    def to_dict(self) -> Dict:
        return {
            "symbol": self.symbol,
            "buy_threshold": str(self.buy_threshold),
            "sell_threshold": str(self.sell_threshold),
            "last_buy_price": str(self.last_buy_price) if self.last_buy_price is not None else None,
            "last_sell_price": str(self.last_sell_price) if self.last_sell_price is not None else None,
            "enabled": self.enabled,
            "sell_strategy": self.sell_strategy.value,
            "check_interval_seconds": self.check_interval_seconds,
        }

    @staticmethod
    def from_dict(d: Dict) -> "SymbolConfig":
        """Inverse of to_dict(); also accepts the camelCase keys of older records."""
        def pick(snake: str, camel: str, default=None):
            if snake in d:
                return d[snake]
            return d.get(camel, default)

        interval = pick("check_interval_seconds", "checkIntervalSeconds")
        return SymbolConfig(
            symbol=d["symbol"],
            buy_threshold=pick("buy_threshold", "buyThreshold"),
            sell_threshold=pick("sell_threshold", "sellThreshold"),
            last_buy_price=pick("last_buy_price", "lastBuyPrice"),
            last_sell_price=pick("last_sell_price", "lastSellPrice"),
            enabled=bool(d.get("enabled", True)),
            sell_strategy=pick("sell_strategy", "sellStrategy"),
            check_interval_seconds=float(interval) if interval is not None else None,
        )


@dataclass(frozen=True)
class PriceSnapshot:
    """Last traded price and 24h percentage change for a symbol."""

    last_price: Decimal
    change_24h: Decimal
    taken_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class Balances:
    """Available balances of the two legs of a symbol."""

    base: Decimal
    quote: Decimal


@dataclass(frozen=True)
class OrderResult:
    """Outcome of an order reported by the order executor."""

    status: OrderStatus
    execution_price: Optional[Decimal] = None
    order_id: Optional[str] = None
    raw: Optional[Dict] = None

    @property
    def ok(self) -> bool:
        return self.status is OrderStatus.SUCCESS and self.execution_price is not None


@dataclass
class Operation:
    """Journal entry for an order attempt.

    ``buy_price`` and ``profit`` are only set on successful sells that could
    be matched to a previous buy.
    """

    symbol: str
    side: OrderSide
    amount: Decimal
    status: OrderStatus
    price: Optional[Decimal] = None
    order_id: Optional[str] = None
    buy_price: Optional[Decimal] = None
    profit: Optional[Decimal] = None
    response: Optional[Dict] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    id: Optional[int] = None

    def to_dict(self) -> Dict:
        def s(v):
            return str(v) if v is not None else None

        return {
            "id": self.id,
            "symbol": self.symbol,
            "side": self.side.value,
            "amount": str(self.amount),
            "price": s(self.price),
            "status": self.status.value,
            "order_id": self.order_id,
            "buy_price": s(self.buy_price),
            "profit": s(self.profit),
            "created_at": self.created_at.isoformat(),
        }
