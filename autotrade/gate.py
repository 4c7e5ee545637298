"""
Threshold gate: buy/sell candidacy and price-distance safety checks.

Candidacy looks at the 24h percentage change and the balances. Legality is
asymmetric and independent of the 24h change:

    BUY   requires sell_threshold < 0, and when last_sell_price is known
          price < last_sell_price * (1 + sell_threshold / 100)
    SELL  requires buy_threshold > 0, and when last_buy_price is known
          price > last_buy_price * (1 + buy_threshold / 100)

A configuration whose sell_threshold is not negative can therefore never buy
automatically, and one whose buy_threshold is not positive can never sell
automatically. Manual requests skip candidacy and legality but not balances.

No function in this module raises; each returns a ``GateVerdict``.

Examples:
    >>> from decimal import Decimal
    >>> from autotrade.models import SymbolConfig
    >>> cfg = SymbolConfig("MOG_BRL", buy_threshold=-10, sell_threshold=-10, last_sell_price=100)
    >>> check_buy_price(cfg, Decimal("91")).reason
    'Buy skipped: price not below limit 90 (current price 91)'
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from .errors import ErrorKind
from .models import Balances, SymbolConfig
from .quantize import normalize_price

MIN_ORDER_VALUE = Decimal("25")
MIN_BASE_BALANCE = Decimal("1")


@dataclass(frozen=True)
class GateVerdict:
    """Allow/deny outcome of a gate check.

    Attributes:
        allowed: True when the action may proceed
        reason: Human-readable explanation
        kind: Why it was denied (None when allowed)
        limit: Price limit that was applied, if any
    """

    allowed: bool
    reason: str
    kind: Optional[ErrorKind] = None
    limit: Optional[Decimal] = None

    @classmethod
    def allow(cls, reason: str, limit: Optional[Decimal] = None) -> "GateVerdict":
        return cls(True, reason, None, limit)

    @classmethod
    def deny(cls, reason: str, kind: ErrorKind, limit: Optional[Decimal] = None) -> "GateVerdict":
        return cls(False, reason, kind, limit)


def _fmt(value: Decimal) -> str:
    return f"{value.normalize():f}"


def is_buy_candidate(
    cfg: SymbolConfig,
    change_24h: Decimal,
    balances: Balances,
    min_order_value: Decimal = MIN_ORDER_VALUE,
) -> bool:
    return change_24h <= cfg.buy_threshold and balances.quote >= min_order_value


def is_sell_candidate(
    cfg: SymbolConfig,
    change_24h: Decimal,
    balances: Balances,
    min_base_balance: Decimal = MIN_BASE_BALANCE,
) -> bool:
    return change_24h >= cfg.sell_threshold and balances.base > min_base_balance


def buy_limit(cfg: SymbolConfig) -> Optional[Decimal]:
    """Highest price (exclusive) at which an automated buy is allowed."""
    if cfg.last_sell_price is None:
        return None
    return normalize_price(cfg.last_sell_price * (1 + cfg.sell_threshold / 100))


def sell_limit(cfg: SymbolConfig) -> Optional[Decimal]:
    """Lowest price (exclusive) at which an automated sell is allowed."""
    if cfg.last_buy_price is None:
        return None
    return normalize_price(cfg.last_buy_price * (1 + cfg.buy_threshold / 100))


def check_buy_price(cfg: SymbolConfig, price: Decimal) -> GateVerdict:
    """Legality and price-distance gate for an automated buy."""
    if not cfg.sell_threshold < 0:
        return GateVerdict.deny(
            "Buy not allowed: sellThreshold must be negative", ErrorKind.INELIGIBLE
        )
    limit = buy_limit(cfg)
    if limit is None:
        return GateVerdict.allow("No last sell price, buy allowed")
    current = normalize_price(price)
    if current < limit:
        return GateVerdict.allow(
            f"Current price {_fmt(current)} below limit {_fmt(limit)}", limit
        )
    return GateVerdict.deny(
        f"Buy skipped: price not below limit {_fmt(limit)} (current price {_fmt(current)})",
        ErrorKind.INELIGIBLE,
        limit,
    )


def check_sell_price(cfg: SymbolConfig, price: Decimal) -> GateVerdict:
    """Legality and price-distance gate for an automated sell."""
    if not cfg.buy_threshold > 0:
        return GateVerdict.deny(
            "Sell not allowed: buyThreshold must be positive", ErrorKind.INELIGIBLE
        )
    limit = sell_limit(cfg)
    if limit is None:
        return GateVerdict.allow("No last buy price, sell allowed")
    current = normalize_price(price)
    if current > limit:
        return GateVerdict.allow(
            f"Current price {_fmt(current)} above limit {_fmt(limit)}", limit
        )
    return GateVerdict.deny(
        f"Sell skipped: price not above limit {_fmt(limit)} (current price {_fmt(current)})",
        ErrorKind.INELIGIBLE,
        limit,
    )
