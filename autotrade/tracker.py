"""
Partial-exit tracker: per-symbol state machine for laddered sells.

A tracker is opened by the first successful sell of an exit cycle. That sell
consumes the strategy's first level, so level 0 is already executed when the
state is created. Every later invocation feeds the current price through
``observe_price()`` and then ``evaluate()``:

1. Level hit: the first unexecuted level (ascending) whose target price has
   been reached fires, selling ``initial_amount * level.percentage``.
2. Trailing stop: if no level fired and price fell to the trailing stop, the
   whole remaining amount is sold.
3. Otherwise nothing happens.

``evaluate()`` never mutates the state. The caller executes the order and
applies the confirmed fill with ``apply_level()`` or ``apply_trailing_exit()``.

Invariants:
    - highest_price_seen is non-decreasing
    - trailing_stop_price is non-decreasing (ratchet-only)
    - remaining_amount == initial_amount * (1 - sum(executed percentages)),
      except after a trailing-stop exit which zeroes it
    - is_complete() <=> remaining_amount <= 0

Examples:
    >>> from decimal import Decimal
    >>> from autotrade.strategies import get_strategy
    >>> state = PartialExitState.open(
    ...     "MOG_BRL", get_strategy("security"),
    ...     initial_amount=Decimal("1000"), execution_price=Decimal("100"),
    ...     sold_amount=Decimal("300"),
    ... )
    >>> state.remaining_amount
    Decimal('700.0')
    >>> state.observe_price(Decimal("110"))
    True
    >>> state.trailing_stop_price
    Decimal('104.50')
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Union

from .errors import ErrorKind
from .quantize import floor_to_step
from .strategies import SellStrategy, StrategyDefinition

# The stop follows the market 5% below each new observed price.
TRAILING_RATCHET_FRACTION = Decimal("0.05")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ExitKind(Enum):
    INITIAL = "initial"
    LEVEL = "level"
    TRAILING_STOP = "trailing_stop"
    MANUAL = "manual"


@dataclass
class LevelState:
    """A strategy level annotated with its absolute target and progress."""

    percentage: Decimal
    price_increase: Decimal
    target_price: Decimal
    executed: bool = False

    def to_dict(self) -> Dict:
        return {
            "percentage": str(self.percentage),
            "price_increase": str(self.price_increase),
            "target_price": str(self.target_price),
            "executed": self.executed,
        }

    @staticmethod
    def from_dict(d: Dict) -> "LevelState":
        return LevelState(
            percentage=Decimal(d["percentage"]),
            price_increase=Decimal(d["price_increase"]),
            target_price=Decimal(d["target_price"]),
            executed=bool(d.get("executed", False)),
        )


@dataclass(frozen=True)
class ExitSignal:
    """A sell the tracker wants executed."""

    kind: ExitKind
    amount: Decimal
    price: Decimal
    reason: str
    level_index: Optional[int] = None
    percentage: Optional[Decimal] = None


@dataclass(frozen=True)
class ExitRejection:
    """A sell that was due but cannot be placed.

    ``attempted_value`` and ``required_value`` are set for minimum-notional
    rejections so an observer can tell why nothing happened.
    """

    kind: ErrorKind
    reason: str
    level_index: Optional[int] = None
    attempted_value: Optional[Decimal] = None
    required_value: Optional[Decimal] = None


ExitEvaluation = Union[ExitSignal, ExitRejection, None]


@dataclass(frozen=True)
class ProfitMetrics:
    """Profitability snapshot of an exit cycle, in percent of entry price."""

    entry_price: Decimal
    avg_exit_price: Optional[Decimal]
    profit_percent: Optional[Decimal]
    highest_price: Decimal
    max_profit_percent: Decimal

    def to_dict(self) -> Dict:
        return {
            "entryPrice": float(self.entry_price),
            "avgSellPrice": float(self.avg_exit_price) if self.avg_exit_price is not None else None,
            "profitPercent": f"{self.profit_percent:.2f}" if self.profit_percent is not None else None,
            "highestPrice": float(self.highest_price),
            "maxProfitPercent": f"{self.max_profit_percent:.2f}",
        }


def _level_amount(
    base_amount: Decimal,
    percentage: Decimal,
    price: Decimal,
    step: Decimal,
    min_exit_value: Decimal,
    level_index: int,
) -> Union[ExitSignal, ExitRejection]:
    amount = floor_to_step(base_amount * percentage, step)
    if amount <= 0:
        return ExitRejection(
            kind=ErrorKind.ZERO_AMOUNT,
            reason=f"Sell amount is zero for level {level_index + 1}",
            level_index=level_index,
        )
    value = amount * price
    if value < min_exit_value:
        return ExitRejection(
            kind=ErrorKind.BELOW_MINIMUM_NOTIONAL,
            reason=f"Sell value {value:.2f} below minimum {min_exit_value}",
            level_index=level_index,
            attempted_value=value,
            required_value=min_exit_value,
        )
    kind = ExitKind.INITIAL if level_index == 0 else ExitKind.LEVEL
    pct = f"{(percentage * 100).normalize():f}%"
    return ExitSignal(
        kind=kind,
        amount=amount,
        price=price,
        reason=f"Level {level_index + 1} ({pct}) reached",
        level_index=level_index,
        percentage=percentage,
    )


def plan_initial_exit(
    definition: StrategyDefinition,
    balance: Decimal,
    price: Decimal,
    step: Decimal,
) -> Union[ExitSignal, ExitRejection]:
    """Size the first sell of a new exit cycle from the full base balance."""
    return _level_amount(
        balance, definition.levels[0].percentage, price, step, definition.min_exit_value, 0
    )


@dataclass
class PartialExitState:
    """Progress of one exit cycle for a symbol.

    Attributes:
        symbol: Pair being unwound
        strategy: Exit profile driving the ladder
        initial_amount: Base-currency position when the cycle started
        remaining_amount: Portion of the position not yet sold
        entry_price: Execution price of the first level
        highest_price_seen: Highest price observed during the cycle
        trailing_stop_price: Price at or below which the remainder is sold
        levels: Strategy levels with absolute targets and executed flags
        min_exit_value: Minimum notional for a level sell
        created_at: When the cycle started
        last_update: Last mutation, used by the staleness reaper
        sold_amount: Base amount sold so far in this cycle
        sold_value: Quote value realized so far in this cycle
    """

    symbol: str
    strategy: SellStrategy
    initial_amount: Decimal
    remaining_amount: Decimal
    entry_price: Decimal
    highest_price_seen: Decimal
    trailing_stop_price: Decimal
    levels: List[LevelState]
    min_exit_value: Decimal
    created_at: datetime = field(default_factory=utc_now)
    last_update: datetime = field(default_factory=utc_now)
    sold_amount: Decimal = Decimal("0")
    sold_value: Decimal = Decimal("0")

    @classmethod
    def open(
        cls,
        symbol: str,
        definition: StrategyDefinition,
        initial_amount: Decimal,
        execution_price: Decimal,
        sold_amount: Decimal,
        now: Optional[datetime] = None,
    ) -> "PartialExitState":
        """Create the tracker after the first level has been executed."""
        now = now or utc_now()
        levels = [
            LevelState(
                percentage=level.percentage,
                price_increase=level.price_increase,
                target_price=execution_price * (1 + level.price_increase),
                executed=(i == 0),
            )
            for i, level in enumerate(definition.levels)
        ]
        first = definition.levels[0].percentage
        return cls(
            symbol=symbol,
            strategy=definition.key,
            initial_amount=initial_amount,
            remaining_amount=initial_amount * (1 - first),
            entry_price=execution_price,
            highest_price_seen=execution_price,
            trailing_stop_price=execution_price * (1 - definition.trailing_stop_fraction),
            levels=levels,
            min_exit_value=definition.min_exit_value,
            created_at=now,
            last_update=now,
            sold_amount=sold_amount,
            sold_value=sold_amount * execution_price,
        )

    def is_complete(self) -> bool:
        return self.remaining_amount <= 0

    def observe_price(self, price: Decimal, now: Optional[datetime] = None) -> bool:
        """Raise the high-water mark and ratchet the trailing stop.

        Returns:
            True if either value changed
        """
        changed = False
        if price > self.highest_price_seen:
            self.highest_price_seen = price
            changed = True
        candidate = price * (1 - TRAILING_RATCHET_FRACTION)
        if candidate > self.trailing_stop_price:
            self.trailing_stop_price = candidate
            changed = True
        if changed:
            self.last_update = now or utc_now()
        return changed

    def evaluate(self, price: Decimal, step: Decimal) -> ExitEvaluation:
        """Decide which exit, if any, is due at ``price``. Does not mutate.

        A due level that cannot be sold (below the minimum notional or a zero
        amount) does not count as fired: the trailing stop is still checked
        and the rejection is only returned when the stop is not hit.
        """
        rejection: Optional[ExitRejection] = None
        for i, level in enumerate(self.levels):
            if level.executed or price < level.target_price:
                continue
            planned = _level_amount(
                self.initial_amount, level.percentage, price, step, self.min_exit_value, i
            )
            if isinstance(planned, ExitSignal):
                return planned
            rejection = planned
            break

        if price <= self.trailing_stop_price and self.remaining_amount > 0:
            amount = floor_to_step(self.remaining_amount, step)
            if amount <= 0:
                return ExitRejection(
                    kind=ErrorKind.ZERO_AMOUNT,
                    reason="Trailing stop sell amount is zero",
                )
            return ExitSignal(
                kind=ExitKind.TRAILING_STOP,
                amount=amount,
                price=price,
                reason=f"Trailing stop hit at {price} (stop {self.trailing_stop_price})",
            )
        return rejection

    def apply_level(
        self, index: int, amount: Decimal, price: Decimal, now: Optional[datetime] = None
    ) -> None:
        """Record a confirmed level sell."""
        level = self.levels[index]
        if level.executed:
            raise ValueError(f"Level {index + 1} already executed for {self.symbol}")
        level.executed = True
        self.remaining_amount -= self.initial_amount * level.percentage
        self._record_fill(amount, price, now)

    def apply_trailing_exit(
        self, amount: Decimal, price: Decimal, now: Optional[datetime] = None
    ) -> None:
        """Record a confirmed full exit triggered by the trailing stop."""
        self.remaining_amount = Decimal("0")
        self._record_fill(amount, price, now)

    def _record_fill(self, amount: Decimal, price: Decimal, now: Optional[datetime]) -> None:
        self.sold_amount += amount
        self.sold_value += amount * price
        if price > self.highest_price_seen:
            self.highest_price_seen = price
        self.last_update = now or utc_now()

    def pending_targets(self) -> List[Decimal]:
        return [level.target_price for level in self.levels if not level.executed]

    def profit_metrics(self) -> ProfitMetrics:
        avg = self.sold_value / self.sold_amount if self.sold_amount > 0 else None
        profit = (avg - self.entry_price) / self.entry_price * 100 if avg is not None else None
        max_profit = (self.highest_price_seen - self.entry_price) / self.entry_price * 100
        return ProfitMetrics(
            entry_price=self.entry_price,
            avg_exit_price=avg,
            profit_percent=profit,
            highest_price=self.highest_price_seen,
            max_profit_percent=max_profit,
        )

    def to_dict(self) -> Dict:
        """Serialize to a JSON-compatible dict (Decimals as strings)."""
        return {
            "symbol": self.symbol,
            "strategy": self.strategy.value,
            "initial_amount": str(self.initial_amount),
            "remaining_amount": str(self.remaining_amount),
            "entry_price": str(self.entry_price),
            "highest_price_seen": str(self.highest_price_seen),
            "trailing_stop_price": str(self.trailing_stop_price),
            "levels": [level.to_dict() for level in self.levels],
            "min_exit_value": str(self.min_exit_value),
            "created_at": self.created_at.isoformat(),
            "last_update": self.last_update.isoformat(),
            "sold_amount": str(self.sold_amount),
            "sold_value": str(self.sold_value),
        }

    @staticmethod
    def from_dict(d: Dict) -> "PartialExitState":
        """Inverse of to_dict().

        Raises:
            KeyError: If required keys are missing
            decimal.InvalidOperation: If values cannot be converted to Decimal
        """
        return PartialExitState(
            symbol=d["symbol"],
            strategy=SellStrategy.parse(d["strategy"]),
            initial_amount=Decimal(d["initial_amount"]),
            remaining_amount=Decimal(d["remaining_amount"]),
            entry_price=Decimal(d["entry_price"]),
            highest_price_seen=Decimal(d["highest_price_seen"]),
            trailing_stop_price=Decimal(d["trailing_stop_price"]),
            levels=[LevelState.from_dict(level) for level in d["levels"]],
            min_exit_value=Decimal(d["min_exit_value"]),
            created_at=datetime.fromisoformat(d["created_at"]),
            last_update=datetime.fromisoformat(d["last_update"]),
            sold_amount=Decimal(d.get("sold_amount", "0")),
            sold_value=Decimal(d.get("sold_value", "0")),
        )
