"""
Sell strategy catalog.

A strategy describes how a position is unwound: a ladder of exit levels, each
selling a fraction of the position once price has risen a given fraction above
the entry price, plus a trailing stop that closes whatever remains.

The catalog is closed. ``SellStrategy`` enumerates every profile and
``get_strategy()`` maps each member to its immutable definition, so an unknown
key is an error instead of a silent fallback.

Examples:
    >>> definition = get_strategy(SellStrategy.parse("basic"))
    >>> [str(level.percentage) for level in definition.levels]
    ['0.4', '0.3', '0.3']
    >>> print(describe_rules(definition))
    Level 1: sell 40% at entry price; Level 2: sell 30% at +5%; Level 3: sell 30% at +10%; trailing stop 5% below highest price
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union

from .errors import UnknownStrategyError


class SellStrategy(Enum):
    """Closed set of exit profiles."""

    SECURITY = "security"
    BASIC = "basic"
    AGGRESSIVE = "aggressive"

    @classmethod
    def default(cls) -> "SellStrategy":
        return cls.SECURITY

    @classmethod
    def parse(cls, value: Union["SellStrategy", str, None]) -> "SellStrategy":
        """Resolve a stored strategy key.

        Missing or empty values resolve to the default profile. Anything else
        must name a catalog entry.

        Raises:
            UnknownStrategyError: If ``value`` is not a known key
        """
        if isinstance(value, SellStrategy):
            return value
        if value is None or str(value).strip() == "":
            return cls.default()
        key = str(value).strip().lower()
        try:
            return cls(key)
        except ValueError:
            valid = ", ".join(s.value for s in cls)
            raise UnknownStrategyError(f"Unknown sell strategy '{value}' (expected one of: {valid})")


@dataclass(frozen=True)
class ExitLevel:
    """One rung of the exit ladder.

    Attributes:
        percentage: Fraction of the initial position sold at this level
        price_increase: Fraction above entry price that triggers the level
    """

    percentage: Decimal
    price_increase: Decimal


@dataclass(frozen=True)
class StrategyDefinition:
    """Immutable description of an exit profile.

    Invariants:
        - sum(level.percentage) == 1
        - levels are ordered by ascending price_increase
    """

    key: SellStrategy
    name: str
    description: str
    levels: Tuple[ExitLevel, ...]
    trailing_stop_fraction: Decimal
    min_exit_value: Decimal

    def to_dict(self) -> Dict:
        return {
            "levels": [
                {"percentage": float(level.percentage), "priceIncrease": float(level.price_increase)}
                for level in self.levels
            ],
            "trailingStop": float(self.trailing_stop_fraction),
            "minSellValue": float(self.min_exit_value),
        }


def _levels(*pairs: Tuple[str, str]) -> Tuple[ExitLevel, ...]:
    return tuple(ExitLevel(percentage=Decimal(p), price_increase=Decimal(i)) for p, i in pairs)


_CATALOG: Dict[SellStrategy, StrategyDefinition] = {
    SellStrategy.SECURITY: StrategyDefinition(
        key=SellStrategy.SECURITY,
        name="Security",
        description="Conservative - sells 30% up front, then progressively",
        levels=_levels(("0.3", "0"), ("0.3", "0.05"), ("0.2", "0.10"), ("0.2", "0.15")),
        trailing_stop_fraction=Decimal("0.05"),
        min_exit_value=Decimal("50"),
    ),
    SellStrategy.BASIC: StrategyDefinition(
        key=SellStrategy.BASIC,
        name="Basic",
        description="Basic - sells 40% up front, then progressively",
        levels=_levels(("0.4", "0"), ("0.3", "0.05"), ("0.3", "0.10")),
        trailing_stop_fraction=Decimal("0.05"),
        min_exit_value=Decimal("50"),
    ),
    SellStrategy.AGGRESSIVE: StrategyDefinition(
        key=SellStrategy.AGGRESSIVE,
        name="Aggressive",
        description="Aggressive - sells 100% immediately",
        levels=_levels(("1.0", "0")),
        trailing_stop_fraction=Decimal("0.02"),
        min_exit_value=Decimal("50"),
    ),
}


def get_strategy(strategy: Union[SellStrategy, str, None] = None) -> StrategyDefinition:
    """Return the definition for ``strategy`` (default profile when None)."""
    return _CATALOG[SellStrategy.parse(strategy)]


def list_strategies() -> List[StrategyDefinition]:
    return [_CATALOG[s] for s in SellStrategy]


def _pct(fraction: Decimal) -> str:
    return f"{(fraction * 100).normalize():f}%"


def describe_rules(definition: StrategyDefinition) -> str:
    """Human-readable enumeration of a strategy's levels and trailing stop."""
    parts = []
    for i, level in enumerate(definition.levels, start=1):
        trigger = "at entry price" if level.price_increase == 0 else f"at +{_pct(level.price_increase)}"
        parts.append(f"Level {i}: sell {_pct(level.percentage)} {trigger}")
    parts.append(f"trailing stop {_pct(definition.trailing_stop_fraction)} below highest price")
    return "; ".join(parts)


def strategy_info(strategy: Optional[SellStrategy] = None) -> Dict:
    """Display payload for a strategy, as surfaced in status reports."""
    definition = get_strategy(strategy)
    return {
        "type": definition.key.value,
        "name": definition.name,
        "description": definition.description,
        "rule": definition.to_dict(),
        "ruleDescription": describe_rules(definition),
    }
