from decimal import Decimal

import pytest

from autotrade.errors import UnknownStrategyError
from autotrade.strategies import (
    SellStrategy,
    describe_rules,
    get_strategy,
    list_strategies,
    strategy_info,
)


@pytest.mark.parametrize("definition", list_strategies(), ids=lambda d: d.key.value)
def test_level_percentages_sum_to_one(definition):
    assert sum(level.percentage for level in definition.levels) == Decimal("1")


@pytest.mark.parametrize("definition", list_strategies(), ids=lambda d: d.key.value)
def test_levels_ascend_and_start_at_entry(definition):
    increases = [level.price_increase for level in definition.levels]
    assert increases == sorted(increases)
    assert increases[0] == 0


def test_default_is_security():
    assert SellStrategy.parse(None) is SellStrategy.SECURITY
    assert SellStrategy.parse("") is SellStrategy.SECURITY
    assert get_strategy().key is SellStrategy.SECURITY


def test_parse_is_case_insensitive():
    assert SellStrategy.parse(" Aggressive ") is SellStrategy.AGGRESSIVE


def test_unknown_key_raises_instead_of_falling_back():
    with pytest.raises(UnknownStrategyError, match="agressive"):
        SellStrategy.parse("agressive")
    # still a ValueError for callers that only know the builtin
    with pytest.raises(ValueError):
        get_strategy("conservative")


def test_aggressive_profile():
    definition = get_strategy(SellStrategy.AGGRESSIVE)
    assert len(definition.levels) == 1
    assert definition.trailing_stop_fraction == Decimal("0.02")
    assert definition.min_exit_value == Decimal("50")


def test_describe_rules_lists_every_level():
    text = describe_rules(get_strategy("security"))
    assert text.startswith("Level 1: sell 30% at entry price")
    assert "Level 4: sell 20% at +15%" in text
    assert text.endswith("trailing stop 5% below highest price")


def test_strategy_info_payload():
    info = strategy_info(SellStrategy.BASIC)
    assert info["type"] == "basic"
    assert info["name"] == "Basic"
    assert info["rule"]["trailingStop"] == 0.05
    assert [level["percentage"] for level in info["rule"]["levels"]] == [0.4, 0.3, 0.3]
