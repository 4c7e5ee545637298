"""Exception hierarchy and structured outcome kinds.

Conditions the engine reports as results (a gate denial, a balance that is
too small, an amount that floors to zero) are described by ``ErrorKind`` and
never raised. Exceptions are reserved for collaborators that fail (exchange,
storage) and for programmer errors such as an unknown strategy key.
"""
from enum import Enum


class ErrorKind(Enum):
    """Why a decision did not produce an order."""

    NO_CONDITION = "no_condition"
    DISABLED = "disabled"
    INELIGIBLE = "ineligible"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    ZERO_AMOUNT = "zero_amount"
    BELOW_MINIMUM_NOTIONAL = "below_minimum_notional"
    UPSTREAM_FAILURE = "upstream_failure"


class AutotradeError(Exception):
    pass


class UnknownStrategyError(AutotradeError, ValueError):
    """Raised when a sell strategy key is not part of the catalog."""
    pass


class ConfigNotFoundError(AutotradeError, KeyError):
    """Raised when a symbol has no stored configuration."""
    pass


class ExchangeAPIError(AutotradeError):
    pass


class RateLimitError(ExchangeAPIError):
    """Raised when rate limit is hit and backoff is exhausted."""
    pass
