"""Symbol configuration store and operations journal.

``ConfigStore`` is what the trading job reads configurations from and writes
reference prices and executed operations back to. ``InMemoryConfigStore``
backs tests and the demo; ``SQLiteStore`` (persistence_sqlite) is the
durable implementation.
"""
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Dict, List, Optional

from .errors import ConfigNotFoundError
from .models import Operation, OrderSide, OrderStatus, SymbolConfig
from .pnl import price_stats


class ConfigStore(ABC):
    @abstractmethod
    def read_symbol_config(self, symbol: str) -> Optional[SymbolConfig]:
        pass

    @abstractmethod
    def list_symbol_configs(self, enabled_only: bool = False) -> List[SymbolConfig]:
        pass

    @abstractmethod
    def upsert_symbol_config(self, cfg: SymbolConfig) -> None:
        pass

    @abstractmethod
    def remove_symbol(self, symbol: str) -> bool:
        """Delete a symbol; returns False if it did not exist."""
        pass

    @abstractmethod
    def record_operation(self, op: Operation) -> Operation:
        """Persist ``op`` and return it with its id assigned."""
        pass

    @abstractmethod
    def list_operations(self, symbol: Optional[str] = None, limit: Optional[int] = None) -> List[Operation]:
        """Operations newest first, optionally filtered by symbol."""
        pass

    def require_symbol_config(self, symbol: str) -> SymbolConfig:
        cfg = self.read_symbol_config(symbol)
        if cfg is None:
            raise ConfigNotFoundError(f"No configuration for symbol {symbol.upper()}")
        return cfg

    def toggle_symbol(self, symbol: str, enabled: Optional[bool] = None) -> SymbolConfig:
        """Flip (or set) the enabled flag of a symbol.

        Raises:
            ConfigNotFoundError: If the symbol is unknown
        """
        cfg = self.require_symbol_config(symbol)
        cfg.enabled = (not cfg.enabled) if enabled is None else enabled
        self.upsert_symbol_config(cfg)
        return cfg

    def write_back_prices(
        self,
        symbol: str,
        last_buy_price: Optional[Decimal] = None,
        last_sell_price: Optional[Decimal] = None,
    ) -> SymbolConfig:
        cfg = self.require_symbol_config(symbol).with_prices(last_buy_price, last_sell_price)
        self.upsert_symbol_config(cfg)
        return cfg

    def last_successful_operation(self, symbol: str, side: OrderSide) -> Optional[Operation]:
        for op in self.list_operations(symbol):
            if op.side is side and op.status is OrderStatus.SUCCESS:
                return op
        return None

    def price_stats(self, symbol: str) -> Dict:
        """Last and recent average execution prices of a configured symbol.

        Raises:
            ConfigNotFoundError: If the symbol is unknown
        """
        cfg = self.require_symbol_config(symbol)
        stats = price_stats(self.list_operations(cfg.symbol))
        stats["symbol"] = cfg.symbol
        return stats


class InMemoryConfigStore(ConfigStore):
    def __init__(self, configs: Optional[List[SymbolConfig]] = None):
        self._configs: Dict[str, SymbolConfig] = {}
        self._operations: List[Operation] = []
        for cfg in configs or []:
            self.upsert_symbol_config(cfg)

    def read_symbol_config(self, symbol: str) -> Optional[SymbolConfig]:
        cfg = self._configs.get(symbol.upper())
        return SymbolConfig.from_dict(cfg.to_dict()) if cfg is not None else None

    def list_symbol_configs(self, enabled_only: bool = False) -> List[SymbolConfig]:
        out = [SymbolConfig.from_dict(c.to_dict()) for _, c in sorted(self._configs.items())]
        return [c for c in out if c.enabled] if enabled_only else out

    def upsert_symbol_config(self, cfg: SymbolConfig) -> None:
        self._configs[cfg.symbol] = SymbolConfig.from_dict(cfg.to_dict())

    def remove_symbol(self, symbol: str) -> bool:
        return self._configs.pop(symbol.upper(), None) is not None

    def record_operation(self, op: Operation) -> Operation:
        op.id = len(self._operations) + 1
        self._operations.append(op)
        return op

    def list_operations(self, symbol: Optional[str] = None, limit: Optional[int] = None) -> List[Operation]:
        ops = [op for op in reversed(self._operations) if symbol is None or op.symbol == symbol.upper()]
        return ops[:limit] if limit is not None else ops
