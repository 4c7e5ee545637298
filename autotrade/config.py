"""Configuration loader for the trading job.

Supports YAML format with environment variable interpolation.
"""
import os
from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal
from pathlib import Path
from typing import List

import yaml

from .models import SymbolConfig
from .orchestrator import EngineLimits


@dataclass
class ExchangeConfig:
    """NovaDAX exchange settings."""
    base_url: str = "https://api.novadax.com"
    timeout: int = 10
    max_retries: int = 5
    max_backoff_seconds: float = 60.0


@dataclass
class EngineConfig:
    """Order sizing limits and tracker housekeeping."""
    min_order_value: Decimal = Decimal("25")
    min_base_balance: Decimal = Decimal("1")
    amount_step: Decimal = Decimal("1")
    quote_step: Decimal = Decimal("1")
    tracker_max_age_hours: float = 24.0

    def limits(self) -> EngineLimits:
        return EngineLimits(
            min_order_value=self.min_order_value,
            min_base_balance=self.min_base_balance,
            amount_step=self.amount_step,
            quote_step=self.quote_step,
        )

    @property
    def tracker_max_age(self) -> timedelta:
        return timedelta(hours=self.tracker_max_age_hours)


@dataclass
class SchedulerConfig:
    enabled: bool = True
    check_interval_seconds: float = 180.0
    reaper_interval_seconds: float = 3600.0


@dataclass
class PersistenceConfig:
    """Database and logging settings."""
    db_path: str = "autotrade.db"
    log_file: str = "autotrade.log"
    log_level: str = "INFO"


@dataclass
class AutotradeConfig:
    """Complete trading job configuration."""
    exchange: ExchangeConfig = field(default_factory=ExchangeConfig)
    engine: EngineConfig = field(default_factory=EngineConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    persistence: PersistenceConfig = field(default_factory=PersistenceConfig)
    symbols: List[SymbolConfig] = field(default_factory=list)

    @classmethod
    def from_yaml(cls, config_path: str) -> "AutotradeConfig":
        """Load configuration from YAML file with env var interpolation.

        Example YAML:
            engine:
              min_order_value: 25
              amount_step: 1
            scheduler:
              check_interval_seconds: 180
            persistence:
              db_path: "${STATE_DIR}/autotrade.db"
            symbols:
              - symbol: MOG_BRL
                buy_threshold: -5
                sell_threshold: -5
                sell_strategy: basic
        """
        config_file = Path(config_path)
        if not config_file.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with config_file.open("r") as f:
            raw = f.read()

        # Interpolate environment variables: ${VAR_NAME}
        for key, value in os.environ.items():
            raw = raw.replace(f"${{{key}}}", value)

        data = yaml.safe_load(raw) or {}

        engine = EngineConfig(**{
            k: v if k == "tracker_max_age_hours" else Decimal(str(v))
            for k, v in data.get("engine", {}).items()
        })
        return cls(
            exchange=ExchangeConfig(**data.get("exchange", {})),
            engine=engine,
            scheduler=SchedulerConfig(**data.get("scheduler", {})),
            persistence=PersistenceConfig(**data.get("persistence", {})),
            symbols=[SymbolConfig.from_dict(s) for s in data.get("symbols", [])],
        )

    def to_yaml(self, output_path: str) -> None:
        """Save configuration to YAML file."""
        data = {
            "exchange": {
                "base_url": self.exchange.base_url,
                "timeout": self.exchange.timeout,
                "max_retries": self.exchange.max_retries,
                "max_backoff_seconds": self.exchange.max_backoff_seconds,
            },
            "engine": {
                "min_order_value": str(self.engine.min_order_value),
                "min_base_balance": str(self.engine.min_base_balance),
                "amount_step": str(self.engine.amount_step),
                "quote_step": str(self.engine.quote_step),
                "tracker_max_age_hours": self.engine.tracker_max_age_hours,
            },
            "scheduler": {
                "enabled": self.scheduler.enabled,
                "check_interval_seconds": self.scheduler.check_interval_seconds,
                "reaper_interval_seconds": self.scheduler.reaper_interval_seconds,
            },
            "persistence": {
                "db_path": self.persistence.db_path,
                "log_file": self.persistence.log_file,
                "log_level": self.persistence.log_level,
            },
            "symbols": [s.to_dict() for s in self.symbols],
        }

        output_file = Path(output_path)
        output_file.parent.mkdir(parents=True, exist_ok=True)
        with output_file.open("w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)
