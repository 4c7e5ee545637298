"""
NovaDAX Spot Auto-Trading Engine.

A threshold-driven trading job for NovaDAX spot markets featuring:
- Buy/sell candidacy from the 24h percentage change with per-symbol thresholds
- Asymmetric price-distance safety gate against the last buy/sell prices
- Laddered partial exits (security, basic, aggressive) with a ratchet-only trailing stop
- Per-symbol asyncio locks around each fetch/decide/execute/confirm cycle
- Staleness reaper evicting idle exit cycles
- SQLite symbol configuration store and operations journal
- Async NovaDAX adapter (aiohttp) with signed requests and rate-limit backoff
- Structured logging via loguru
- Configuration-driven (YAML)

Core Modules:
    strategies: Sell strategy catalog
    gate: Threshold gate
    tracker: Partial-exit state machine
    orchestrator: Decision engine
    state_store: Tracker state store with per-symbol locks
    reaper: Staleness reaper
    service: Trading job (I/O shell)
    scheduler: Periodic job and reaper tasks
    persistence_sqlite: Symbol configs and operations journal
    novadax_adapter: NovaDAX API integration
    config: Configuration loading
    secrets: Credential management

Example:
    >>> from autotrade.novadax_adapter import NovaDaxAdapter
    >>> from autotrade.orchestrator import DecisionEngine
    >>> from autotrade.persistence_sqlite import SQLiteStore
    >>> from autotrade.secrets import load_credentials
    >>> from autotrade.service import TradingJob
    >>> from autotrade.state_store import InMemoryTrackerStore
    >>>
    >>> adapter = NovaDaxAdapter.from_credentials(load_credentials())
    >>> engine = DecisionEngine(InMemoryTrackerStore())
    >>> job = TradingJob(adapter, adapter, adapter, SQLiteStore("autotrade.db"), engine)
"""

__version__ = "0.1.0"
__all__ = [
    "strategies",
    "gate",
    "tracker",
    "orchestrator",
    "state_store",
    "reaper",
    "service",
    "scheduler",
    "persistence_sqlite",
    "novadax_adapter",
    "config",
    "secrets",
    "pnl",
]
