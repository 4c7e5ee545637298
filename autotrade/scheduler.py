"""Async scheduler: one periodic job task per symbol plus the staleness reaper.

Each task is a ``PeriodicTask`` wrapping an async callback. Tasks are
explicitly started and stopped; stopping cancels the underlying asyncio task
and waits for it, so no cycle keeps running after ``stop()`` returns.
"""
import asyncio
from typing import Awaitable, Callable, Dict, Optional

from .config import SchedulerConfig
from .logging_setup import logger
from .reaper import StalenessReaper
from .service import TradingJob


class PeriodicTask:
    """Run an async callback every ``interval`` seconds until stopped."""

    def __init__(self, name: str, interval_seconds: float, callback: Callable[[], Awaitable]):
        self.name = name
        self.interval = interval_seconds
        self.callback = callback
        self.runs = 0
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._loop(), name=self.name)

    async def stop(self) -> None:
        """Signal the loop to stop and wait for it to finish."""
        if self._task is None:
            return
        self._stop_event.set()
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                await self.callback()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                # One failed run must not end the schedule.
                logger.exception(f"Periodic task failed | task={self.name} error={e}")
            self.runs += 1
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass


class JobScheduler:
    """Owns the per-symbol job tasks and the reaper task."""

    def __init__(self, job: TradingJob, reaper: StalenessReaper, config: Optional[SchedulerConfig] = None):
        self.job = job
        self.reaper = reaper
        self.config = config or SchedulerConfig()
        self.tasks: Dict[str, PeriodicTask] = {}

    def start(self) -> None:
        """Start one task per enabled symbol (if scheduling is enabled) and the reaper."""
        if self.config.enabled:
            for cfg in self.job.configs.list_symbol_configs(enabled_only=True):
                interval = cfg.check_interval_seconds or self.config.check_interval_seconds
                self._start_task(cfg.symbol, interval, self._symbol_callback(cfg.symbol))
        self._start_task("reaper", self.config.reaper_interval_seconds, self.reaper.run_once)
        logger.info(f"Scheduler started | tasks={sorted(self.tasks)}")

    def _start_task(self, name: str, interval: float, callback) -> None:
        task = PeriodicTask(name, interval, callback)
        self.tasks[name] = task
        task.start()

    def _symbol_callback(self, symbol: str):
        async def run():
            result = await self.job.run_symbol(symbol)
            logger.debug(f"Job cycle | symbol={symbol} action={result.action} reason={result.reason}")
            return result

        return run

    async def reload(self) -> None:
        """Restart tasks so configuration changes take effect."""
        await self.stop()
        self.start()

    async def stop(self) -> None:
        await asyncio.gather(*(task.stop() for task in self.tasks.values()))
        self.tasks.clear()
        logger.info("Scheduler stopped")
