# src/engine/scheduler.py
"""Periodic tick loop across all configured orgs."""
import asyncio
import logging

from src.config.settings import SchedulerSettings
from src.engine.evi_engine import EVIEngine
from src.engine.models import EngineState, TickResult

logger = logging.getLogger(__name__)


class TickScheduler:
    """Runs EVIEngine.tick_all on a fixed interval.

    A late tick needs no catch-up: the next run decays over the real elapsed
    time. Errors inside a cycle are logged and the loop keeps going.
    """

    def __init__(self, engine: EVIEngine, org_ids: list[str], settings: SchedulerSettings | None = None):
        """Initialize the scheduler.

        Args:
            engine: Engine to drive.
            org_ids: Orgs to tick each cycle.
            settings: Interval and start-up behavior.
        """
        self._engine = engine
        self._org_ids = list(org_ids)
        self._settings = settings or SchedulerSettings()
        self._state = EngineState.STOPPED
        self._task: asyncio.Task | None = None
        self._last_results: list[TickResult] = []
        self._cycles = 0

    @property
    def state(self) -> EngineState:
        """Return the current scheduler state."""
        return self._state

    @property
    def is_running(self) -> bool:
        """Return True if the scheduler is in RUNNING state."""
        return self._state == EngineState.RUNNING

    @property
    def org_ids(self) -> list[str]:
        return list(self._org_ids)

    @property
    def last_results(self) -> list[TickResult]:
        return list(self._last_results)

    @property
    def cycles(self) -> int:
        return self._cycles

    def add_org(self, org_id: str) -> None:
        if org_id not in self._org_ids:
            self._org_ids.append(org_id)

    async def start(self) -> None:
        """Start the tick loop."""
        if self._state != EngineState.STOPPED:
            raise RuntimeError("Scheduler already running")

        self._state = EngineState.RUNNING
        logger.info(
            f"Starting tick scheduler for {len(self._org_ids)} orgs, "
            f"interval {self._settings.tick_interval_seconds}s"
        )
        self._task = asyncio.create_task(self._run_loop())

    async def stop(self) -> None:
        """Stop the tick loop; an in-flight cycle is cancelled."""
        if self._state == EngineState.STOPPED:
            return

        self._state = EngineState.STOPPING
        logger.info("Stopping tick scheduler")

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        self._state = EngineState.STOPPED
        logger.info("Tick scheduler stopped")

    async def run_once(self) -> list[TickResult]:
        """Tick every org once."""
        results = await self._engine.tick_all(self._org_ids)
        self._last_results = results
        self._cycles += 1

        completed = sum(1 for r in results if r.ok)
        aborted = [r.org_id for r in results if not r.ok]
        if aborted:
            logger.warning(f"Tick cycle {self._cycles}: {completed} completed, not completed: {aborted}")
        else:
            logger.info(f"Tick cycle {self._cycles}: {completed} completed")
        return results

    async def _run_loop(self) -> None:
        try:
            if self._settings.run_on_start:
                await self._safe_run_once()
            while self._state == EngineState.RUNNING:
                await asyncio.sleep(self._settings.tick_interval_seconds)
                if self._state != EngineState.RUNNING:
                    break
                await self._safe_run_once()
        except asyncio.CancelledError:
            pass

    async def _safe_run_once(self) -> None:
        try:
            await self.run_once()
        except Exception as e:
            logger.error(f"Tick cycle error: {e}")
