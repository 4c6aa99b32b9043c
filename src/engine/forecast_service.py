# src/engine/forecast_service.py
"""On-demand forecasts with supersession of stale requests."""
import asyncio
import logging
from typing import Any

from src.forecast.forecast_engine import ForecastEngine
from src.forecast.models import Forecast, PlannedAction
from src.storage.snapshot_store import SnapshotStore

logger = logging.getLogger(__name__)


class ForecastService:
    """Serves forecasts from the latest committed snapshot.

    Only one request per (org_id, horizon) is in flight: a new request
    cancels the one it supersedes, whose caller sees CancelledError.
    Committed snapshots are never touched.
    """

    def __init__(self, snapshot_store: SnapshotStore, engine: ForecastEngine | None = None):
        """Initialize the service.

        Args:
            snapshot_store: Source of the starting snapshot.
            engine: Forecast engine. Defaults to ForecastEngine().
        """
        self._snapshots = snapshot_store
        self._engine = engine or ForecastEngine()
        self._tasks: dict[tuple[str, int], asyncio.Task] = {}

    @property
    def pending(self) -> list[tuple[str, int]]:
        """Keys of requests still in flight."""
        return [key for key, task in self._tasks.items() if not task.done()]

    async def request(
        self,
        org_id: str,
        actions: list[dict[str, Any] | PlannedAction],
        horizon: int,
    ) -> Forecast:
        """Forecast from the org's latest snapshot.

        Raises:
            LookupError: If the org has no snapshot yet.
            ForecastInputInvalid: For a malformed action.
            asyncio.CancelledError: If a newer request superseded this one.
        """
        key = (org_id, horizon)
        existing = self._tasks.get(key)
        if existing is not None and not existing.done():
            logger.info(f"Cancelling superseded forecast for {org_id} horizon {horizon}")
            existing.cancel()

        task = asyncio.create_task(self._compute(org_id, actions, horizon))
        self._tasks[key] = task
        try:
            return await task
        finally:
            if self._tasks.get(key) is task:
                del self._tasks[key]

    async def _compute(
        self,
        org_id: str,
        actions: list[dict[str, Any] | PlannedAction],
        horizon: int,
    ) -> Forecast:
        snapshot = await self._snapshots.latest(org_id)
        if snapshot is None:
            raise LookupError(f"No snapshot for {org_id}")
        return self._engine.forecast(org_id, snapshot.evi, snapshot.timestamp, actions, horizon)
