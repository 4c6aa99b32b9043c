# src/engine/event_bus.py
"""Fan-out of SnapshotComputed events to downstream consumers."""
import inspect
import logging
from typing import Awaitable, Callable, Union

from src.engine.models import SnapshotComputed

logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[SnapshotComputed], Union[None, Awaitable[None]]]


class SnapshotEventBus:
    """Delivers SnapshotComputed to registered callbacks.

    Callbacks may be plain functions or coroutines. A failing callback is
    logged and does not affect the others or the committed snapshot.
    """

    def __init__(self):
        self._callbacks: list[SnapshotCallback] = []

    @property
    def callbacks(self) -> list[SnapshotCallback]:
        """Return the list of registered callbacks."""
        return self._callbacks

    def add_callback(self, callback: SnapshotCallback) -> None:
        """Add a callback to be called for each committed snapshot.

        Args:
            callback: Function or coroutine function taking a SnapshotComputed.
        """
        self._callbacks.append(callback)

    def remove_callback(self, callback: SnapshotCallback) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    async def emit(self, event: SnapshotComputed) -> None:
        for callback in self._callbacks:
            try:
                result = callback(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"SnapshotComputed callback failed for {event.org_id}: {e}")
