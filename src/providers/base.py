# src/providers/base.py
from abc import ABC, abstractmethod
from datetime import datetime

from src.models.evi import SignalBatch


class BaseSignalProvider(ABC):
    """Abstract base class for raw signal providers."""

    def __init__(self, name: str):
        self._name = name
        self._connected = False

    @property
    def name(self) -> str:
        return self._name

    @property
    def is_connected(self) -> bool:
        return self._connected

    @abstractmethod
    async def connect(self) -> None:
        """Open the underlying data source."""
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Release the underlying data source."""
        pass

    @abstractmethod
    async def fetch(self, org_id: str, as_of: datetime) -> SignalBatch | None:
        """Return the latest raw readings for an org.

        Args:
            org_id: Tenant id.
            as_of: Tick time requesting the batch.

        Returns:
            SignalBatch, or None when nothing is available yet.
        """
        pass
