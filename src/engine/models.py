# src/engine/models.py
"""Data models for the EVI engine."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from src.storage.models import EVISnapshot


class EngineState(Enum):
    """State of the tick scheduler."""

    STOPPED = "stopped"
    RUNNING = "running"
    STOPPING = "stopping"


@dataclass
class TickResult:
    """Outcome of one org's tick."""

    org_id: str
    status: str
    timestamp: datetime
    snapshot: EVISnapshot | None = None
    error: str | None = None
    duplicate_keys: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status == "completed"


@dataclass(frozen=True)
class SnapshotComputed:
    """Emitted after a snapshot is committed."""

    org_id: str
    snapshot: EVISnapshot
    previous_evi: float | None = None

    @property
    def change(self) -> float | None:
        if self.previous_evi is None:
            return None
        return self.snapshot.evi - self.previous_evi
