"""Data models for shock events."""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class ShockState(str, Enum):
    """Lifecycle of a shock. EXPIRED is terminal."""

    ACTIVE = "active"
    DECAYING = "decaying"
    EXPIRED = "expired"


@dataclass
class ShockRecord:
    """A registered shock and its lifecycle.

    Attributes:
        id: Shock id (from the ShockEvent).
        org_id: Owning org.
        category: ShockCategory value.
        direction: ShockDirection value.
        magnitude: Initial magnitude in EVI points (always positive).
        decay_rate: λs per day for positive shocks, recovery rate r per day
            for negative ones.
        occurred_at: When the shock happened.
        state: Current lifecycle state.
        last_contribution: Signed contribution at the last evaluation.
        expired_at: Evaluation time at which the shock expired.
    """

    id: str
    org_id: str
    category: str
    direction: str
    magnitude: float
    decay_rate: float
    occurred_at: datetime
    state: ShockState = ShockState.ACTIVE
    last_contribution: float = 0.0
    expired_at: datetime | None = None

    @property
    def is_positive(self) -> bool:
        return self.direction == "positive"

    @property
    def is_expired(self) -> bool:
        return self.state == ShockState.EXPIRED


@dataclass
class ShockOverlay:
    """Summed shock contribution at one evaluation time.

    Attributes:
        total: Signed sum in EVI points.
        contributions: Shock id -> signed contribution, for non-expired shocks.
        expired_ids: Shocks that expired during this evaluation.
    """

    total: float
    contributions: dict[str, float]
    expired_ids: list[str]
