# src/forecast/models.py
"""Data models for EVI forecasting."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class ActionCertainty(str, Enum):
    """How firmly an action is committed.

    Sets nest: confirmed actions also count as planned, planned actions
    also count as opportunities.
    """

    CONFIRMED = "confirmed"
    PLANNED = "planned"
    OPPORTUNITY = "opportunity"


@dataclass(frozen=True)
class PlannedAction:
    """A future action expected to lift one driver.

    Attributes:
        id: Action id.
        certainty: Confirmed, planned or opportunity.
        driver: Component the action lifts.
        expected_driver_lift: Expected driver increase in points (>= 0).
        driver_weight: Weight of the driver in the EVI, 0-1.
        success_probability: Probability the action lands, 0-1.
        scheduled_step: First forecast step at which the action counts.
    """

    id: str
    certainty: ActionCertainty
    driver: str
    expected_driver_lift: float
    driver_weight: float
    success_probability: float
    scheduled_step: int = 1

    @property
    def effect(self) -> float:
        return self.expected_driver_lift * self.driver_weight * self.success_probability


@dataclass(frozen=True)
class ActionContribution:
    """Per-action share of each scenario band once the action is in effect."""

    action_id: str
    certainty: ActionCertainty
    scheduled_step: int
    effect: float
    low: float
    expected: float
    high: float


@dataclass
class Forecast:
    """Scenario trajectories for steps 1..horizon.

    Attributes:
        org_id: Forecast org.
        base_evi: EVI of the snapshot the forecast starts from.
        base_timestamp: Timestamp of that snapshot.
        horizon: Number of forecast steps.
        low: Conservative trajectory.
        expected: Expected trajectory.
        high: Optimistic trajectory.
        contributions: Per-action breakdown.
        generated_at: When the forecast was produced.
    """

    org_id: str
    base_evi: float
    base_timestamp: datetime
    horizon: int
    low: list[float]
    expected: list[float]
    high: list[float]
    contributions: list[ActionContribution] = field(default_factory=list)
    generated_at: datetime | None = None
