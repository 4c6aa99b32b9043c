# src/scoring/models.py
"""Data models for the scoring system."""
from dataclasses import dataclass, field
from enum import Enum


class StatusBand(str, Enum):
    """Status band classification for an EVI score."""

    AT_RISK = "at_risk"
    EMERGING = "emerging"
    COMPETITIVE = "competitive"
    DOMINANT = "dominant"

    @classmethod
    def from_score(cls, score: float) -> "StatusBand":
        """Get the band for a given EVI.

        Args:
            score: EVI from 0-100.

        Returns:
            StatusBand based on thresholds:
                - score <= 40 -> AT_RISK
                - score <= 60 -> EMERGING
                - score <= 80 -> COMPETITIVE
                - score > 80 -> DOMINANT
        """
        if score <= 40:
            return cls.AT_RISK
        elif score <= 60:
            return cls.EMERGING
        elif score <= 80:
            return cls.COMPETITIVE
        else:
            return cls.DOMINANT


class TrendDirection(str, Enum):
    UP = "up"
    DOWN = "down"
    STABLE = "stable"


@dataclass(frozen=True)
class ComponentScore:
    """Weighted blend for one component.

    Attributes:
        component: Component name.
        value: Σ(value_i × weight_i), 0-100.
        inputs: Sub-metric name -> normalized value used.
        contributions: Sub-metric name -> value_i × weight_i.
    """

    component: str
    value: float
    inputs: dict[str, float] = field(default_factory=dict)
    contributions: dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class CompositeScore:
    """Composite EVI before shocks and penalties.

    Attributes:
        evi: Clamped weighted sum of the components.
        components: Component name -> ComponentScore.
        weighted: Component name -> score × composite weight.
    """

    evi: float
    components: dict[str, ComponentScore]
    weighted: dict[str, float]

    @property
    def visibility(self) -> float:
        return self.components["visibility"].value

    @property
    def authority(self) -> float:
        return self.components["authority"].value

    @property
    def momentum(self) -> float:
        return self.components["momentum"].value


@dataclass(frozen=True)
class TrendSummary:
    """Movement of EVI across a snapshot history."""

    current_value: float
    previous_value: float
    change_pct: float
    direction: TrendDirection
    avg_value: float
    max_value: float
    min_value: float
