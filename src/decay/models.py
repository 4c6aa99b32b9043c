"""Data models for the decay engine."""
from dataclasses import dataclass, field
from datetime import datetime

from src.models.errors import EngineNotice


@dataclass
class DecayState:
    """Decay timers for one (org, component, sub_component).

    Attributes:
        component: Component name.
        sub_component: Sub-metric name.
        last_reinforced_at: Last reinforcing activity of a matching type.
        decayed_through: Time through which decay has already been applied.
    """

    component: str
    sub_component: str
    last_reinforced_at: datetime | None = None
    decayed_through: datetime | None = None

    @property
    def key(self) -> str:
        return f"{self.component}.{self.sub_component}"

    @property
    def reference_time(self) -> datetime | None:
        """Start of the not-yet-decayed interval."""
        candidates = [t for t in (self.last_reinforced_at, self.decayed_through) if t is not None]
        return max(candidates) if candidates else None


@dataclass
class DecayResult:
    """Outcome of one decay pass.

    Attributes:
        values: Component -> {sub-metric -> decayed value}.
        factors: 'component.sub' -> multiplicative factor applied.
        notices: ClockSkewAnomaly notices.
    """

    values: dict[str, dict[str, float]]
    factors: dict[str, float] = field(default_factory=dict)
    notices: list[EngineNotice] = field(default_factory=list)
