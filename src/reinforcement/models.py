"""Data models for activity reinforcement."""
from dataclasses import dataclass, field
from datetime import date


@dataclass
class ConsistencyStreak:
    """Weeks in which an org had qualifying activity.

    Attributes:
        org_id: Owning org.
        active_weeks: Monday dates of weeks with at least one qualifying activity.
    """

    org_id: str
    active_weeks: set[date] = field(default_factory=set)


@dataclass(frozen=True)
class ComponentDelta:
    """Reinforcement applied to one component in one batch.

    Attributes:
        component: Component name.
        activity_level: Σ magnitude of events reinforcing the component.
        pillars: Distinct pillars among those events.
        base_delta: k × ln(1 + activity_level × s).
        cross_pillar_multiplier: 1 + bonus × (pillars − 1), pillars capped.
        consistency_multiplier: 1 + step × min(active weeks, cap).
        delta: base_delta × both multipliers.
        applied_delta: Component increase actually realized after the 100 cap.
        sub_components: Sub-metrics the delta was spread over.
    """

    component: str
    activity_level: float
    pillars: tuple[str, ...]
    base_delta: float
    cross_pillar_multiplier: float
    consistency_multiplier: float
    delta: float
    applied_delta: float
    sub_components: tuple[str, ...]


@dataclass
class ReinforcementResult:
    """Outcome of applying one activity batch.

    Attributes:
        values: Component -> {sub-metric -> reinforced value}.
        deltas: Component -> ComponentDelta.
        applied_keys: Idempotency keys consumed by this batch.
        duplicate_keys: Keys skipped because they were already processed.
        rejected_keys: Keys skipped because they belong to another org.
    """

    values: dict[str, dict[str, float]]
    deltas: dict[str, ComponentDelta] = field(default_factory=dict)
    applied_keys: list[str] = field(default_factory=list)
    duplicate_keys: list[str] = field(default_factory=list)
    rejected_keys: list[str] = field(default_factory=list)
