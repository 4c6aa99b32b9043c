# src/storage/models.py
"""Persisted records: per-org profiles and EVI snapshots."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from src.decay.models import DecayState
from src.gaming.models import CounterSample, FlagOverride, GamingFlag, QuarantinedSignal
from src.models.errors import EngineNotice
from src.momentum.negative_momentum import MomentumState
from src.reinforcement.models import ConsistencyStreak
from src.shocks.models import ShockRecord


class TickTrigger(str, Enum):
    """What caused a recompute."""

    SCHEDULED = "scheduled"
    ACTIVITY = "activity"
    SHOCK = "shock"
    MANUAL = "manual"


@dataclass
class OrgVisibilityProfile:
    """Everything the engine tracks for one org between ticks.

    Only that org's pipeline mutates a profile, and only on a working copy
    that is persisted once the tick succeeds.

    Attributes:
        org_id: Tenant id.
        sub_values: Component -> {sub-metric -> current value}.
        decay_states: 'component.sub' -> DecayState.
        streak: Weeks with qualifying activity.
        shocks: Registered shock records, expired ones included.
        gaming_flags: flag_id -> GamingFlag.
        quarantine: Readings held for review.
        overrides: Audit trail of manual flag overrides.
        processed_keys: Consumed activity idempotency keys.
        counter_history: Raw counter samples for the anti-gaming scan.
        press_activity: Recent press activity timestamps.
        momentum: Negative-momentum status.
        last_computed_at: Timestamp of the latest snapshot.
        last_observed_at: observed_at of the latest applied signal batch.
    """

    org_id: str
    sub_values: dict[str, dict[str, float]] = field(default_factory=dict)
    decay_states: dict[str, DecayState] = field(default_factory=dict)
    streak: ConsistencyStreak | None = None
    shocks: list[ShockRecord] = field(default_factory=list)
    gaming_flags: dict[str, GamingFlag] = field(default_factory=dict)
    quarantine: list[QuarantinedSignal] = field(default_factory=list)
    overrides: list[FlagOverride] = field(default_factory=list)
    processed_keys: set[str] = field(default_factory=set)
    counter_history: list[CounterSample] = field(default_factory=list)
    press_activity: list[datetime] = field(default_factory=list)
    momentum: MomentumState = field(default_factory=MomentumState)
    last_computed_at: datetime | None = None
    last_observed_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.streak is None:
            self.streak = ConsistencyStreak(org_id=self.org_id)

    def flat_values(self) -> dict[str, float]:
        """Sub-metric name -> value across all components."""
        return {
            sub: value
            for subs in self.sub_values.values()
            for sub, value in subs.items()
        }


@dataclass(frozen=True)
class EVISnapshot:
    """Immutable result of one pipeline run.

    Attributes:
        org_id: Tenant id.
        timestamp: Computation time; with org_id, the snapshot key.
        evi: Final EVI after shocks and penalties, 0-100.
        visibility: Visibility component score.
        authority: Authority component score.
        momentum: Momentum component score.
        active_shock_ids: Shocks contributing to this EVI.
        active_gaming_flag_ids: Flags penalizing this EVI.
        composite_evi: Weighted component blend before overlays.
        shock_overlay: Signed shock contribution in EVI points.
        shock_contributions: Shock id -> signed contribution.
        penalty_multiplier: Π(1 − penalty_rate) over active flags.
        components: Component -> {sub-metric -> value} used.
        status_band: StatusBand value for evi.
        focus_driver: Component with the largest weighted headroom.
        decay_multiplier: λ multiplier used this tick.
        negative_momentum: True while accelerating decline is flagged.
        reversal_effort_multiplier: Effort needed to reverse the decline.
        stale_metrics: Sub-metrics served from their last-known value.
        notices: Non-fatal notices raised during the tick.
        trigger: What caused the recompute.
    """

    org_id: str
    timestamp: datetime
    evi: float
    visibility: float
    authority: float
    momentum: float
    active_shock_ids: tuple[str, ...] = ()
    active_gaming_flag_ids: tuple[str, ...] = ()
    composite_evi: float = 0.0
    shock_overlay: float = 0.0
    shock_contributions: dict[str, float] = field(default_factory=dict)
    penalty_multiplier: float = 1.0
    components: dict[str, dict[str, float]] = field(default_factory=dict)
    status_band: str = ""
    focus_driver: str = ""
    decay_multiplier: float = 1.0
    negative_momentum: bool = False
    reversal_effort_multiplier: float = 1.0
    stale_metrics: tuple[str, ...] = ()
    notices: tuple[EngineNotice, ...] = ()
    trigger: str = TickTrigger.SCHEDULED.value
