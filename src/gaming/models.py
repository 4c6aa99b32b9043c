# src/gaming/models.py
"""Data models for the anti-gaming guard."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class PatternType(str, Enum):
    """Anomalous growth patterns."""

    LINK_SPIKE = "link_spike"
    PRESS_SURGE = "press_surge"
    DIVERSITY_COLLAPSE = "diversity_collapse"


class QuarantineStatus(str, Enum):
    PENDING_REVIEW = "pending_review"
    RELEASED = "released"


@dataclass(frozen=True)
class GamingFlag:
    """A penalty on an org's EVI for anomalous input.

    Attributes:
        id: Flag id, unique per org.
        org_id: Penalized org.
        pattern_type: Detected pattern.
        penalty_rate: Fraction removed from the EVI, 0.1-0.5.
        created_at: Detection time.
        expires_at: created_at + flag duration (90 days by default).
        counter: Raw counter that triggered the flag.
        observed_change: Relative change that triggered it (growth or drop).
        overridden_at: Set by a manual override, which ends the flag early.
        override_reason: Reviewer's note for the override.
    """

    id: str
    org_id: str
    pattern_type: PatternType
    penalty_rate: float
    created_at: datetime
    expires_at: datetime
    counter: str = ""
    observed_change: float = 0.0
    overridden_at: datetime | None = None
    override_reason: str | None = None

    def is_active(self, at: datetime) -> bool:
        """created_at <= at < expires_at, unless overridden before at."""
        if self.overridden_at is not None and at >= self.overridden_at:
            return False
        return self.created_at <= at < self.expires_at


@dataclass
class QuarantinedSignal:
    """A raw reading held out of the baseline update.

    Attributes:
        metric: Sub-metric name.
        flag_id: Flag that implicated the reading.
        raw_value: The withheld raw value, None if the batch had no reading.
        observed_at: Batch observation time.
        status: Review status.
    """

    metric: str
    flag_id: str
    raw_value: float | None
    observed_at: datetime
    status: QuarantineStatus = QuarantineStatus.PENDING_REVIEW


@dataclass(frozen=True)
class FlagOverride:
    """Audit record of a manual override."""

    flag_id: str
    org_id: str
    overridden_at: datetime
    reviewer: str
    reason: str


@dataclass
class CounterSample:
    """Raw counters observed for an org at one time."""

    observed_at: datetime
    counters: dict[str, float] = field(default_factory=dict)


@dataclass
class GamingScanResult:
    """Outcome of one anti-gaming scan.

    Attributes:
        new_flags: Flags created by this scan.
        quarantined: Readings quarantined by this scan.
        withheld: Sub-metric -> reason, for the normalizer.
    """

    new_flags: list[GamingFlag] = field(default_factory=list)
    quarantined: list[QuarantinedSignal] = field(default_factory=list)
    withheld: dict[str, str] = field(default_factory=dict)
