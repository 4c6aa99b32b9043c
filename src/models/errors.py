# src/models/errors.py
"""Errors and non-fatal notices raised or recorded by the EVI engine."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class EVIError(Exception):
    """Base class for input errors that abort one org's tick."""


class InvalidSignalRange(EVIError):
    """Raised when a raw value falls outside its declared domain."""

    def __init__(self, metric: str, value: float, lower: float, upper: float | None):
        self.metric = metric
        self.value = value
        self.lower = lower
        self.upper = upper
        super().__init__(
            f"Signal '{metric}' value {value} outside domain [{lower}, {upper if upper is not None else 'inf'}]"
        )


class IncompleteComponentInput(EVIError):
    """Raised when a component calculator is missing required sub-metrics."""

    def __init__(self, component: str, missing: list[str]):
        self.component = component
        self.missing = sorted(missing)
        super().__init__(
            f"Component '{component}' missing sub-metrics: {', '.join(self.missing)}"
        )


class ForecastInputInvalid(EVIError):
    """Raised for a malformed planned-action entry."""

    def __init__(self, action_id: str, reason: str):
        self.action_id = action_id
        self.reason = reason
        super().__init__(f"Planned action '{action_id}' invalid: {reason}")


class NoticeKind(str, Enum):
    """Non-fatal conditions surfaced on snapshots."""

    CLOCK_SKEW_ANOMALY = "ClockSkewAnomaly"
    STALE_SIGNAL_WARNING = "StaleSignalWarning"
    GAMING_PENALTY_APPLIED = "GamingPenaltyApplied"
    SIGNAL_QUARANTINED = "SignalQuarantined"


@dataclass(frozen=True)
class EngineNotice:
    """A non-fatal condition recorded on the snapshot.

    Attributes:
        kind: Notice type.
        message: Human-readable description.
        at: When the condition was observed.
        details: Structured context for provenance.
    """

    kind: NoticeKind
    message: str
    at: datetime
    details: dict = field(default_factory=dict)


def clock_skew_notice(at: datetime, key: str, skew_seconds: float) -> EngineNotice:
    """Notice for a reference timestamp that lies in the future."""
    return EngineNotice(
        kind=NoticeKind.CLOCK_SKEW_ANOMALY,
        message=f"{key}: reference time is {skew_seconds:.0f}s ahead, decay skipped",
        at=at,
        details={"key": key, "skew_seconds": skew_seconds},
    )


def stale_signal_notice(at: datetime, metric: str, reason: str = "missing") -> EngineNotice:
    """Notice for a sub-metric served from its last-known value."""
    return EngineNotice(
        kind=NoticeKind.STALE_SIGNAL_WARNING,
        message=f"{metric}: using last-known value ({reason})",
        at=at,
        details={"metric": metric, "reason": reason},
    )


def gaming_penalty_notice(
    at: datetime, flag_id: str, pattern_type: str, penalty_rate: float
) -> EngineNotice:
    """Provenance record for an applied gaming penalty."""
    return EngineNotice(
        kind=NoticeKind.GAMING_PENALTY_APPLIED,
        message=f"{pattern_type} flag {flag_id}: -{penalty_rate:.0%}",
        at=at,
        details={
            "flag_id": flag_id,
            "pattern_type": pattern_type,
            "penalty_rate": penalty_rate,
        },
    )


def quarantine_notice(at: datetime, metric: str, flag_id: str) -> EngineNotice:
    """Notice for a raw signal held back for manual review."""
    return EngineNotice(
        kind=NoticeKind.SIGNAL_QUARANTINED,
        message=f"{metric}: quarantined under flag {flag_id}",
        at=at,
        details={"metric": metric, "flag_id": flag_id},
    )
