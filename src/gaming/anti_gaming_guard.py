# src/gaming/anti_gaming_guard.py
"""Anti-gaming guard: anomaly scan, quarantine and penalties."""
import logging
from dataclasses import replace
from datetime import datetime, timedelta

from src.config.settings import GamingSettings
from src.gaming.models import (
    CounterSample,
    FlagOverride,
    GamingFlag,
    GamingScanResult,
    PatternType,
    QuarantinedSignal,
    QuarantineStatus,
)
from src.models.errors import EngineNotice, gaming_penalty_notice
from src.models.evi import RawSignal
from src.shocks.models import ShockRecord

logger = logging.getLogger(__name__)

# Raw counter -> (pattern, sub-metric whose reading is quarantined)
COUNTER_PATTERNS: dict[str, tuple[PatternType, str]] = {
    "backlinks": (PatternType.LINK_SPIKE, "domain_authority"),
    "citation_sources": (PatternType.LINK_SPIKE, "citation_quality"),
    "press_mentions": (PatternType.PRESS_SURGE, "press_coverage"),
    "citation_source_diversity": (PatternType.DIVERSITY_COLLAPSE, "citation_quality"),
}

# Positive shocks that count as press corroboration
PRESS_SHOCK_CATEGORIES = {"tier1_media_win", "viral_coverage"}


class AntiGamingGuard:
    """Detects anomalous input growth and penalizes the EVI.

    Counters are compared with the most recent sample at least
    comparison_window_days old:
        link spike         growth > 200% (backlinks, citation sources)
        press surge        growth > 300% with no press activity or positive
                           press shock in the corroboration window
        diversity collapse drop > 50% in citation-source diversity

    Each detection creates a GamingFlag with
    penalty_rate = clamp(min + step × (severity − 1), min, max) where
    severity = observed change / threshold, and quarantines the implicated
    sub-metric reading. While a flag of the same pattern is active no
    second flag is raised for it; the reading is still quarantined.
    """

    def __init__(self, settings: GamingSettings | None = None):
        """Initialize the guard.

        Args:
            settings: Thresholds, penalty bounds and windows.
        """
        self._settings = settings or GamingSettings()

    def penalty_rate(self, severity: float) -> float:
        """Map severity (observed change / threshold) to a penalty rate."""
        s = self._settings
        rate = s.min_penalty_rate + s.severity_step * (severity - 1.0)
        return max(s.min_penalty_rate, min(s.max_penalty_rate, rate))

    def comparison_value(
        self, history: list[CounterSample], counter: str, now: datetime
    ) -> float | None:
        """Latest value of counter observed at least the comparison window before now."""
        cutoff = now - timedelta(days=self._settings.comparison_window_days)
        value = None
        for sample in history:
            if sample.observed_at > cutoff:
                break
            if counter in sample.counters:
                value = sample.counters[counter]
        return value

    def is_press_corroborated(
        self,
        press_activity: list[datetime],
        shocks: list[ShockRecord],
        now: datetime,
    ) -> bool:
        """True if press activity or a positive press shock falls in the window."""
        start = now - timedelta(days=self._settings.corroboration_window_days)
        if any(start <= ts <= now for ts in press_activity):
            return True
        return any(
            shock.is_positive
            and shock.category in PRESS_SHOCK_CATEGORIES
            and start <= shock.occurred_at <= now
            for shock in shocks
        )

    def _detect(self, counter: str, previous: float, current: float) -> tuple[float, float] | None:
        """Return (observed_change, threshold) when the counter is anomalous."""
        pattern, _ = COUNTER_PATTERNS[counter]
        if previous <= 0:
            return None
        if pattern == PatternType.DIVERSITY_COLLAPSE:
            drop = (previous - current) / previous
            threshold = self._settings.diversity_collapse_threshold
            return (drop, threshold) if drop > threshold else None

        growth = (current - previous) / previous
        if pattern == PatternType.PRESS_SURGE:
            threshold = self._settings.press_surge_threshold
        else:
            threshold = self._settings.link_spike_threshold
        return (growth, threshold) if growth > threshold else None

    def scan(
        self,
        org_id: str,
        counters: dict[str, float],
        signals: dict[str, RawSignal],
        history: list[CounterSample],
        existing_flags: list[GamingFlag],
        press_activity: list[datetime],
        shocks: list[ShockRecord],
        now: datetime,
    ) -> GamingScanResult:
        """Scan one batch of raw counters.

        Args:
            org_id: Org being scanned.
            counters: Raw counters from the current batch.
            signals: Raw sub-metric readings from the current batch.
            history: The org's earlier counter samples, chronological.
            existing_flags: The org's flags so far.
            press_activity: Timestamps of recent press activity.
            shocks: The org's shock records.
            now: Observation time.

        Returns:
            GamingScanResult with new flags and quarantined readings.
        """
        result = GamingScanResult()
        active_by_pattern = {
            flag.pattern_type: flag for flag in existing_flags if flag.is_active(now)
        }

        for counter, current in counters.items():
            if counter not in COUNTER_PATTERNS:
                continue
            pattern, metric = COUNTER_PATTERNS[counter]
            previous = self.comparison_value(history, counter, now)
            if previous is None:
                continue
            detected = self._detect(counter, previous, current)
            if detected is None:
                continue
            change, threshold = detected

            if pattern == PatternType.PRESS_SURGE and self.is_press_corroborated(
                press_activity, shocks, now
            ):
                logger.info(f"Press surge for {org_id} ({change:.0%}) corroborated, not flagged")
                continue

            flag = active_by_pattern.get(pattern)
            if flag is None:
                flag = GamingFlag(
                    id=f"{org_id}:{pattern.value}:{counter}:{now.strftime('%Y%m%dT%H%M%S')}",
                    org_id=org_id,
                    pattern_type=pattern,
                    penalty_rate=self.penalty_rate(change / threshold),
                    created_at=now,
                    expires_at=now + timedelta(days=self._settings.flag_duration_days),
                    counter=counter,
                    observed_change=change,
                )
                active_by_pattern[pattern] = flag
                result.new_flags.append(flag)
                logger.warning(
                    f"Gaming flag {flag.id}: {counter} changed {change:+.0%} "
                    f"(threshold {threshold:.0%}), penalty {flag.penalty_rate:.0%}"
                )

            if metric not in result.withheld:
                raw = signals.get(metric)
                result.withheld[metric] = f"quarantined:{flag.id}"
                result.quarantined.append(
                    QuarantinedSignal(
                        metric=metric,
                        flag_id=flag.id,
                        raw_value=raw.value if raw is not None else None,
                        observed_at=now,
                    )
                )
                logger.warning(f"Quarantined {metric} for {org_id} pending review")

        return result

    def record_counters(
        self, history: list[CounterSample], counters: dict[str, float], now: datetime
    ) -> None:
        """Append a counter sample and drop samples past the retention window."""
        if counters:
            history.append(CounterSample(observed_at=now, counters=dict(counters)))
        cutoff = now - timedelta(days=self._settings.counter_history_days)
        history[:] = [sample for sample in history if sample.observed_at >= cutoff]

    def apply_penalties(
        self, evi: float, flags: list[GamingFlag], at: datetime
    ) -> tuple[float, list[GamingFlag], list[EngineNotice]]:
        """EVI × Π(1 − penalty_rate) over flags active at `at`.

        Returns:
            (penalized EVI, active flags, GamingPenaltyApplied notices)
        """
        active = [flag for flag in flags if flag.is_active(at)]
        multiplier = 1.0
        notices: list[EngineNotice] = []
        for flag in active:
            multiplier *= 1.0 - flag.penalty_rate
            notices.append(
                gaming_penalty_notice(at, flag.id, flag.pattern_type.value, flag.penalty_rate)
            )
        return evi * multiplier, active, notices

    def override_flag(
        self,
        flag: GamingFlag,
        reviewer: str,
        reason: str,
        at: datetime,
    ) -> tuple[GamingFlag, FlagOverride]:
        """End a flag early after manual review.

        Returns:
            (overridden flag, audit record)
        """
        if not reason:
            raise ValueError("Override requires a reason")
        overridden = replace(flag, overridden_at=at, override_reason=reason)
        record = FlagOverride(
            flag_id=flag.id,
            org_id=flag.org_id,
            overridden_at=at,
            reviewer=reviewer,
            reason=reason,
        )
        logger.warning(f"Gaming flag {flag.id} overridden by {reviewer} at {at.isoformat()}: {reason}")
        return overridden, record

    def release_quarantine(self, quarantine: list[QuarantinedSignal], flag_id: str) -> int:
        """Mark the readings held under an overridden flag as released.

        Returns:
            Number of readings released.
        """
        released = 0
        for held in quarantine:
            if held.flag_id == flag_id and held.status == QuarantineStatus.PENDING_REVIEW:
                held.status = QuarantineStatus.RELEASED
                released += 1
        if released:
            logger.info(f"Released {released} quarantined reading(s) held under {flag_id}")
        return released
