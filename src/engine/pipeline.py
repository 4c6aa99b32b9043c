# src/engine/pipeline.py
"""Single-org scoring pipeline."""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from src.config.settings import EVISettings
from src.decay.decay_engine import DecayEngine
from src.gaming.anti_gaming_guard import AntiGamingGuard
from src.models.errors import EngineNotice, clock_skew_notice, quarantine_notice
from src.models.evi import ActivityEvent, ActivityType, ShockEvent, SignalBatch
from src.momentum.negative_momentum import NegativeMomentumDetector
from src.reinforcement.consistency_tracker import ConsistencyTracker
from src.reinforcement.reinforcement_engine import ReinforcementEngine
from src.scoring.composite_scorer import CompositeScorer
from src.scoring.models import StatusBand
from src.shocks.shock_processor import ShockProcessor
from src.signals.normalizer import SignalNormalizer
from src.storage.models import EVISnapshot, OrgVisibilityProfile, TickTrigger

logger = logging.getLogger(__name__)


@dataclass
class PipelineOutcome:
    """Result of one pipeline run on a working profile."""

    snapshot: EVISnapshot
    profile: OrgVisibilityProfile
    duplicate_keys: list[str] = field(default_factory=list)
    rejected_keys: list[str] = field(default_factory=list)


class ScoringPipeline:
    """Computes one EVISnapshot for one org.

    Stage order:
        1. register shocks
        2. anti-gaming scan (quarantines implicated readings); a batch no
           newer than the last applied one is ignored
        3. normalize the signal batch
        4. negative momentum check, then decay with its multiplier
        5. reinforcement from activity
        6. component calculators and composite EVI
        7. shock overlay
        8. gaming penalty
        9. clamp to [0, 100]

    The pipeline does no I/O. It mutates the profile it is given, so callers
    pass a working copy and persist it only if run() returns.
    """

    def __init__(self, settings: EVISettings | None = None, normalizer: SignalNormalizer | None = None):
        """Initialize the pipeline.

        Args:
            settings: Engine settings. Defaults to EVISettings().
            normalizer: Signal normalizer. Defaults to the built-in contracts.
        """
        self._settings = settings or EVISettings()
        self._normalizer = normalizer or SignalNormalizer()
        self._scorer = CompositeScorer(self._settings.weights)
        self._decay = DecayEngine(self._settings.decay)
        self._reinforcement = ReinforcementEngine(
            self._settings.reinforcement,
            self._settings.weights,
            ConsistencyTracker(
                step=self._settings.reinforcement.consistency_step,
                max_weeks=self._settings.reinforcement.consistency_max_weeks,
            ),
        )
        self._shocks = ShockProcessor(self._settings.shocks)
        self._momentum = NegativeMomentumDetector(self._settings.momentum)
        self._guard = AntiGamingGuard(self._settings.gaming)

    @property
    def settings(self) -> EVISettings:
        return self._settings

    @property
    def scorer(self) -> CompositeScorer:
        return self._scorer

    @property
    def shock_processor(self) -> ShockProcessor:
        return self._shocks

    @property
    def gaming_guard(self) -> AntiGamingGuard:
        return self._guard

    def _register_shocks(self, profile: OrgVisibilityProfile, events: list[ShockEvent]) -> None:
        known = {shock.id for shock in profile.shocks}
        for event in events:
            if event.org_id != profile.org_id:
                logger.warning(f"Rejecting shock {event.id}: org {event.org_id} != {profile.org_id}")
                continue
            if event.id in known:
                logger.info(f"Skipping replayed shock {event.id}")
                continue
            profile.shocks.append(self._shocks.register(event))
            known.add(event.id)

    def _record_press_activity(
        self, profile: OrgVisibilityProfile, events: list[ActivityEvent], now: datetime
    ) -> None:
        for event in events:
            if (
                event.org_id == profile.org_id
                and event.type == ActivityType.PRESS_PLACEMENT
                and event.idempotency_key not in profile.processed_keys
            ):
                profile.press_activity.append(event.timestamp)
        cutoff = now - timedelta(days=self._settings.gaming.corroboration_window_days)
        profile.press_activity = sorted(ts for ts in profile.press_activity if ts >= cutoff)

    def _apply_batch(
        self,
        profile: OrgVisibilityProfile,
        batch: SignalBatch,
        withheld: dict[str, str],
        notices: list[EngineNotice],
    ) -> list[str]:
        """Normalize the batch into the profile's sub-values. Returns stale names.

        A reading observed at or before its sub-component's last
        reinforcement predates that activity and is not applied.
        """
        result = self._normalizer.normalize_batch(
            batch.signals, profile.flat_values(), batch.observed_at, withheld
        )
        notices.extend(result.notices)

        for name in result.fresh:
            contract = self._normalizer.contracts[name]
            key = f"{contract.component}.{name}"
            state = profile.decay_states.get(key)
            if (
                state is not None
                and state.last_reinforced_at is not None
                and batch.observed_at <= state.last_reinforced_at
            ):
                logger.info(f"Skipping {key} reading from {batch.observed_at}: reinforced at {state.last_reinforced_at}")
                continue
            profile.sub_values.setdefault(contract.component, {})[name] = result.values[name]
            if state is not None:
                # A fresh reading is already the decayed value as of observation
                state.decayed_through = batch.observed_at
        profile.last_observed_at = batch.observed_at
        return result.stale

    def run(
        self,
        profile: OrgVisibilityProfile,
        now: datetime,
        batch: SignalBatch | None = None,
        activities: list[ActivityEvent] | None = None,
        shocks: list[ShockEvent] | None = None,
        evi_history: list[tuple[datetime, float]] | None = None,
        trigger: TickTrigger = TickTrigger.SCHEDULED,
    ) -> PipelineOutcome:
        """Run every stage for one org.

        Args:
            profile: Working copy of the org profile. Mutated.
            now: Tick time (UTC).
            batch: Raw readings for this tick, if any.
            activities: Activity events to apply.
            shocks: New shock events.
            evi_history: Earlier (timestamp, evi) pairs, chronological.
            trigger: What caused the run.

        Returns:
            PipelineOutcome with the new snapshot.

        Raises:
            InvalidSignalRange: Out-of-domain reading in the batch.
            IncompleteComponentInput: A component has no usable value for
                some sub-metric.
        """
        activities = activities or []
        shocks = shocks or []
        evi_history = evi_history or []
        notices: list[EngineNotice] = []
        stale: list[str] = []

        if profile.last_computed_at is not None and now <= profile.last_computed_at:
            skew = (profile.last_computed_at - now).total_seconds()
            logger.warning(f"Tick for {profile.org_id} at or before its last snapshot ({skew:.0f}s), shifting forward")
            notices.append(clock_skew_notice(now, f"{profile.org_id}.snapshot", skew))
            now = profile.last_computed_at + timedelta(microseconds=1)

        self._register_shocks(profile, shocks)
        self._record_press_activity(profile, activities, now)

        if (
            batch is not None
            and profile.last_observed_at is not None
            and batch.observed_at <= profile.last_observed_at
        ):
            logger.info(f"Batch for {profile.org_id} observed at {batch.observed_at} already applied, ignoring")
            batch = None

        if batch is not None:
            scan = self._guard.scan(
                profile.org_id,
                batch.counters,
                batch.signals,
                profile.counter_history,
                list(profile.gaming_flags.values()),
                profile.press_activity,
                profile.shocks,
                batch.observed_at,
            )
            for flag in scan.new_flags:
                profile.gaming_flags[flag.id] = flag
            profile.quarantine.extend(scan.quarantined)
            notices.extend(
                quarantine_notice(batch.observed_at, q.metric, q.flag_id) for q in scan.quarantined
            )
            self._guard.record_counters(profile.counter_history, batch.counters, batch.observed_at)
            stale = self._apply_batch(profile, batch, scan.withheld, notices)

        profile.momentum = self._momentum.evaluate(evi_history, now, profile.momentum)
        decay_multiplier = profile.momentum.decay_multiplier

        decayed = self._decay.apply(profile.sub_values, profile.decay_states, now, decay_multiplier)
        notices.extend(decayed.notices)

        reinforced = self._reinforcement.apply(
            profile.org_id,
            activities,
            decayed.values,
            profile.decay_states,
            profile.streak,
            profile.processed_keys,
            now,
        )
        profile.sub_values = reinforced.values

        composite = self._scorer.score(profile.sub_values)
        overlay = self._shocks.overlay(profile.shocks, now)
        penalized, active_flags, penalty_notices = self._guard.apply_penalties(
            composite.evi + overlay.total, list(profile.gaming_flags.values()), now
        )
        notices.extend(penalty_notices)
        evi = max(0.0, min(100.0, penalized))

        penalty_multiplier = 1.0
        for flag in active_flags:
            penalty_multiplier *= 1.0 - flag.penalty_rate

        snapshot = EVISnapshot(
            org_id=profile.org_id,
            timestamp=now,
            evi=evi,
            visibility=composite.visibility,
            authority=composite.authority,
            momentum=composite.momentum,
            active_shock_ids=tuple(overlay.contributions),
            active_gaming_flag_ids=tuple(flag.id for flag in active_flags),
            composite_evi=composite.evi,
            shock_overlay=overlay.total,
            shock_contributions=dict(overlay.contributions),
            penalty_multiplier=penalty_multiplier,
            components={name: dict(score.inputs) for name, score in composite.components.items()},
            status_band=StatusBand.from_score(evi).value,
            focus_driver=self._scorer.recommend_focus_driver(composite),
            decay_multiplier=decay_multiplier,
            negative_momentum=profile.momentum.flagged,
            reversal_effort_multiplier=profile.momentum.reversal_effort_multiplier,
            stale_metrics=tuple(stale),
            notices=tuple(notices),
            trigger=trigger.value,
        )
        profile.last_computed_at = now

        return PipelineOutcome(
            snapshot=snapshot,
            profile=profile,
            duplicate_keys=reinforced.duplicate_keys,
            rejected_keys=reinforced.rejected_keys,
        )
