# src/reinforcement/reinforcement_engine.py
"""Diminishing-returns reinforcement from activity batches."""
import logging
import math
from collections import defaultdict
from datetime import datetime

from src.config.settings import ReinforcementSettings, WeightSettings
from src.decay.models import DecayState
from src.models.evi import ActivityEvent
from src.reinforcement.consistency_tracker import ConsistencyTracker
from src.reinforcement.models import ComponentDelta, ConsistencyStreak, ReinforcementResult

logger = logging.getLogger(__name__)


class ReinforcementEngine:
    """Turns a batch of ActivityEvents into additive component deltas.

    Per component:
        ΔComponent = k × ln(1 + activity_level × s)
                     × (1 + bonus × (pillars − 1))     pillars capped at 3
                     × (1 + step × min(active_weeks, 12))

    The delta is spread across the sub-components the activity types
    reinforce, scaled by their weights so the component itself rises by
    exactly Δ (less only where a sub-component hits 100). Reinforced
    sub-components get their last_reinforced_at reset.

    Events are consumed at most once: keys already in the processed set, or
    repeated within the batch, are skipped.
    """

    def __init__(
        self,
        settings: ReinforcementSettings | None = None,
        weights: WeightSettings | None = None,
        tracker: ConsistencyTracker | None = None,
    ):
        """Initialize the engine.

        Args:
            settings: Curve parameters, bonuses and the activity map.
            weights: Sub-metric weights used to spread deltas.
            tracker: Consistency streak tracker.
        """
        self._settings = settings or ReinforcementSettings()
        self._weights = weights or WeightSettings()
        self._tracker = tracker or ConsistencyTracker(
            step=self._settings.consistency_step,
            max_weeks=self._settings.consistency_max_weeks,
        )

    @property
    def tracker(self) -> ConsistencyTracker:
        return self._tracker

    def base_delta(self, component: str, activity_level: float) -> float:
        """k × ln(1 + activity_level × s) for a component."""
        if activity_level <= 0:
            return 0.0
        curve = self._settings.curves[component]
        return curve.k * math.log1p(activity_level * curve.s)

    def cross_pillar_multiplier(self, distinct_pillars: int) -> float:
        """1.00 for one pillar, +bonus per extra pillar up to max_pillars."""
        pillars = min(max(distinct_pillars, 1), self._settings.max_pillars)
        return 1.0 + self._settings.cross_pillar_bonus * (pillars - 1)

    def apply(
        self,
        org_id: str,
        events: list[ActivityEvent],
        sub_values: dict[str, dict[str, float]],
        decay_states: dict[str, DecayState],
        streak: ConsistencyStreak,
        processed_keys: set[str],
        now: datetime,
    ) -> ReinforcementResult:
        """Apply one batch of activity.

        Args:
            org_id: Org whose pipeline is running.
            events: Candidate events (may contain replays).
            sub_values: Component -> {sub-metric -> value}; not mutated.
            decay_states: 'component.sub' -> DecayState. Updated in place.
            streak: The org's consistency streak. Updated in place.
            processed_keys: Already consumed idempotency keys. Updated in place.
            now: Tick time; the consistency multiplier is evaluated here.

        Returns:
            ReinforcementResult with new values and per-component provenance.
        """
        values = {component: dict(subs) for component, subs in sub_values.items()}
        result = ReinforcementResult(values=values)

        accepted: list[ActivityEvent] = []
        for event in events:
            if event.org_id != org_id:
                logger.warning(f"Rejecting activity {event.idempotency_key}: org {event.org_id} != {org_id}")
                result.rejected_keys.append(event.idempotency_key)
                continue
            if event.idempotency_key in processed_keys:
                logger.info(f"Skipping replayed activity {event.idempotency_key}")
                result.duplicate_keys.append(event.idempotency_key)
                continue
            processed_keys.add(event.idempotency_key)
            result.applied_keys.append(event.idempotency_key)
            accepted.append(event)

        if not accepted:
            return result

        consistency = self._tracker.multiplier(streak, now)

        levels: dict[str, float] = defaultdict(float)
        pillars: dict[str, set[str]] = defaultdict(set)
        subs_touched: dict[str, dict[str, datetime]] = defaultdict(dict)

        for event in accepted:
            targets = self._settings.reinforcement_map.get(event.type.value, {})
            if not targets:
                logger.warning(f"Activity type {event.type.value} reinforces nothing")
            for component, subs in targets.items():
                levels[component] += event.magnitude
                pillars[component].update(p.value for p in event.pillars)
                for sub in subs:
                    previous = subs_touched[component].get(sub)
                    if previous is None or event.timestamp > previous:
                        subs_touched[component][sub] = event.timestamp
            self._tracker.record_activity(streak, event.timestamp)

        for component, level in levels.items():
            weights = self._weights.for_component(component)
            reinforced = [
                sub for sub in subs_touched[component]
                if sub in weights and sub in values.get(component, {})
            ]
            base = self.base_delta(component, level)
            cross = self.cross_pillar_multiplier(len(pillars[component]))
            delta = base * cross * consistency

            applied = 0.0
            weight_sum = sum(weights[sub] for sub in reinforced)
            if weight_sum > 0:
                per_sub = delta / weight_sum
                for sub in reinforced:
                    before = values[component][sub]
                    after = min(100.0, before + per_sub)
                    values[component][sub] = after
                    applied += (after - before) * weights[sub]

                    key = f"{component}.{sub}"
                    state = decay_states.get(key)
                    if state is None:
                        state = DecayState(component=component, sub_component=sub)
                        decay_states[key] = state
                    state.last_reinforced_at = subs_touched[component][sub]
            else:
                logger.warning(f"No baseline values to reinforce for {component}, delta {delta:.2f} not applied")

            result.deltas[component] = ComponentDelta(
                component=component,
                activity_level=level,
                pillars=tuple(sorted(pillars[component])),
                base_delta=base,
                cross_pillar_multiplier=cross,
                consistency_multiplier=consistency,
                delta=delta,
                applied_delta=applied,
                sub_components=tuple(sorted(reinforced)),
            )

        self._tracker.prune(streak, now)
        return result
