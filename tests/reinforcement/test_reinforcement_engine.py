# tests/reinforcement/test_reinforcement_engine.py
"""Tests for ReinforcementEngine and ConsistencyTracker."""
import math
from datetime import date, timedelta

import pytest

from src.decay.models import DecayState
from src.models.evi import ActivityEvent, ActivityType, Pillar
from src.reinforcement.consistency_tracker import ConsistencyTracker
from src.reinforcement.models import ConsistencyStreak
from src.reinforcement.reinforcement_engine import ReinforcementEngine
from tests.helpers import T0, uniform_sub_values


def make_event(
    key: str = "evt-1",
    org_id: str = "acme",
    activity_type: ActivityType = ActivityType.PRESS_PLACEMENT,
    pillars: list[Pillar] | None = None,
    magnitude: float = 1.0,
    timestamp=T0,
) -> ActivityEvent:
    """Create an ActivityEvent for testing."""
    return ActivityEvent(
        idempotency_key=key,
        org_id=org_id,
        pillars=pillars or [Pillar.PR],
        type=activity_type,
        magnitude=magnitude,
        timestamp=timestamp,
    )


def apply(engine, events, sub_values=None, streak=None, processed=None, states=None):
    return engine.apply(
        "acme",
        events,
        sub_values or uniform_sub_values(50.0, 50.0, 50.0),
        states if states is not None else {},
        streak or ConsistencyStreak(org_id="acme"),
        processed if processed is not None else set(),
        T0,
    )


class TestDeltaCurve:
    @pytest.fixture
    def engine(self):
        return ReinforcementEngine()

    def test_base_delta(self, engine):
        assert engine.base_delta("visibility", 1.0) == pytest.approx(6.0 * math.log(1.5))
        assert engine.base_delta("authority", 1.0) == pytest.approx(4.0 * math.log(1.4))
        assert engine.base_delta("momentum", 1.0) == pytest.approx(8.0 * math.log(1.6))

    def test_zero_activity(self, engine):
        assert engine.base_delta("visibility", 0.0) == 0.0

    def test_diminishing_returns(self, engine):
        for component in ("visibility", "authority", "momentum"):
            previous_gain = math.inf
            for level in range(1, 20):
                gain = engine.base_delta(component, level + 1) - engine.base_delta(component, level)
                assert 0 < gain < previous_gain
                previous_gain = gain

    def test_double_activity_less_than_double_delta(self, engine):
        assert engine.base_delta("visibility", 2.0) < 2 * engine.base_delta("visibility", 1.0)

    @pytest.mark.parametrize("pillars,expected", [(1, 1.0), (2, 1.15), (3, 1.30), (5, 1.30)])
    def test_cross_pillar_multiplier(self, engine, pillars, expected):
        assert engine.cross_pillar_multiplier(pillars) == pytest.approx(expected)


class TestApply:
    @pytest.fixture
    def engine(self):
        return ReinforcementEngine()

    def test_press_placement_spreads_over_mapped_subs(self, engine):
        result = apply(engine, [make_event()])

        visibility_delta = 6.0 * math.log(1.5)
        assert result.values["visibility"]["press_coverage"] == pytest.approx(50.0 + visibility_delta / 0.25)
        assert result.values["visibility"]["serp_coverage"] == 50.0
        assert result.deltas["visibility"].applied_delta == pytest.approx(visibility_delta)
        assert result.deltas["authority"].sub_components == ("journalist_match",)
        assert result.deltas["momentum"].delta == pytest.approx(8.0 * math.log(1.6))

    def test_component_rises_by_exactly_delta(self, engine):
        from src.scoring.composite_scorer import CompositeScorer

        scorer = CompositeScorer()
        before = scorer.score(uniform_sub_values(50.0, 50.0, 50.0))
        result = apply(engine, [make_event(activity_type=ActivityType.SEO_OPTIMIZATION, pillars=[Pillar.SEO])])
        after = scorer.score(result.values)

        assert after.visibility - before.visibility == pytest.approx(result.deltas["visibility"].delta)

    def test_sub_values_capped_at_100(self, engine):
        result = apply(engine, [make_event(magnitude=50.0)], sub_values=uniform_sub_values(99.0, 99.0, 99.0))

        assert result.values["visibility"]["press_coverage"] == 100.0
        assert result.deltas["visibility"].applied_delta == pytest.approx(0.25)

    def test_cross_pillar_bonus_applied(self, engine):
        single = apply(engine, [make_event()])
        multi = apply(engine, [make_event(pillars=[Pillar.PR, Pillar.CONTENT, Pillar.SEO])])

        assert multi.deltas["visibility"].cross_pillar_multiplier == pytest.approx(1.30)
        assert multi.deltas["visibility"].delta == pytest.approx(single.deltas["visibility"].delta * 1.30)

    def test_consistency_multiplier_applied(self, engine):
        streak = ConsistencyStreak(
            org_id="acme",
            active_weeks={date(2026, 2, 23), date(2026, 2, 16), date(2026, 2, 9)},
        )
        result = apply(engine, [make_event()], streak=streak)

        assert result.deltas["visibility"].consistency_multiplier == pytest.approx(1.3)

    def test_resets_decay_timer(self, engine):
        states = {"visibility.press_coverage": DecayState("visibility", "press_coverage")}
        apply(engine, [make_event(timestamp=T0 - timedelta(hours=3))], states=states)

        assert states["visibility.press_coverage"].last_reinforced_at == T0 - timedelta(hours=3)
        assert states["authority.journalist_match"].last_reinforced_at == T0 - timedelta(hours=3)
        assert "visibility.serp_coverage" not in states

    def test_records_active_week(self, engine):
        streak = ConsistencyStreak(org_id="acme")
        apply(engine, [make_event()], streak=streak)
        assert date(2026, 3, 2) in streak.active_weeks

    def test_input_not_mutated(self, engine):
        sub_values = uniform_sub_values(50.0, 50.0, 50.0)
        apply(engine, [make_event()], sub_values=sub_values)
        assert sub_values["visibility"]["press_coverage"] == 50.0


class TestIdempotency:
    @pytest.fixture
    def engine(self):
        return ReinforcementEngine()

    def test_replay_is_skipped(self, engine):
        processed: set[str] = set()
        first = apply(engine, [make_event()], processed=processed)
        second = apply(engine, [make_event()], sub_values=first.values, processed=processed)

        assert first.applied_keys == ["evt-1"]
        assert second.duplicate_keys == ["evt-1"]
        assert second.values == first.values
        assert second.deltas == {}

    def test_duplicate_within_batch(self, engine):
        result = apply(engine, [make_event(), make_event()])

        assert result.applied_keys == ["evt-1"]
        assert result.duplicate_keys == ["evt-1"]
        assert result.deltas["visibility"].activity_level == 1.0

    def test_other_org_rejected(self, engine):
        result = apply(engine, [make_event(org_id="globex")])

        assert result.rejected_keys == ["evt-1"]
        assert result.deltas == {}


class TestConsistencyTracker:
    @pytest.fixture
    def tracker(self):
        return ConsistencyTracker()

    def test_week_start_is_monday(self, tracker):
        assert tracker.week_start(T0 + timedelta(days=4)) == date(2026, 3, 2)

    def test_counts_consecutive_prior_weeks(self, tracker):
        streak = ConsistencyStreak(org_id="acme")
        for weeks_back in (1, 2, 3, 4):
            tracker.record_activity(streak, T0 - timedelta(weeks=weeks_back))

        assert tracker.consecutive_active_weeks(streak, T0) == 4
        assert tracker.multiplier(streak, T0) == pytest.approx(1.4)

    def test_idle_week_resets(self, tracker):
        streak = ConsistencyStreak(org_id="acme")
        for weeks_back in (2, 3, 4):
            tracker.record_activity(streak, T0 - timedelta(weeks=weeks_back))

        assert tracker.consecutive_active_weeks(streak, T0) == 0
        assert tracker.multiplier(streak, T0) == 1.0

    def test_capped_at_twelve_weeks(self, tracker):
        streak = ConsistencyStreak(org_id="acme")
        for weeks_back in range(1, 20):
            tracker.record_activity(streak, T0 - timedelta(weeks=weeks_back))

        assert tracker.multiplier(streak, T0) == pytest.approx(2.2)

    def test_prune_keeps_recent_weeks(self, tracker):
        streak = ConsistencyStreak(org_id="acme")
        for weeks_back in range(1, 30):
            tracker.record_activity(streak, T0 - timedelta(weeks=weeks_back))

        tracker.prune(streak, T0)

        assert len(streak.active_weeks) == 13
        assert tracker.multiplier(streak, T0) == pytest.approx(2.2)
