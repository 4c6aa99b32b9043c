# tests/engine/test_evi_engine.py
"""Tests for EVIEngine."""
import asyncio
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest

from src.engine.evi_engine import EVIEngine
from src.engine.event_bus import SnapshotEventBus
from src.engine.pipeline import ScoringPipeline
from src.gaming.models import QuarantineStatus
from src.models.errors import NoticeKind
from src.models.evi import ActivityEvent, RawSignal, ShockEvent, SignalBatch
from src.providers.base import BaseSignalProvider
from src.scoring.models import TrendDirection
from src.storage.models import TickTrigger
from src.storage.profile_store import ProfileStore
from src.storage.snapshot_store import SnapshotStore
from tests.helpers import T0


class StaticProvider(BaseSignalProvider):
    """Serves pre-built batches; raises for orgs listed in `failing`."""

    def __init__(self, batches: dict[str, SignalBatch], failing: set[str] | None = None):
        super().__init__(name="static")
        self._batches = batches
        self._failing = failing or set()
        self.fetched: list[str] = []

    async def connect(self) -> None:
        self._connected = True

    async def disconnect(self) -> None:
        self._connected = False

    async def fetch(self, org_id: str, as_of: datetime) -> SignalBatch | None:
        self.fetched.append(org_id)
        if org_id in self._failing:
            raise RuntimeError(f"provider down for {org_id}")
        return self._batches.get(org_id)


def make_activity(key: str = "evt-1", org_id: str = "acme", timestamp=T0, magnitude: float = 1.0) -> ActivityEvent:
    """Create a press placement ActivityEvent for testing."""
    return ActivityEvent(
        idempotency_key=key,
        org_id=org_id,
        pillars=["pr"],
        type="press_placement",
        magnitude=magnitude,
        timestamp=timestamp,
    )


def make_shock_event(
    shock_id: str = "shock-1",
    category: str = "tier1_media_win",
    seed: float = 0.5,
    timestamp=T0,
) -> ShockEvent:
    """Create a positive ShockEvent for testing."""
    return ShockEvent(
        id=shock_id,
        org_id="acme",
        category=category,
        direction="positive",
        magnitude_seed=seed,
        timestamp=timestamp,
    )


@pytest.fixture
def stores(tmp_path):
    return SnapshotStore(tmp_path / "snapshots"), ProfileStore(tmp_path / "profiles")


@pytest.fixture
def engine(stores):
    snapshot_store, profile_store = stores
    return EVIEngine(ScoringPipeline(), snapshot_store, profile_store)


class TestRunTick:
    @pytest.mark.asyncio
    async def test_first_tick_scores_batch(self, engine, make_batch):
        result = await engine.run_tick("acme", now=T0, batch=make_batch(level=50.0))

        assert result.ok
        assert result.snapshot.evi == pytest.approx(50.0)
        assert result.snapshot.status_band == "emerging"
        assert result.snapshot.trigger == "scheduled"

        latest = await engine.snapshot_store.latest("acme")
        assert latest == result.snapshot
        profile = await engine.profile_store.load("acme")
        assert profile.last_computed_at == T0

    @pytest.mark.asyncio
    async def test_no_baseline_aborts(self, engine):
        result = await engine.run_tick("acme", now=T0)

        assert result.status == "aborted"
        assert "missing sub-metrics" in result.error
        assert await engine.snapshot_store.latest("acme") is None
        assert await engine.profile_store.load("acme") is None

    @pytest.mark.asyncio
    async def test_invalid_reading_keeps_previous_snapshot(self, engine, make_batch):
        await engine.run_tick("acme", now=T0, batch=make_batch(level=60.0))

        bad = make_batch(level=60.0, observed_at=T0 + timedelta(days=1))
        bad.signals["serp_coverage"] = RawSignal(value=150.0)
        result = await engine.run_tick("acme", now=T0 + timedelta(days=1), batch=bad)

        assert result.status == "aborted"
        assert "serp_coverage" in result.error
        latest = await engine.snapshot_store.latest("acme")
        assert latest.timestamp == T0
        profile = await engine.profile_store.load("acme")
        assert profile.last_computed_at == T0

    @pytest.mark.asyncio
    async def test_profile_committed_before_snapshot(self, engine, make_batch):
        await engine.run_tick("acme", now=T0, batch=make_batch(level=60.0))
        later = T0 + timedelta(hours=1)

        with patch.object(engine.snapshot_store, "append", AsyncMock(side_effect=OSError("disk full"))):
            with pytest.raises(OSError):
                await engine.submit_activity([make_activity(timestamp=later)], now=later)

        profile = await engine.profile_store.load("acme")
        assert profile.processed_keys == {"evt-1"}
        assert profile.last_computed_at == later
        assert (await engine.snapshot_store.latest("acme")).timestamp == T0

        retry = await engine.run_tick("acme", now=T0 + timedelta(hours=2))
        assert retry.ok
        assert retry.snapshot.components["visibility"]["press_coverage"] > 60.0

    @pytest.mark.asyncio
    async def test_batch_for_other_org_aborts(self, engine, make_batch):
        result = await engine.run_tick("acme", now=T0, batch=make_batch(org_id="globex"))

        assert result.status == "aborted"
        assert await engine.snapshot_store.latest("acme") is None
        assert await engine.snapshot_store.latest("globex") is None

    @pytest.mark.asyncio
    async def test_decay_between_ticks(self, engine, make_batch):
        first = await engine.run_tick("acme", now=T0, batch=make_batch(level=60.0))
        second = await engine.run_tick("acme", now=T0 + timedelta(weeks=1))
        third = await engine.run_tick("acme", now=T0 + timedelta(weeks=2))

        assert first.snapshot.evi > second.snapshot.evi > third.snapshot.evi
        assert second.snapshot.authority > second.snapshot.momentum

    @pytest.mark.asyncio
    async def test_clock_skew_shifts_timestamp(self, engine, make_batch):
        await engine.run_tick("acme", now=T0, batch=make_batch())
        result = await engine.run_tick("acme", now=T0 - timedelta(hours=1))

        assert result.ok
        assert result.snapshot.timestamp == T0 + timedelta(microseconds=1)
        assert any(n.kind == NoticeKind.CLOCK_SKEW_ANOMALY for n in result.snapshot.notices)
        assert len(await engine.snapshot_store.history("acme")) == 2

    @pytest.mark.asyncio
    async def test_evi_clamped_to_hundred(self, engine, make_batch):
        result = await engine.run_tick(
            "acme",
            now=T0,
            batch=make_batch(level=100.0),
            shocks=[make_shock_event(category="viral_coverage", seed=1.0)],
            trigger=TickTrigger.SHOCK,
        )

        assert result.snapshot.composite_evi == pytest.approx(100.0)
        assert result.snapshot.shock_overlay == pytest.approx(20.0)
        assert result.snapshot.evi == 100.0


class TestEvents:
    @pytest.mark.asyncio
    async def test_activity_reinforces(self, engine, make_batch):
        base = await engine.run_tick("acme", now=T0, batch=make_batch(level=60.0))

        results = await engine.submit_activity([make_activity()], now=T0 + timedelta(hours=1))

        assert len(results) == 1
        snapshot = results[0].snapshot
        assert snapshot.trigger == "activity"
        assert snapshot.evi > base.snapshot.evi
        assert snapshot.components["visibility"]["press_coverage"] > 60.0
        assert snapshot.components["visibility"]["serp_coverage"] < 60.0

    @pytest.mark.asyncio
    async def test_activity_replay_is_idempotent(self, engine, make_batch):
        await engine.run_tick("acme", now=T0, batch=make_batch(level=60.0))
        first = await engine.submit_activity([make_activity()], now=T0 + timedelta(hours=1))
        replay = await engine.submit_activity([make_activity()], now=T0 + timedelta(hours=2))

        assert replay[0].duplicate_keys == ["evt-1"]
        assert replay[0].snapshot.evi <= first[0].snapshot.evi
        profile = await engine.profile_store.load("acme")
        assert profile.processed_keys == {"evt-1"}

    @pytest.mark.asyncio
    async def test_resent_batch_keeps_reinforcement(self, stores, make_batch):
        snapshot_store, profile_store = stores
        provider = StaticProvider({"acme": make_batch("acme", 60.0, counters={"backlinks": 100.0})})
        engine = EVIEngine(ScoringPipeline(), snapshot_store, profile_store, provider=provider)
        await engine.run_tick("acme", now=T0)

        activity = make_activity(timestamp=T0 + timedelta(hours=1), magnitude=5.0)
        reinforced = await engine.submit_activity([activity], now=T0 + timedelta(hours=1))
        boosted = reinforced[0].snapshot.components["visibility"]["press_coverage"]

        after = await engine.run_tick("acme", now=T0 + timedelta(hours=2))

        assert provider.fetched == ["acme", "acme"]
        assert after.snapshot.components["visibility"]["press_coverage"] >= boosted * 0.99
        assert after.snapshot.evi >= reinforced[0].snapshot.evi * 0.99
        profile = await engine.profile_store.load("acme")
        assert len(profile.counter_history) == 1
        assert profile.last_observed_at == T0

    @pytest.mark.asyncio
    async def test_reading_older_than_activity_not_applied(self, engine, make_batch):
        await engine.run_tick("acme", now=T0, batch=make_batch(level=60.0))
        await engine.submit_activity(
            [make_activity(timestamp=T0 + timedelta(hours=2))], now=T0 + timedelta(hours=2)
        )

        older = make_batch(level=50.0, observed_at=T0 + timedelta(hours=1))
        result = await engine.run_tick("acme", now=T0 + timedelta(hours=3), batch=older)

        visibility = result.snapshot.components["visibility"]
        assert visibility["press_coverage"] > 60.0
        assert visibility["serp_coverage"] < 51.0
        profile = await engine.profile_store.load("acme")
        assert profile.last_observed_at == T0 + timedelta(hours=1)

    @pytest.mark.asyncio
    async def test_activity_grouped_by_org(self, engine, make_batch):
        await engine.run_tick("acme", now=T0, batch=make_batch("acme"))
        await engine.run_tick("globex", now=T0, batch=make_batch("globex"))

        results = await engine.submit_activity(
            [make_activity("a", "acme"), make_activity("b", "globex"), make_activity("c", "acme")],
            now=T0 + timedelta(hours=1),
        )

        assert sorted(r.org_id for r in results) == ["acme", "globex"]
        acme = await engine.profile_store.load("acme")
        globex = await engine.profile_store.load("globex")
        assert acme.processed_keys == {"a", "c"}
        assert globex.processed_keys == {"b"}

    @pytest.mark.asyncio
    async def test_shock_lifts_evi(self, engine, make_batch):
        base = await engine.run_tick("acme", now=T0, batch=make_batch(level=60.0))

        result = await engine.submit_shock(make_shock_event(timestamp=T0 + timedelta(hours=1)), now=T0 + timedelta(hours=1))

        assert result.snapshot.active_shock_ids == ("shock-1",)
        assert result.snapshot.evi == pytest.approx(base.snapshot.evi + 11.5, abs=0.1)
        assert result.snapshot.trigger == "shock"

    @pytest.mark.asyncio
    async def test_gaming_penalty_and_override(self, engine, make_batch):
        await engine.run_tick("acme", now=T0, batch=make_batch(counters={"backlinks": 100.0}))

        later = T0 + timedelta(weeks=1)
        result = await engine.run_tick(
            "acme", now=later, batch=make_batch(observed_at=later, counters={"backlinks": 400.0})
        )

        snapshot = result.snapshot
        assert len(snapshot.active_gaming_flag_ids) == 1
        assert snapshot.penalty_multiplier == pytest.approx(0.85)
        assert snapshot.evi == pytest.approx(snapshot.composite_evi * 0.85)
        assert "domain_authority" in snapshot.stale_metrics

        flag_id = snapshot.active_gaming_flag_ids[0]
        overridden = await engine.override_flag(
            "acme", flag_id, "analyst@acme", "links verified", at=later + timedelta(hours=1)
        )
        assert overridden.override_reason == "links verified"

        after = await engine.run_tick("acme", now=later + timedelta(hours=2))
        assert after.snapshot.active_gaming_flag_ids == ()
        assert after.snapshot.penalty_multiplier == 1.0

        profile = await engine.profile_store.load("acme")
        assert profile.overrides[0].reviewer == "analyst@acme"
        assert [q.status for q in profile.quarantine] == [QuarantineStatus.RELEASED]

    @pytest.mark.asyncio
    async def test_override_unknown_flag(self, engine):
        with pytest.raises(KeyError):
            await engine.override_flag("acme", "missing", "analyst", "reason", at=T0)


class TestMultiTenant:
    @pytest.mark.asyncio
    async def test_tick_all_isolates_orgs(self, stores, make_batch):
        snapshot_store, profile_store = stores
        provider = StaticProvider({"acme": make_batch("acme", 60.0), "globex": make_batch("globex", 30.0)})
        engine = EVIEngine(ScoringPipeline(), snapshot_store, profile_store, provider=provider)

        results = await engine.tick_all(["acme", "globex"], now=T0)

        by_org = {r.org_id: r for r in results}
        assert by_org["acme"].snapshot.evi == pytest.approx(60.0)
        assert by_org["globex"].snapshot.evi == pytest.approx(30.0)
        assert sorted(provider.fetched) == ["acme", "globex"]

    @pytest.mark.asyncio
    async def test_failure_in_one_org_contained(self, stores, make_batch):
        snapshot_store, profile_store = stores
        provider = StaticProvider({"acme": make_batch("acme")}, failing={"broken"})
        engine = EVIEngine(ScoringPipeline(), snapshot_store, profile_store, provider=provider)

        results = await engine.tick_all(["acme", "broken"], now=T0)

        by_org = {r.org_id: r for r in results}
        assert by_org["acme"].ok
        assert by_org["broken"].status == "error"
        assert "provider down" in by_org["broken"].error

    @pytest.mark.asyncio
    async def test_event_ticks_skip_provider(self, stores, make_batch):
        snapshot_store, profile_store = stores
        provider = StaticProvider({"acme": make_batch("acme")})
        engine = EVIEngine(ScoringPipeline(), snapshot_store, profile_store, provider=provider)
        await engine.run_tick("acme", now=T0)

        await engine.submit_activity([make_activity()], now=T0 + timedelta(hours=1))

        assert provider.fetched == ["acme"]

    @pytest.mark.asyncio
    async def test_same_org_ticks_serialized(self, engine, make_batch):
        await engine.run_tick("acme", now=T0, batch=make_batch())

        results = await asyncio.gather(
            *[engine.run_tick("acme", now=T0 + timedelta(hours=h)) for h in (1, 2, 3)]
        )

        assert all(r.ok for r in results)
        history = await engine.snapshot_store.history("acme")
        assert len(history) == 4
        assert [s.timestamp for s in history] == sorted(s.timestamp for s in history)


class TestEventsAndTrend:
    @pytest.mark.asyncio
    async def test_snapshot_event_emitted(self, stores, make_batch):
        snapshot_store, profile_store = stores
        bus = SnapshotEventBus()
        received = []
        bus.add_callback(received.append)
        engine = EVIEngine(ScoringPipeline(), snapshot_store, profile_store, event_bus=bus)

        await engine.run_tick("acme", now=T0, batch=make_batch(level=60.0))
        await engine.run_tick("acme", now=T0 + timedelta(days=1), batch=make_batch(level=50.0, observed_at=T0 + timedelta(days=1)))

        assert len(received) == 2
        assert received[0].previous_evi is None
        assert received[1].change == pytest.approx(-10.0)

    @pytest.mark.asyncio
    async def test_aborted_tick_emits_nothing(self, stores):
        snapshot_store, profile_store = stores
        bus = SnapshotEventBus()
        received = []
        bus.add_callback(received.append)
        engine = EVIEngine(ScoringPipeline(), snapshot_store, profile_store, event_bus=bus)

        await engine.run_tick("acme", now=T0)

        assert received == []

    @pytest.mark.asyncio
    async def test_trend(self, engine, make_batch):
        await engine.run_tick("acme", now=T0, batch=make_batch(level=40.0))
        await engine.run_tick("acme", now=T0 + timedelta(days=1), batch=make_batch(level=60.0, observed_at=T0 + timedelta(days=1)))

        trend = await engine.trend("acme")

        assert trend.direction == TrendDirection.UP
        assert trend.current_value == pytest.approx(60.0)
        assert trend.min_value == pytest.approx(40.0)
