# src/engine/evi_engine.py
"""Multi-tenant EVI engine: locking, persistence and event emission."""
import asyncio
import logging
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Callable

from src.engine.event_bus import SnapshotEventBus
from src.engine.models import SnapshotComputed, TickResult
from src.engine.pipeline import ScoringPipeline
from src.gaming.models import GamingFlag
from src.models.errors import EVIError
from src.models.evi import ActivityEvent, ShockEvent, SignalBatch, ensure_utc
from src.providers.base import BaseSignalProvider
from src.scoring.models import TrendSummary
from src.scoring.trend import summarize_trend
from src.storage.models import TickTrigger
from src.storage.profile_store import ProfileStore
from src.storage.snapshot_store import SnapshotStore

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class EVIEngine:
    """Runs the scoring pipeline per org and commits the results.

    Every org has its own asyncio.Lock, so one org's tick never waits on
    another's. Within a lock the engine loads the org's profile, runs the
    pipeline on that working copy, then saves the profile and appends the
    snapshot, in that order. An EVIError aborts only that org's tick:
    nothing is written and the previous snapshot stays current.
    """

    def __init__(
        self,
        pipeline: ScoringPipeline,
        snapshot_store: SnapshotStore,
        profile_store: ProfileStore,
        provider: BaseSignalProvider | None = None,
        event_bus: SnapshotEventBus | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """Initialize the engine.

        Args:
            pipeline: Scoring pipeline.
            snapshot_store: Append-only snapshot store.
            profile_store: Org profile store.
            provider: Source of raw signal batches for scheduled ticks.
            event_bus: Receives SnapshotComputed after each commit.
            clock: Returns the current UTC time.
        """
        self._pipeline = pipeline
        self._snapshots = snapshot_store
        self._profiles = profile_store
        self._provider = provider
        self._bus = event_bus or SnapshotEventBus()
        self._clock = clock
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    @property
    def pipeline(self) -> ScoringPipeline:
        return self._pipeline

    @property
    def snapshot_store(self) -> SnapshotStore:
        return self._snapshots

    @property
    def profile_store(self) -> ProfileStore:
        return self._profiles

    @property
    def event_bus(self) -> SnapshotEventBus:
        return self._bus

    def lock_for(self, org_id: str) -> asyncio.Lock:
        """The org's lock, created on first use."""
        return self._locks[org_id]

    async def run_tick(
        self,
        org_id: str,
        now: datetime | None = None,
        batch: SignalBatch | None = None,
        activities: list[ActivityEvent] | None = None,
        shocks: list[ShockEvent] | None = None,
        trigger: TickTrigger = TickTrigger.SCHEDULED,
    ) -> TickResult:
        """Recompute and commit one org's EVI.

        Scheduled ticks fetch a batch from the provider when none is given.

        Args:
            org_id: Tenant id.
            now: Tick time. Defaults to the engine clock.
            batch: Raw readings to use instead of fetching.
            activities: Activity events to apply.
            shocks: Shock events to register.
            trigger: What caused the recompute.

        Returns:
            TickResult with status completed, aborted or skipped.
        """
        async with self.lock_for(org_id):
            now = ensure_utc(now or self._clock())

            if batch is None and self._provider is not None and trigger == TickTrigger.SCHEDULED:
                batch = await self._provider.fetch(org_id, now)

            if batch is not None and batch.org_id != org_id:
                logger.warning(f"Tick for {org_id} aborted: batch belongs to {batch.org_id}")
                return TickResult(
                    org_id=org_id,
                    status="aborted",
                    timestamp=now,
                    error=f"batch org_id {batch.org_id} does not match {org_id}",
                )

            profile = await self._profiles.load_or_create(org_id)
            lookback = timedelta(weeks=self._pipeline.settings.momentum.lookback_weeks + 1)
            history = await self._snapshots.evi_series(org_id, since=now - lookback)
            previous_evi = history[-1][1] if history else None

            try:
                outcome = self._pipeline.run(
                    profile,
                    now,
                    batch=batch,
                    activities=activities,
                    shocks=shocks,
                    evi_history=history,
                    trigger=trigger,
                )
            except EVIError as e:
                logger.warning(f"Tick for {org_id} aborted: {e}")
                return TickResult(org_id=org_id, status="aborted", timestamp=now, error=str(e))

            snapshot = outcome.snapshot
            # A snapshot never exists without its committed profile state
            await self._profiles.save(outcome.profile)
            await self._snapshots.append(snapshot)

            logger.info(
                f"EVI {org_id} = {snapshot.evi:.2f} ({snapshot.status_band}) "
                f"V={snapshot.visibility:.1f} A={snapshot.authority:.1f} M={snapshot.momentum:.1f} "
                f"[{trigger.value}]"
            )

        await self._bus.emit(SnapshotComputed(org_id=org_id, snapshot=snapshot, previous_evi=previous_evi))
        return TickResult(
            org_id=org_id,
            status="completed",
            timestamp=snapshot.timestamp,
            snapshot=snapshot,
            duplicate_keys=outcome.duplicate_keys,
        )

    async def tick_all(self, org_ids: list[str], now: datetime | None = None) -> list[TickResult]:
        """Run scheduled ticks for many orgs concurrently.

        An unexpected failure in one org is logged and reported as an error
        result; the other orgs are unaffected.
        """
        now = ensure_utc(now or self._clock())
        results = await asyncio.gather(
            *[self.run_tick(org_id, now=now) for org_id in org_ids],
            return_exceptions=True,
        )

        tick_results = []
        for org_id, result in zip(org_ids, results):
            if isinstance(result, BaseException):
                logger.error(f"Tick for {org_id} failed: {result}")
                tick_results.append(
                    TickResult(org_id=org_id, status="error", timestamp=now, error=str(result))
                )
            else:
                tick_results.append(result)
        return tick_results

    async def submit_activity(
        self, events: list[ActivityEvent], now: datetime | None = None
    ) -> list[TickResult]:
        """Apply activity immediately, one recompute per org in the batch."""
        by_org: dict[str, list[ActivityEvent]] = defaultdict(list)
        for event in events:
            by_org[event.org_id].append(event)
        return list(
            await asyncio.gather(
                *[
                    self.run_tick(org_id, now=now, activities=org_events, trigger=TickTrigger.ACTIVITY)
                    for org_id, org_events in by_org.items()
                ]
            )
        )

    async def submit_shock(self, event: ShockEvent, now: datetime | None = None) -> TickResult:
        """Register a shock and recompute its org."""
        return await self.run_tick(
            event.org_id, now=now, shocks=[event], trigger=TickTrigger.SHOCK
        )

    async def override_flag(
        self,
        org_id: str,
        flag_id: str,
        reviewer: str,
        reason: str,
        at: datetime | None = None,
    ) -> GamingFlag:
        """End a gaming flag early after manual review.

        The override takes effect from the next recompute.

        Raises:
            KeyError: If the org has no flag with that id.
        """
        async with self.lock_for(org_id):
            at = ensure_utc(at or self._clock())
            profile = await self._profiles.load_or_create(org_id)
            flag = profile.gaming_flags.get(flag_id)
            if flag is None:
                raise KeyError(f"No gaming flag {flag_id} for {org_id}")

            overridden, record = self._pipeline.gaming_guard.override_flag(flag, reviewer, reason, at)
            profile.gaming_flags[flag_id] = overridden
            profile.overrides.append(record)
            self._pipeline.gaming_guard.release_quarantine(profile.quarantine, flag_id)
            await self._profiles.save(profile)
            return overridden

    async def trend(self, org_id: str, since: datetime | None = None) -> TrendSummary:
        """Trend summary over the org's snapshot history."""
        series = await self._snapshots.evi_series(org_id, since=since)
        return summarize_trend([evi for _, evi in series])
