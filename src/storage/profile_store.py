# src/storage/profile_store.py
"""Persistence layer for org visibility profiles."""
import json
import logging
from datetime import date, datetime
from pathlib import Path

import aiofiles
import aiofiles.os

from src.decay.models import DecayState
from src.gaming.models import (
    CounterSample,
    FlagOverride,
    GamingFlag,
    PatternType,
    QuarantinedSignal,
    QuarantineStatus,
)
from src.momentum.negative_momentum import MomentumState
from src.reinforcement.models import ConsistencyStreak
from src.shocks.models import ShockRecord, ShockState
from src.storage.models import OrgVisibilityProfile

logger = logging.getLogger(__name__)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def profile_to_dict(profile: OrgVisibilityProfile) -> dict:
    """Convert an OrgVisibilityProfile to a dictionary for JSON storage."""
    return {
        "org_id": profile.org_id,
        "sub_values": profile.sub_values,
        "decay_states": {
            key: {
                "component": state.component,
                "sub_component": state.sub_component,
                "last_reinforced_at": _iso(state.last_reinforced_at),
                "decayed_through": _iso(state.decayed_through),
            }
            for key, state in profile.decay_states.items()
        },
        "streak": {
            "org_id": profile.streak.org_id,
            "active_weeks": sorted(week.isoformat() for week in profile.streak.active_weeks),
        },
        "shocks": [
            {
                "id": shock.id,
                "org_id": shock.org_id,
                "category": shock.category,
                "direction": shock.direction,
                "magnitude": shock.magnitude,
                "decay_rate": shock.decay_rate,
                "occurred_at": shock.occurred_at.isoformat(),
                "state": shock.state.value,
                "last_contribution": shock.last_contribution,
                "expired_at": _iso(shock.expired_at),
            }
            for shock in profile.shocks
        ],
        "gaming_flags": {
            flag_id: {
                "id": flag.id,
                "org_id": flag.org_id,
                "pattern_type": flag.pattern_type.value,
                "penalty_rate": flag.penalty_rate,
                "created_at": flag.created_at.isoformat(),
                "expires_at": flag.expires_at.isoformat(),
                "counter": flag.counter,
                "observed_change": flag.observed_change,
                "overridden_at": _iso(flag.overridden_at),
                "override_reason": flag.override_reason,
            }
            for flag_id, flag in profile.gaming_flags.items()
        },
        "quarantine": [
            {
                "metric": q.metric,
                "flag_id": q.flag_id,
                "raw_value": q.raw_value,
                "observed_at": q.observed_at.isoformat(),
                "status": q.status.value,
            }
            for q in profile.quarantine
        ],
        "overrides": [
            {
                "flag_id": o.flag_id,
                "org_id": o.org_id,
                "overridden_at": o.overridden_at.isoformat(),
                "reviewer": o.reviewer,
                "reason": o.reason,
            }
            for o in profile.overrides
        ],
        "processed_keys": sorted(profile.processed_keys),
        "counter_history": [
            {"observed_at": sample.observed_at.isoformat(), "counters": sample.counters}
            for sample in profile.counter_history
        ],
        "press_activity": [ts.isoformat() for ts in profile.press_activity],
        "momentum": {
            "flagged": profile.momentum.flagged,
            "weeks_in_decline": profile.momentum.weeks_in_decline,
            "decay_multiplier": profile.momentum.decay_multiplier,
            "reversal_effort_multiplier": profile.momentum.reversal_effort_multiplier,
            "flagged_since": _iso(profile.momentum.flagged_since),
            "weekly_deltas": list(profile.momentum.weekly_deltas),
        },
        "last_computed_at": _iso(profile.last_computed_at),
        "last_observed_at": _iso(profile.last_observed_at),
    }


def profile_from_dict(data: dict) -> OrgVisibilityProfile:
    """Convert a stored dictionary back to an OrgVisibilityProfile."""
    momentum = data.get("momentum", {})
    streak = data.get("streak", {})
    return OrgVisibilityProfile(
        org_id=data["org_id"],
        sub_values={c: dict(subs) for c, subs in data.get("sub_values", {}).items()},
        decay_states={
            key: DecayState(
                component=s["component"],
                sub_component=s["sub_component"],
                last_reinforced_at=_parse(s.get("last_reinforced_at")),
                decayed_through=_parse(s.get("decayed_through")),
            )
            for key, s in data.get("decay_states", {}).items()
        },
        streak=ConsistencyStreak(
            org_id=streak.get("org_id", data["org_id"]),
            active_weeks={date.fromisoformat(w) for w in streak.get("active_weeks", [])},
        ),
        shocks=[
            ShockRecord(
                id=s["id"],
                org_id=s["org_id"],
                category=s["category"],
                direction=s["direction"],
                magnitude=s["magnitude"],
                decay_rate=s["decay_rate"],
                occurred_at=datetime.fromisoformat(s["occurred_at"]),
                state=ShockState(s.get("state", ShockState.ACTIVE.value)),
                last_contribution=s.get("last_contribution", 0.0),
                expired_at=_parse(s.get("expired_at")),
            )
            for s in data.get("shocks", [])
        ],
        gaming_flags={
            flag_id: GamingFlag(
                id=f["id"],
                org_id=f["org_id"],
                pattern_type=PatternType(f["pattern_type"]),
                penalty_rate=f["penalty_rate"],
                created_at=datetime.fromisoformat(f["created_at"]),
                expires_at=datetime.fromisoformat(f["expires_at"]),
                counter=f.get("counter", ""),
                observed_change=f.get("observed_change", 0.0),
                overridden_at=_parse(f.get("overridden_at")),
                override_reason=f.get("override_reason"),
            )
            for flag_id, f in data.get("gaming_flags", {}).items()
        },
        quarantine=[
            QuarantinedSignal(
                metric=q["metric"],
                flag_id=q["flag_id"],
                raw_value=q.get("raw_value"),
                observed_at=datetime.fromisoformat(q["observed_at"]),
                status=QuarantineStatus(q.get("status", QuarantineStatus.PENDING_REVIEW.value)),
            )
            for q in data.get("quarantine", [])
        ],
        overrides=[
            FlagOverride(
                flag_id=o["flag_id"],
                org_id=o["org_id"],
                overridden_at=datetime.fromisoformat(o["overridden_at"]),
                reviewer=o["reviewer"],
                reason=o["reason"],
            )
            for o in data.get("overrides", [])
        ],
        processed_keys=set(data.get("processed_keys", [])),
        counter_history=[
            CounterSample(
                observed_at=datetime.fromisoformat(s["observed_at"]),
                counters=dict(s.get("counters", {})),
            )
            for s in data.get("counter_history", [])
        ],
        press_activity=[datetime.fromisoformat(ts) for ts in data.get("press_activity", [])],
        momentum=MomentumState(
            flagged=momentum.get("flagged", False),
            weeks_in_decline=momentum.get("weeks_in_decline", 0),
            decay_multiplier=momentum.get("decay_multiplier", 1.0),
            reversal_effort_multiplier=momentum.get("reversal_effort_multiplier", 1.0),
            flagged_since=_parse(momentum.get("flagged_since")),
            weekly_deltas=tuple(momentum.get("weekly_deltas", [])),
        ),
        last_computed_at=_parse(data.get("last_computed_at")),
        last_observed_at=_parse(data.get("last_observed_at")),
    )


class ProfileStore:
    """Stores and retrieves org profiles from disk.

    Each profile is one file, {data_dir}/{org_id}.json, replaced atomically
    on save. An in-memory cache serves repeated loads.
    """

    def __init__(self, data_dir: Path = Path("data/profiles")):
        """Initialize the store.

        Args:
            data_dir: Directory to store profile JSON files.
        """
        self._data_dir = Path(data_dir)
        self._cache: dict[str, dict] = {}
        self._data_dir.mkdir(parents=True, exist_ok=True)

    def _get_file_path(self, org_id: str) -> Path:
        return self._data_dir / f"{org_id}.json"

    async def load(self, org_id: str) -> OrgVisibilityProfile | None:
        """Load a profile by org_id.

        Returns a fresh object on every call, so callers may mutate it
        freely without touching the stored state.
        """
        if org_id in self._cache:
            return profile_from_dict(self._cache[org_id])

        file_path = self._get_file_path(org_id)
        if not await aiofiles.os.path.exists(file_path):
            return None

        async with aiofiles.open(file_path, "r") as f:
            content = await f.read()
        data = json.loads(content)
        self._cache[org_id] = data
        return profile_from_dict(data)

    async def load_or_create(self, org_id: str) -> OrgVisibilityProfile:
        profile = await self.load(org_id)
        if profile is None:
            logger.info(f"Creating new profile for {org_id}")
            profile = OrgVisibilityProfile(org_id=org_id)
        return profile

    async def save(self, profile: OrgVisibilityProfile) -> None:
        """Save or replace a profile."""
        data = profile_to_dict(profile)
        file_path = self._get_file_path(profile.org_id)
        tmp_path = file_path.with_suffix(".json.tmp")
        async with aiofiles.open(tmp_path, "w") as f:
            await f.write(json.dumps(data, indent=2, default=str))
        await aiofiles.os.replace(tmp_path, file_path)
        self._cache[profile.org_id] = data

    def list_orgs(self) -> list[str]:
        """Org ids with a stored profile."""
        return sorted(path.stem for path in self._data_dir.glob("*.json"))
