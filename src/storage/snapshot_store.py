# src/storage/snapshot_store.py
"""Append-only snapshot persistence."""
import json
import logging
from datetime import datetime, timezone
from pathlib import Path

import aiofiles
import aiofiles.os

from src.models.errors import EngineNotice, NoticeKind
from src.storage.models import EVISnapshot

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y%m%dT%H%M%S%fZ"


def snapshot_key(timestamp: datetime) -> str:
    """File stem for a snapshot timestamp (UTC, sortable)."""
    if timestamp.tzinfo is not None:
        timestamp = timestamp.astimezone(timezone.utc)
    return timestamp.strftime(TIMESTAMP_FORMAT)


def notice_to_dict(notice: EngineNotice) -> dict:
    return {
        "kind": notice.kind.value,
        "message": notice.message,
        "at": notice.at.isoformat(),
        "details": notice.details,
    }


def notice_from_dict(data: dict) -> EngineNotice:
    return EngineNotice(
        kind=NoticeKind(data["kind"]),
        message=data["message"],
        at=datetime.fromisoformat(data["at"]),
        details=data.get("details", {}),
    )


def snapshot_to_dict(snapshot: EVISnapshot) -> dict:
    """Convert an EVISnapshot to a dictionary for JSON storage."""
    return {
        "org_id": snapshot.org_id,
        "timestamp": snapshot.timestamp.isoformat(),
        "evi": snapshot.evi,
        "visibility": snapshot.visibility,
        "authority": snapshot.authority,
        "momentum": snapshot.momentum,
        "active_shock_ids": list(snapshot.active_shock_ids),
        "active_gaming_flag_ids": list(snapshot.active_gaming_flag_ids),
        "provenance": {
            "composite_evi": snapshot.composite_evi,
            "shock_overlay": snapshot.shock_overlay,
            "shock_contributions": snapshot.shock_contributions,
            "penalty_multiplier": snapshot.penalty_multiplier,
            "components": snapshot.components,
            "status_band": snapshot.status_band,
            "focus_driver": snapshot.focus_driver,
            "decay_multiplier": snapshot.decay_multiplier,
            "negative_momentum": snapshot.negative_momentum,
            "reversal_effort_multiplier": snapshot.reversal_effort_multiplier,
            "stale_metrics": list(snapshot.stale_metrics),
            "notices": [notice_to_dict(n) for n in snapshot.notices],
            "trigger": snapshot.trigger,
        },
    }


def snapshot_from_dict(data: dict) -> EVISnapshot:
    """Convert a stored dictionary back to an EVISnapshot."""
    provenance = data.get("provenance", {})
    return EVISnapshot(
        org_id=data["org_id"],
        timestamp=datetime.fromisoformat(data["timestamp"]),
        evi=data["evi"],
        visibility=data["visibility"],
        authority=data["authority"],
        momentum=data["momentum"],
        active_shock_ids=tuple(data.get("active_shock_ids", [])),
        active_gaming_flag_ids=tuple(data.get("active_gaming_flag_ids", [])),
        composite_evi=provenance.get("composite_evi", data["evi"]),
        shock_overlay=provenance.get("shock_overlay", 0.0),
        shock_contributions=provenance.get("shock_contributions", {}),
        penalty_multiplier=provenance.get("penalty_multiplier", 1.0),
        components=provenance.get("components", {}),
        status_band=provenance.get("status_band", ""),
        focus_driver=provenance.get("focus_driver", ""),
        decay_multiplier=provenance.get("decay_multiplier", 1.0),
        negative_momentum=provenance.get("negative_momentum", False),
        reversal_effort_multiplier=provenance.get("reversal_effort_multiplier", 1.0),
        stale_metrics=tuple(provenance.get("stale_metrics", [])),
        notices=tuple(notice_from_dict(n) for n in provenance.get("notices", [])),
        trigger=provenance.get("trigger", "scheduled"),
    )


class SnapshotStore:
    """Stores EVISnapshots as one JSON file each.

    Layout: {data_dir}/{org_id}/{YYYYMMDDTHHMMSSffffffZ}.json
    Snapshots are keyed by (org_id, timestamp) and never overwritten. Writes
    go to a temp file that is then renamed over the target, so readers see
    either nothing or the complete snapshot.
    """

    def __init__(self, data_dir: Path = Path("data/snapshots")):
        """Initialize the store.

        Args:
            data_dir: Root directory for snapshot files.
        """
        self._data_dir = Path(data_dir)
        self._data_dir.mkdir(parents=True, exist_ok=True)

    def _org_dir(self, org_id: str) -> Path:
        return self._data_dir / org_id

    def _get_file_path(self, org_id: str, timestamp: datetime) -> Path:
        return self._org_dir(org_id) / f"{snapshot_key(timestamp)}.json"

    async def append(self, snapshot: EVISnapshot) -> Path:
        """Persist a new snapshot.

        Args:
            snapshot: Snapshot to store.

        Returns:
            Path of the written file.

        Raises:
            FileExistsError: If a snapshot with the same key already exists.
        """
        org_dir = self._org_dir(snapshot.org_id)
        await aiofiles.os.makedirs(org_dir, exist_ok=True)

        file_path = self._get_file_path(snapshot.org_id, snapshot.timestamp)
        if await aiofiles.os.path.exists(file_path):
            raise FileExistsError(
                f"Snapshot {snapshot.org_id}/{file_path.stem} already exists"
            )

        tmp_path = file_path.with_suffix(".json.tmp")
        async with aiofiles.open(tmp_path, "w") as f:
            await f.write(json.dumps(snapshot_to_dict(snapshot), indent=2, default=str))
        await aiofiles.os.replace(tmp_path, file_path)

        logger.debug(f"Stored snapshot {snapshot.org_id}/{file_path.stem}")
        return file_path

    async def _read(self, file_path: Path) -> EVISnapshot:
        async with aiofiles.open(file_path, "r") as f:
            content = await f.read()
        return snapshot_from_dict(json.loads(content))

    def _snapshot_files(self, org_id: str) -> list[Path]:
        org_dir = self._org_dir(org_id)
        if not org_dir.exists():
            return []
        return sorted(org_dir.glob("*.json"))

    async def latest(self, org_id: str) -> EVISnapshot | None:
        """Most recent snapshot for an org, or None."""
        files = self._snapshot_files(org_id)
        if not files:
            return None
        return await self._read(files[-1])

    async def history(
        self,
        org_id: str,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> list[EVISnapshot]:
        """Snapshots for an org in chronological order.

        Args:
            org_id: Tenant id.
            since: Inclusive lower bound on timestamp.
            until: Inclusive upper bound on timestamp.
        """
        # File stems sort like their timestamps, so the window is applied
        # before any file is opened
        low = snapshot_key(since) if since is not None else None
        high = snapshot_key(until) if until is not None else None

        snapshots = []
        for file_path in self._snapshot_files(org_id):
            if low is not None and file_path.stem < low:
                continue
            if high is not None and file_path.stem > high:
                continue
            snapshots.append(await self._read(file_path))
        return snapshots

    async def evi_series(self, org_id: str, since: datetime | None = None) -> list[tuple[datetime, float]]:
        """(timestamp, evi) pairs, chronological."""
        return [(s.timestamp, s.evi) for s in await self.history(org_id, since=since)]
