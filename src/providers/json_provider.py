# src/providers/json_provider.py
"""Signal provider backed by JSON files dropped by upstream collectors."""
import json
import logging
from datetime import datetime
from pathlib import Path

import aiofiles
import aiofiles.os
from pydantic import ValidationError

from src.models.evi import SignalBatch
from src.providers.base import BaseSignalProvider

logger = logging.getLogger(__name__)


class JsonFileSignalProvider(BaseSignalProvider):
    """Reads one SignalBatch per org from {signals_dir}/{org_id}.json.

    The file holds a single batch object:
        {"org_id": ..., "observed_at": ..., "signals": {...}, "counters": {...}}
    A batch observed after as_of is not returned.
    """

    def __init__(self, signals_dir: Path = Path("data/signals")):
        """Initialize the provider.

        Args:
            signals_dir: Directory holding per-org signal files.
        """
        super().__init__(name="json_file")
        self._signals_dir = Path(signals_dir)

    async def connect(self) -> None:
        await aiofiles.os.makedirs(self._signals_dir, exist_ok=True)
        self._connected = True

    async def disconnect(self) -> None:
        self._connected = False

    def _get_file_path(self, org_id: str) -> Path:
        return self._signals_dir / f"{org_id}.json"

    async def fetch(self, org_id: str, as_of: datetime) -> SignalBatch | None:
        file_path = self._get_file_path(org_id)
        if not await aiofiles.os.path.exists(file_path):
            logger.info(f"No signal file for {org_id}")
            return None

        async with aiofiles.open(file_path, "r") as f:
            content = await f.read()

        try:
            batch = SignalBatch.model_validate(json.loads(content))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.error(f"Malformed signal file for {org_id}: {e}")
            return None

        if batch.org_id != org_id:
            logger.warning(f"Signal file for {org_id} carries org_id {batch.org_id}, ignoring")
            return None
        if batch.observed_at > as_of:
            logger.warning(f"Signal batch for {org_id} observed after {as_of.isoformat()}, ignoring")
            return None
        return batch
