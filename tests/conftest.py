# tests/conftest.py
"""Shared fixtures for EVI engine tests."""
from datetime import datetime

import pytest

from src.models.evi import SignalBatch
from tests.helpers import T0, uniform_signals


@pytest.fixture
def make_batch():
    """Factory for SignalBatch objects with uniform readings."""

    def _make(
        org_id: str = "acme",
        level: float = 60.0,
        observed_at: datetime = T0,
        counters: dict[str, float] | None = None,
    ) -> SignalBatch:
        return SignalBatch(
            org_id=org_id,
            observed_at=observed_at,
            signals=uniform_signals(level),
            counters=counters or {},
        )

    return _make
