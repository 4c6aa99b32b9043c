# tests/helpers.py
"""Test data builders shared across test modules."""
from datetime import datetime, timezone

from src.models.evi import RawSignal

T0 = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)  # a Monday


def uniform_signals(level: float) -> dict[str, RawSignal]:
    """Raw readings that all normalize to `level` under the default contracts."""
    return {
        "ai_presence": RawSignal(value=level, baseline=100.0),
        "press_coverage": RawSignal(value=10 ** (level / 25.0) - 1.0),
        "serp_coverage": RawSignal(value=level),
        "snippets": RawSignal(value=level, baseline=100.0),
        "citation_quality": RawSignal(value=level),
        "domain_authority": RawSignal(value=level),
        "journalist_match": RawSignal(value=level),
        "schema_coverage": RawSignal(value=level),
        "eeat_density": RawSignal(value=level / 100.0),
        "citation_velocity": RawSignal(value=2 * level - 100.0),
        "sov_change": RawSignal(value=2 * level - 100.0),
        "content_velocity": RawSignal(value=level, baseline=100.0),
        "topic_growth": RawSignal(value=2 * level - 100.0),
        "ranking_trajectory": RawSignal(value=2 * level - 100.0),
    }


def uniform_sub_values(visibility: float, authority: float, momentum: float) -> dict[str, dict[str, float]]:
    """Sub-value tables where every sub-metric equals its component score."""
    return {
        "visibility": {
            name: visibility
            for name in ("ai_presence", "press_coverage", "serp_coverage", "snippets")
        },
        "authority": {
            name: authority
            for name in ("citation_quality", "domain_authority", "journalist_match", "schema_coverage", "eeat_density")
        },
        "momentum": {
            name: momentum
            for name in ("citation_velocity", "sov_change", "content_velocity", "topic_growth", "ranking_trajectory")
        },
    }
