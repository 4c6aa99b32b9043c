# src/signals/contracts.py
"""Normalization contracts for every EVI sub-metric."""
from dataclasses import dataclass
from enum import Enum


class MetricDomain(str, Enum):
    """Declared valid domain of a raw sub-metric.

    - PERCENTAGE: already 0-100, passed through.
    - RATIO: 0-1, scaled by 100.
    - COUNT: non-negative count divided by a tracked baseline.
    - LOG_COUNT: non-negative volume on a log10 curve.
    - SCORE: third-party 0-100 score (e.g. domain authority).
    - DELTA: signed change in percentage points, -100..100.
    """

    PERCENTAGE = "percentage"
    RATIO = "ratio"
    COUNT = "count"
    LOG_COUNT = "log_count"
    SCORE = "score"
    DELTA = "delta"


@dataclass(frozen=True)
class MetricContract:
    """How one raw sub-metric maps onto 0-100.

    Attributes:
        name: Sub-metric name (matches the weight table key).
        component: Owning component name.
        domain: Declared valid domain.
        lower: Lowest valid raw value.
        upper: Highest valid raw value (None for unbounded counts).
        log_scale: Points per decade for LOG_COUNT metrics.
        default_baseline: Baseline used by COUNT metrics when the reading has none.
        bounded_by_baseline: COUNT metric whose numerator is a subset of the
            baseline (hits / tracked queries), so value > baseline is out of domain.
    """

    name: str
    component: str
    domain: MetricDomain
    lower: float = 0.0
    upper: float | None = None
    log_scale: float = 25.0
    default_baseline: float | None = None
    bounded_by_baseline: bool = False

    @property
    def key(self) -> str:
        return f"{self.component}.{self.name}"


def _contract(name: str, component: str, domain: MetricDomain, **kwargs) -> MetricContract:
    bounds = {
        MetricDomain.PERCENTAGE: (0.0, 100.0),
        MetricDomain.RATIO: (0.0, 1.0),
        MetricDomain.SCORE: (0.0, 100.0),
        MetricDomain.DELTA: (-100.0, 100.0),
        MetricDomain.COUNT: (0.0, None),
        MetricDomain.LOG_COUNT: (0.0, None),
    }
    lower, upper = bounds[domain]
    return MetricContract(name=name, component=component, domain=domain, lower=lower, upper=upper, **kwargs)


DEFAULT_CONTRACTS: dict[str, MetricContract] = {
    c.name: c
    for c in [
        # Visibility
        _contract("ai_presence", "visibility", MetricDomain.COUNT, bounded_by_baseline=True),  # cited / relevant queries
        _contract("press_coverage", "visibility", MetricDomain.LOG_COUNT, log_scale=25.0),
        _contract("serp_coverage", "visibility", MetricDomain.PERCENTAGE),  # tracked keywords in top 10
        _contract("snippets", "visibility", MetricDomain.COUNT, bounded_by_baseline=True),  # snippet wins / tracked queries
        # Authority
        _contract("citation_quality", "authority", MetricDomain.SCORE),
        _contract("domain_authority", "authority", MetricDomain.SCORE),
        _contract("journalist_match", "authority", MetricDomain.PERCENTAGE),
        _contract("schema_coverage", "authority", MetricDomain.PERCENTAGE),
        _contract("eeat_density", "authority", MetricDomain.RATIO),
        # Momentum
        _contract("citation_velocity", "momentum", MetricDomain.DELTA),
        _contract("sov_change", "momentum", MetricDomain.DELTA),
        _contract("content_velocity", "momentum", MetricDomain.COUNT, default_baseline=8.0),
        _contract("topic_growth", "momentum", MetricDomain.DELTA),
        _contract("ranking_trajectory", "momentum", MetricDomain.DELTA),
    ]
}
