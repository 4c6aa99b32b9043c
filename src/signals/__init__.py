"""Signal normalization for raw sub-metric feeds."""

from .contracts import DEFAULT_CONTRACTS, MetricContract, MetricDomain
from .normalizer import NormalizationResult, SignalNormalizer

__all__ = [
    "DEFAULT_CONTRACTS",
    "MetricContract",
    "MetricDomain",
    "NormalizationResult",
    "SignalNormalizer",
]
