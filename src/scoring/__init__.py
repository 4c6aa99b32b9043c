"""Component calculators and composite EVI scoring."""

from .component_calculator import ComponentCalculator
from .composite_scorer import CompositeScorer
from .models import ComponentScore, CompositeScore, StatusBand, TrendDirection, TrendSummary
from .trend import summarize_trend

__all__ = [
    "ComponentCalculator",
    "ComponentScore",
    "CompositeScore",
    "CompositeScorer",
    "StatusBand",
    "TrendDirection",
    "TrendSummary",
    "summarize_trend",
]
