# src/scoring/trend.py
"""Trend summary over a series of EVI values."""
from src.scoring.models import TrendDirection, TrendSummary

# |change| below this percentage counts as stable
STABLE_THRESHOLD_PCT = 5.0


def summarize_trend(values: list[float]) -> TrendSummary:
    """Summarize a chronological list of EVI values (oldest first).

    Change is measured between the last two values. A previous value of 0
    yields a change of 0.
    """
    if not values:
        return TrendSummary(
            current_value=0.0,
            previous_value=0.0,
            change_pct=0.0,
            direction=TrendDirection.STABLE,
            avg_value=0.0,
            max_value=0.0,
            min_value=0.0,
        )

    current = values[-1]
    previous = values[-2] if len(values) > 1 else 0.0
    change_pct = ((current - previous) / previous) * 100 if previous != 0 else 0.0

    if abs(change_pct) < STABLE_THRESHOLD_PCT:
        direction = TrendDirection.STABLE
    elif change_pct > 0:
        direction = TrendDirection.UP
    else:
        direction = TrendDirection.DOWN

    return TrendSummary(
        current_value=current,
        previous_value=previous,
        change_pct=change_pct,
        direction=direction,
        avg_value=sum(values) / len(values),
        max_value=max(values),
        min_value=min(values),
    )
